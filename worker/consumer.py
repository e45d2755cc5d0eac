# ============================================================================
# SERVICE BUS CONSUMER
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Service Bus job consumer
# PURPOSE: Receive dispatched jobs from the queue and run them
# CREATED: 18 OCT 2026
# ============================================================================
"""
Service Bus Consumer

Listens on the job queue that ServiceBusDispatcher publishes to and hands
each message to JobRunner.handle_message, which runs the job and reports
the outcome to the orchestrator (whose cascade may publish more jobs).

Message settlement:
- Job ran and its outcome was reported (success OR failure) -> complete
- Body is not a job message                                  -> dead-letter
- Outcome could not be reported (store down, ...)            -> abandon,
  the queue redelivers. A repeated completion is a duplicate that still
  re-runs the cascade, so dependents the first attempt never reached are
  dispatched then; claims stay CAS-gated, so nothing runs twice
"""

import asyncio
import json
import logging
import signal
from typing import Dict, Optional

from azure.servicebus import ServiceBusReceivedMessage
from azure.servicebus.aio import ServiceBusClient, ServiceBusReceiver
from pydantic import ValidationError as PydanticValidationError

from messaging.config import MessagingConfig
from worker.executor import JobRunner

logger = logging.getLogger(__name__)


# ============================================================================
# CONSUMER
# ============================================================================

class ServiceBusConsumer:
    """
    Consumes job messages from Azure Service Bus.

    Runs up to config.max_concurrent_jobs jobs at once.
    """

    def __init__(self, config: MessagingConfig, runner: JobRunner):
        """
        Initialize consumer.

        Args:
            config: Messaging configuration (queue, auth, concurrency)
            runner: Runs jobs and reports outcomes; must have an orchestrator
                attached
        """
        self.config = config
        self.runner = runner
        self._client: Optional[ServiceBusClient] = None
        self._receiver: Optional[ServiceBusReceiver] = None
        self._credential = None

        # State
        self._running = False
        self._active_tasks: Dict[str, asyncio.Task] = {}

        # Stats
        self.messages_received = 0
        self.jobs_succeeded = 0
        self.jobs_failed = 0
        self.messages_abandoned = 0
        self.messages_dead_lettered = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_jobs(self) -> int:
        return len(self._active_tasks)

    def stats(self) -> Dict[str, int]:
        return {
            "messages_received": self.messages_received,
            "jobs_succeeded": self.jobs_succeeded,
            "jobs_failed": self.jobs_failed,
            "messages_abandoned": self.messages_abandoned,
            "messages_dead_lettered": self.messages_dead_lettered,
            "active_jobs": self.active_jobs,
        }

    async def start(self) -> None:
        """Start the consumer."""
        if self._running:
            logger.warning("Consumer already running")
            return

        logger.info(f"Starting consumer: queue={self.config.job_queue}")
        await self._connect()
        self._running = True
        logger.info("Consumer started")

    async def stop(self) -> None:
        """Stop the consumer, letting running jobs finish first."""
        if not self._running:
            return

        logger.info("Stopping consumer...")
        self._running = False

        if self._active_tasks:
            logger.info(f"Waiting for {len(self._active_tasks)} active jobs...")
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._active_tasks.values(), return_exceptions=True),
                    timeout=self.config.shutdown_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning("Shutdown timeout - cancelling remaining jobs")
                for task in self._active_tasks.values():
                    task.cancel()

        await self._disconnect()
        logger.info(f"Consumer stopped. Stats: {self.stats()}")

    async def run(self) -> None:
        """
        Run the consumer loop.

        Receives messages until stop() is called.
        """
        await self.start()

        try:
            while self._running:
                try:
                    await self._receive_batch()
                except Exception as e:
                    logger.exception(f"Error in receive loop: {e}")
                    await asyncio.sleep(1)
        finally:
            await self.stop()

    async def _connect(self) -> None:
        """Connect to Service Bus."""
        if self.config.use_managed_identity:
            from azure.identity.aio import ManagedIdentityCredential

            if self.config.managed_identity_client_id:
                self._credential = ManagedIdentityCredential(
                    client_id=self.config.managed_identity_client_id
                )
            else:
                self._credential = ManagedIdentityCredential()

            self._client = ServiceBusClient(
                fully_qualified_namespace=self.config.fully_qualified_namespace,
                credential=self._credential,
            )
        else:
            self._client = ServiceBusClient.from_connection_string(
                self.config.connection_string,
            )

        self._receiver = self._client.get_queue_receiver(
            queue_name=self.config.job_queue,
            max_wait_time=self.config.receive_wait_seconds,
        )

        logger.info(f"Connected to queue: {self.config.job_queue}")

    async def _disconnect(self) -> None:
        """Disconnect from Service Bus."""
        if self._receiver:
            await self._receiver.close()
            self._receiver = None

        if self._client:
            await self._client.close()
            self._client = None

        if self._credential:
            await self._credential.close()
            self._credential = None

    async def _receive_batch(self) -> None:
        """Receive a batch sized to the free job slots and start processing it."""
        if not self._receiver:
            return

        available_slots = self.config.max_concurrent_jobs - len(self._active_tasks)
        if available_slots <= 0:
            await asyncio.wait(
                list(self._active_tasks.values()),
                return_when=asyncio.FIRST_COMPLETED,
            )
            return

        messages = await self._receiver.receive_messages(
            max_message_count=available_slots,
            max_wait_time=self.config.receive_wait_seconds,
        )

        for message in messages:
            self.messages_received += 1

            task = asyncio.create_task(self.process_message(message))
            task_id = str(message.message_id or id(message))
            self._active_tasks[task_id] = task
            task.add_done_callback(
                lambda t, tid=task_id: self._active_tasks.pop(tid, None)
            )

    async def process_message(self, message: ServiceBusReceivedMessage) -> None:
        """
        Run one job message and settle it.

        Args:
            message: Service Bus message carrying a JobMessage body
        """
        try:
            outcome = await self.runner.handle_message(str(message))

        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.error(f"Invalid job message {message.message_id}: {e}")
            await self._receiver.dead_letter_message(
                message,
                reason="invalid_job_message",
                error_description=str(e)[:1000],
            )
            self.messages_dead_lettered += 1
            return

        except Exception as e:
            logger.exception(f"Could not report job from message {message.message_id}: {e}")
            await self._receiver.abandon_message(message)
            self.messages_abandoned += 1
            return

        await self._receiver.complete_message(message)
        if outcome.success:
            self.jobs_succeeded += 1
        else:
            self.jobs_failed += 1

        logger.info(
            f"Job {outcome.workflow_id}/{outcome.job_name} processed: "
            f"success={outcome.success}"
        )


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

async def run_consumer(consumer: ServiceBusConsumer) -> None:
    """
    Run a consumer until SIGTERM / SIGINT.

    Args:
        consumer: Configured consumer
    """
    loop = asyncio.get_running_loop()

    def shutdown_handler():
        logger.info("Shutdown signal received")
        asyncio.create_task(consumer.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await consumer.run()


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ServiceBusConsumer",
    "run_consumer",
]
