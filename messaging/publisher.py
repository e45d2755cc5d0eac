# ============================================================================
# SERVICE BUS DISPATCHER
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Service Bus job dispatch
# PURPOSE: Send dispatched jobs to a worker queue
# CREATED: 18 OCT 2026
# ============================================================================
"""
Service Bus Dispatcher

Sends one JobMessage per dispatched job to an Azure Service Bus queue.
Workers consume the queue and run worker.executor.JobRunner.handle_message,
which reports completion back to the orchestrator.

message_id is "<workflow_id>:<job_name>", so a queue with duplicate
detection enabled drops a job that was somehow sent twice.
"""

import json
import logging
from datetime import timedelta
from typing import Any, List, Optional

from azure.servicebus import ServiceBusMessage
from azure.servicebus.aio import ServiceBusClient, ServiceBusSender

from core.errors import DispatchError, UnknownJobError
from core.logging import get_current_context
from core.models import JobMessage
from handlers.registry import JobRegistry
from .config import MessagingConfig
from .dispatcher import JobDispatcher

logger = logging.getLogger(__name__)


class ServiceBusDispatcher(JobDispatcher):
    """Dispatcher that publishes jobs to Service Bus."""

    def __init__(
        self,
        config: MessagingConfig,
        registry: Optional[JobRegistry] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            config: Messaging configuration
            registry: If given, jobs missing from it are refused with
                UnknownJobError before anything is sent
        """
        self.config = config
        self.registry = registry
        self._client: Optional[ServiceBusClient] = None
        self._sender: Optional[ServiceBusSender] = None

    async def connect(self) -> None:
        """Establish connection to Service Bus."""
        if self._client is not None:
            return

        if self.config.use_managed_identity:
            from azure.identity.aio import ManagedIdentityCredential

            if self.config.managed_identity_client_id:
                credential = ManagedIdentityCredential(
                    client_id=self.config.managed_identity_client_id
                )
            else:
                credential = ManagedIdentityCredential()

            self._client = ServiceBusClient(
                fully_qualified_namespace=self.config.fully_qualified_namespace,
                credential=credential,
            )
            logger.info(
                f"Connecting to Service Bus via managed identity: "
                f"{self.config.fully_qualified_namespace}"
            )
        else:
            self._client = ServiceBusClient.from_connection_string(
                self.config.connection_string
            )
            logger.info("Connecting to Service Bus via connection string")

        self._sender = self._client.get_queue_sender(queue_name=self.config.job_queue)
        logger.info(f"Connected to Service Bus queue: {self.config.job_queue}")

    async def close(self) -> None:
        """Close connection to Service Bus."""
        if self._sender:
            await self._sender.close()
            self._sender = None

        if self._client:
            await self._client.close()
            self._client = None

        logger.info("Service Bus connection closed")

    def build_message(self, workflow_id: str, job_name: str, args: List[Any]) -> ServiceBusMessage:
        job = JobMessage(
            workflow_id=workflow_id,
            job_name=job_name,
            args=list(args),
            correlation_id=get_current_context().correlation_id,
        )
        message = ServiceBusMessage(
            body=json.dumps(job.to_queue_message()),
            message_id=job.message_id,
            correlation_id=job.correlation_id,
            subject=job_name,
            application_properties={
                "workflow_id": workflow_id,
                "job_name": job_name,
            },
        )
        if self.config.message_ttl_seconds:
            message.time_to_live = timedelta(seconds=self.config.message_ttl_seconds)
        return message

    async def dispatch(self, workflow_id: str, job_name: str, args: List[Any]) -> None:
        """
        Send one job to the queue.

        Raises:
            UnknownJobError: registry given and job not in it
            DispatchError: message could not be built or sent
        """
        if self.registry is not None and job_name not in self.registry:
            raise UnknownJobError(job_name, workflow_id=workflow_id)

        try:
            if self._sender is None:
                await self.connect()
            message = self.build_message(workflow_id, job_name, args)
            await self._sender.send_messages(message)
        except Exception as e:
            logger.error(f"Failed to dispatch {workflow_id}/{job_name}: {e}")
            raise DispatchError(
                f"Service Bus send failed for {job_name}: {e}",
                workflow_id=workflow_id,
                job_name=job_name,
            ) from e

        logger.info(f"Dispatched job {job_name} workflow={workflow_id}")


__all__ = ["ServiceBusDispatcher"]
