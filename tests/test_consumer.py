# ============================================================================
# SERVICE BUS CONSUMER TESTS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Tests - Queue consumption and message settlement
# PURPOSE: Verify complete / abandon / dead-letter decisions
# CREATED: 18 OCT 2026
# ============================================================================
"""
Service Bus Consumer Tests

Covers:
1. Reported outcomes (success and failure) complete the message
2. Reporting failures abandon the message for redelivery
3. Malformed bodies are dead-lettered
4. Batch size follows free job slots
5. Worker handler loading

Run with:
    pytest tests/test_consumer.py -v
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors import StoreError
from handlers import JobRegistry
from messaging.config import MessagingConfig
from worker.consumer import ServiceBusConsumer
from worker.executor import JobRunner


# ============================================================================
# FIXTURES
# ============================================================================

def _message(body, message_id="wf-1:ok"):
    message = MagicMock()
    message.__str__.return_value = body if isinstance(body, str) else json.dumps(body)
    message.message_id = message_id
    return message


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.notify_completed = AsyncMock()
    mock.notify_failed = AsyncMock()
    return mock


@pytest.fixture
def runner(orchestrator):
    registry = JobRegistry()

    @registry.register("ok")
    async def ok(ctx):
        return None

    @registry.register("broken")
    async def broken(ctx):
        raise RuntimeError("nope")

    return JobRunner(registry, orchestrator=orchestrator)


@pytest.fixture
def receiver():
    return AsyncMock()


@pytest.fixture
def consumer(runner, receiver):
    config = MessagingConfig(
        connection_string="Endpoint=sb://test/",
        job_queue="cascade-jobs",
        max_concurrent_jobs=3,
    )
    consumer = ServiceBusConsumer(config, runner)
    consumer._receiver = receiver
    return consumer


# ============================================================================
# SETTLEMENT
# ============================================================================

class TestProcessMessage:

    def test_success_completes(self, consumer, receiver, orchestrator):
        message = _message({"workflow_id": "wf-1", "job_name": "ok", "args": []})

        asyncio.run(consumer.process_message(message))

        receiver.complete_message.assert_awaited_once_with(message)
        orchestrator.notify_completed.assert_awaited_once_with("wf-1", "ok")
        assert consumer.jobs_succeeded == 1

    def test_job_failure_still_completes(self, consumer, receiver, orchestrator):
        message = _message({"workflow_id": "wf-1", "job_name": "broken"})

        asyncio.run(consumer.process_message(message))

        receiver.complete_message.assert_awaited_once_with(message)
        orchestrator.notify_failed.assert_awaited_once_with("wf-1", "broken", "RuntimeError: nope")
        assert consumer.jobs_failed == 1

    def test_report_failure_abandons(self, consumer, receiver, orchestrator):
        orchestrator.notify_completed.side_effect = StoreError("db down")
        message = _message({"workflow_id": "wf-1", "job_name": "ok"})

        asyncio.run(consumer.process_message(message))

        receiver.abandon_message.assert_awaited_once_with(message)
        receiver.complete_message.assert_not_called()
        assert consumer.messages_abandoned == 1

    def test_invalid_json_dead_lettered(self, consumer, receiver):
        message = _message("{not json")

        asyncio.run(consumer.process_message(message))

        receiver.dead_letter_message.assert_awaited_once()
        assert receiver.dead_letter_message.call_args.kwargs["reason"] == "invalid_job_message"
        assert consumer.messages_dead_lettered == 1

    def test_missing_fields_dead_lettered(self, consumer, receiver):
        message = _message({"job_name": "ok"})

        asyncio.run(consumer.process_message(message))

        receiver.dead_letter_message.assert_awaited_once()


class TestReceiveBatch:

    def test_batch_sized_to_free_slots(self, consumer, receiver):
        receiver.receive_messages.return_value = [
            _message({"workflow_id": "wf-1", "job_name": "ok"}, message_id="wf-1:ok"),
        ]

        async def run():
            await consumer._receive_batch()
            await asyncio.gather(*consumer._active_tasks.values())

        asyncio.run(run())

        assert receiver.receive_messages.call_args.kwargs["max_message_count"] == 3
        assert consumer.messages_received == 1
        assert consumer.active_jobs == 0
        assert consumer.stats()["jobs_succeeded"] == 1

    def test_no_receiver_is_noop(self, runner):
        consumer = ServiceBusConsumer(MessagingConfig(job_queue="q"), runner)
        asyncio.run(consumer._receive_batch())
        assert consumer.messages_received == 0


# ============================================================================
# HANDLER LOADING
# ============================================================================

class TestLoadHandlers:

    def test_examples_and_extra_module(self, tmp_path, monkeypatch):
        (tmp_path / "extra_jobs.py").write_text(
            "def register_jobs(registry):\n"
            "    registry.add('extra', lambda ctx: None)\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))

        from worker.main import load_handlers

        registry = load_handlers(JobRegistry(), ["extra_jobs"])

        assert "echo" in registry
        assert "extra" in registry

    def test_module_without_register_jobs(self, tmp_path, monkeypatch):
        (tmp_path / "no_register.py").write_text("X = 1\n")
        monkeypatch.syspath_prepend(str(tmp_path))

        from worker.main import load_handlers

        with pytest.raises(AttributeError, match="register_jobs"):
            load_handlers(JobRegistry(), ["no_register"])
