# ============================================================================
# DISPATCHER TESTS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Tests - In-process and Service Bus dispatch
# PURPOSE: Verify acceptance, refusal and error mapping of dispatchers
# CREATED: 18 OCT 2026
# ============================================================================
"""
Dispatcher Tests

Covers:
1. InProcessDispatcher schedules runner tasks and drains them
2. Unknown jobs are refused before anything is scheduled or sent
3. ServiceBusDispatcher message shape (id, subject, properties, TTL)
4. Send failures become DispatchError
5. MessagingConfig.from_env

Run with:
    pytest tests/test_dispatchers.py -v
"""

import asyncio
import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors import DispatchError, UnknownJobError
from core.logging import log_context
from handlers.registry import JobRegistry
from messaging import InProcessDispatcher, MessagingConfig, ServiceBusDispatcher


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def registry():
    registry = JobRegistry()
    registry.add("a_job", lambda ctx: None)
    return registry


@pytest.fixture
def config():
    return MessagingConfig(connection_string="Endpoint=sb://test/", job_queue="cascade-jobs")


@pytest.fixture
def sender():
    return AsyncMock()


@pytest.fixture
def sb_dispatcher(config, registry, sender):
    dispatcher = ServiceBusDispatcher(config, registry=registry)
    dispatcher._sender = sender
    return dispatcher


# ============================================================================
# IN-PROCESS
# ============================================================================

class TestInProcessDispatcher:

    def test_schedules_runner(self, registry):
        runner = MagicMock()
        runner.run = AsyncMock()
        dispatcher = InProcessDispatcher(registry, runner)

        async def run():
            await dispatcher.dispatch("wf-1", "a_job", (1, 2))
            scheduled = dispatcher.pending
            await dispatcher.drain()
            return scheduled

        assert asyncio.run(run()) == 1
        assert dispatcher.pending == 0
        runner.run.assert_awaited_once_with("wf-1", "a_job", [1, 2])

    def test_unknown_job_refused(self, registry):
        runner = MagicMock()
        runner.run = AsyncMock()
        dispatcher = InProcessDispatcher(registry, runner)

        with pytest.raises(UnknownJobError):
            asyncio.run(dispatcher.dispatch("wf-1", "ghost", []))

        runner.run.assert_not_called()

    def test_no_runner(self, registry):
        dispatcher = InProcessDispatcher(registry)

        with pytest.raises(RuntimeError, match="no runner"):
            asyncio.run(dispatcher.dispatch("wf-1", "a_job", []))

    def test_drain_follows_chained_dispatches(self, registry):
        registry.add("b_job", lambda ctx: None)
        calls = []
        dispatcher = InProcessDispatcher(registry)

        class ChainRunner:
            async def run(self, workflow_id, job_name, args):
                calls.append(job_name)
                if job_name == "a_job":
                    await dispatcher.dispatch(workflow_id, "b_job", [])

        dispatcher.runner = ChainRunner()

        async def run():
            await dispatcher.dispatch("wf-1", "a_job", [])
            await dispatcher.close()

        asyncio.run(run())
        assert calls == ["a_job", "b_job"]


# ============================================================================
# SERVICE BUS
# ============================================================================

class TestServiceBusDispatcher:

    def test_message_shape(self, sb_dispatcher):
        message = sb_dispatcher.build_message("wf-1", "a_job", [1, "x"])

        assert message.message_id == "wf-1:a_job"
        assert message.subject == "a_job"
        assert message.application_properties == {"workflow_id": "wf-1", "job_name": "a_job"}

        body = json.loads(str(message))
        assert body["workflow_id"] == "wf-1"
        assert body["args"] == [1, "x"]

    def test_correlation_from_log_context(self, sb_dispatcher):
        with log_context(correlation_id="req-42"):
            message = sb_dispatcher.build_message("wf-1", "a_job", [])

        assert message.correlation_id == "req-42"

    def test_ttl(self, registry):
        config = MessagingConfig(
            connection_string="Endpoint=sb://test/",
            job_queue="cascade-jobs",
            message_ttl_seconds=300,
        )
        dispatcher = ServiceBusDispatcher(config, registry=registry)

        message = dispatcher.build_message("wf-1", "a_job", [])
        assert message.time_to_live == timedelta(seconds=300)

    def test_dispatch_sends(self, sb_dispatcher, sender):
        asyncio.run(sb_dispatcher.dispatch("wf-1", "a_job", [1]))

        sender.send_messages.assert_awaited_once()
        sent = sender.send_messages.call_args.args[0]
        assert sent.message_id == "wf-1:a_job"

    def test_unknown_job_not_sent(self, sb_dispatcher, sender):
        with pytest.raises(UnknownJobError):
            asyncio.run(sb_dispatcher.dispatch("wf-1", "ghost", []))

        sender.send_messages.assert_not_called()

    def test_without_registry_anything_goes(self, config, sender):
        dispatcher = ServiceBusDispatcher(config)
        dispatcher._sender = sender

        asyncio.run(dispatcher.dispatch("wf-1", "ghost", []))
        sender.send_messages.assert_awaited_once()

    def test_send_failure_is_dispatch_error(self, sb_dispatcher, sender):
        sender.send_messages.side_effect = ConnectionError("amqp link detached")

        with pytest.raises(DispatchError) as exc_info:
            asyncio.run(sb_dispatcher.dispatch("wf-1", "a_job", []))

        assert exc_info.value.job_name == "a_job"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_close(self, sb_dispatcher, sender):
        client = AsyncMock()
        sb_dispatcher._client = client

        asyncio.run(sb_dispatcher.close())

        sender.close.assert_awaited_once()
        client.close.assert_awaited_once()
        assert sb_dispatcher._sender is None
        assert sb_dispatcher._client is None


# ============================================================================
# CONFIG
# ============================================================================

class TestMessagingConfig:

    def test_connection_string(self, monkeypatch):
        monkeypatch.setenv("CASCADE_JOB_QUEUE", "jobs")
        monkeypatch.setenv("CASCADE_SERVICEBUS_CONNECTION_STRING", "Endpoint=sb://x/")
        monkeypatch.setenv("CASCADE_MESSAGE_TTL_SECONDS", "120")
        monkeypatch.delenv("USE_MANAGED_IDENTITY", raising=False)

        config = MessagingConfig.from_env()

        assert config.job_queue == "jobs"
        assert config.connection_string == "Endpoint=sb://x/"
        assert config.message_ttl_seconds == 120
        assert not config.use_managed_identity

    def test_managed_identity(self, monkeypatch):
        monkeypatch.setenv("CASCADE_JOB_QUEUE", "jobs")
        monkeypatch.setenv("USE_MANAGED_IDENTITY", "true")
        monkeypatch.setenv("CASCADE_SERVICEBUS_FQDN", "ns.servicebus.windows.net")
        monkeypatch.setenv("AZURE_CLIENT_ID", "abc-123")

        config = MessagingConfig.from_env()

        assert config.use_managed_identity
        assert config.fully_qualified_namespace == "ns.servicebus.windows.net"
        assert config.managed_identity_client_id == "abc-123"

    def test_queue_required(self, monkeypatch):
        monkeypatch.delenv("CASCADE_JOB_QUEUE", raising=False)

        with pytest.raises(ValueError, match="CASCADE_JOB_QUEUE"):
            MessagingConfig.from_env()

    def test_fqdn_required_for_managed_identity(self, monkeypatch):
        monkeypatch.setenv("CASCADE_JOB_QUEUE", "jobs")
        monkeypatch.setenv("USE_MANAGED_IDENTITY", "true")
        monkeypatch.delenv("CASCADE_SERVICEBUS_FQDN", raising=False)

        with pytest.raises(ValueError, match="CASCADE_SERVICEBUS_FQDN"):
            MessagingConfig.from_env()

    def test_connection_string_required(self, monkeypatch):
        monkeypatch.setenv("CASCADE_JOB_QUEUE", "jobs")
        monkeypatch.delenv("USE_MANAGED_IDENTITY", raising=False)
        monkeypatch.delenv("CASCADE_SERVICEBUS_CONNECTION_STRING", raising=False)

        with pytest.raises(ValueError, match="CONNECTION_STRING"):
            MessagingConfig.from_env()
