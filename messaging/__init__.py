# ============================================================================
# MESSAGING MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Dispatch boundary and Azure Service Bus integration
# PURPOSE: Hand claimed jobs to the execution backend
# CREATED: 18 OCT 2026
# ============================================================================
"""
Messaging Module

Dispatchers the orchestrator hands claimed jobs to.

Usage:
    from messaging import InProcessDispatcher, ServiceBusDispatcher, MessagingConfig

    dispatcher = ServiceBusDispatcher(MessagingConfig.from_env())
    await dispatcher.dispatch("wf-123", "a_job", [1, 2])
"""

from .dispatcher import JobDispatcher, InProcessDispatcher
from .publisher import ServiceBusDispatcher
from .config import MessagingConfig

__all__ = [
    "JobDispatcher",
    "InProcessDispatcher",
    "ServiceBusDispatcher",
    "MessagingConfig",
]
