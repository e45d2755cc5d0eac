# ============================================================================
# WORKER MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Job execution components
# PURPOSE: Run jobs and report their outcome
# CREATED: 18 OCT 2026
# ============================================================================
"""
Worker Module

- executor: JobRunner, the wrapper that runs a job and notifies the
  orchestrator when it completes or fails
- consumer: ServiceBusConsumer, feeds queued jobs to a JobRunner
- main: standalone worker process
"""

from worker.executor import JobRunner, JobOutcome
from worker.consumer import ServiceBusConsumer, run_consumer

__all__ = [
    "JobRunner",
    "JobOutcome",
    "ServiceBusConsumer",
    "run_consumer",
]
