# ============================================================================
# WORKFLOW STORE CONTRACT
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Progress/definition persistence interfaces
# PURPOSE: Contract every store implementation must honour
# CREATED: 18 OCT 2026
# ============================================================================
"""
Workflow Store Contract

Two interfaces consumed by the Orchestrator:

ProgressStore
    read_progress / write_progress / initialize_progress
    compare_and_set_status   <- the operation correctness depends on
    claim_completion         <- set-once marker for the completion hook

DefinitionStore
    read_definition / write_definition / touch_definition

Keys are namespaced per workflow and per concern:

    "<prefix>:<workflow_id>:definition"
    "<prefix>:<workflow_id>:progress"
    "<prefix>:<workflow_id>:concluded"

Values are JSON. Implementations may expire keys after a TTL; an expired
key reads exactly like a missing one. "Not found" is never an error at this
layer: read_progress returns an empty record and read_definition returns None.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.contracts import JobStatus
from core.errors import InvalidTransitionError, StoreError, ValidationError
from core.models import ProgressRecord, WorkflowDefinition

logger = logging.getLogger(__name__)


class ProgressStore(ABC):
    """Durable job-status map per workflow."""

    @abstractmethod
    async def read_progress(self, workflow_id: str) -> ProgressRecord:
        """Read progress; empty record if unset or expired."""

    @abstractmethod
    async def write_progress(self, workflow_id: str, record: ProgressRecord) -> None:
        """
        Overwrite the whole progress record.

        Not used by the engine for status changes; those go through
        compare_and_set_status.
        """

    @abstractmethod
    async def initialize_progress(self, workflow_id: str) -> bool:
        """
        Create an empty progress record if none exists.

        Returns:
            True if created, False if a record was already there
        """

    @abstractmethod
    async def compare_and_set_status(
        self,
        workflow_id: str,
        job_name: str,
        expected: JobStatus,
        new: JobStatus,
    ) -> bool:
        """
        Atomically move job_name from expected to new.

        An absent entry counts as PENDING. Only forward moves listed in
        ALLOWED_TRANSITIONS are accepted.

        Returns:
            True if applied, False if the current status was not `expected`

        Raises:
            InvalidTransitionError: expected -> new is not a forward move
                (nothing is written)
        """

    @abstractmethod
    async def claim_completion(self, workflow_id: str) -> bool:
        """
        Set the workflow's concluded marker if it is not already set.

        Returns:
            True for exactly one caller per workflow instance
        """


class DefinitionStore(ABC):
    """Durable copy of each workflow's DAG."""

    @abstractmethod
    async def read_definition(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        """Read a definition; None if never written or expired."""

    @abstractmethod
    async def write_definition(self, workflow_id: str, definition: WorkflowDefinition) -> None:
        """Write (or overwrite) a definition."""

    @abstractmethod
    async def touch_definition(self, workflow_id: str) -> bool:
        """
        Push a stored definition's expiry forward by a full TTL.

        Returns:
            True if a live definition was refreshed, False if absent
        """


class WorkflowStore(ProgressStore, DefinitionStore):
    """
    Base for stores that keep both concerns in one key space.

    Provides key naming, TTL arithmetic and error wrapping.
    """

    DEFINITION = "definition"
    PROGRESS = "progress"
    CONCLUDED = "concluded"

    def __init__(
        self,
        key_prefix: str = "workflow",
        ttl_seconds: Optional[int] = None,
    ):
        """
        Initialize store.

        Args:
            key_prefix: Namespace prefix for all keys
            ttl_seconds: Expire keys after this many seconds (None = never)
        """
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self.logger = logging.getLogger(self.__class__.__name__)

    def key(self, workflow_id: str, concern: str) -> str:
        """Namespaced key for one concern of one workflow."""
        return f"{self.key_prefix}:{workflow_id}:{concern}"

    def expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Expiry timestamp for a write happening now."""
        if not self.ttl_seconds:
            return None
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=self.ttl_seconds)

    @staticmethod
    def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return expires_at <= now

    @staticmethod
    def check_transition(
        workflow_id: str,
        job_name: str,
        expected: JobStatus,
        new: JobStatus,
    ) -> None:
        """Reject a CAS that would move a job backwards or sideways."""
        if not expected.can_transition_to(new):
            raise InvalidTransitionError(workflow_id, job_name, expected.value, new.value)

    def decode_definition(self, workflow_id: str, record) -> WorkflowDefinition:
        """
        Rebuild a stored definition.

        A stored definition that no longer validates is a store problem,
        not a caller problem.
        """
        try:
            return WorkflowDefinition.from_record(workflow_id, record)
        except ValidationError as e:
            raise StoreError(
                f"Stored definition for {workflow_id} is corrupt: {e}",
                operation="read_definition",
                workflow_id=workflow_id,
            ) from e

    @contextmanager
    def _error_context(self, operation: str, workflow_id: Optional[str] = None):
        """
        Context manager for consistent error handling.

        All non-store exceptions are logged with context and re-raised as
        StoreError.

        Example:
            with self._error_context("write progress", workflow_id):
                ...
        """
        try:
            yield
        except StoreError:
            raise
        except Exception as e:
            error_msg = f"{operation} failed"
            if workflow_id:
                error_msg += f" for {workflow_id}"
            error_msg += f": {e}"
            self.logger.error(error_msg)
            raise StoreError(error_msg, operation=operation, workflow_id=workflow_id) from e


__all__ = ["ProgressStore", "DefinitionStore", "WorkflowStore"]
