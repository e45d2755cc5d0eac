# ============================================================================
# IN-MEMORY WORKFLOW STORE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Default store implementation
# PURPOSE: Process-local progress/definition storage with atomic CAS
# CREATED: 18 OCT 2026
# ============================================================================
"""
In-Memory Workflow Store

Dict-backed store guarded by a lock. Every operation is a short critical
section with no awaits inside it, so compare-and-set is atomic for any mix
of coroutines and threads in one process.

Values are kept as JSON text, the same representation the other stores
persist, so nothing the caller holds aliases stored state.

Not shared between processes: use PostgresWorkflowStore for that.
"""

import json
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from core.contracts import JobStatus
from core.models import ProgressRecord, WorkflowDefinition
from .base import WorkflowStore


class InMemoryWorkflowStore(WorkflowStore):
    """Process-local store. Safe under concurrent coroutines and threads."""

    def __init__(
        self,
        key_prefix: str = "workflow",
        ttl_seconds: Optional[int] = None,
    ):
        super().__init__(key_prefix=key_prefix, ttl_seconds=ttl_seconds)
        self._entries: Dict[str, Tuple[str, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # RAW KEY ACCESS (caller holds the lock)
    # =========================================================================

    def _get(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if self.is_expired(expires_at):
            del self._entries[key]
            return None
        return json.loads(raw)

    def _set(self, key: str, value) -> None:
        self._entries[key] = (json.dumps(value), self.expires_at())

    # =========================================================================
    # PROGRESS
    # =========================================================================

    async def read_progress(self, workflow_id: str) -> ProgressRecord:
        with self._error_context("read progress", workflow_id), self._lock:
            raw = self._get(self.key(workflow_id, self.PROGRESS))
            return ProgressRecord.from_record(raw or {})

    async def write_progress(self, workflow_id: str, record: ProgressRecord) -> None:
        with self._error_context("write progress", workflow_id), self._lock:
            self._set(self.key(workflow_id, self.PROGRESS), record.to_record())

    async def initialize_progress(self, workflow_id: str) -> bool:
        key = self.key(workflow_id, self.PROGRESS)
        with self._error_context("initialize progress", workflow_id), self._lock:
            if self._get(key) is not None:
                return False
            self._set(key, {})
            return True

    async def compare_and_set_status(
        self,
        workflow_id: str,
        job_name: str,
        expected: JobStatus,
        new: JobStatus,
    ) -> bool:
        self.check_transition(workflow_id, job_name, expected, new)
        key = self.key(workflow_id, self.PROGRESS)
        with self._error_context("compare-and-set status", workflow_id), self._lock:
            progress = self._get(key) or {}
            current = progress.get(job_name, JobStatus.PENDING.value)
            if current != expected.value:
                return False
            progress[job_name] = new.value
            self._set(key, progress)
            return True

    async def claim_completion(self, workflow_id: str) -> bool:
        key = self.key(workflow_id, self.CONCLUDED)
        with self._error_context("claim completion", workflow_id), self._lock:
            if self._get(key) is not None:
                return False
            self._set(key, {"concluded_at": datetime.now(timezone.utc).isoformat()})
            return True

    # =========================================================================
    # DEFINITIONS
    # =========================================================================

    async def read_definition(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        with self._error_context("read definition", workflow_id), self._lock:
            raw = self._get(self.key(workflow_id, self.DEFINITION))
        if raw is None:
            return None
        return self.decode_definition(workflow_id, raw)

    async def write_definition(self, workflow_id: str, definition: WorkflowDefinition) -> None:
        with self._error_context("write definition", workflow_id), self._lock:
            self._set(self.key(workflow_id, self.DEFINITION), definition.to_record())

    async def touch_definition(self, workflow_id: str) -> bool:
        key = self.key(workflow_id, self.DEFINITION)
        with self._error_context("touch definition", workflow_id), self._lock:
            if self._get(key) is None:
                return False
            raw, _ = self._entries[key]
            self._entries[key] = (raw, self.expires_at())
            return True

    def clear(self) -> None:
        """Drop everything. Primarily for testing."""
        with self._lock:
            self._entries.clear()


__all__ = ["InMemoryWorkflowStore"]
