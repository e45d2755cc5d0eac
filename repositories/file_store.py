# ============================================================================
# FILE WORKFLOW STORE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - JSON-file store for single-process deployments
# PURPOSE: Persist progress/definitions across restarts without a database
# CREATED: 18 OCT 2026
# ============================================================================
"""
File Workflow Store

One JSON file per key under a directory:

    <dir>/workflow%3Awf-123%3Aprogress.json
    {"value": {"a_job": "complete"}, "expires_at": "2026-10-25T12:00:00+00:00"}

Writes go to a temp file that is renamed over the target, so a crash never
leaves a half-written record.

LIMITATION: compare_and_set_status is read-then-write under a process-local
lock. It is atomic for coroutines and threads of ONE process only. Two
orchestrator processes sharing a directory can double-dispatch; use
PostgresWorkflowStore for that deployment.
"""

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from core.contracts import JobStatus
from core.models import ProgressRecord, WorkflowDefinition
from .base import WorkflowStore


class FileWorkflowStore(WorkflowStore):
    """JSON files on local disk. Single-process only."""

    def __init__(
        self,
        directory: str = "tmp/cascade",
        key_prefix: str = "workflow",
        ttl_seconds: Optional[int] = None,
    ):
        super().__init__(key_prefix=key_prefix, ttl_seconds=ttl_seconds)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"

    # =========================================================================
    # RAW KEY ACCESS (caller holds the lock)
    # =========================================================================

    def _get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None

        envelope = json.loads(path.read_text(encoding="utf-8"))
        expires_at = envelope.get("expires_at")
        if expires_at and self.is_expired(datetime.fromisoformat(expires_at)):
            path.unlink(missing_ok=True)
            return None
        return envelope.get("value")

    def _set(self, key: str, value: Any) -> None:
        expires_at = self.expires_at()
        envelope = {
            "value": value,
            "expires_at": expires_at.isoformat() if expires_at else None,
        }
        payload = json.dumps(envelope)

        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

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
            if progress.get(job_name, JobStatus.PENDING.value) != expected.value:
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
            value = self._get(key)
            if value is None:
                return False
            self._set(key, value)
            return True


__all__ = ["FileWorkflowStore"]
