# ============================================================================
# POSTGRES WORKFLOW STORE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Shared store for multi-process deployments
# PURPOSE: Key/value workflow storage with row-level compare-and-set
# CREATED: 18 OCT 2026
# ============================================================================
"""
Postgres Workflow Store

One key/value table holds every concern of every workflow:

    key         TEXT PRIMARY KEY    "workflow:wf-123:progress"
    value       JSONB               {"a_job": "complete", ...}
    expires_at  TIMESTAMPTZ NULL    NULL = never expires
    updated_at  TIMESTAMPTZ

compare_and_set_status is a single conditional UPDATE on the progress row:

    UPDATE ... SET value = value || {job: new}
    WHERE key = ... AND COALESCE(value->>job, 'pending') = expected

Row locking makes concurrent CAS calls on one workflow serialize, and the
WHERE clause is re-checked after the wait, so exactly one caller wins each
transition. Applied iff rowcount > 0.

Expired rows are treated as absent on read and recycled on write.
purge_expired() deletes them for good.
"""

from typing import Any, Optional

from psycopg import sql
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import JobStatus
from core.models import ProgressRecord, WorkflowDefinition
from .base import WorkflowStore


class PostgresWorkflowStore(WorkflowStore):
    """Workflow store backed by a PostgreSQL table."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        schema: str = "cascade",
        table: str = "workflow_store",
        key_prefix: str = "workflow",
        ttl_seconds: Optional[int] = None,
    ):
        super().__init__(key_prefix=key_prefix, ttl_seconds=ttl_seconds)
        self.pool = pool
        self.schema = schema
        self.table_name = table
        self.table = sql.Identifier(schema, table)

    # =========================================================================
    # SCHEMA
    # =========================================================================

    async def ensure_schema(self) -> None:
        """Create schema, table and expiry index if missing."""
        index_name = sql.Identifier(f"idx_{self.table_name}_expires_at")
        with self._error_context("ensure schema"):
            async with self.pool.connection() as conn:
                await conn.execute(
                    sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(self.schema))
                )
                await conn.execute(
                    sql.SQL("""
                    CREATE TABLE IF NOT EXISTS {} (
                        key TEXT PRIMARY KEY,
                        value JSONB NOT NULL,
                        expires_at TIMESTAMPTZ NULL,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """).format(self.table)
                )
                await conn.execute(
                    sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (expires_at)").format(
                        index_name, self.table
                    )
                )
        self.logger.info(f"Ensured table {self.schema}.{self.table_name}")

    async def purge_expired(self) -> int:
        """
        Delete expired rows.

        Returns:
            Number of rows deleted
        """
        with self._error_context("purge expired"):
            async with self.pool.connection() as conn:
                result = await conn.execute(
                    sql.SQL(
                        "DELETE FROM {} WHERE expires_at IS NOT NULL AND expires_at <= NOW()"
                    ).format(self.table)
                )
                deleted = result.rowcount
        if deleted:
            self.logger.info(f"Purged {deleted} expired workflow keys")
        return deleted

    # =========================================================================
    # RAW KEY ACCESS
    # =========================================================================

    async def _get(self, conn, key: str) -> Any:
        result = await conn.execute(
            sql.SQL("""
            SELECT value FROM {}
            WHERE key = %(key)s
              AND (expires_at IS NULL OR expires_at > NOW())
            """).format(self.table),
            {"key": key},
        )
        row = await result.fetchone()
        return row[0] if row else None

    async def _put(self, conn, key: str, value: Any) -> None:
        await conn.execute(
            sql.SQL("""
            INSERT INTO {} (key, value, expires_at, updated_at)
            VALUES (%(key)s, %(value)s, %(expires_at)s, NOW())
            ON CONFLICT (key) DO UPDATE SET
                value = EXCLUDED.value,
                expires_at = EXCLUDED.expires_at,
                updated_at = NOW()
            """).format(self.table),
            {"key": key, "value": Json(value), "expires_at": self.expires_at()},
        )

    async def _put_if_absent(self, conn, key: str, value: Any) -> bool:
        """Insert, or replace an expired row. True if this call wrote."""
        result = await conn.execute(
            sql.SQL("""
            INSERT INTO {} AS t (key, value, expires_at, updated_at)
            VALUES (%(key)s, %(value)s, %(expires_at)s, NOW())
            ON CONFLICT (key) DO UPDATE SET
                value = EXCLUDED.value,
                expires_at = EXCLUDED.expires_at,
                updated_at = NOW()
            WHERE t.expires_at IS NOT NULL AND t.expires_at <= NOW()
            """).format(self.table),
            {"key": key, "value": Json(value), "expires_at": self.expires_at()},
        )
        return result.rowcount > 0

    # =========================================================================
    # PROGRESS
    # =========================================================================

    async def read_progress(self, workflow_id: str) -> ProgressRecord:
        with self._error_context("read progress", workflow_id):
            async with self.pool.connection() as conn:
                raw = await self._get(conn, self.key(workflow_id, self.PROGRESS))
            return ProgressRecord.from_record(raw or {})

    async def write_progress(self, workflow_id: str, record: ProgressRecord) -> None:
        with self._error_context("write progress", workflow_id):
            async with self.pool.connection() as conn:
                await self._put(conn, self.key(workflow_id, self.PROGRESS), record.to_record())

    async def initialize_progress(self, workflow_id: str) -> bool:
        with self._error_context("initialize progress", workflow_id):
            async with self.pool.connection() as conn:
                return await self._put_if_absent(conn, self.key(workflow_id, self.PROGRESS), {})

    async def compare_and_set_status(
        self,
        workflow_id: str,
        job_name: str,
        expected: JobStatus,
        new: JobStatus,
    ) -> bool:
        self.check_transition(workflow_id, job_name, expected, new)
        key = self.key(workflow_id, self.PROGRESS)
        with self._error_context("compare-and-set status", workflow_id):
            async with self.pool.connection() as conn:
                # Absent or expired progress row counts as all-pending
                await self._put_if_absent(conn, key, {})
                result = await conn.execute(
                    sql.SQL("""
                    UPDATE {} SET
                        value = value || jsonb_build_object(%(job)s::text, %(new)s::text),
                        expires_at = %(expires_at)s,
                        updated_at = NOW()
                    WHERE key = %(key)s
                      AND COALESCE(value->>%(job)s, %(pending)s) = %(expected)s
                    """).format(self.table),
                    {
                        "key": key,
                        "job": job_name,
                        "new": new.value,
                        "expected": expected.value,
                        "pending": JobStatus.PENDING.value,
                        "expires_at": self.expires_at(),
                    },
                )
                applied = result.rowcount > 0

        if not applied:
            self.logger.debug(
                f"CAS rejected for {workflow_id}/{job_name}: expected {expected.value}"
            )
        return applied

    async def claim_completion(self, workflow_id: str) -> bool:
        key = self.key(workflow_id, self.CONCLUDED)
        with self._error_context("claim completion", workflow_id):
            async with self.pool.connection() as conn:
                result = await conn.execute(
                    sql.SQL("""
                    INSERT INTO {} AS t (key, value, expires_at, updated_at)
                    VALUES (%(key)s, jsonb_build_object('concluded_at', NOW()), %(expires_at)s, NOW())
                    ON CONFLICT (key) DO UPDATE SET
                        value = EXCLUDED.value,
                        expires_at = EXCLUDED.expires_at,
                        updated_at = NOW()
                    WHERE t.expires_at IS NOT NULL AND t.expires_at <= NOW()
                    """).format(self.table),
                    {"key": key, "expires_at": self.expires_at()},
                )
                return result.rowcount > 0

    # =========================================================================
    # DEFINITIONS
    # =========================================================================

    async def read_definition(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        with self._error_context("read definition", workflow_id):
            async with self.pool.connection() as conn:
                raw = await self._get(conn, self.key(workflow_id, self.DEFINITION))
        if raw is None:
            return None
        return self.decode_definition(workflow_id, raw)

    async def write_definition(self, workflow_id: str, definition: WorkflowDefinition) -> None:
        with self._error_context("write definition", workflow_id):
            async with self.pool.connection() as conn:
                await self._put(conn, self.key(workflow_id, self.DEFINITION), definition.to_record())

    async def touch_definition(self, workflow_id: str) -> bool:
        with self._error_context("touch definition", workflow_id):
            async with self.pool.connection() as conn:
                result = await conn.execute(
                    sql.SQL("""
                    UPDATE {} SET
                        expires_at = %(expires_at)s,
                        updated_at = NOW()
                    WHERE key = %(key)s
                      AND (expires_at IS NULL OR expires_at > NOW())
                    """).format(self.table),
                    {"key": self.key(workflow_id, self.DEFINITION), "expires_at": self.expires_at()},
                )
                return result.rowcount > 0


__all__ = ["PostgresWorkflowStore"]
