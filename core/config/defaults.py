# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for stores, engine and dispatch
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides defaults for store selection, retention, engine timeouts and the
dispatch backend. These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Read at wiring time only; the engine takes explicit arguments
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class StoreBackend(str, Enum):
    """Progress/definition store implementations."""
    MEMORY = "memory"
    FILE = "file"
    POSTGRES = "postgres"


class DispatchBackend(str, Enum):
    """Job dispatcher implementations."""
    IN_PROCESS = "inprocess"
    SERVICE_BUS = "servicebus"


# 7 days
DEFAULT_TTL_SECONDS = 604_800


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    """Unset keeps the default; '0' or 'none' disables."""
    value = os.getenv(name)
    if value is None:
        return default
    if value.strip().lower() in ("", "0", "none", "null"):
        return None
    return int(value)


def _env_optional_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None:
        return default
    if value.strip().lower() in ("", "0", "none", "null"):
        return None
    return float(value)


@dataclass(frozen=True)
class StoreDefaults:
    """
    Defaults for the progress/definition store.

    Keys are "<key_prefix>:<workflow_id>:<concern>".
    """
    backend: str = StoreBackend.MEMORY.value
    key_prefix: str = "workflow"
    ttl_seconds: Optional[int] = DEFAULT_TTL_SECONDS

    # File backend
    file_dir: str = "tmp/cascade"

    # PostgreSQL backend
    schema: str = "cascade"
    table: str = "workflow_store"

    @classmethod
    def from_env(cls) -> "StoreDefaults":
        """Create from environment variables."""
        return cls(
            backend=StoreBackend(os.getenv("CASCADE_STORE", StoreBackend.MEMORY.value).lower()).value,
            key_prefix=os.getenv("CASCADE_KEY_PREFIX", "workflow"),
            ttl_seconds=_env_optional_int("CASCADE_STORE_TTL_SECONDS", DEFAULT_TTL_SECONDS),
            file_dir=os.getenv("CASCADE_STORE_DIR", "tmp/cascade"),
            schema=os.getenv("CASCADE_DB_SCHEMA", "cascade"),
            table=os.getenv("CASCADE_DB_TABLE", "workflow_store"),
        )


@dataclass(frozen=True)
class EngineDefaults:
    """
    Defaults for the orchestration engine and job runner.
    """
    # Bound on each store/dispatcher call (None = unbounded)
    operation_timeout_seconds: Optional[float] = None

    # Move jobs with no registered handler to FAILED instead of leaving them IN_PROGRESS
    fail_unknown_jobs: bool = True

    # Bound on a single job body when run by JobRunner
    job_timeout_seconds: Optional[int] = 3600

    @classmethod
    def from_env(cls) -> "EngineDefaults":
        """Create from environment variables."""
        return cls(
            operation_timeout_seconds=_env_optional_float("CASCADE_OPERATION_TIMEOUT_SECONDS", None),
            fail_unknown_jobs=_env_bool("CASCADE_FAIL_UNKNOWN_JOBS", True),
            job_timeout_seconds=_env_optional_int("CASCADE_JOB_TIMEOUT_SECONDS", 3600),
        )


@dataclass(frozen=True)
class DispatchDefaults:
    """Defaults for job dispatch."""
    backend: str = DispatchBackend.IN_PROCESS.value

    @classmethod
    def from_env(cls) -> "DispatchDefaults":
        """Create from environment variables."""
        return cls(
            backend=DispatchBackend(
                os.getenv("CASCADE_DISPATCHER", DispatchBackend.IN_PROCESS.value).lower()
            ).value,
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    store: StoreDefaults = field(default_factory=StoreDefaults)
    engine: EngineDefaults = field(default_factory=EngineDefaults)
    dispatch: DispatchDefaults = field(default_factory=DispatchDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            store=StoreDefaults.from_env(),
            engine=EngineDefaults.from_env(),
            dispatch=DispatchDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


__all__ = [
    "StoreBackend",
    "DispatchBackend",
    "DEFAULT_TTL_SECONDS",
    "StoreDefaults",
    "EngineDefaults",
    "DispatchDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
