# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the orchestrator.
"""

from core.config.defaults import (
    StoreBackend,
    DispatchBackend,
    DEFAULT_TTL_SECONDS,
    StoreDefaults,
    EngineDefaults,
    DispatchDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

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
