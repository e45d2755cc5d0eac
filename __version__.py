# ============================================================================
# VERSION - CASCADE ORCHESTRATOR
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# ============================================================================
"""
Version information for Cascade Orchestrator.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch
# Criteria for 0.1 - diamond workflow completes end to end in-process
__version__ = "0.1.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-18"

EPOCH = 1
CODENAME = "Cascade Orchestrator"
