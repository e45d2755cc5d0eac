# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Service layer
# PURPOSE: Helpers around the engine
# CREATED: 18 OCT 2026
# ============================================================================
"""
Services Module

- definition_loader: build WorkflowDefinitions from YAML/JSON files and dicts
"""

from .definition_loader import definition_from_mapping, load_definition

__all__ = [
    "definition_from_mapping",
    "load_definition",
]
