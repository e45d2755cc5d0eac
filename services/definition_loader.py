# ============================================================================
# DEFINITION LOADER
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Service - Workflow definition loading
# PURPOSE: Build validated definitions from YAML/JSON files and plain dicts
# CREATED: 18 OCT 2026
# ============================================================================
"""
Definition Loader

A file describes the SHAPE of a workflow; the workflow_id is supplied per
instance, so one file can start many workflows.

File format (YAML or JSON):

    jobs:
      a_job: {deps: [], args: [1, 2]}
      b_job: {deps: [a_job]}
      c_job: {deps: [a_job]}
      d_job: {deps: [b_job, c_job], args: [final]}

The top-level `jobs:` key is optional; a bare mapping of job name to job
spec is accepted too.
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from core.errors import ValidationError
from core.models import WorkflowDefinition

logger = logging.getLogger(__name__)


def definition_from_mapping(workflow_id: str, data: Any) -> WorkflowDefinition:
    """
    Build a validated definition from plain data.

    Args:
        workflow_id: Workflow instance ID
        data: {"jobs": {...}} or a bare {job_name: {"deps": [...], "args": [...]}}

    Raises:
        ValidationError: data is malformed or the graph is invalid
    """
    if isinstance(data, Mapping) and isinstance(data.get("jobs"), Mapping):
        data = data["jobs"]
    return WorkflowDefinition.from_mapping(workflow_id, data)


def load_definition(path: Union[str, Path], workflow_id: str) -> WorkflowDefinition:
    """
    Load a definition file and bind it to a workflow instance.

    Args:
        path: YAML (.yaml/.yml) or JSON file; JSON is valid YAML
        workflow_id: Workflow instance ID

    Raises:
        FileNotFoundError: path does not exist
        ValidationError: file does not parse or does not describe a valid DAG
    """
    path = Path(path)
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(
                f"Could not parse {path}: {e}",
                workflow_id=workflow_id,
            ) from e

    if data is None:
        raise ValidationError(f"Definition file is empty: {path}", workflow_id=workflow_id)

    definition = definition_from_mapping(workflow_id, data)
    logger.info(f"Loaded {len(definition.nodes)} jobs from {path} for {workflow_id}")
    return definition


__all__ = ["definition_from_mapping", "load_definition"]
