# ============================================================================
# WORKFLOW DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core model - Immutable DAG description for one workflow instance
# PURPOSE: Declare jobs, their dependencies and their arguments
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: WorkflowDefinition, JobSpec
# DEPENDENCIES: pydantic
# ============================================================================
"""
Workflow Definition Models

A WorkflowDefinition describes ONE workflow instance:
- workflow_id identifies the instance (two instances may share a shape)
- nodes maps job name -> JobSpec(deps, args)

Example:
    WorkflowDefinition.from_mapping("wf-123", {
        "a_job": {"deps": [], "args": [1, 2]},
        "b_job": {"deps": ["a_job"]},
        "c_job": {"deps": ["a_job"]},
        "d_job": {"deps": ["b_job", "c_job"], "args": ["final"]},
    })

Construction fails if any dependency is unknown, the graph has a cycle,
or there are no jobs. Definitions are frozen once built.
"""

from collections import deque
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError


class JobSpec(BaseModel):
    """Dependencies and arguments of a single job."""

    model_config = ConfigDict(frozen=True)

    deps: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Names of jobs that must be complete before this one runs",
    )
    args: Tuple[Any, ...] = Field(
        default_factory=tuple,
        description="Positional arguments handed to the dispatcher, in order",
    )

    @field_validator("deps", mode="before")
    @classmethod
    def check_deps(cls, v):
        """Deps must be a list of job names; absent means none."""
        if v is None:
            return frozenset()
        if isinstance(v, (str, bytes)) or not isinstance(v, (list, tuple, set, frozenset)):
            raise ValueError("deps must be an array of job names")
        if not all(isinstance(dep, str) and dep for dep in v):
            raise ValueError("deps must contain only non-empty strings")
        return frozenset(v)

    @field_validator("args", mode="before")
    @classmethod
    def check_args(cls, v):
        """Args must be an array or null."""
        if v is None:
            return ()
        if not isinstance(v, (list, tuple)):
            raise ValueError("args must be an array or null")
        return tuple(v)


class WorkflowDefinition(BaseModel):
    """
    Immutable DAG for one workflow instance.

    Edges come from JobSpec.deps: "b depends on a" means a must be
    COMPLETE before b becomes ready.
    """

    model_config = ConfigDict(frozen=True)

    workflow_id: str = Field(..., min_length=1, max_length=256)
    nodes: Dict[str, JobSpec] = Field(
        ...,
        description="Map of job name -> JobSpec",
    )

    @model_validator(mode="after")
    def check_structure(self) -> "WorkflowDefinition":
        errors = self.validate_structure()
        if errors:
            raise ValueError("; ".join(errors))
        return self

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def from_mapping(
        cls,
        workflow_id: str,
        nodes: Any,
    ) -> "WorkflowDefinition":
        """
        Build a definition from plain data, raising ValidationError on failure.

        Args:
            workflow_id: Workflow instance ID
            nodes: Mapping of job name -> {"deps": [...], "args": [...]}

        Returns:
            Validated WorkflowDefinition

        Raises:
            ValidationError: if the structure is malformed or the graph is invalid
        """
        if not isinstance(workflow_id, str) or not workflow_id:
            raise ValidationError("workflow_id must be a non-empty string")

        if not isinstance(nodes, Mapping):
            raise ValidationError(
                "Workflow definition must be a mapping of job name to job spec",
                workflow_id=workflow_id,
            )

        for job, data in nodes.items():
            if not isinstance(job, str) or not job:
                raise ValidationError(
                    f"Job names must be non-empty strings, got {job!r}",
                    workflow_id=workflow_id,
                )
            if not isinstance(data, (Mapping, JobSpec)):
                raise ValidationError(
                    f"Definition for {job} must be a mapping",
                    workflow_id=workflow_id,
                )

        try:
            return cls(workflow_id=workflow_id, nodes=dict(nodes))
        except PydanticValidationError as e:
            errors = [_format_error(err) for err in e.errors()]
            raise ValidationError(
                f"Invalid workflow '{workflow_id}': " + "; ".join(errors),
                errors=errors,
                workflow_id=workflow_id,
            ) from e

    @classmethod
    def from_record(cls, workflow_id: str, record: Mapping[str, Any]) -> "WorkflowDefinition":
        """Rebuild a definition from its persisted JSON form."""
        return cls.from_mapping(workflow_id, record)

    def to_record(self) -> Dict[str, Dict[str, List[Any]]]:
        """
        Serialize to the persisted JSON form.

        Deps are sorted so that the stored form is stable.
        """
        return {
            name: {"deps": sorted(spec.deps), "args": list(spec.args)}
            for name, spec in self.nodes.items()
        }

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def job_names(self) -> List[str]:
        return list(self.nodes.keys())

    def get_job(self, job_name: str) -> JobSpec:
        """Get a job spec by name."""
        if job_name not in self.nodes:
            raise KeyError(f"Job '{job_name}' not found in workflow '{self.workflow_id}'")
        return self.nodes[job_name]

    def dependents_of(self, job_name: str) -> List[str]:
        """Jobs that list job_name in their deps."""
        return sorted(name for name, spec in self.nodes.items() if job_name in spec.deps)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_structure(self) -> List[str]:
        """
        Validate workflow structure.

        Returns list of validation errors (empty if valid).
        """
        errors = []

        if not self.nodes:
            errors.append("Workflow must have at least one job")
            return errors

        for job_name, spec in self.nodes.items():
            if job_name in spec.deps:
                errors.append(f"Job '{job_name}' depends on itself")
            for dep in sorted(spec.deps):
                if dep not in self.nodes:
                    errors.append(f"Job '{job_name}' depends on unknown job '{dep}'")

        # Cycle check only makes sense once every edge points at a real job
        if not errors:
            ordered = self.topological_order()
            if len(ordered) != len(self.nodes):
                remaining = sorted(n for n in self.nodes if n not in set(ordered))
                errors.append(f"Cycle detected involving jobs: {remaining}")

        return errors

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm over the deps edges.

        Returns the jobs in dependency order. If the graph has a cycle the
        result is shorter than the number of jobs.
        """
        in_degree = {
            name: len([d for d in spec.deps if d in self.nodes])
            for name, spec in self.nodes.items()
        }
        dependents: Dict[str, List[str]] = {name: [] for name in self.nodes}
        for name, spec in self.nodes.items():
            for dep in spec.deps:
                if dep in dependents:
                    dependents[dep].append(name)

        queue = deque(sorted(name for name, degree in in_degree.items() if degree == 0))
        ordered = []

        while queue:
            name = queue.popleft()
            ordered.append(name)
            for dependent in sorted(dependents[name]):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        return ordered


def _format_error(err: Dict[str, Any]) -> str:
    """Render a pydantic error dict as 'loc: message'."""
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", "invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{loc}: {msg}" if loc else msg


__all__ = ["WorkflowDefinition", "JobSpec"]
