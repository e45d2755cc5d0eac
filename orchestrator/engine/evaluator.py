# ============================================================================
# DAG EVALUATOR
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - DAG dependency resolution and evaluation
# PURPOSE: Determine ready jobs, blocked jobs and workflow completion
# CREATED: 18 OCT 2026
# ============================================================================
"""
DAG Evaluator

Core logic for DAG traversal and dependency resolution.

Features:
- Dependency graph construction
- Structural validation (cycles via WorkflowDefinition.topological_order)
- Ready job detection
- Blocked job detection (failed job anywhere upstream)
- Run state derivation

The evaluator is stateless - it takes a workflow definition and a progress
record as input and returns decisions about what should happen next. It
never reads or writes a store.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from core.contracts import JobStatus
from core.models import ProgressRecord, WorkflowDefinition, WorkflowRunState

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class DependencyGraph:
    """
    Dependency graph for a workflow.

    A -> B means "B depends on A" (A must complete before B).
    """
    # Job name -> jobs that depend on it
    forward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Job name -> jobs it depends on
    backward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    jobs: Set[str] = field(default_factory=set)

    def add_edge(self, from_job: str, to_job: str) -> None:
        """Add a dependency edge: to_job depends on from_job."""
        self.forward_edges[from_job].append(to_job)
        self.backward_edges[to_job].append(from_job)
        self.jobs.add(from_job)
        self.jobs.add(to_job)

    def get_dependencies(self, job_name: str) -> List[str]:
        return self.backward_edges.get(job_name, [])

    def get_dependents(self, job_name: str) -> List[str]:
        return self.forward_edges.get(job_name, [])

    def downstream_of(self, roots: Set[str]) -> Set[str]:
        """Every job reachable from roots, roots excluded."""
        seen: Set[str] = set()
        queue = deque(roots)
        while queue:
            job = queue.popleft()
            for dependent in self.get_dependents(job):
                if dependent not in seen:
                    seen.add(dependent)
                    queue.append(dependent)
        return seen - set(roots)


# ============================================================================
# GRAPH BUILDER
# ============================================================================

class GraphBuilder:
    """Builds dependency graph from workflow definition."""

    def build(self, workflow: WorkflowDefinition) -> DependencyGraph:
        graph = DependencyGraph()
        for job_name, spec in workflow.nodes.items():
            graph.jobs.add(job_name)
            for dep in spec.deps:
                graph.add_edge(dep, job_name)
        return graph


# ============================================================================
# MAIN EVALUATOR
# ============================================================================

class DAGEvaluator:
    """
    Main DAG evaluator.

    Determines:
    - Which jobs are ready to execute
    - Which jobs can never run (blocked by a failure upstream)
    - Whether the workflow is complete
    """

    def __init__(self):
        self.graph_builder = GraphBuilder()

    def validate_workflow(
        self,
        workflow: WorkflowDefinition,
    ) -> Tuple[bool, Optional[str]]:
        """
        Validate a workflow definition.

        Checks for:
        - At least one job
        - No self-dependencies
        - All referenced jobs exist
        - No cycles

        Returns:
            Tuple of (is_valid, error_message)
        """
        errors = workflow.validate_structure()
        if errors:
            return False, "; ".join(errors)
        return True, None

    def find_ready_jobs(
        self,
        workflow: WorkflowDefinition,
        progress: ProgressRecord,
    ) -> List[str]:
        """
        Find jobs that are ready to execute.

        A job is ready when:
        1. Its status is PENDING (absent counts as PENDING)
        2. Every job in its deps is COMPLETE

        Returns:
            Ready job names, sorted
        """
        ready = []
        for job_name, spec in workflow.nodes.items():
            if progress.status_of(job_name) != JobStatus.PENDING:
                continue
            if progress.all_complete(spec.deps):
                ready.append(job_name)
        return sorted(ready)

    def is_workflow_complete(
        self,
        workflow: WorkflowDefinition,
        progress: ProgressRecord,
    ) -> bool:
        """True if every job in the definition is COMPLETE."""
        return progress.all_complete(workflow.job_names)

    def blocked_jobs(
        self,
        workflow: WorkflowDefinition,
        progress: ProgressRecord,
    ) -> List[str]:
        """
        Pending jobs with a failed job anywhere upstream.

        Nothing retries a failed job, so these will never become ready.
        """
        failed = {
            job for job in workflow.job_names
            if progress.status_of(job) == JobStatus.FAILED
        }
        if not failed:
            return []

        graph = self.graph_builder.build(workflow)
        downstream = graph.downstream_of(failed)
        return sorted(
            job for job in downstream
            if progress.status_of(job) == JobStatus.PENDING
        )

    def run_state(
        self,
        workflow: WorkflowDefinition,
        progress: ProgressRecord,
    ) -> WorkflowRunState:
        """Join definition and progress into a WorkflowRunState."""
        jobs = {job: progress.status_of(job) for job in workflow.job_names}

        def with_status(status: JobStatus) -> List[str]:
            return sorted(job for job, s in jobs.items() if s == status)

        return WorkflowRunState(
            workflow_id=workflow.workflow_id,
            jobs=jobs,
            ready=self.find_ready_jobs(workflow, progress),
            in_progress=with_status(JobStatus.IN_PROGRESS),
            complete=with_status(JobStatus.COMPLETE),
            failed=with_status(JobStatus.FAILED),
            blocked=self.blocked_jobs(workflow, progress),
        )


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

_evaluator: Optional[DAGEvaluator] = None


def get_evaluator() -> DAGEvaluator:
    """Get shared evaluator instance."""
    global _evaluator
    if _evaluator is None:
        _evaluator = DAGEvaluator()
    return _evaluator


def find_ready_jobs(
    workflow: WorkflowDefinition,
    progress: ProgressRecord,
) -> List[str]:
    """Convenience function to find ready jobs."""
    return get_evaluator().find_ready_jobs(workflow, progress)


def validate_workflow(workflow: WorkflowDefinition) -> Tuple[bool, Optional[str]]:
    """Convenience function to validate a workflow."""
    return get_evaluator().validate_workflow(workflow)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DependencyGraph",
    "GraphBuilder",
    "DAGEvaluator",
    "get_evaluator",
    "find_ready_jobs",
    "validate_workflow",
]
