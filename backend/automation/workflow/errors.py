"""
Workflow engine exceptions.
"""

from __future__ import annotations

from typing import List, Optional


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class WorkflowValidationError(WorkflowError, ValueError):
    """A workflow definition failed structural validation."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__(
            "Workflow validation failed:\n" + "\n".join(f"  • {e}" for e in self.errors)
        )


class CycleDetectedError(WorkflowError):
    """The graph cannot be ordered for execution because it contains a cycle."""

    def __init__(self, node_ids: Optional[List[str]] = None) -> None:
        self.node_ids = list(node_ids or [])
        detail = f": {', '.join(self.node_ids)}" if self.node_ids else ""
        super().__init__(f"Workflow graph contains a cycle{detail}")


class RunNotFoundError(WorkflowError, KeyError):
    """No run with the given id exists."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Workflow run not found: {run_id}")

    def __str__(self) -> str:
        return f"Workflow run not found: {self.run_id}"


class RunFinalizedError(WorkflowError):
    """Attempt to mutate a run whose status has left ``running``."""

    def __init__(self, run_id: str, status: str) -> None:
        self.run_id = run_id
        self.status = status
        super().__init__(f"Workflow run {run_id} is already {status}")
