"""
Workflow engine — models, node catalogue, scheduling, execution, history.

``automation.workflow.runtime`` (trigger wiring) is imported on its own
since it depends on ``automation.triggers``.
"""

from automation.workflow.errors import (
    CycleDetectedError,
    RunFinalizedError,
    RunNotFoundError,
    WorkflowError,
    WorkflowValidationError,
)
from automation.workflow.workflow_model import (
    RunStatus,
    StepResult,
    StepStatus,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    WorkflowRun,
)

__all__ = [
    "CycleDetectedError",
    "RunFinalizedError",
    "RunNotFoundError",
    "RunStatus",
    "StepResult",
    "StepStatus",
    "WorkflowDefinition",
    "WorkflowEdge",
    "WorkflowError",
    "WorkflowNode",
    "WorkflowRun",
    "WorkflowValidationError",
]
