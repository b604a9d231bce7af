"""
Workflow Data Models — definitions, nodes, edges, and runs.

These are the serializable data structures that describe a
user-designed workflow graph and its execution history. Field
aliases match the camelCase shape the canvas persists
(``isActive``, ``sourceHandle``, ``startedAt`` …); Python code
uses the snake_case names.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def _short_id() -> str:
    return str(uuid.uuid4())[:8]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WorkflowNode(_CamelModel):
    """A single node placed on the workflow canvas.

    ``data["nodeType"]`` references a registered node type;
    the rest of ``data`` is the user-set configuration.
    ``type`` is the canvas renderer key and is usually ``"custom"``.
    """

    id: str = Field(default_factory=_short_id)
    type: str = "custom"
    data: Optional[Dict[str, Any]] = None
    position: Dict[str, float] = Field(default_factory=lambda: {"x": 0, "y": 0})

    @property
    def node_type(self) -> Optional[str]:
        """The node-type identifier stored in ``data``."""
        if not self.data:
            return None
        value = self.data.get("nodeType")
        return str(value) if value else None

    @property
    def label(self) -> str:
        if not self.data:
            return ""
        return str(self.data.get("label") or "")


class WorkflowEdge(_CamelModel):
    """A directed edge between two nodes.

    ``source_handle`` names the output port on the source node
    (router rule id, ``approve``/``reject`` …); ``None`` means
    the default output.
    """

    id: str = Field(default_factory=_short_id)
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    data: Optional[Dict[str, Any]] = None


class WorkflowDefinition(_CamelModel):
    """A complete workflow graph definition."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Untitled Workflow"
    description: str = ""
    is_active: bool = Field(default=False, alias="isActive")
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    created_at: str = Field(
        default_factory=lambda: utc_now().isoformat(), alias="createdAt"
    )
    updated_at: str = Field(
        default_factory=lambda: utc_now().isoformat(), alias="updatedAt"
    )

    def touch(self) -> None:
        """Update the ``updated_at`` timestamp."""
        self.updated_at = utc_now().isoformat()

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Find a node by ID."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def get_edges_from(self, node_id: str) -> List[WorkflowEdge]:
        """Get all edges originating from a node."""
        return [e for e in self.edges if e.source == node_id]

    def get_edges_to(self, node_id: str) -> List[WorkflowEdge]:
        """Get all edges pointing to a node."""
        return [e for e in self.edges if e.target == node_id]


# ============================================================================
# Runs
# ============================================================================


class RunStatus(str, Enum):
    """Workflow run status."""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepStatus(str, Enum):
    """Per-node step status within a run."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(_CamelModel):
    """Result of executing one node within a run.

    ``sequence`` is the 0-based execution position; run history
    sorts by it rather than relying on mapping order.
    """

    status: StepStatus
    output: Any = None
    duration_ms: int = Field(default=0, alias="durationMs")
    error: Optional[str] = None
    sequence: int = 0
    node_type: Optional[str] = Field(default=None, alias="nodeType")
    started_at: datetime = Field(default_factory=utc_now, alias="startedAt")


class WorkflowRun(_CamelModel):
    """One execution of a workflow."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str = Field(alias="workflowId")
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=utc_now, alias="startedAt")
    finished_at: Optional[datetime] = Field(default=None, alias="finishedAt")
    trigger: Dict[str, Any] = Field(default_factory=dict)
    steps: Dict[str, StepResult] = Field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        return self.status != RunStatus.RUNNING

    @property
    def duration_ms(self) -> Optional[int]:
        """Wall-clock duration; ``None`` while running."""
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def ordered_steps(self) -> List[Tuple[str, StepResult]]:
        """Steps as ``(node_id, result)`` pairs in execution order."""
        return sorted(self.steps.items(), key=lambda item: item[1].sequence)
