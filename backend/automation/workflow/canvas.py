"""
Workflow Canvas — editing operations behind the visual builder.

``WorkflowCanvas`` owns a working copy of a workflow's nodes and
edges and applies the builder's edits to it: adding nodes from the
registry's defaults, splicing a node into an edge, cascading deletes,
connecting ports. Every mutating call snapshots the previous state so
it can be undone.
"""

from __future__ import annotations

import uuid
from logging import getLogger
from typing import Any, Dict, List, Optional, Tuple

from automation.workflow.errors import WorkflowValidationError
from automation.workflow.graph_scheduler import is_trigger
from automation.workflow.layout import NODE_HEIGHT, LayoutResult, compute_layout
from automation.workflow.node_migrator import ensure_router_rules, migrate, upgrade_node
from automation.workflow.nodes import NodeCategory, NodeRegistry, get_node_registry
from automation.workflow.workflow_model import WorkflowDefinition, WorkflowEdge, WorkflowNode

logger = getLogger(__name__)

Snapshot = Tuple[List[WorkflowNode], List[WorkflowEdge]]

MAX_HISTORY = 50


class WorkflowCanvas:
    """Editable graph state with undo/redo."""

    def __init__(
        self,
        workflow: Optional[WorkflowDefinition] = None,
        registry: Optional[NodeRegistry] = None,
    ) -> None:
        self._registry = registry or get_node_registry()
        self.workflow = workflow or WorkflowDefinition()
        self.nodes: List[WorkflowNode] = [
            ensure_router_rules(migrate(n, self._registry), self._registry)
            for n in self.workflow.nodes
        ]
        self.edges: List[WorkflowEdge] = list(self.workflow.edges)
        self._undo: List[Snapshot] = []
        self._redo: List[Snapshot] = []

    # ── History ──

    def _snapshot(self) -> Snapshot:
        return (
            [n.model_copy(deep=True) for n in self.nodes],
            [e.model_copy(deep=True) for e in self.edges],
        )

    def _checkpoint(self) -> None:
        self._undo.append(self._snapshot())
        if len(self._undo) > MAX_HISTORY:
            self._undo.pop(0)
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self._snapshot())
        self.nodes, self.edges = self._undo.pop()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self._snapshot())
        self.nodes, self.edges = self._redo.pop()
        return True

    # ── Lookups ──

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def _require_node(self, node_id: str) -> WorkflowNode:
        node = self.get_node(node_id)
        if node is None:
            raise KeyError(f"Node not found: {node_id}")
        return node

    def _has_trigger(self) -> bool:
        return any(is_trigger(n, self._registry) for n in self.nodes)

    # ── Node edits ──

    def _new_node(self, node_type: str, position: Optional[Dict[str, float]]) -> WorkflowNode:
        if not self._registry.is_registered(node_type):
            raise WorkflowValidationError([f"Unknown node type: {node_type}"])
        definition = self._registry.get_definition(node_type)
        if definition.category == NodeCategory.SYSTEM:
            raise WorkflowValidationError([f"Node type {node_type} cannot be added manually"])
        if definition.category == NodeCategory.TRIGGERS and self._has_trigger():
            raise WorkflowValidationError(["Only one trigger node is allowed per workflow"])
        data = definition.get_default_data()
        data["nodeType"] = node_type
        return WorkflowNode(
            id=f"{node_type}-{uuid.uuid4().hex[:8]}",
            data=data,
            position=dict(position or {"x": 0.0, "y": 0.0}),
        )

    def add_node(self, node_type: str, position: Optional[Dict[str, float]] = None) -> WorkflowNode:
        node = self._new_node(node_type, position)
        self._checkpoint()
        self.nodes.append(node)
        return node

    def insert_node_on_edge(self, edge_id: str, node_type: str) -> WorkflowNode:
        """Split ``edge_id`` into source → new node → target."""
        edge = next((e for e in self.edges if e.id == edge_id), None)
        if edge is None:
            raise KeyError(f"Edge not found: {edge_id}")
        source = self._require_node(edge.source)
        target = self._require_node(edge.target)
        position = {
            "x": (source.position.get("x", 0) + target.position.get("x", 0)) / 2,
            "y": (source.position.get("y", 0) + target.position.get("y", 0)) / 2 + NODE_HEIGHT / 2,
        }
        node = self._new_node(node_type, position)
        self._checkpoint()
        self.edges = [e for e in self.edges if e.id != edge_id]
        self.nodes.append(node)
        self.edges.append(WorkflowEdge(
            source=edge.source, target=node.id, source_handle=edge.source_handle,
        ))
        self.edges.append(WorkflowEdge(
            source=node.id, target=edge.target, target_handle=edge.target_handle,
        ))
        return node

    def delete_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it."""
        self._require_node(node_id)
        self._checkpoint()
        self.nodes = [n for n in self.nodes if n.id != node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]

    def update_node_data(self, node_id: str, changes: Dict[str, Any]) -> WorkflowNode:
        node = self._require_node(node_id)
        if "nodeType" in changes and changes["nodeType"] != node.node_type:
            raise WorkflowValidationError(["Use upgrade_node to change a node's type"])
        self._checkpoint()
        updated = node.model_copy(update={"data": {**(node.data or {}), **changes}})
        self._replace(updated)
        return updated

    def upgrade_node(self, node_id: str, new_type: str) -> WorkflowNode:
        node = self._require_node(node_id)
        self._checkpoint()
        updated = upgrade_node(node, new_type, self._registry)
        self._replace(updated)
        return updated

    def _replace(self, node: WorkflowNode) -> None:
        self.nodes = [node if n.id == node.id else n for n in self.nodes]

    # ── Edge edits ──

    def connect(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> WorkflowEdge:
        if source == target:
            raise WorkflowValidationError(["A node cannot be connected to itself"])
        self._require_node(source)
        self._require_node(target)
        for e in self.edges:
            if e.source == source and e.target == target and e.source_handle == source_handle:
                raise WorkflowValidationError([f"Nodes {source} and {target} are already connected"])
        edge = WorkflowEdge(
            source=source, target=target,
            source_handle=source_handle, target_handle=target_handle,
        )
        self._checkpoint()
        self.edges.append(edge)
        return edge

    def disconnect(self, edge_id: str) -> None:
        if not any(e.id == edge_id for e in self.edges):
            raise KeyError(f"Edge not found: {edge_id}")
        self._checkpoint()
        self.edges = [e for e in self.edges if e.id != edge_id]

    # ── Layout / export ──

    def layout(self, direction: str = "TB") -> LayoutResult:
        result = compute_layout(self.nodes, self.edges, direction)
        self._checkpoint()
        self.nodes = result.nodes
        return result

    def to_workflow(self) -> WorkflowDefinition:
        """The edited workflow, ready to save."""
        workflow = self.workflow.model_copy(update={
            "nodes": [n.model_copy(deep=True) for n in self.nodes],
            "edges": [e.model_copy(deep=True) for e in self.edges],
        })
        workflow.touch()
        return workflow
