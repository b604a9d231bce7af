"""
Canvas auto-layout.

Layered layout: each node sits one layer below its deepest
predecessor (longest path from a root), nodes in a layer keep their
topological order. ``TB`` stacks layers top-to-bottom, ``LR``
left-to-right. A cyclic graph cannot be layered and falls back to a
single column in insertion order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from automation.workflow.graph_scheduler import schedule
from automation.workflow.workflow_model import WorkflowEdge, WorkflowNode

NODE_WIDTH = 250
NODE_HEIGHT = 80
LAYER_GAP = 100
NODE_GAP = 50

DIRECTIONS = ("TB", "LR")


@dataclass
class LayoutResult:
    nodes: List[WorkflowNode]
    edges: List[WorkflowEdge]
    direction: str = "TB"
    layers: Dict[str, int] = field(default_factory=dict)


def compute_layout(
    nodes: Sequence[WorkflowNode],
    edges: Sequence[WorkflowEdge],
    direction: str = "TB",
) -> LayoutResult:
    """Return copies of ``nodes`` with new positions; edges are untouched."""
    if direction not in DIRECTIONS:
        raise ValueError(f"Unsupported layout direction: {direction}")

    result = schedule(nodes, edges)
    layers: Dict[str, int] = {}
    if result.has_cycle:
        for i, node in enumerate(nodes):
            layers.setdefault(node.id, i)
    else:
        known = {n.id for n in result.order}
        for node in result.order:
            layers.setdefault(node.id, 0)
        for node in result.order:
            for edge in edges:
                if edge.source == node.id and edge.target in known:
                    layers[edge.target] = max(layers[edge.target], layers[node.id] + 1)

    slot: Dict[int, int] = {}
    positioned: List[WorkflowNode] = []
    order = list(nodes) if result.has_cycle else result.order
    placed: Dict[str, WorkflowNode] = {}
    for node in order:
        if node.id in placed:
            continue
        layer = layers[node.id]
        column = 0 if result.has_cycle else slot.get(layer, 0)
        slot[layer] = column + 1
        along = layer * ((NODE_HEIGHT if direction == "TB" else NODE_WIDTH) + LAYER_GAP)
        across = column * ((NODE_WIDTH if direction == "TB" else NODE_HEIGHT) + NODE_GAP)
        x, y = (across, along) if direction == "TB" else (along, across)
        placed[node.id] = node.model_copy(update={"position": {"x": float(x), "y": float(y)}})

    # Preserve the caller's node order in the result.
    emitted = set()
    for node in nodes:
        if node.id not in emitted:
            emitted.add(node.id)
            positioned.append(placed[node.id])
    return LayoutResult(nodes=positioned, edges=list(edges), direction=direction, layers=layers)
