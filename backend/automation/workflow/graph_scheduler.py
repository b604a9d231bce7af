"""
Graph Scheduler — execution order, structural validation, step numbers.

``schedule`` orders nodes with Kahn's algorithm. Among the nodes that
are ready at the same time, the one that appears first in ``nodes``
goes first, so the order is deterministic and stable across saves.
Edges whose endpoints are not in ``nodes`` are ignored.

A cycle is not an exception here: ``schedule`` reports it through
``ScheduleResult.has_cycle`` and ``topological_order`` falls back to
the input order with a warning. Only execution treats it as fatal
(``require_acyclic_order``).
"""

from __future__ import annotations

import heapq
from collections import defaultdict
from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, List, Optional, Sequence, Set

from automation.workflow.errors import CycleDetectedError
from automation.workflow.nodes import NodeCategory, NodeRegistry, get_node_registry
from automation.workflow.workflow_model import WorkflowDefinition, WorkflowEdge, WorkflowNode

logger = getLogger(__name__)


@dataclass
class ScheduleResult:
    """Outcome of ordering a graph.

    ``order`` is the topological order, or the original nodes when
    ``has_cycle`` is set. ``cyclic_node_ids`` lists the nodes that
    could not be scheduled.
    """
    order: List[WorkflowNode]
    has_cycle: bool = False
    cyclic_node_ids: List[str] = field(default_factory=list)


def _unique_nodes(nodes: Sequence[WorkflowNode]) -> List[WorkflowNode]:
    seen: Set[str] = set()
    unique: List[WorkflowNode] = []
    for node in nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        unique.append(node)
    return unique


def schedule(nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]) -> ScheduleResult:
    """Order ``nodes`` so every edge points forward."""
    unique = _unique_nodes(nodes)
    index: Dict[str, int] = {n.id: i for i, n in enumerate(unique)}

    in_degree = [0] * len(unique)
    successors: Dict[int, List[int]] = defaultdict(list)
    for edge in edges:
        src = index.get(edge.source)
        dst = index.get(edge.target)
        if src is None or dst is None:
            continue
        successors[src].append(dst)
        in_degree[dst] += 1

    ready = [i for i, degree in enumerate(in_degree) if degree == 0]
    heapq.heapify(ready)
    order: List[int] = []
    while ready:
        current = heapq.heappop(ready)
        order.append(current)
        for nxt in successors[current]:
            in_degree[nxt] -= 1
            if in_degree[nxt] == 0:
                heapq.heappush(ready, nxt)

    if len(order) < len(unique):
        done = set(order)
        stuck = [unique[i].id for i in range(len(unique)) if i not in done]
        return ScheduleResult(order=list(nodes), has_cycle=True, cyclic_node_ids=stuck)
    return ScheduleResult(order=[unique[i] for i in order])


def topological_order(nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]) -> List[WorkflowNode]:
    """Topologically sorted nodes; the input order if the graph has a cycle."""
    result = schedule(nodes, edges)
    if result.has_cycle:
        logger.warning(
            f"Cycle detected in workflow graph ({', '.join(result.cyclic_node_ids)}); "
            f"keeping original node order"
        )
    return result.order


def require_acyclic_order(nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]) -> List[WorkflowNode]:
    """Topological order for execution; raises ``CycleDetectedError`` on a cycle."""
    result = schedule(nodes, edges)
    if result.has_cycle:
        raise CycleDetectedError(result.cyclic_node_ids)
    return result.order


# ============================================================================
# Validation
# ============================================================================


def is_trigger(node: WorkflowNode, registry: Optional[NodeRegistry] = None) -> bool:
    registry = registry or get_node_registry()
    if not node.node_type or not registry.is_registered(node.node_type):
        return False
    return registry.get_definition(node.node_type).category == NodeCategory.TRIGGERS


def validate_workflow(
    workflow: WorkflowDefinition,
    registry: Optional[NodeRegistry] = None,
) -> List[str]:
    """Return human-readable structural problems (empty when valid)."""
    registry = registry or get_node_registry()
    errors: List[str] = []

    seen: Set[str] = set()
    for node in workflow.nodes:
        if node.id in seen:
            errors.append(f"Duplicate node id: {node.id}")
        seen.add(node.id)

    for edge in workflow.edges:
        if edge.source == edge.target:
            errors.append(f"Edge {edge.id} connects node {edge.source} to itself")
            continue
        for endpoint in (edge.source, edge.target):
            if endpoint not in seen:
                errors.append(f"Edge {edge.id} references unknown node: {endpoint}")

    triggers = [n for n in workflow.nodes if is_trigger(n, registry)]
    if len(triggers) > 1:
        errors.append("Only one trigger node is allowed per workflow")

    # Self-loops are already reported; don't double-count them as cycles.
    edges = [e for e in workflow.edges if e.source != e.target]
    result = schedule(workflow.nodes, edges)
    if result.has_cycle:
        errors.append(f"Workflow contains a cycle: {', '.join(result.cyclic_node_ids)}")

    return errors


def assign_step_numbers(
    nodes: Sequence[WorkflowNode],
    edges: Sequence[WorkflowEdge],
    registry: Optional[NodeRegistry] = None,
) -> Dict[str, int]:
    """Number the non-trigger nodes reachable from a trigger, 1-based.

    Numbers follow the topological order. Unreachable nodes and the
    trigger itself get no number.
    """
    registry = registry or get_node_registry()
    adjacency: Dict[str, List[str]] = defaultdict(list)
    for edge in edges:
        adjacency[edge.source].append(edge.target)

    reachable: Set[str] = set()
    stack = [n.id for n in nodes if is_trigger(n, registry)]
    while stack:
        current = stack.pop()
        for nxt in adjacency.get(current, []):
            if nxt not in reachable:
                reachable.add(nxt)
                stack.append(nxt)

    numbers: Dict[str, int] = {}
    for node in topological_order(nodes, edges):
        if node.id in reachable and not is_trigger(node, registry) and node.id not in numbers:
            numbers[node.id] = len(numbers) + 1
    return numbers
