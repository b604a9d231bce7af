"""
Node Migrator — upgrade stored nodes to the current node-type catalogue.

Workflows saved by older builder versions reference node types that
were renamed (``webhook`` → ``trigger:webhook``), replaced
(``logic:filter`` → ``logic:router``) or removed. ``migrate`` rewrites
such a node into a current one without touching anything else.

All functions here are pure: they return new nodes and never mutate
their argument. ``migrate`` is idempotent.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, Optional

from automation.workflow.nodes import UNRECOGNIZED_NODE_TYPE, NodeRegistry, get_node_registry
from automation.workflow.nodes.logic_nodes import ROUTER_NODE_TYPE
from automation.workflow.workflow_model import WorkflowDefinition, WorkflowNode

logger = getLogger(__name__)

LEGACY_FILTER_TYPE = "logic:filter"

# Pre-namespace identifiers → current node type.
LEGACY_ALIASES: Dict[str, str] = {
    "webhook": "trigger:webhook",
    "schedule": "trigger:schedule",
    "scheduler": "trigger:schedule",
    "form": "trigger:form",
    "emailTrigger": "trigger:email",
    "fileUpload": "trigger:file",
    "database": "trigger:database",
    "httpRequest": "action:httpRequest",
    "http": "action:httpRequest",
    "delay": "action:delay",
    "email": "action:email",
    "sendEmail": "action:email",
    "code": "action:code",
    "logger": "action:logger",
    "approval": "action:approval",
    "transform": "action:transform",
    "openai": "action:openAi",
    "router": ROUTER_NODE_TYPE,
    "filter": ROUTER_NODE_TYPE,
}


def _registry(registry: Optional[NodeRegistry]) -> NodeRegistry:
    return registry if registry is not None else get_node_registry()


def migrate(node: WorkflowNode, registry: Optional[NodeRegistry] = None) -> WorkflowNode:
    """Return ``node`` rewritten to a registered node type.

    - no ``data``: unchanged
    - ``logic:filter``: fresh router defaults, keeping the old label
    - registered type: unchanged
    - otherwise: alias target or ``generic:unrecognized``, with data
      layered as new defaults, then the original data, then the
      forced ``nodeType``
    """
    if not node.data:
        return node

    registry = _registry(registry)
    data = node.data
    current = data.get("nodeType")

    if current == LEGACY_FILTER_TYPE:
        new_data = registry.get_definition(ROUTER_NODE_TYPE).get_default_data()
        if data.get("label"):
            new_data["label"] = data["label"]
        new_data["nodeType"] = ROUTER_NODE_TYPE
        logger.info(f"Migrated node {node.id}: {LEGACY_FILTER_TYPE} → {ROUTER_NODE_TYPE}")
        return node.model_copy(update={"data": new_data})

    if registry.is_registered(current):
        return node

    legacy_type = current or node.type
    target = LEGACY_ALIASES.get(legacy_type or "")
    if target is None or not registry.is_registered(target):
        target = UNRECOGNIZED_NODE_TYPE

    new_data: Dict[str, Any] = registry.get_definition(target).get_default_data()
    new_data.update(data)
    if target == UNRECOGNIZED_NODE_TYPE and legacy_type:
        new_data["legacyNodeType"] = legacy_type
    new_data["nodeType"] = target

    log = logger.warning if target == UNRECOGNIZED_NODE_TYPE else logger.info
    log(f"Migrated node {node.id}: {legacy_type!r} → {target}")
    return node.model_copy(update={"data": new_data})


def ensure_router_rules(node: WorkflowNode, registry: Optional[NodeRegistry] = None) -> WorkflowNode:
    """Give a router without ``rules`` the router defaults."""
    if not node.data or node.data.get("nodeType") != ROUTER_NODE_TYPE:
        return node
    if node.data.get("rules"):
        return node
    new_data = _registry(registry).get_definition(ROUTER_NODE_TYPE).get_default_data()
    new_data.update({k: v for k, v in node.data.items() if k != "rules"})
    new_data["nodeType"] = ROUTER_NODE_TYPE
    return node.model_copy(update={"data": new_data})


def upgrade_node(
    node: WorkflowNode,
    new_type: str,
    registry: Optional[NodeRegistry] = None,
) -> WorkflowNode:
    """Replace an (unrecognized) node's data with ``new_type``'s defaults.

    The label is kept when the user had set one.
    """
    registry = _registry(registry)
    if not registry.is_registered(new_type):
        raise ValueError(f"Unknown node type: {new_type}")
    new_data = registry.get_definition(new_type).get_default_data()
    old_label = (node.data or {}).get("label")
    if old_label and old_label != registry.get_definition(UNRECOGNIZED_NODE_TYPE).get_default_data().get("label"):
        new_data["label"] = old_label
    new_data["nodeType"] = new_type
    return node.model_copy(update={"data": new_data})


def migrate_workflow(
    workflow: WorkflowDefinition,
    registry: Optional[NodeRegistry] = None,
) -> WorkflowDefinition:
    """Migrate every node of a workflow (router safeguard included)."""
    registry = _registry(registry)
    nodes = [ensure_router_rules(migrate(n, registry), registry) for n in workflow.nodes]
    return workflow.model_copy(update={"nodes": nodes})
