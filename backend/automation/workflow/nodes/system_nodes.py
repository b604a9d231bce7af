"""
System Nodes — placeholders the engine itself inserts.
"""

from __future__ import annotations

from automation.workflow.nodes.base import (
    UNRECOGNIZED_NODE_TYPE,
    BaseNode,
    NodeCategory,
    register_node,
)


@register_node
class UnrecognizedNode(BaseNode):
    """Stand-in for an old or unknown node type.

    Migration rewrites unknown nodes to this type and keeps the former
    type under ``legacyNodeType`` so the builder can offer an upgrade.
    It never runs; the executor records it as skipped.
    """

    node_type = UNRECOGNIZED_NODE_TYPE
    name = "Unrecognized Node"
    description = "An old or unknown node type that needs to be updated."
    category = NodeCategory.SYSTEM
    icon = "❓"
    defaults = {"label": "Unrecognized"}
