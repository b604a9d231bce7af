"""
Workflow Nodes Package.

Auto-registers all concrete node implementations into the global NodeRegistry.
Import this package to ensure all nodes are available.
"""

from logging import getLogger

from automation.workflow.nodes.base import (
    UNRECOGNIZED_NODE_TYPE,
    BaseNode,
    ExecutionContext,
    NodeCategory,
    NodeRegistry,
    NodeTypeDefinition,
    OutputPort,
    get_node_registry,
    register_node,
)

# Import all node modules to trigger registration
from automation.workflow.nodes import system_nodes    # noqa: F401
from automation.workflow.nodes import trigger_nodes   # noqa: F401
from automation.workflow.nodes import action_nodes    # noqa: F401
from automation.workflow.nodes import logic_nodes     # noqa: F401


def register_all_nodes() -> NodeRegistry:
    """Freeze the registry once every node module is imported.

    Called at application startup. The module-level imports above
    trigger the ``@register_node`` decorators; after this call the
    registry is read-only.
    """
    registry = get_node_registry()
    if not registry.frozen:
        registry.freeze()
        getLogger(__name__).info(
            f"✅ Workflow nodes registered: {len(registry.list_all())} node types"
        )
    return registry


__all__ = [
    "UNRECOGNIZED_NODE_TYPE",
    "BaseNode",
    "ExecutionContext",
    "NodeCategory",
    "NodeRegistry",
    "NodeTypeDefinition",
    "OutputPort",
    "get_node_registry",
    "register_all_nodes",
    "register_node",
]
