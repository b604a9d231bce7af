"""
Node base classes and the node-type registry.

Every node type is a ``BaseNode`` subclass decorated with
``@register_node``. The class attributes describe the type (what the
palette shows and what new nodes start with); ``execute`` implements
its behaviour inside a run.

The registry is populated at import time and frozen by
``register_all_nodes()``; after that it is read-only process-wide
configuration. Lookups never fail: unknown types resolve to the
``generic:unrecognized`` definition.
"""

from __future__ import annotations

import asyncio
import copy
import re
from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from typing import (
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Type,
    Union,
)

from automation.logging import RunLogger

logger = getLogger(__name__)

UNRECOGNIZED_NODE_TYPE = "generic:unrecognized"

DefaultData = Union[Dict[str, Any], Callable[[], Dict[str, Any]]]


class NodeCategory(str, Enum):
    """Palette grouping of node types."""
    TRIGGERS = "triggers"
    ACTIONS = "actions"
    LOGIC = "logic"
    SYSTEM = "system"


@dataclass(frozen=True)
class OutputPort:
    """A named output handle on a node."""
    id: str
    label: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class NodeTypeDefinition:
    """Immutable description of a node type.

    ``default_data`` is either a dict or a zero-argument factory;
    use ``get_default_data()`` to obtain a fresh, caller-owned copy.
    """
    type: str
    category: NodeCategory
    name: str
    description: str
    icon: str
    default_data: DefaultData
    inputs: int = 1
    outputs: tuple = (OutputPort(id="default", label="Output"),)
    polling: bool = False

    def get_default_data(self) -> Dict[str, Any]:
        raw = self.default_data() if callable(self.default_data) else self.default_data
        return copy.deepcopy(raw)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the palette."""
        return {
            "type": self.type,
            "category": self.category.value,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "inputs": self.inputs,
            "outputs": [p.to_dict() for p in self.outputs],
            "polling": self.polling,
            "defaultData": self.get_default_data(),
        }


# ============================================================================
# Execution context
# ============================================================================


_PLACEHOLDER = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


@dataclass
class ExecutionContext:
    """Per-run state shared by all nodes of one run.

    ``outputs`` maps node id → output of every node executed so far,
    so later nodes can reference earlier results with
    ``{{<nodeId>.<path>}}`` placeholders. ``input`` is the output of
    the node's nearest executed predecessor.
    """
    run_id: str
    workflow_id: str
    trigger: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    run_logger: Optional[RunLogger] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    current_node_id: Optional[str] = None

    def scope(self, node_input: Any) -> Dict[str, Any]:
        """Variables visible to template placeholders."""
        scope: Dict[str, Any] = dict(self.outputs)
        scope["input"] = node_input
        scope["trigger"] = self.trigger
        return scope

    def resolve(self, path: str, node_input: Any) -> Any:
        """Resolve a dotted path (``input.data.name``) against the scope."""
        current: Any = self.scope(node_input)
        for part in path.split("."):
            if isinstance(current, dict):
                current = current.get(part)
            elif isinstance(current, list) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else None
            else:
                return None
            if current is None:
                return None
        return current

    def render(self, template: Any, node_input: Any) -> Any:
        """Substitute ``{{path}}`` placeholders.

        A template that is exactly one placeholder returns the raw
        resolved value; otherwise values are stringified in place.
        """
        if not isinstance(template, str):
            return template
        whole = _PLACEHOLDER.fullmatch(template.strip())
        if whole:
            return self.resolve(whole.group(1), node_input)

        def _sub(match: "re.Match[str]") -> str:
            value = self.resolve(match.group(1), node_input)
            return "" if value is None else str(value)

        return _PLACEHOLDER.sub(_sub, template)


# ============================================================================
# BaseNode
# ============================================================================


class BaseNode:
    """Base class for all node types.

    Subclasses set the class attributes and, when the node does
    something inside a run, set ``executable = True`` and override
    ``execute``. Routers set ``routes_output = True`` and return the
    chosen port id under ``"route"`` in their output.
    """

    node_type: ClassVar[str] = ""
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    category: ClassVar[NodeCategory] = NodeCategory.ACTIONS
    icon: ClassVar[str] = "extension"
    inputs: ClassVar[int] = 1
    output_ports: ClassVar[List[OutputPort]] = [OutputPort(id="default", label="Output")]
    defaults: ClassVar[DefaultData] = {}
    executable: ClassVar[bool] = False
    routes_output: ClassVar[bool] = False
    polling: ClassVar[bool] = False

    @classmethod
    def definition(cls) -> NodeTypeDefinition:
        return NodeTypeDefinition(
            type=cls.node_type,
            category=cls.category,
            name=cls.name,
            description=cls.description,
            icon=cls.icon,
            default_data=cls.defaults,
            inputs=cls.inputs,
            outputs=tuple(cls.output_ports),
            polling=cls.polling,
        )

    def get_output_ports(self, data: Dict[str, Any]) -> List[OutputPort]:
        """Output ports for a configured instance (static by default)."""
        return list(self.output_ports)

    async def execute(
        self,
        data: Dict[str, Any],
        node_input: Any,
        context: ExecutionContext,
    ) -> Any:
        raise NotImplementedError(f"Node type '{self.node_type}' has no local executor")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.node_type}>"


# ============================================================================
# Registry
# ============================================================================


class NodeRegistry:
    """Node-type identifier → node implementation and definition."""

    def __init__(self) -> None:
        self._nodes: Dict[str, BaseNode] = {}
        self._definitions: Dict[str, NodeTypeDefinition] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, node_cls: Type[BaseNode]) -> None:
        if self._frozen:
            raise RuntimeError(
                f"Node registry is frozen; cannot register '{node_cls.node_type}'"
            )
        if not node_cls.node_type:
            raise ValueError(f"{node_cls.__name__} does not define node_type")
        if node_cls.node_type in self._nodes:
            logger.warning(f"Node type '{node_cls.node_type}' re-registered by {node_cls.__name__}")
        self._nodes[node_cls.node_type] = node_cls()
        self._definitions[node_cls.node_type] = node_cls.definition()

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    def is_registered(self, node_type: Optional[str]) -> bool:
        return bool(node_type) and node_type in self._definitions

    def get(self, node_type: Optional[str]) -> Optional[BaseNode]:
        """Node implementation, or ``None`` if unknown."""
        if not node_type:
            return None
        return self._nodes.get(node_type)

    def get_definition(self, node_type: Optional[str]) -> NodeTypeDefinition:
        """Definition for ``node_type``; unknown types get the fallback."""
        definition = self._definitions.get(node_type or "")
        if definition is None:
            return self._definitions[UNRECOGNIZED_NODE_TYPE]
        return definition

    def list_all(self) -> List[NodeTypeDefinition]:
        return list(self._definitions.values())

    def list_by_category(self, category: Union[NodeCategory, str]) -> List[NodeTypeDefinition]:
        category = NodeCategory(category)
        return [d for d in self._definitions.values() if d.category == category]

    def list_addable(self) -> List[NodeTypeDefinition]:
        """Definitions offered in the "add node" palette (no system types)."""
        return [d for d in self._definitions.values() if d.category != NodeCategory.SYSTEM]

    def list_polling_types(self) -> List[str]:
        return [t for t, d in self._definitions.items() if d.polling]


_registry = NodeRegistry()


def register_node(node_cls: Type[BaseNode]) -> Type[BaseNode]:
    """Class decorator — register a node type with the global registry."""
    _registry.register(node_cls)
    return node_cls


def get_node_registry() -> NodeRegistry:
    """Return the global NodeRegistry."""
    return _registry
