"""
Logic Nodes — branching.

The router evaluates its rules in order against earlier outputs and
continues on the first matching rule's port, or on ``fallback``.
"""

from __future__ import annotations

import uuid
from logging import getLogger
from typing import Any, Dict, List, Optional

from automation.workflow.nodes.base import (
    BaseNode,
    ExecutionContext,
    NodeCategory,
    OutputPort,
    register_node,
)

logger = getLogger(__name__)

ROUTER_NODE_TYPE = "logic:router"
FALLBACK_PORT = "fallback"

OPERATORS = ("equals", "notEquals", "contains", "greaterThan", "lessThan", "exists")


def _router_defaults() -> Dict[str, Any]:
    # Fresh rule id on every call so copied routers never share ports.
    return {
        "label": "Router",
        "rules": [
            {
                "id": f"rule_{uuid.uuid4().hex[:12]}",
                "name": "Success",
                "logic": "and",
                "conditions": [
                    {"variable": "{{input.statusCode}}", "operator": "equals", "value": "200"},
                ],
            },
        ],
    }


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def compare(left: Any, operator: str, right: Any) -> bool:
    """Evaluate one router condition."""
    if operator == "exists":
        return left is not None and left != ""
    if operator == "equals":
        return left is not None and str(left) == str(right)
    if operator == "notEquals":
        return left is None or str(left) != str(right)
    if operator == "contains":
        if isinstance(left, (list, tuple, set)):
            return any(str(item) == str(right) for item in left)
        if isinstance(left, dict):
            return str(right) in left
        return left is not None and str(right) in str(left)
    if operator in ("greaterThan", "lessThan"):
        a, b = _as_number(left), _as_number(right)
        if a is None or b is None:
            return False
        return a > b if operator == "greaterThan" else a < b
    raise ValueError(f"Unknown router operator: {operator}")


@register_node
class RouterNode(BaseNode):
    """Branch the workflow based on one or more conditions.

    Each rule is ``{id, name, logic: "and"|"or", conditions}``; a
    condition is ``{variable, operator, value}`` where ``variable``
    and ``value`` may be ``{{path}}`` placeholders. The rule id is
    also the id of the output port it continues on.
    """

    node_type = ROUTER_NODE_TYPE
    name = "Router"
    description = "Branch the workflow based on one or more conditions."
    category = NodeCategory.LOGIC
    icon = "🔀"
    executable = True
    routes_output = True
    output_ports = [OutputPort(id=FALLBACK_PORT, label="Fallback")]
    defaults = _router_defaults

    def get_output_ports(self, data: Dict[str, Any]) -> List[OutputPort]:
        ports = [
            OutputPort(id=str(rule["id"]), label=str(rule.get("name") or rule["id"]))
            for rule in data.get("rules") or []
            if rule.get("id")
        ]
        ports.append(OutputPort(id=FALLBACK_PORT, label="Fallback"))
        return ports

    def _rule_matches(self, rule: Dict[str, Any], node_input: Any, context: ExecutionContext) -> bool:
        conditions = rule.get("conditions") or []
        if not conditions:
            return False
        results = (
            compare(
                context.render(c.get("variable"), node_input),
                c.get("operator", "equals"),
                context.render(c.get("value"), node_input),
            )
            for c in conditions
        )
        if str(rule.get("logic", "and")).lower() == "or":
            return any(results)
        return all(results)

    async def execute(
        self,
        data: Dict[str, Any],
        node_input: Any,
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        for rule in data.get("rules") or []:
            if self._rule_matches(rule, node_input, context):
                logger.debug(f"Router matched rule {rule.get('id')} ({rule.get('name')})")
                return {"route": rule.get("id"), "rule": rule.get("name"), "input": node_input}
        return {"route": FALLBACK_PORT, "rule": None, "input": node_input}
