"""
Trigger data models.

``PollingTriggerConfig`` is what the runtime hands the trigger manager
for one workflow: which source to poll, with which (still encrypted)
credentials and filters, and how often. Sources return ``Signal``
objects; the manager wraps each one in a ``TriggerEvent`` envelope for
the workflow callback.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from automation.config.sub_config.workflow.trigger_config import DEFAULT_POLLING_INTERVAL_MS
from automation.workflow.workflow_model import WorkflowNode, utc_now

# Node data keys that are plumbing rather than source filters.
_NON_FILTER_KEYS = {"label", "nodeType", "credentials", "pollingInterval", "legacyNodeType"}


class Signal(BaseModel):
    """One item reported by an external source."""

    subject: str
    timestamp: datetime = Field(default_factory=utc_now)
    payload: Dict[str, Any] = Field(default_factory=dict)


class TriggerEvent(BaseModel):
    """Envelope delivered to the workflow callback."""

    trigger: str
    timestamp: datetime = Field(default_factory=utc_now)
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_envelope(self) -> Dict[str, Any]:
        return {
            "trigger": self.trigger,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


class TriggerTestResult(BaseModel):
    """Outcome of a one-off "test connection" call."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    sample_data: Optional[List[Dict[str, Any]]] = Field(default=None, alias="sampleData")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PollingTriggerConfig(BaseModel):
    """Configuration of one workflow's recurring poll.

    ``credentials`` hold the secret fields encrypted; they are only
    decrypted at use time by the trigger manager.
    """

    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str = Field(alias="workflowId")
    node_type: str = Field(alias="nodeType")
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    credentials: Dict[str, Any] = Field(default_factory=dict)
    filters: Dict[str, Any] = Field(default_factory=dict)
    polling_interval_ms: int = Field(default=DEFAULT_POLLING_INTERVAL_MS, alias="pollingInterval")

    @field_validator("workflow_id", "node_type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("polling_interval_ms")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive number of milliseconds")
        return value

    @classmethod
    def from_node(cls, workflow_id: str, node: WorkflowNode) -> "PollingTriggerConfig":
        """Build the config from a trigger node's data."""
        data = node.data or {}
        return cls(
            workflow_id=workflow_id,
            node_type=node.node_type or "",
            node_id=node.id,
            credentials=dict(data.get("credentials") or {}),
            filters={k: v for k, v in data.items() if k not in _NON_FILTER_KEYS},
            polling_interval_ms=int(data.get("pollingInterval") or DEFAULT_POLLING_INTERVAL_MS),
        )
