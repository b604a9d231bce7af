"""
Run Logger — structured, per-run execution log.

Each workflow run gets a ``RunLogger`` that prefixes every record with
the run and workflow ids and keeps an in-memory list of entries, so the
executor can emit node enter/exit/error events without knowing where
they end up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Dict, List, Optional

logger = getLogger(__name__)


@dataclass
class RunLogEntry:
    """A single recorded event of a run."""
    event: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    node_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "message": self.message,
            "timestamp": self.timestamp,
            "node_id": self.node_id,
            "data": self.data,
        }


class RunLogger:
    """Per-run logger used by ``WorkflowExecutor``."""

    def __init__(self, run_id: str, workflow_id: str = "") -> None:
        self.run_id = run_id
        self.workflow_id = workflow_id
        self._entries: List[RunLogEntry] = []

    @property
    def prefix(self) -> str:
        if self.workflow_id:
            return f"[{self.workflow_id}:{self.run_id}]"
        return f"[{self.run_id}]"

    @property
    def entries(self) -> List[RunLogEntry]:
        return list(self._entries)

    def _record(self, entry: RunLogEntry, level: str = "info") -> None:
        self._entries.append(entry)
        getattr(logger, level)(f"{self.prefix} {entry.message}")

    def log_run_started(self, trigger: Dict[str, Any], node_count: int) -> None:
        self._record(RunLogEntry(
            event="run_started",
            message=f"Run started ({node_count} nodes, trigger={trigger.get('trigger', 'manual')})",
            data={"node_count": node_count},
        ))

    def log_node_enter(self, node_id: str, node_type: str, step_number: int) -> None:
        self._record(RunLogEntry(
            event="node_enter",
            message=f"→ step {step_number}: {node_type} ({node_id})",
            node_id=node_id,
            data={"node_type": node_type, "step": step_number},
        ), level="debug")

    def log_node_exit(
        self,
        node_id: str,
        node_type: str,
        status: str,
        duration_ms: int,
        output_preview: Optional[str] = None,
    ) -> None:
        message = f"← {node_type} ({node_id}) {status} in {duration_ms}ms"
        if output_preview:
            message += f": {output_preview}"
        self._record(RunLogEntry(
            event="node_exit",
            message=message,
            node_id=node_id,
            data={"status": status, "duration_ms": duration_ms},
        ))

    def log_node_error(self, node_id: str, node_type: str, error: str, error_type: str) -> None:
        self._record(RunLogEntry(
            event="node_error",
            message=f"✗ {node_type} ({node_id}) failed: {error_type}: {error}",
            node_id=node_id,
            data={"error": error, "error_type": error_type},
        ), level="error")

    def log_message(self, node_id: str, level: str, message: str) -> None:
        """Free-form message emitted by a node (e.g. ``action:logger``)."""
        if level not in ("debug", "info", "warning", "error"):
            level = "info"
        self._record(RunLogEntry(event="message", message=message, node_id=node_id), level=level)

    def log_run_finished(self, status: str, duration_ms: int) -> None:
        level = "info" if status == "succeeded" else "warning"
        self._record(RunLogEntry(
            event="run_finished",
            message=f"Run {status} in {duration_ms}ms",
            data={"status": status, "duration_ms": duration_ms},
        ), level=level)


# ── Registry ──

_run_loggers: Dict[str, RunLogger] = {}


def get_run_logger(run_id: str, workflow_id: str = "") -> RunLogger:
    """Return (creating if needed) the logger for a run."""
    run_logger = _run_loggers.get(run_id)
    if run_logger is None:
        run_logger = RunLogger(run_id, workflow_id)
        _run_loggers[run_id] = run_logger
    return run_logger


def release_run_logger(run_id: str) -> Optional[RunLogger]:
    """Forget a finished run's logger and return it."""
    return _run_loggers.pop(run_id, None)
