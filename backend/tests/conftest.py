"""
Pytest configuration — shared fixtures for the workflow engine tests.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from automation.config.base import reset_configs
from automation.triggers import Signal, SignalAuthenticationError, SignalSource
from automation.workflow.execution_history import ExecutionHistoryStore
from automation.workflow.nodes import register_all_nodes
from automation.workflow.workflow_model import WorkflowEdge, WorkflowNode


def make_node(node_id: str, node_type: Optional[str] = None, **data: Any) -> WorkflowNode:
    """Node with ``data.nodeType`` set (or no data at all)."""
    if node_type is None and not data:
        return WorkflowNode(id=node_id, data=None)
    payload: Dict[str, Any] = {"label": node_id, **data}
    if node_type is not None:
        payload["nodeType"] = node_type
    return WorkflowNode(id=node_id, data=payload)


def make_edge(source: str, target: str, handle: Optional[str] = None) -> WorkflowEdge:
    return WorkflowEdge(id=f"{source}->{target}", source=source, target=target, source_handle=handle)


@pytest.fixture(scope="session")
def registry():
    """The frozen, fully populated node registry."""
    return register_all_nodes()


@pytest.fixture(autouse=True)
def _isolated_configs(monkeypatch, tmp_path):
    """Point storage at a temp dir and re-read env-backed configs per test."""
    monkeypatch.setenv("WORKFLOW_STORAGE_DIR", str(tmp_path / "workflows"))
    monkeypatch.setenv("WORKFLOW_RUNS_DIR", str(tmp_path / "runs"))
    reset_configs()
    yield
    reset_configs()


@pytest.fixture
def history(tmp_path) -> ExecutionHistoryStore:
    return ExecutionHistoryStore(storage_dir=tmp_path / "runs")


class ManualSleep:
    """Stand-in for ``asyncio.sleep`` whose wake-ups the test controls.

    Every call parks until ``advance()`` releases it, so a recurring
    schedule ticks exactly as often as the test says.
    """

    def __init__(self) -> None:
        self.calls: List[float] = []
        self._waiters: List[asyncio.Future] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        await future

    @property
    def pending(self) -> int:
        return len([w for w in self._waiters if not w.done()])

    async def advance(self, ticks: int = 1) -> None:
        """Release ``ticks`` sleeps one at a time, letting the loop run in between."""
        for _ in range(ticks):
            await settle()
            waiting = [w for w in self._waiters if not w.done()]
            if not waiting:
                return
            waiting[0].set_result(None)
            await settle()


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def manual_sleep() -> ManualSleep:
    return ManualSleep()


class FakeSource(SignalSource):
    """Scripted signal source.

    ``script`` is consumed one entry per poll: a list of signals, or an
    exception instance to raise from ``fetch_signals``. When exhausted
    it keeps returning ``default``.
    """

    source_name = "fake_source"

    def __init__(
        self,
        script: Optional[List[Any]] = None,
        default: Optional[List[Signal]] = None,
        reject_credentials: bool = False,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.script = list(script or [])
        self.default = list(default or [])
        self.reject_credentials = reject_credentials
        self.gate = gate
        self.authenticated_with: List[Dict[str, Any]] = []
        self.fetch_calls: List[Dict[str, Any]] = []
        self.closed = 0

    def __call__(self, _config: Any) -> "FakeSource":
        # Used directly as the manager's source factory.
        return self

    async def authenticate(self, credentials: Dict[str, Any]) -> None:
        self.authenticated_with.append(dict(credentials))
        if self.reject_credentials:
            raise SignalAuthenticationError(
                f"invalid api key {credentials.get('apiKey')}", status_code=401,
            )

    async def fetch_signals(self, filters: Dict[str, Any], limit: Optional[int] = None) -> List[Signal]:
        self.fetch_calls.append({"filters": dict(filters), "limit": limit})
        if self.gate is not None:
            await self.gate.wait()
        step = self.script.pop(0) if self.script else self.default
        if isinstance(step, BaseException):
            raise step
        return step[:limit] if limit is not None else list(step)

    async def aclose(self) -> None:
        self.closed += 1


def signals(*subjects: str) -> List[Signal]:
    return [Signal(subject=s, payload={"company_name": s}) for s in subjects]
