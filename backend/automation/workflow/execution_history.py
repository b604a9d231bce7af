"""
Execution History — recorded workflow runs.

The executor records a run as it goes (``start_run`` → ``record_step``
per node → ``finish_run``); the UI reads it back with ``get_runs``
(most recent first, cursor-paginated) and ``get_run_detail`` (steps in
execution order). A run is immutable once its status leaves
``running``.

Runs are kept in memory and mirrored to one JSON file per run under
the configured runs directory, the same way ``WorkflowStore`` keeps
definitions. A run still ``running`` when the files are reloaded was cut
off by a restart and is failed with a ``system`` step.
"""

from __future__ import annotations

import itertools
import json
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from automation.config import WorkflowStorageConfig, get_config
from automation.workflow.errors import RunFinalizedError, RunNotFoundError, WorkflowError
from automation.workflow.workflow_model import (
    RunStatus,
    StepResult,
    StepStatus,
    WorkflowRun,
    utc_now,
)

logger = getLogger(__name__)

SYSTEM_STEP_ID = "system"
RECENT_FAILURES_LIMIT = 5
INTERRUPTED_REASON = "Run interrupted by restart"


@dataclass
class RunPage:
    """One page of runs plus the cursor to fetch the next one."""
    runs: List[WorkflowRun]
    end_cursor: Optional[str] = None
    has_next_page: bool = False


@dataclass
class RunStep:
    node_id: str
    result: StepResult


@dataclass
class RunDetail:
    run: WorkflowRun
    steps: List[RunStep] = field(default_factory=list)


@dataclass
class RunStats:
    total_runs: int = 0
    succeeded: int = 0
    failed: int = 0
    running: int = 0
    success_rate: float = 0.0
    average_duration_ms: Optional[float] = None
    recent_failures: List[WorkflowRun] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRuns": self.total_runs,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "running": self.running,
            "successRate": self.success_rate,
            "averageDurationMs": self.average_duration_ms,
            "recentFailures": [r.id for r in self.recent_failures],
        }


class ExecutionHistoryStore:
    """Record and query workflow runs."""

    def __init__(self, storage_dir: Optional[Path] = None, persist: bool = True) -> None:
        self._runs: Dict[str, WorkflowRun] = {}
        self._order: Dict[str, int] = {}
        self._counter = itertools.count()
        self._dir: Optional[Path] = None
        if persist:
            if storage_dir is None:
                config: WorkflowStorageConfig = get_config(WorkflowStorageConfig.get_config_name())
                storage_dir = Path(config.runs_dir)
            self._dir = Path(storage_dir)
            self._dir.mkdir(parents=True, exist_ok=True)
            self._load_existing()

    # ── Recording ──

    def start_run(self, workflow_id: str, trigger: Optional[Dict[str, Any]] = None) -> WorkflowRun:
        run = WorkflowRun(workflow_id=workflow_id, trigger=dict(trigger or {}))
        self._runs[run.id] = run
        self._order[run.id] = next(self._counter)
        self._persist(run)
        logger.info(f"Run started: {run.id} (workflow {workflow_id})")
        return run.model_copy(deep=True)

    def record_step(
        self,
        run_id: str,
        node_id: str,
        status: Union[StepStatus, str],
        output: Any = None,
        duration_ms: int = 0,
        error: Optional[str] = None,
        node_type: Optional[str] = None,
    ) -> StepResult:
        run = self._require_running(run_id)
        if node_id in run.steps:
            raise WorkflowError(f"Run {run_id} already has a step for node {node_id}")
        step = StepResult(
            status=StepStatus(status),
            output=output,
            duration_ms=duration_ms,
            error=error,
            sequence=len(run.steps),
            node_type=node_type,
        )
        run.steps[node_id] = step
        self._persist(run)
        return step.model_copy(deep=True)

    def finish_run(self, run_id: str, status: Union[RunStatus, str]) -> WorkflowRun:
        status = RunStatus(status)
        if status == RunStatus.RUNNING:
            raise ValueError("A run can only be finished as succeeded or failed")
        run = self._require_running(run_id)
        run.status = status
        run.finished_at = utc_now()
        self._persist(run)
        logger.info(f"Run finished: {run.id} {status.value} in {run.duration_ms}ms")
        return run.model_copy(deep=True)

    def stop_run(self, run_id: str, reason: str = "Run stopped manually") -> WorkflowRun:
        """Fail a running run, noting why under a ``system`` step."""
        run = self._require_running(run_id)
        run.steps[SYSTEM_STEP_ID] = StepResult(
            status=StepStatus.FAILED,
            error=reason,
            sequence=len(run.steps),
            node_type=SYSTEM_STEP_ID,
        )
        logger.warning(f"Run {run_id} stopped: {reason}")
        return self.finish_run(run_id, RunStatus.FAILED)

    # ── Queries ──

    def get_run(self, run_id: str) -> WorkflowRun:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run.model_copy(deep=True)

    def is_running(self, run_id: str) -> bool:
        run = self._runs.get(run_id)
        return run is not None and not run.is_finished

    def get_runs(
        self,
        workflow_id: str,
        first: int = 10,
        after: Optional[str] = None,
        status: Optional[Union[RunStatus, str]] = None,
    ) -> RunPage:
        """Runs of one workflow, most recent first.

        ``after`` is the ``end_cursor`` of the previous page.
        """
        if first < 1:
            raise ValueError("first must be a positive integer")
        wanted = RunStatus(status) if status is not None else None
        runs = [
            r for r in self._runs.values()
            if r.workflow_id == workflow_id and (wanted is None or r.status == wanted)
        ]
        runs.sort(key=self._recency, reverse=True)

        start = 0
        if after is not None:
            ids = [r.id for r in runs]
            if after not in ids:
                raise ValueError(f"Invalid cursor: {after}")
            start = ids.index(after) + 1

        window = runs[start:start + first]
        return RunPage(
            runs=[r.model_copy(deep=True) for r in window],
            end_cursor=window[-1].id if window else after,
            has_next_page=start + first < len(runs),
        )

    def get_run_detail(self, run_id: str) -> RunDetail:
        run = self.get_run(run_id)
        steps = [RunStep(node_id=node_id, result=result) for node_id, result in run.ordered_steps()]
        return RunDetail(run=run, steps=steps)

    def get_stats(self, workflow_id: Optional[str] = None) -> RunStats:
        runs = [r for r in self._runs.values() if workflow_id is None or r.workflow_id == workflow_id]
        succeeded = [r for r in runs if r.status == RunStatus.SUCCEEDED]
        failed = [r for r in runs if r.status == RunStatus.FAILED]
        finished = succeeded + failed
        durations = [r.duration_ms for r in finished if r.duration_ms is not None]
        failed.sort(key=self._recency, reverse=True)
        return RunStats(
            total_runs=len(runs),
            succeeded=len(succeeded),
            failed=len(failed),
            running=len(runs) - len(finished),
            success_rate=len(succeeded) / len(finished) if finished else 0.0,
            average_duration_ms=sum(durations) / len(durations) if durations else None,
            recent_failures=[r.model_copy(deep=True) for r in failed[:RECENT_FAILURES_LIMIT]],
        )

    # ── Internals ──

    def _recency(self, run: WorkflowRun):
        return (run.started_at, self._order.get(run.id, 0))

    def _require_running(self, run_id: str) -> WorkflowRun:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        if run.is_finished:
            raise RunFinalizedError(run_id, run.status.value)
        return run

    def _path_for(self, run_id: str) -> Path:
        safe_id = "".join(c for c in run_id if c.isalnum() or c in "-_")
        return self._dir / f"{safe_id}.json"

    def _persist(self, run: WorkflowRun) -> None:
        if self._dir is None:
            return
        self._path_for(run.id).write_text(
            run.model_dump_json(indent=2, by_alias=True),
            encoding="utf-8",
        )

    def _load_existing(self) -> None:
        loaded: List[WorkflowRun] = []
        for path in self._dir.glob("*.json"):
            try:
                loaded.append(WorkflowRun.model_validate(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping malformed run file {path.name}: {e}")
        for run in sorted(loaded, key=lambda r: r.started_at):
            self._runs[run.id] = run
            self._order[run.id] = next(self._counter)
            if not run.is_finished:
                # Nothing resumes a run left behind by a previous process.
                self.stop_run(run.id, INTERRUPTED_REASON)
        if loaded:
            logger.info(f"Loaded {len(loaded)} runs from {self._dir}")


# ── Singleton ──

_history_instance: Optional[ExecutionHistoryStore] = None


def get_execution_history() -> ExecutionHistoryStore:
    """Return the global ExecutionHistoryStore singleton."""
    global _history_instance
    if _history_instance is None:
        _history_instance = ExecutionHistoryStore()
    return _history_instance
