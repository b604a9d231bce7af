"""
Execution history tests.
"""

import pytest

from automation.workflow.errors import RunFinalizedError, RunNotFoundError, WorkflowError
from automation.workflow.execution_history import ExecutionHistoryStore
from automation.workflow.workflow_model import RunStatus, StepStatus


def _finished_run(history, workflow_id, status=RunStatus.SUCCEEDED):
    run = history.start_run(workflow_id, {"trigger": "manual"})
    history.record_step(run.id, "n1", StepStatus.SUCCEEDED, output={"ok": True}, duration_ms=3)
    return history.finish_run(run.id, status)


class TestRecording:
    """start_run / record_step / finish_run"""

    def test_run_lifecycle(self, history):
        run = history.start_run("wf-1", {"trigger": "webhook"})
        assert run.status == RunStatus.RUNNING
        assert run.finished_at is None

        history.record_step(run.id, "a", StepStatus.SUCCEEDED, output=1)
        history.record_step(run.id, "b", "failed", error="boom")
        finished = history.finish_run(run.id, RunStatus.FAILED)

        assert finished.status == RunStatus.FAILED
        assert finished.finished_at is not None
        assert finished.duration_ms is not None and finished.duration_ms >= 0
        assert finished.steps["b"].error == "boom"

    def test_finished_run_is_immutable(self, history):
        run = _finished_run(history, "wf-1")

        with pytest.raises(RunFinalizedError):
            history.record_step(run.id, "late", StepStatus.SUCCEEDED)
        with pytest.raises(RunFinalizedError):
            history.finish_run(run.id, RunStatus.FAILED)

    def test_one_step_per_node(self, history):
        run = history.start_run("wf-1")
        history.record_step(run.id, "a", StepStatus.SUCCEEDED)

        with pytest.raises(WorkflowError):
            history.record_step(run.id, "a", StepStatus.FAILED)

    def test_cannot_finish_as_running(self, history):
        run = history.start_run("wf-1")
        with pytest.raises(ValueError):
            history.finish_run(run.id, RunStatus.RUNNING)

    def test_unknown_run(self, history):
        with pytest.raises(RunNotFoundError):
            history.get_run("nope")
        with pytest.raises(KeyError):
            history.record_step("nope", "a", StepStatus.SUCCEEDED)

    def test_returned_runs_are_copies(self, history):
        run = history.start_run("wf-1")
        run.steps["injected"] = None

        assert "injected" not in history.get_run(run.id).steps

    def test_stop_run(self, history):
        run = history.start_run("wf-1")
        history.record_step(run.id, "a", StepStatus.SUCCEEDED)

        stopped = history.stop_run(run.id, "Cancelled by user")

        assert stopped.status == RunStatus.FAILED
        assert stopped.steps["system"].status == StepStatus.FAILED
        assert stopped.steps["system"].error == "Cancelled by user"
        assert stopped.steps["system"].sequence == 1


class TestQueries:
    """get_runs / get_run_detail / get_stats"""

    def test_most_recent_first(self, history):
        first = _finished_run(history, "wf-1")
        second = _finished_run(history, "wf-1")
        _finished_run(history, "other")
        third = _finished_run(history, "wf-1")

        page = history.get_runs("wf-1")

        assert [r.id for r in page.runs] == [third.id, second.id, first.id]
        assert not page.has_next_page

    def test_cursor_pagination(self, history):
        created = [_finished_run(history, "wf-1").id for _ in range(5)]
        newest_first = list(reversed(created))

        page1 = history.get_runs("wf-1", first=2)
        page2 = history.get_runs("wf-1", first=2, after=page1.end_cursor)
        page3 = history.get_runs("wf-1", first=2, after=page2.end_cursor)

        assert [r.id for r in page1.runs] == newest_first[:2]
        assert [r.id for r in page2.runs] == newest_first[2:4]
        assert [r.id for r in page3.runs] == newest_first[4:]
        assert page1.has_next_page and page2.has_next_page
        assert not page3.has_next_page

    def test_invalid_cursor(self, history):
        _finished_run(history, "wf-1")
        with pytest.raises(ValueError):
            history.get_runs("wf-1", after="not-a-run")

    def test_status_filter(self, history):
        _finished_run(history, "wf-1")
        failed = _finished_run(history, "wf-1", RunStatus.FAILED)

        page = history.get_runs("wf-1", status="failed")

        assert [r.id for r in page.runs] == [failed.id]

    def test_detail_steps_in_execution_order(self, history):
        run = history.start_run("wf-1")
        for node_id in ["zeta", "alpha", "mid"]:
            history.record_step(run.id, node_id, StepStatus.SUCCEEDED)
        history.finish_run(run.id, RunStatus.SUCCEEDED)

        detail = history.get_run_detail(run.id)

        assert [s.node_id for s in detail.steps] == ["zeta", "alpha", "mid"]
        assert [s.result.sequence for s in detail.steps] == [0, 1, 2]

    def test_stats(self, history):
        _finished_run(history, "wf-1")
        _finished_run(history, "wf-1")
        failed = _finished_run(history, "wf-1", RunStatus.FAILED)
        history.start_run("wf-1")
        _finished_run(history, "other", RunStatus.FAILED)

        stats = history.get_stats("wf-1")

        assert stats.total_runs == 4
        assert stats.succeeded == 2
        assert stats.failed == 1
        assert stats.running == 1
        assert stats.success_rate == pytest.approx(2 / 3)
        assert stats.average_duration_ms is not None
        assert [r.id for r in stats.recent_failures] == [failed.id]
        assert history.get_stats().total_runs == 5


class TestPersistence:
    """JSON files"""

    def test_runs_survive_reload(self, tmp_path):
        store = ExecutionHistoryStore(storage_dir=tmp_path / "runs")
        run = store.start_run("wf-1", {"trigger": "manual"})
        store.record_step(run.id, "a", StepStatus.SUCCEEDED, output={"n": 1})
        store.finish_run(run.id, RunStatus.SUCCEEDED)

        reloaded = ExecutionHistoryStore(storage_dir=tmp_path / "runs")
        detail = reloaded.get_run_detail(run.id)

        assert detail.run.status == RunStatus.SUCCEEDED
        assert detail.steps[0].result.output == {"n": 1}

    def test_interrupted_run_is_failed_on_reload(self, tmp_path):
        store = ExecutionHistoryStore(storage_dir=tmp_path / "runs")
        run = store.start_run("wf-1", {"trigger": "manual"})
        store.record_step(run.id, "a", StepStatus.SUCCEEDED)

        reloaded = ExecutionHistoryStore(storage_dir=tmp_path / "runs")
        recovered = reloaded.get_run(run.id)

        assert recovered.status == RunStatus.FAILED
        assert recovered.finished_at is not None
        assert recovered.steps["system"].error == "Run interrupted by restart"
        assert [node_id for node_id, _ in recovered.ordered_steps()] == ["a", "system"]
        assert reloaded.get_stats().running == 0
        # The failure is written back, so a second reload sees it too.
        assert ExecutionHistoryStore(storage_dir=tmp_path / "runs").get_run(run.id).status == RunStatus.FAILED

    def test_malformed_file_is_skipped(self, tmp_path):
        runs_dir = tmp_path / "runs"
        runs_dir.mkdir()
        (runs_dir / "broken.json").write_text("{not json", encoding="utf-8")

        store = ExecutionHistoryStore(storage_dir=runs_dir)

        assert store.get_stats().total_runs == 0

    def test_in_memory_store(self):
        store = ExecutionHistoryStore(persist=False)
        run = store.start_run("wf-1")
        assert store.get_run(run.id).workflow_id == "wf-1"
