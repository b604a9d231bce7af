"""
Workflow Executor — run a WorkflowDefinition as a LangGraph chain.

The workflow is migrated, ordered topologically and compiled into a
linear LangGraph ``StateGraph`` (one graph node per workflow node, in
execution order). Every workflow node records exactly one step in the
execution history:

- ``succeeded`` / ``failed`` when its behaviour ran,
- ``skipped`` when an earlier node failed, when it sits on a router
  branch that was not chosen, or when its type has no local behaviour
  (integration actions run elsewhere; such nodes pass their input on).

A failed node fails the run; the remaining nodes are recorded as
skipped. A run stopped from outside (``stop_run``) while executing
records nothing further and is returned as stopped. A cycle is fatal
and raises ``CycleDetectedError`` before a run is started.
"""

import asyncio
import operator
import time
from logging import getLogger
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypedDict

from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from automation.logging import RunLogger, get_run_logger, release_run_logger
from automation.workflow.errors import WorkflowValidationError
from automation.workflow.execution_history import ExecutionHistoryStore, get_execution_history
from automation.workflow.graph_scheduler import require_acyclic_order, validate_workflow
from automation.workflow.node_migrator import migrate_workflow
from automation.workflow.nodes import (
    BaseNode,
    ExecutionContext,
    NodeRegistry,
    get_node_registry,
)
from automation.workflow.workflow_model import (
    RunStatus,
    StepStatus,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    WorkflowRun,
)

logger = getLogger(__name__)


def _merge_dicts(left: Dict[str, Any], right: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(left or {})
    merged.update(right or {})
    return merged


def _keep_first(left: Optional[str], right: Optional[str]) -> Optional[str]:
    return left or right


class RunState(TypedDict):
    """LangGraph state threaded through the chain."""
    outputs: Annotated[Dict[str, Any], _merge_dicts]
    routes: Annotated[Dict[str, str], _merge_dicts]
    reached: Annotated[List[str], operator.add]
    failed_node: Annotated[Optional[str], _keep_first]


def _initial_state() -> RunState:
    return {"outputs": {}, "routes": {}, "reached": [], "failed_node": None}


class WorkflowExecutor:
    """Execute workflows and record their runs.

    Usage::

        executor = WorkflowExecutor()
        run = await executor.execute(workflow, trigger_event)
    """

    def __init__(
        self,
        history: Optional[ExecutionHistoryStore] = None,
        registry: Optional[NodeRegistry] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._history = history or get_execution_history()
        self._registry = registry or get_node_registry()
        self._sleep = sleep

    @property
    def history(self) -> ExecutionHistoryStore:
        return self._history

    # ========================================================================
    # Preparation
    # ========================================================================

    def prepare(self, workflow: WorkflowDefinition) -> Tuple[WorkflowDefinition, List[WorkflowNode]]:
        """Migrate and validate; return the workflow and its execution order.

        Raises:
            CycleDetectedError: the graph has a cycle.
            WorkflowValidationError: any other structural problem.
        """
        migrated = migrate_workflow(workflow, self._registry)
        order = require_acyclic_order(migrated.nodes, migrated.edges)
        errors = validate_workflow(migrated, self._registry)
        if errors:
            raise WorkflowValidationError(errors)
        return migrated, order

    # ========================================================================
    # Compilation
    # ========================================================================

    def compile(
        self,
        workflow: WorkflowDefinition,
        order: List[WorkflowNode],
        context: ExecutionContext,
    ) -> CompiledStateGraph:
        """Compile the ordered nodes into a linear StateGraph."""
        graph_builder = StateGraph(RunState)
        incoming: Dict[str, List[WorkflowEdge]] = {}
        known = {n.id for n in order}
        for edge in workflow.edges:
            if edge.source in known and edge.target in known:
                incoming.setdefault(edge.target, []).append(edge)

        names: List[str] = []
        for position, node in enumerate(order):
            # Node ids may contain characters LangGraph reserves (":").
            name = f"step_{position}"
            graph_builder.add_node(
                name,
                self._make_node_function(node, position + 1, incoming.get(node.id, []), context),
            )
            names.append(name)

        graph_builder.add_edge(START, names[0])
        for current, nxt in zip(names, names[1:]):
            graph_builder.add_edge(current, nxt)
        graph_builder.add_edge(names[-1], END)
        return graph_builder.compile()

    # ========================================================================
    # Execution
    # ========================================================================

    async def execute(
        self,
        workflow: WorkflowDefinition,
        trigger: Optional[Dict[str, Any]] = None,
    ) -> WorkflowRun:
        """Run ``workflow`` once and return the finished run."""
        migrated, order = self.prepare(workflow)
        trigger = dict(trigger or {"trigger": "manual"})

        run = self._history.start_run(migrated.id, trigger)
        run_logger = get_run_logger(run.id, migrated.id)
        run_logger.log_run_started(trigger, len(order))
        context = ExecutionContext(
            run_id=run.id,
            workflow_id=migrated.id,
            trigger=trigger,
            run_logger=run_logger,
            sleep=self._sleep,
        )

        start = time.time()
        try:
            try:
                if order:
                    graph = self.compile(migrated, order, context)
                    final_state = await graph.ainvoke(
                        _initial_state(),
                        config={"recursion_limit": len(order) + 10},
                    )
                else:
                    final_state = _initial_state()
            except Exception as e:
                logger.error(f"[{migrated.id}:{run.id}] Run aborted: {e}")
                if self._history.is_running(run.id):
                    self._history.stop_run(run.id, f"Run aborted: {type(e).__name__}: {e}")
                raise

            if not self._history.is_running(run.id):
                # Stopped from outside while executing.
                stopped = self._history.get_run(run.id)
                run_logger.log_run_finished(stopped.status.value, int((time.time() - start) * 1000))
                return stopped

            status = RunStatus.FAILED if final_state.get("failed_node") else RunStatus.SUCCEEDED
            finished = self._history.finish_run(run.id, status)
            run_logger.log_run_finished(status.value, int((time.time() - start) * 1000))
            return finished
        finally:
            release_run_logger(run.id)

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _make_node_function(
        self,
        node: WorkflowNode,
        step_number: int,
        incoming: List[WorkflowEdge],
        ctx: ExecutionContext,
    ):
        """Create a LangGraph-compatible async node function.

        Decides run-or-skip for the node, calls ``BaseNode.execute``
        with the node's data and records the step.
        """
        history = self._history
        base_node: Optional[BaseNode] = self._registry.get(node.node_type)
        node_type = node.node_type or "unknown"
        node_id = node.id
        data = dict(node.data or {})
        _input_for = self._input_for
        _output_preview = self._make_output_preview

        async def _node_fn(state: RunState) -> Dict[str, Any]:
            run_logger: Optional[RunLogger] = ctx.run_logger

            def _skip(reason: str, passes_input: bool = False, node_input: Any = None) -> Dict[str, Any]:
                history.record_step(
                    ctx.run_id, node_id, StepStatus.SKIPPED,
                    output={"reason": reason}, node_type=node_type,
                )
                if run_logger:
                    run_logger.log_node_exit(node_id, node_type, "skipped", 0, reason)
                if passes_input:
                    return {"outputs": {node_id: node_input}, "reached": [node_id]}
                return {"reached": []}

            if not history.is_running(ctx.run_id):
                return {"reached": []}

            if state.get("failed_node"):
                return _skip(f"Upstream node {state['failed_node']} failed")

            active, node_input = _input_for(incoming, state, ctx)
            if not active:
                return _skip("Not on the selected branch")

            if base_node is None or not base_node.executable:
                return _skip(f"No local executor for {node_type}", passes_input=True, node_input=node_input)

            if run_logger:
                run_logger.log_node_enter(node_id, node_type, step_number)

            ctx.outputs = dict(state.get("outputs") or {})
            ctx.current_node_id = node_id
            start = time.time()
            try:
                output = await base_node.execute(data, node_input, ctx)
            except Exception as e:
                duration_ms = int((time.time() - start) * 1000)
                if not history.is_running(ctx.run_id):
                    logger.info(f"[{ctx.workflow_id}:{ctx.run_id}] Node '{node_id}' failed after run was stopped: {e}")
                    return {"reached": []}
                logger.error(
                    f"[{ctx.workflow_id}:{ctx.run_id}] Node '{node_id}' ({node_type}) "
                    f"failed after {duration_ms}ms: {e}"
                )
                if run_logger:
                    run_logger.log_node_error(node_id, node_type, str(e)[:500], type(e).__name__)
                history.record_step(
                    ctx.run_id, node_id, StepStatus.FAILED,
                    duration_ms=duration_ms, error=str(e), node_type=node_type,
                )
                return {"failed_node": node_id}
            finally:
                ctx.current_node_id = None

            duration_ms = int((time.time() - start) * 1000)
            if not history.is_running(ctx.run_id):
                logger.info(f"[{ctx.workflow_id}:{ctx.run_id}] Run stopped while '{node_id}' was executing")
                return {"reached": []}
            history.record_step(
                ctx.run_id, node_id, StepStatus.SUCCEEDED,
                output=output, duration_ms=duration_ms, node_type=node_type,
            )
            if run_logger:
                run_logger.log_node_exit(node_id, node_type, "succeeded", duration_ms, _output_preview(output))

            update: Dict[str, Any] = {"outputs": {node_id: output}, "reached": [node_id]}
            if base_node.routes_output and isinstance(output, dict) and output.get("route"):
                update["routes"] = {node_id: str(output["route"])}
            return update

        # Give the function a useful name for debugging
        _node_fn.__name__ = f"node_{node_id}"
        _node_fn.__qualname__ = _node_fn.__name__
        return _node_fn

    @staticmethod
    def _input_for(
        incoming: List[WorkflowEdge],
        state: RunState,
        ctx: ExecutionContext,
    ) -> Tuple[bool, Any]:
        """Whether the node is on an active path, and the input it receives.

        A node without incoming edges is an entry point and receives the
        trigger envelope. Otherwise it needs an edge from a reached node
        whose handle matches the port that node chose (if it chose one).
        """
        if not incoming:
            return True, dict(ctx.trigger)
        reached = set(state.get("reached") or [])
        routes = state.get("routes") or {}
        outputs = state.get("outputs") or {}
        for edge in incoming:
            if edge.source not in reached:
                continue
            chosen = routes.get(edge.source)
            if chosen is not None and edge.source_handle is not None and edge.source_handle != chosen:
                continue
            upstream = outputs.get(edge.source)
            if chosen is not None and isinstance(upstream, dict) and "input" in upstream:
                upstream = upstream["input"]
            return True, upstream
        return False, None

    @staticmethod
    def _make_output_preview(result: Any) -> Optional[str]:
        """Extract a short preview string from a node's output."""
        if result is None:
            return None
        if isinstance(result, str):
            return result[:200]
        if isinstance(result, dict):
            for key in ("message", "route", "data"):
                val = result.get(key)
                if val and isinstance(val, str):
                    return val[:200]
            if result:
                return f"Keys: {', '.join(str(k) for k in list(result)[:10])}"
        return None
