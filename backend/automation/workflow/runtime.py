"""
Workflow Runtime — connects triggers to execution.

``activate`` hands a workflow's polling trigger node to the trigger
manager; every event it emits runs the workflow once through the
executor and lands in the execution history. One-shot triggers
(webhook, form, manual run) go through ``dispatch``.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, Optional

from automation.triggers import (
    PollingTriggerConfig,
    TriggerConfigError,
    TriggerEvent,
    TriggerManager,
    get_trigger_manager,
    has_source,
)
from automation.workflow.errors import WorkflowError
from automation.workflow.graph_scheduler import is_trigger
from automation.workflow.nodes import NodeRegistry, get_node_registry
from automation.workflow.workflow_executor import WorkflowExecutor
from automation.workflow.workflow_model import WorkflowDefinition, WorkflowNode, WorkflowRun
from automation.workflow.workflow_store import WorkflowStore, get_workflow_store

logger = getLogger(__name__)


class WorkflowRuntime:
    """Activate, deactivate and fire workflows."""

    def __init__(
        self,
        executor: Optional[WorkflowExecutor] = None,
        trigger_manager: Optional[TriggerManager] = None,
        store: Optional[WorkflowStore] = None,
        registry: Optional[NodeRegistry] = None,
    ) -> None:
        self._executor = executor or WorkflowExecutor()
        self._triggers = trigger_manager or get_trigger_manager()
        self._store = store
        self._registry = registry or get_node_registry()
        self._active: Dict[str, WorkflowDefinition] = {}

    @property
    def executor(self) -> WorkflowExecutor:
        return self._executor

    def is_active(self, workflow_id: str) -> bool:
        return workflow_id in self._active

    def _trigger_node(self, workflow: WorkflowDefinition) -> Optional[WorkflowNode]:
        for node in workflow.nodes:
            if is_trigger(node, self._registry):
                return node
        return None

    async def activate(self, workflow: WorkflowDefinition) -> Optional[PollingTriggerConfig]:
        """Mark ``workflow`` active and start its poll if it has a polling trigger.

        Returns the polling config, or ``None`` for one-shot triggers.
        """
        workflow, _order = self._executor.prepare(workflow)
        self._active[workflow.id] = workflow

        node = self._trigger_node(workflow)
        if node is None:
            logger.info(f"Workflow {workflow.id} activated without a trigger node")
            return None
        definition = self._registry.get_definition(node.node_type)
        if not definition.polling:
            logger.info(f"Workflow {workflow.id} activated ({node.node_type}, one-shot)")
            return None
        if not has_source(definition.type):
            logger.warning(
                f"Workflow {workflow.id}: no signal source for {definition.type}; "
                f"trigger will only fire through dispatch"
            )
            return None

        try:
            config = PollingTriggerConfig.from_node(workflow.id, node)
        except ValueError as e:
            self._active.pop(workflow.id, None)
            raise TriggerConfigError(f"Invalid trigger configuration: {e}") from e

        workflow_id = workflow.id

        async def _on_event(event: TriggerEvent) -> None:
            await self._run_active(workflow_id, event.to_envelope())

        try:
            await self._triggers.start_polling(config, _on_event)
        except TriggerConfigError:
            self._active.pop(workflow.id, None)
            raise
        return config

    def deactivate(self, workflow_id: str) -> bool:
        """Stop polling and forget the workflow; idempotent."""
        was_active = self._active.pop(workflow_id, None) is not None
        self._triggers.stop_polling(workflow_id)
        if was_active:
            logger.info(f"Workflow {workflow_id} deactivated")
        return was_active

    async def dispatch(self, workflow_id: str, envelope: Optional[Dict[str, Any]] = None) -> WorkflowRun:
        """Run an active (or stored) workflow once with ``envelope``."""
        workflow = self._active.get(workflow_id)
        if workflow is None and self._store is not None:
            workflow = self._store.load(workflow_id)
        if workflow is None:
            raise WorkflowError(f"Workflow not found or not active: {workflow_id}")
        return await self._executor.execute(workflow, envelope)

    async def _run_active(self, workflow_id: str, envelope: Dict[str, Any]) -> Optional[WorkflowRun]:
        workflow = self._active.get(workflow_id)
        if workflow is None:
            logger.info(f"Dropping trigger event for inactive workflow {workflow_id}")
            return None
        return await self._executor.execute(workflow, envelope)

    async def activate_stored(self) -> int:
        """Activate every stored workflow flagged ``isActive``."""
        store = self._store or get_workflow_store()
        count = 0
        for workflow in store.list_active():
            try:
                await self.activate(workflow)
                count += 1
            except (WorkflowError, TriggerConfigError) as e:
                logger.error(f"Could not activate workflow {workflow.id}: {e}")
        return count

    def shutdown(self) -> None:
        for workflow_id in list(self._active):
            self.deactivate(workflow_id)
        self._triggers.stop_all()
