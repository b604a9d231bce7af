"""
Workflow Store — JSON-file persistence for workflow definitions.

One ``<workflow_id>.json`` file per workflow, in the camelCase shape
the builder uses. Definitions are validated before they are written
and migrated to the current node catalogue when they are read.
"""

from __future__ import annotations

import json
from logging import getLogger
from pathlib import Path
from typing import List, Optional

from automation.config import WorkflowStorageConfig, get_config
from automation.workflow.errors import WorkflowValidationError
from automation.workflow.graph_scheduler import validate_workflow
from automation.workflow.node_migrator import migrate_workflow
from automation.workflow.workflow_model import WorkflowDefinition

logger = getLogger(__name__)


class WorkflowStore:
    """Persist and load WorkflowDefinition objects as JSON files."""

    def __init__(self, storage_dir: Optional[Path] = None) -> None:
        if storage_dir is None:
            config: WorkflowStorageConfig = get_config(WorkflowStorageConfig.get_config_name())
            storage_dir = Path(config.workflows_dir)
        self._dir = Path(storage_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"WorkflowStore initialized at {self._dir}")

    # ── CRUD ──

    def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Validate, then save (create or update) a workflow definition."""
        errors = validate_workflow(workflow)
        if errors:
            raise WorkflowValidationError(errors)
        workflow.touch()
        self._path_for(workflow.id).write_text(
            workflow.model_dump_json(indent=2, by_alias=True),
            encoding="utf-8",
        )
        logger.info(f"Workflow saved: {workflow.name} ({workflow.id})")
        return workflow

    def load(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        """Load a single workflow by ID, migrated to current node types."""
        path = self._path_for(workflow_id)
        if not path.exists():
            return None
        try:
            return self._read(path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load workflow {workflow_id}: {e}")
            return None

    def delete(self, workflow_id: str) -> bool:
        """Delete a workflow definition."""
        path = self._path_for(workflow_id)
        if path.exists():
            path.unlink()
            logger.info(f"Workflow deleted: {workflow_id}")
            return True
        return False

    def list_all(self) -> List[WorkflowDefinition]:
        """List all saved workflow definitions."""
        workflows: List[WorkflowDefinition] = []
        for path in sorted(self._dir.glob("*.json")):
            try:
                workflows.append(self._read(path))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping malformed workflow file {path.name}: {e}")
        return workflows

    def list_active(self) -> List[WorkflowDefinition]:
        return [w for w in self.list_all() if w.is_active]

    def set_active(self, workflow_id: str, active: bool) -> Optional[WorkflowDefinition]:
        workflow = self.load(workflow_id)
        if workflow is None:
            return None
        workflow.is_active = active
        return self.save(workflow)

    def exists(self, workflow_id: str) -> bool:
        return self._path_for(workflow_id).exists()

    # ── Internals ──

    def _read(self, path: Path) -> WorkflowDefinition:
        data = json.loads(path.read_text(encoding="utf-8"))
        return migrate_workflow(WorkflowDefinition.model_validate(data))

    def _path_for(self, workflow_id: str) -> Path:
        # Sanitize ID for filesystem
        safe_id = "".join(c for c in workflow_id if c.isalnum() or c in "-_")
        return self._dir / f"{safe_id}.json"


# ── Singleton ──

_store_instance: Optional[WorkflowStore] = None


def get_workflow_store() -> WorkflowStore:
    """Return the global WorkflowStore singleton."""
    global _store_instance
    if _store_instance is None:
        _store_instance = WorkflowStore()
    return _store_instance
