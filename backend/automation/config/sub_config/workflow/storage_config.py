"""
Workflow Storage Configuration.

Directories holding workflow definition and run history JSON files.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List

from automation.config.base import BaseConfig, ConfigField, FieldType, register_config
from automation.config.sub_config.general.env_utils import read_env_defaults

_BACKEND_DIR = Path(__file__).resolve().parents[4]


@register_config
@dataclass
class WorkflowStorageConfig(BaseConfig):
    """Where workflows and runs are persisted."""

    workflows_dir: str = str(_BACKEND_DIR / "data" / "workflows")
    runs_dir: str = str(_BACKEND_DIR / "data" / "runs")

    _ENV_MAP = {
        "workflows_dir": "WORKFLOW_STORAGE_DIR",
        "runs_dir": "WORKFLOW_RUNS_DIR",
    }

    @classmethod
    def get_default_instance(cls) -> "WorkflowStorageConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "workflow_storage"

    @classmethod
    def get_display_name(cls) -> str:
        return "Workflow Storage"

    @classmethod
    def get_category(cls) -> str:
        return "workflow"

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="workflows_dir",
                field_type=FieldType.STRING,
                label="Workflows Directory",
                group="storage",
            ),
            ConfigField(
                name="runs_dir",
                field_type=FieldType.STRING,
                label="Run History Directory",
                group="storage",
            ),
        ]
