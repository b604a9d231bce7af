"""
Configuration package.

Every config is a dataclass registered with ``@register_config`` whose
defaults are read from environment variables. Importing the sub-config
modules below registers them.
"""

from automation.config.base import (
    BaseConfig,
    ConfigField,
    FieldType,
    get_config,
    list_configs,
    register_config,
)
from automation.config.sub_config.workflow.storage_config import WorkflowStorageConfig
from automation.config.sub_config.workflow.trigger_config import TriggerConfig
from automation.config.sub_config.workflow.zoominfo_config import ZoomInfoConfig

__all__ = [
    "BaseConfig",
    "ConfigField",
    "FieldType",
    "get_config",
    "list_configs",
    "register_config",
    "TriggerConfig",
    "WorkflowStorageConfig",
    "ZoomInfoConfig",
]
