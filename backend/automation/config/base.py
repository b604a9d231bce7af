"""
Config base — dataclass configs, field metadata, and the config registry.

A config class is a ``@dataclass`` subclass of ``BaseConfig`` decorated
with ``@register_config``. ``get_config(name)`` returns a lazily created,
process-wide instance built from ``get_default_instance()``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional, Type

logger = getLogger(__name__)


class FieldType(str, Enum):
    """Editor widget type of a config field."""
    STRING = "string"
    PASSWORD = "password"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    TEXTAREA = "textarea"


@dataclass
class ConfigField:
    """Display / validation metadata for a single config field."""
    name: str
    field_type: FieldType
    label: str
    description: str = ""
    required: bool = False
    default: Any = None
    placeholder: str = ""
    options: List[Dict[str, Any]] = field(default_factory=list)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    group: str = "general"
    secure: bool = False
    apply_change: Optional[Callable[[Any, Any], None]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the frontend (callbacks dropped)."""
        return {
            "name": self.name,
            "type": self.field_type.value,
            "label": self.label,
            "description": self.description,
            "required": self.required,
            "default": self.default,
            "placeholder": self.placeholder,
            "options": self.options,
            "min": self.min_value,
            "max": self.max_value,
            "group": self.group,
            "secure": self.secure,
        }


@dataclass
class BaseConfig:
    """Base class for all registered configs."""

    @classmethod
    def get_default_instance(cls) -> "BaseConfig":
        return cls()

    @classmethod
    def get_config_name(cls) -> str:
        raise NotImplementedError

    @classmethod
    def get_display_name(cls) -> str:
        return cls.get_config_name()

    @classmethod
    def get_description(cls) -> str:
        return ""

    @classmethod
    def get_category(cls) -> str:
        return "general"

    @classmethod
    def get_icon(cls) -> str:
        return "settings"

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return []

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Serialize values, masking ``secure`` fields by default."""
        values = asdict(self)
        if mask_secrets:
            for meta in self.get_fields_metadata():
                if meta.secure and values.get(meta.name):
                    values[meta.name] = "********"
        return values


# ── Registry ──

_CONFIG_CLASSES: Dict[str, Type[BaseConfig]] = {}
_CONFIG_INSTANCES: Dict[str, BaseConfig] = {}


def register_config(cls: Type[BaseConfig]) -> Type[BaseConfig]:
    """Class decorator — register a config class by its config name."""
    name = cls.get_config_name()
    if name in _CONFIG_CLASSES and _CONFIG_CLASSES[name] is not cls:
        logger.warning(f"Config '{name}' re-registered by {cls.__name__}")
    _CONFIG_CLASSES[name] = cls
    return cls


def get_config(name: str) -> BaseConfig:
    """Return the process-wide instance of a registered config."""
    if name not in _CONFIG_INSTANCES:
        cls = _CONFIG_CLASSES.get(name)
        if cls is None:
            raise KeyError(f"Unknown config: {name}")
        _CONFIG_INSTANCES[name] = cls.get_default_instance()
    return _CONFIG_INSTANCES[name]


def list_configs() -> List[Type[BaseConfig]]:
    """All registered config classes, sorted by name."""
    return [_CONFIG_CLASSES[k] for k in sorted(_CONFIG_CLASSES)]


def reset_configs() -> None:
    """Drop cached instances so the next ``get_config`` re-reads the env."""
    _CONFIG_INSTANCES.clear()
