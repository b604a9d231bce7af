"""
Environment helpers shared by the dataclass configs.
"""

from __future__ import annotations

import os
from dataclasses import MISSING, Field
from logging import getLogger
from typing import Any, Callable, Dict, List, Mapping

logger = getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce(raw: str, target_type: Any) -> Any:
    type_name = target_type if isinstance(target_type, str) else getattr(target_type, "__name__", "")
    if type_name == "bool":
        return raw.strip().lower() in _TRUE_VALUES
    if type_name == "int":
        return int(raw)
    if type_name == "float":
        return float(raw)
    if type_name.startswith("List"):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def read_env_defaults(
    env_map: Mapping[str, str],
    dataclass_fields: Mapping[str, Field],
) -> Dict[str, Any]:
    """Build constructor kwargs from environment variables.

    Only fields present in ``env_map`` whose variable is set are returned;
    the dataclass defaults cover the rest. Values that fail to convert
    are skipped with a warning.
    """
    values: Dict[str, Any] = {}
    for field_name, env_name in env_map.items():
        raw = os.environ.get(env_name)
        if raw is None or field_name not in dataclass_fields:
            continue
        try:
            values[field_name] = _coerce(raw, dataclass_fields[field_name].type)
        except ValueError:
            default = dataclass_fields[field_name].default
            logger.warning(
                f"Ignoring invalid value for {env_name}; "
                f"using default {default if default is not MISSING else '<none>'}"
            )
    return values


def env_sync(env_name: str) -> Callable[[Any, Any], None]:
    """Return an ``apply_change`` hook that mirrors a value into ``os.environ``."""

    def _apply(_old: Any, new: Any) -> None:
        if new is None or new == "":
            os.environ.pop(env_name, None)
        elif isinstance(new, bool):
            os.environ[env_name] = "true" if new else "false"
        elif isinstance(new, list):
            os.environ[env_name] = ",".join(str(v) for v in new)
        else:
            os.environ[env_name] = str(new)

    return _apply


__all__: List[str] = ["read_env_defaults", "env_sync"]
