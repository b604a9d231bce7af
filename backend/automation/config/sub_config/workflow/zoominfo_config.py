"""
ZoomInfo Configuration.

Controls the ZoomInfo API endpoint, request timeout, and the per-minute
request budget shared by all intent polls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from automation.config.base import BaseConfig, ConfigField, FieldType, register_config
from automation.config.sub_config.general.env_utils import env_sync, read_env_defaults


@register_config
@dataclass
class ZoomInfoConfig(BaseConfig):
    """ZoomInfo API settings."""

    base_url: str = "https://api.zoominfo.com"
    timeout_seconds: float = 30.0
    max_requests_per_minute: int = 1500
    user_agent: str = "AutomationEngine/1.0"

    _ENV_MAP = {
        "base_url": "ZOOMINFO_BASE_URL",
        "timeout_seconds": "ZOOMINFO_TIMEOUT_SECONDS",
        "max_requests_per_minute": "ZOOMINFO_MAX_REQUESTS_PER_MINUTE",
    }

    @classmethod
    def get_default_instance(cls) -> "ZoomInfoConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "zoominfo"

    @classmethod
    def get_display_name(cls) -> str:
        return "ZoomInfo"

    @classmethod
    def get_description(cls) -> str:
        return "ZoomInfo API endpoint, timeout and rate limit for intent triggers."

    @classmethod
    def get_category(cls) -> str:
        return "integrations"

    @classmethod
    def get_icon(cls) -> str:
        return "business"

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="base_url",
                field_type=FieldType.STRING,
                label="API Base URL",
                default="https://api.zoominfo.com",
                group="api",
                apply_change=env_sync("ZOOMINFO_BASE_URL"),
            ),
            ConfigField(
                name="timeout_seconds",
                field_type=FieldType.NUMBER,
                label="Request Timeout (s)",
                default=30.0,
                min_value=1,
                max_value=300,
                group="api",
                apply_change=env_sync("ZOOMINFO_TIMEOUT_SECONDS"),
            ),
            ConfigField(
                name="max_requests_per_minute",
                field_type=FieldType.NUMBER,
                label="Max Requests / Minute",
                description="ZoomInfo rate limit shared by all polls in this process",
                default=1500,
                min_value=1,
                group="api",
                apply_change=env_sync("ZOOMINFO_MAX_REQUESTS_PER_MINUTE"),
            ),
        ]
