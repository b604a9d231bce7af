"""
Trigger Configuration.

Controls recurring polling triggers: default and minimum poll interval,
the per-workflow event queue bound, the "test connection" sample size,
and the key used to encrypt stored trigger credentials.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from automation.config.base import BaseConfig, ConfigField, FieldType, register_config
from automation.config.sub_config.general.env_utils import env_sync, read_env_defaults

DEFAULT_POLLING_INTERVAL_MS = 15 * 60 * 1000


@register_config
@dataclass
class TriggerConfig(BaseConfig):
    """Polling trigger settings."""

    default_polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS
    min_polling_interval_ms: int = 60 * 1000
    event_queue_size: int = 100
    test_sample_size: int = 5
    credentials_encryption_key: str = ""

    _ENV_MAP = {
        "default_polling_interval_ms": "TRIGGER_DEFAULT_POLLING_INTERVAL_MS",
        "min_polling_interval_ms": "TRIGGER_MIN_POLLING_INTERVAL_MS",
        "event_queue_size": "TRIGGER_EVENT_QUEUE_SIZE",
        "test_sample_size": "TRIGGER_TEST_SAMPLE_SIZE",
        "credentials_encryption_key": "CREDENTIALS_ENCRYPTION_KEY",
    }

    @classmethod
    def get_default_instance(cls) -> "TriggerConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "triggers"

    @classmethod
    def get_display_name(cls) -> str:
        return "Workflow Triggers"

    @classmethod
    def get_description(cls) -> str:
        return "Polling interval, event queue and credential encryption for workflow triggers."

    @classmethod
    def get_category(cls) -> str:
        return "workflow"

    @classmethod
    def get_icon(cls) -> str:
        return "schedule"

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="default_polling_interval_ms",
                field_type=FieldType.NUMBER,
                label="Default Polling Interval (ms)",
                description="Used when a trigger node does not set pollingInterval",
                default=DEFAULT_POLLING_INTERVAL_MS,
                min_value=1000,
                group="polling",
                apply_change=env_sync("TRIGGER_DEFAULT_POLLING_INTERVAL_MS"),
            ),
            ConfigField(
                name="min_polling_interval_ms",
                field_type=FieldType.NUMBER,
                label="Minimum Polling Interval (ms)",
                description="Trigger nodes with a shorter interval are rejected",
                default=60 * 1000,
                min_value=0,
                group="polling",
                apply_change=env_sync("TRIGGER_MIN_POLLING_INTERVAL_MS"),
            ),
            ConfigField(
                name="event_queue_size",
                field_type=FieldType.NUMBER,
                label="Event Queue Size",
                description="Maximum pending trigger events per workflow before polls wait",
                default=100,
                min_value=1,
                max_value=10000,
                group="polling",
                apply_change=env_sync("TRIGGER_EVENT_QUEUE_SIZE"),
            ),
            ConfigField(
                name="test_sample_size",
                field_type=FieldType.NUMBER,
                label="Test Sample Size",
                description="Number of signals returned by a trigger connection test",
                default=5,
                min_value=1,
                max_value=50,
                group="testing",
                apply_change=env_sync("TRIGGER_TEST_SAMPLE_SIZE"),
            ),
            ConfigField(
                name="credentials_encryption_key",
                field_type=FieldType.PASSWORD,
                label="Credentials Encryption Key",
                description="Fernet key used to encrypt stored trigger credentials",
                required=True,
                group="security",
                secure=True,
                apply_change=env_sync("CREDENTIALS_ENCRYPTION_KEY"),
            ),
        ]
