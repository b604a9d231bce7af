"""
Workflow triggers — recurring polls and one-off connection tests.
"""

from automation.triggers.credentials import CredentialCipher
from automation.triggers.errors import (
    SignalAuthenticationError,
    SignalSourceError,
    TriggerConfigError,
)
from automation.triggers.models import (
    PollingTriggerConfig,
    Signal,
    TriggerEvent,
    TriggerTestResult,
)
from automation.triggers.sources import SignalSource, create_source, has_source, register_source
from automation.triggers.trigger_manager import (
    PollingHandle,
    TriggerManager,
    get_trigger_manager,
)

__all__ = [
    "CredentialCipher",
    "PollingHandle",
    "PollingTriggerConfig",
    "Signal",
    "SignalAuthenticationError",
    "SignalSource",
    "SignalSourceError",
    "TriggerConfigError",
    "TriggerEvent",
    "TriggerManager",
    "TriggerTestResult",
    "create_source",
    "get_trigger_manager",
    "has_source",
    "register_source",
]
