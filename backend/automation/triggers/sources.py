"""
Signal sources — clients for the external systems a polling trigger watches.

A source is created per poll, authenticated with decrypted
credentials, asked for signals and closed. Integrations register a
factory for the trigger node type they serve.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional

from automation.triggers.errors import TriggerConfigError
from automation.triggers.models import PollingTriggerConfig, Signal

logger = getLogger(__name__)


class SignalSource(ABC):
    """External system polled for new signals."""

    source_name: str = ""

    @abstractmethod
    async def authenticate(self, credentials: Dict[str, Any]) -> None:
        """Log in; raise ``SignalAuthenticationError`` on rejection."""

    @abstractmethod
    async def fetch_signals(self, filters: Dict[str, Any], limit: Optional[int] = None) -> List[Signal]:
        """Signals matching ``filters``, newest first."""

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> "SignalSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


SourceFactory = Callable[[], SignalSource]

_SOURCES: Dict[str, SourceFactory] = {}


def register_source(node_type: str, factory: SourceFactory) -> None:
    if node_type in _SOURCES and _SOURCES[node_type] is not factory:
        logger.warning(f"Signal source for '{node_type}' re-registered")
    _SOURCES[node_type] = factory


def has_source(node_type: str) -> bool:
    _load_integrations()
    return node_type in _SOURCES


def create_source(config: PollingTriggerConfig) -> SignalSource:
    """Instantiate the source serving ``config.node_type``."""
    _load_integrations()
    factory = _SOURCES.get(config.node_type)
    if factory is None:
        raise TriggerConfigError(f"No signal source for trigger type '{config.node_type}'")
    return factory()


def _load_integrations() -> None:
    # Importing the integrations package registers its sources.
    import automation.integrations  # noqa: F401
