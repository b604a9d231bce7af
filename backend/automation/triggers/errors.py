"""
Trigger exceptions.
"""

from __future__ import annotations


class TriggerConfigError(ValueError):
    """A polling trigger configuration is invalid or cannot be used."""


class SignalSourceError(Exception):
    """An external signal source failed (network, HTTP status, bad payload)."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        self.status_code = status_code
        super().__init__(message)


class SignalAuthenticationError(SignalSourceError):
    """The external source rejected the credentials."""
