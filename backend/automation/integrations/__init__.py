"""
External integrations.

Importing this package registers every integration's signal sources.
"""

from automation.integrations import zoominfo  # noqa: F401
