"""ZoomInfo integration."""

from automation.integrations.zoominfo.client import (
    SOURCE_NAME,
    RateLimiter,
    ZoomInfoIntentSource,
    build_search_params,
)
from automation.triggers.sources import register_source

register_source("trigger:zoominfo:intent", ZoomInfoIntentSource)

__all__ = ["SOURCE_NAME", "RateLimiter", "ZoomInfoIntentSource", "build_search_params"]
