"""
ZoomInfo intent-signal source.

Authenticates against the ZoomInfo API (API key, username/password or
PKI) to obtain a JWT, then searches ``/intent/search`` for companies
showing purchase intent on the configured topics. All requests share a
per-minute budget; when it is exhausted the client waits for the next
window instead of failing.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from automation.config import ZoomInfoConfig, get_config
from automation.triggers.errors import SignalAuthenticationError, SignalSourceError
from automation.triggers.models import Signal
from automation.triggers.sources import SignalSource

logger = getLogger(__name__)

SOURCE_NAME = "zoominfo_intent"
DEFAULT_BATCH_SIZE = 50
RATE_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Fixed-window request budget."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = RATE_WINDOW_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._sleep = sleep
        self._clock = clock
        self.requests = 0
        self.reset_at = clock() + window_seconds

    async def acquire(self) -> None:
        now = self._clock()
        if now >= self.reset_at:
            self.requests = 0
            self.reset_at = now + self.window_seconds
        if self.requests >= self.max_requests:
            wait = max(self.reset_at - now, 0.0)
            logger.warning(f"ZoomInfo rate limit reached. Waiting {wait:.1f}s")
            await self._sleep(wait)
            self.requests = 0
            self.reset_at = self._clock() + self.window_seconds
        self.requests += 1


# Shared across sources so every poll draws from the same budget.
_shared_limiter: Optional[RateLimiter] = None


def _get_shared_limiter(max_requests: int) -> RateLimiter:
    global _shared_limiter
    if _shared_limiter is None or _shared_limiter.max_requests != max_requests:
        _shared_limiter = RateLimiter(max_requests)
    return _shared_limiter


def _auth_request(credentials: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    auth_type = credentials.get("type", "apikey")
    if auth_type == "apikey":
        return "/authenticate/apikey", {"api_key": credentials.get("apiKey", "")}
    if auth_type == "username_password":
        return "/authenticate/jwt", {
            "username": credentials.get("username", ""),
            "password": credentials.get("password", ""),
        }
    if auth_type == "pki":
        return "/authenticate/pki", {
            "private_key": credentials.get("privateKey", ""),
            "client_id": credentials.get("clientId", ""),
        }
    raise SignalAuthenticationError(f"Unsupported authentication type: {auth_type}")


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def build_search_params(filters: Dict[str, Any], limit: Optional[int] = None) -> Dict[str, Any]:
    """Map trigger filter criteria onto ``/intent/search`` parameters."""
    company = filters.get("companyFilters") or {}
    advanced = filters.get("advancedSettings") or {}
    return {
        "intent_topics": filters.get("intentTopics") or [],
        "signal_strength": filters.get("signalStrength") or "moderate",
        "company_size": company.get("companySize") or "",
        "industry": company.get("industry") or "",
        "location": company.get("location") or "",
        "technology_stack": company.get("technologyStack") or [],
        "limit": limit or advanced.get("batchSize") or DEFAULT_BATCH_SIZE,
        "offset": 0,
    }


class ZoomInfoIntentSource(SignalSource):
    """Polls ZoomInfo for companies with intent signals."""

    source_name = SOURCE_NAME

    def __init__(
        self,
        config: Optional[ZoomInfoConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._config: ZoomInfoConfig = config or get_config(ZoomInfoConfig.get_config_name())
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            headers={"User-Agent": self._config.user_agent},
            transport=transport,
        )
        self._limiter = rate_limiter or _get_shared_limiter(self._config.max_requests_per_minute)
        self._token: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    async def _post(self, path: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        await self._limiter.acquire()
        try:
            return await self._client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise SignalSourceError(f"ZoomInfo request to {path} failed: {type(e).__name__}") from e

    async def authenticate(self, credentials: Dict[str, Any]) -> None:
        path, payload = _auth_request(credentials)
        response = await self._post(path, payload)
        if response.status_code in (400, 401, 403):
            raise SignalAuthenticationError(
                f"ZoomInfo authentication failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise SignalSourceError(
                f"ZoomInfo authentication failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError:
            body = None
        token = body.get("jwt") if isinstance(body, dict) else None
        if not token:
            raise SignalAuthenticationError("ZoomInfo authentication failed: No JWT token received")
        self._token = token
        logger.info("ZoomInfo authentication successful")

    async def fetch_signals(self, filters: Dict[str, Any], limit: Optional[int] = None) -> List[Signal]:
        if self._token is None:
            raise SignalSourceError("ZoomInfo source is not authenticated")
        params = build_search_params(filters, limit)
        response = await self._post(
            "/intent/search", params, headers={"Authorization": f"Bearer {self._token}"},
        )
        if response.status_code in (401, 403):
            raise SignalAuthenticationError(
                f"ZoomInfo rejected the session token: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise SignalSourceError(
                f"Failed to retrieve intent signals: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise SignalSourceError("ZoomInfo returned invalid JSON for intent search") from e
        if not isinstance(body, dict):
            raise SignalSourceError("ZoomInfo intent search returned an unexpected payload")
        items = body.get("data") or []

        min_score = (filters.get("advancedSettings") or {}).get("minimumConfidenceScore")
        signals: List[Signal] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            score = item.get("confidence_score")
            if min_score is not None and isinstance(score, (int, float)) and score < min_score:
                continue
            subject = item.get("company_name") or item.get("company_id") or "unknown"
            signals.append(Signal(
                subject=str(subject),
                timestamp=_parse_timestamp(item.get("signal_date")),
                payload=item,
            ))
        if limit is not None:
            signals = signals[:limit]
        logger.info(f"Retrieved {len(signals)} intent signals from ZoomInfo")
        return signals

    async def aclose(self) -> None:
        await self._client.aclose()
