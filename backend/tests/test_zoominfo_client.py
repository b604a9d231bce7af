"""
ZoomInfo intent source tests (HTTP mocked with httpx.MockTransport).
"""

import json

import httpx
import pytest

from automation.config import ZoomInfoConfig
from automation.integrations.zoominfo import (
    SOURCE_NAME,
    RateLimiter,
    ZoomInfoIntentSource,
    build_search_params,
)
from automation.triggers import (
    PollingTriggerConfig,
    SignalAuthenticationError,
    SignalSourceError,
    create_source,
)

INTENT_ITEMS = [
    {
        "company_id": "c-1",
        "company_name": "Acme",
        "confidence_score": 92,
        "signal_date": "2024-03-01T10:00:00Z",
        "intent_topics": ["crm"],
    },
    {
        "company_id": "c-2",
        "company_name": "Globex",
        "confidence_score": 40,
        "signal_date": "2024-03-02T10:00:00Z",
    },
    {"company_id": "c-3", "confidence_score": 88},
]


class FakeZoomInfo:
    """Request handler standing in for the ZoomInfo API."""

    def __init__(self, auth_status=200, auth_body=None, search_status=200, items=None):
        self.auth_status = auth_status
        self.auth_body = {"jwt": "jwt-token"} if auth_body is None else auth_body
        self.search_status = search_status
        self.items = INTENT_ITEMS if items is None else items
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.startswith("/authenticate/"):
            return httpx.Response(self.auth_status, json=self.auth_body)
        if request.url.path == "/intent/search":
            return httpx.Response(self.search_status, json={"data": self.items})
        return httpx.Response(404)

    def body(self, index):
        return json.loads(self.requests[index].content)


class NoWaitLimiter(RateLimiter):
    def __init__(self):
        super().__init__(max_requests=1000)


def make_source(api):
    return ZoomInfoIntentSource(
        config=ZoomInfoConfig(base_url="https://zoominfo.test"),
        transport=httpx.MockTransport(api),
        rate_limiter=NoWaitLimiter(),
    )


class TestAuthentication:
    """authenticate()"""

    async def test_api_key(self):
        api = FakeZoomInfo()
        async with make_source(api) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})

            assert source.authenticated
        assert api.requests[0].url.path == "/authenticate/apikey"
        assert api.body(0) == {"api_key": "k-1"}
        assert api.requests[0].headers["User-Agent"] == "AutomationEngine/1.0"

    @pytest.mark.parametrize("credentials,path,payload", [
        (
            {"type": "username_password", "username": "ops", "password": "pw"},
            "/authenticate/jwt",
            {"username": "ops", "password": "pw"},
        ),
        (
            {"type": "pki", "privateKey": "pem", "clientId": "cid"},
            "/authenticate/pki",
            {"private_key": "pem", "client_id": "cid"},
        ),
    ])
    async def test_other_auth_types(self, credentials, path, payload):
        api = FakeZoomInfo()
        async with make_source(api) as source:
            await source.authenticate(credentials)

        assert api.requests[0].url.path == path
        assert api.body(0) == payload

    async def test_rejected_credentials(self):
        api = FakeZoomInfo(auth_status=401, auth_body={"error": "bad key"})
        async with make_source(api) as source:
            with pytest.raises(SignalAuthenticationError) as exc_info:
                await source.authenticate({"type": "apikey", "apiKey": "k-1"})

        assert exc_info.value.status_code == 401

    async def test_server_error_is_not_an_auth_error(self):
        api = FakeZoomInfo(auth_status=503, auth_body={})
        async with make_source(api) as source:
            with pytest.raises(SignalSourceError) as exc_info:
                await source.authenticate({"type": "apikey", "apiKey": "k-1"})

        assert not isinstance(exc_info.value, SignalAuthenticationError)

    async def test_missing_jwt(self):
        api = FakeZoomInfo(auth_body={"message": "ok"})
        async with make_source(api) as source:
            with pytest.raises(SignalAuthenticationError, match="No JWT token received"):
                await source.authenticate({"type": "apikey", "apiKey": "k-1"})

    async def test_non_object_auth_body(self):
        api = FakeZoomInfo(auth_body=[])
        async with make_source(api) as source:
            with pytest.raises(SignalAuthenticationError, match="No JWT token received"):
                await source.authenticate({"type": "apikey", "apiKey": "k-1"})

    async def test_unsupported_type(self):
        async with make_source(FakeZoomInfo()) as source:
            with pytest.raises(SignalAuthenticationError):
                await source.authenticate({"type": "oauth"})

    async def test_network_error(self):
        def broken(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_source(broken) as source:
            with pytest.raises(SignalSourceError):
                await source.authenticate({"type": "apikey", "apiKey": "k-1"})


class TestIntentSearch:
    """fetch_signals()"""

    async def test_maps_items_to_signals(self):
        api = FakeZoomInfo()
        async with make_source(api) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})
            signals = await source.fetch_signals({"intentTopics": ["crm"]})

        assert [s.subject for s in signals] == ["Acme", "Globex", "c-3"]
        assert signals[0].payload == INTENT_ITEMS[0]
        assert signals[0].timestamp.year == 2024
        assert api.requests[1].headers["Authorization"] == "Bearer jwt-token"

    async def test_search_params(self):
        api = FakeZoomInfo(items=[])
        filters = {
            "intentTopics": ["crm", "marketing automation"],
            "signalStrength": "strong",
            "companyFilters": {"industry": "Software", "companySize": "51-200", "location": "US", "technologyStack": ["Salesforce"]},
            "advancedSettings": {"batchSize": 25},
        }
        async with make_source(api) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})
            await source.fetch_signals(filters)

        assert api.body(1) == {
            "intent_topics": ["crm", "marketing automation"],
            "signal_strength": "strong",
            "company_size": "51-200",
            "industry": "Software",
            "location": "US",
            "technology_stack": ["Salesforce"],
            "limit": 25,
            "offset": 0,
        }

    async def test_minimum_confidence_filter(self):
        async with make_source(FakeZoomInfo()) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})
            signals = await source.fetch_signals({"advancedSettings": {"minimumConfidenceScore": 80}})

        assert [s.subject for s in signals] == ["Acme", "c-3"]

    async def test_limit(self):
        api = FakeZoomInfo()
        async with make_source(api) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})
            signals = await source.fetch_signals({}, limit=2)

        assert len(signals) == 2
        assert api.body(1)["limit"] == 2

    async def test_requires_authentication(self):
        async with make_source(FakeZoomInfo()) as source:
            with pytest.raises(SignalSourceError, match="not authenticated"):
                await source.fetch_signals({})

    async def test_non_object_search_body(self):
        def api(request):
            if request.url.path.startswith("/authenticate/"):
                return httpx.Response(200, json={"jwt": "jwt-token"})
            return httpx.Response(200, json=[{"company_name": "Acme"}])

        async with make_source(api) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})
            with pytest.raises(SignalSourceError, match="unexpected payload"):
                await source.fetch_signals({})

    async def test_search_failure(self):
        async with make_source(FakeZoomInfo(search_status=500)) as source:
            await source.authenticate({"type": "apikey", "apiKey": "k-1"})
            with pytest.raises(SignalSourceError) as exc_info:
                await source.fetch_signals({})

        assert exc_info.value.status_code == 500


class TestRegistration:
    """Source registry wiring"""

    def test_build_search_params_defaults(self):
        params = build_search_params({})

        assert params["signal_strength"] == "moderate"
        assert params["limit"] == 50
        assert params["intent_topics"] == []

    async def test_trigger_type_creates_zoominfo_source(self):
        config = PollingTriggerConfig(
            workflow_id="wf-1", node_type="trigger:zoominfo:intent", credentials={"apiKey": "x"},
        )

        source = create_source(config)
        try:
            assert isinstance(source, ZoomInfoIntentSource)
            assert source.source_name == SOURCE_NAME
        finally:
            await source.aclose()


class TestRateLimiter:
    """RateLimiter"""

    async def test_waits_for_next_window(self):
        now = [100.0]
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)
            now[0] += seconds

        limiter = RateLimiter(max_requests=2, window_seconds=60, sleep=fake_sleep, clock=lambda: now[0])

        await limiter.acquire()
        await limiter.acquire()
        assert slept == []

        now[0] = 130.0
        await limiter.acquire()

        assert slept == [30.0]
        assert limiter.requests == 1

    async def test_window_resets(self):
        now = [0.0]
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        limiter = RateLimiter(max_requests=1, window_seconds=60, sleep=fake_sleep, clock=lambda: now[0])

        await limiter.acquire()
        now[0] = 61.0
        await limiter.acquire()

        assert slept == []
