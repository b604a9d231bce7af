"""
Trigger manager tests — scheduling, resilience and connection tests.

Time is driven by ``ManualSleep``: the recurring schedule only advances
when a test releases a tick.
"""

import asyncio

import httpx
import pytest

from automation.config import TriggerConfig, ZoomInfoConfig
from automation.integrations.zoominfo import RateLimiter, ZoomInfoIntentSource
from automation.triggers import (
    CredentialCipher,
    PollingTriggerConfig,
    SignalSourceError,
    TriggerConfigError,
    TriggerManager,
)

from conftest import FakeSource, settle, signals

API_KEY = "zi-secret-key-123"


@pytest.fixture
def cipher():
    return CredentialCipher(CredentialCipher.generate_key())


@pytest.fixture
def make_config(cipher):
    def _make(workflow_id="wf-1", interval_ms=60_000, credentials=None, **filters):
        if credentials is None:
            credentials = cipher.encrypt_credentials({"type": "apikey", "apiKey": API_KEY})
        return PollingTriggerConfig(
            workflow_id=workflow_id,
            node_type="trigger:zoominfo:intent",
            credentials=credentials,
            filters=filters,
            polling_interval_ms=interval_ms,
        )

    return _make


@pytest.fixture
async def make_manager(cipher, manual_sleep):
    managers = []

    def _make(source):
        manager = TriggerManager(
            source_factory=source, cipher=cipher, config=TriggerConfig(), sleep=manual_sleep,
        )
        managers.append(manager)
        return manager

    yield _make
    for manager in managers:
        manager.stop_all()
    await settle()


@pytest.fixture
def received():
    return []


@pytest.fixture
def callback(received):
    async def _callback(event):
        received.append(event)

    return _callback


def subjects(events):
    return [e.data["company_name"] for e in events]


class TestStartPolling:
    """start_polling()"""

    async def test_first_poll_runs_immediately(self, make_manager, make_config, callback, received, manual_sleep):
        source = FakeSource(script=[signals("Acme", "Globex")])
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(intentTopics=["crm"]), callback)
        await settle()

        assert subjects(received) == ["Acme", "Globex"]
        assert received[0].trigger == "fake_source"
        assert source.fetch_calls[0]["filters"] == {"intentTopics": ["crm"]}
        assert handle.poll_count == 1
        assert manual_sleep.calls == [60.0]

    async def test_credentials_are_decrypted_for_the_source(self, make_manager, make_config, callback):
        source = FakeSource()
        manager = make_manager(source)

        await manager.start_polling(make_config(), callback)

        assert source.authenticated_with == [{"type": "apikey", "apiKey": API_KEY}]
        assert source.closed == 1

    async def test_recurring_polls(self, make_manager, make_config, callback, received, manual_sleep):
        source = FakeSource(script=[signals("A"), signals("B"), signals("C")])
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(), callback)
        await manual_sleep.advance(2)

        assert subjects(received) == ["A", "B", "C"]
        assert handle.poll_count == 3

    async def test_restart_replaces_previous_handle(self, make_manager, make_config, callback, manual_sleep):
        first_source = FakeSource()
        second_source = FakeSource()
        manager = make_manager(first_source)

        first = await manager.start_polling(make_config(), callback)
        manager._source_factory = second_source
        second = await manager.start_polling(make_config(), callback)
        await settle()

        assert manager.active_workflows() == ["wf-1"]
        assert manager.get_handle("wf-1") is second
        assert not first.active
        assert second.active
        assert manual_sleep.pending == 1

        await manual_sleep.advance()
        assert len(first_source.fetch_calls) == 1
        assert len(second_source.fetch_calls) == 2

    async def test_interval_below_minimum_is_rejected(self, make_manager, make_config, callback):
        manager = make_manager(FakeSource())

        with pytest.raises(TriggerConfigError, match="below the minimum"):
            await manager.start_polling(make_config(interval_ms=1_000), callback)
        assert not manager.is_polling("wf-1")

    async def test_missing_credentials_are_rejected(self, make_manager, make_config, callback):
        manager = make_manager(FakeSource())

        with pytest.raises(TriggerConfigError):
            await manager.start_polling(make_config(credentials={}), callback)


class TestPollResilience:
    """Failed polls, slow polls and callback errors"""

    async def test_failed_poll_keeps_schedule(self, make_manager, make_config, callback, received, manual_sleep):
        source = FakeSource(script=[SignalSourceError("rate limited", status_code=429), signals("Later")])
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(), callback)
        assert received == []
        assert "rate limited" in handle.last_error

        await manual_sleep.advance()

        assert subjects(received) == ["Later"]
        assert handle.last_error is None
        assert handle.poll_count == 2

    async def test_unexpected_error_keeps_schedule(self, make_manager, make_config, callback, manual_sleep):
        source = FakeSource(script=[KeyError("company_id")])
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(), callback)
        await manual_sleep.advance()

        assert handle.last_error.startswith("KeyError")
        assert len(source.fetch_calls) == 2

    async def test_error_text_is_redacted(self, make_manager, make_config, callback):
        source = FakeSource(reject_credentials=True)
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(), callback)

        assert API_KEY not in handle.last_error
        assert "[REDACTED]" in handle.last_error

    async def test_tick_skipped_while_poll_in_flight(self, make_manager, make_config, callback, received, manual_sleep):
        gate = asyncio.Event()
        gate.set()
        source = FakeSource(default=signals("A"), gate=gate)
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(), callback)
        gate.clear()
        await manual_sleep.advance()
        assert handle.polling

        await manual_sleep.advance()
        assert handle.skipped_ticks == 1
        assert len(source.fetch_calls) == 2

        gate.set()
        await settle()
        assert not handle.polling
        assert len(received) == 2

    async def test_callback_error_does_not_stop_delivery(self, make_manager, make_config, received):
        async def flaky(event):
            received.append(event)
            if event.data["company_name"] == "A":
                raise RuntimeError("workflow exploded")

        manager = make_manager(FakeSource(script=[signals("A", "B")]))

        await manager.start_polling(make_config(), flaky)
        await settle()

        assert subjects(received) == ["A", "B"]


class TestStopPolling:
    """stop_polling() / stop_all()"""

    async def test_stop_is_idempotent(self, make_manager, make_config, callback, manual_sleep):
        source = FakeSource()
        manager = make_manager(source)
        handle = await manager.start_polling(make_config(), callback)
        await settle()

        assert manager.stop_polling("wf-1") is True
        assert manager.stop_polling("wf-1") is False
        await manual_sleep.advance(3)

        assert not handle.active
        assert not manager.is_polling("wf-1")
        assert len(source.fetch_calls) == 1

    async def test_stop_unknown_workflow(self, make_manager):
        assert make_manager(FakeSource()).stop_polling("never-started") is False

    async def test_in_flight_poll_still_delivers(self, make_manager, make_config, callback, received, manual_sleep):
        gate = asyncio.Event()
        gate.set()
        source = FakeSource(script=[[], signals("Late")], gate=gate)
        manager = make_manager(source)

        handle = await manager.start_polling(make_config(), callback)
        gate.clear()
        await manual_sleep.advance()
        assert handle.polling

        manager.stop_polling("wf-1")
        gate.set()
        await settle()

        assert subjects(received) == ["Late"]
        assert handle.dispatcher.done()
        assert manual_sleep.pending == 0

    async def test_stop_all(self, make_manager, make_config, callback):
        manager = make_manager(FakeSource())
        await manager.start_polling(make_config("wf-1"), callback)
        await manager.start_polling(make_config("wf-2"), callback)

        manager.stop_all()

        assert manager.active_workflows() == []


class TestTriggerTest:
    """test_trigger()"""

    async def test_returns_a_small_sample(self, make_manager, make_config, manual_sleep):
        source = FakeSource(default=signals(*"ABCDEFG"))
        manager = make_manager(source)

        result = await manager.test_trigger(make_config())

        assert result.success
        assert len(result.sample_data) == 5
        assert result.sample_data[0] == {"company_name": "A"}
        assert source.fetch_calls[0]["limit"] == 5
        assert not manager.is_polling("wf-1")
        assert manual_sleep.calls == []

    async def test_auth_failure_is_reported_redacted(self, make_manager, make_config):
        manager = make_manager(FakeSource(reject_credentials=True))

        result = await manager.test_trigger(make_config())

        assert result.success is False
        assert API_KEY not in result.error
        assert "[REDACTED]" in result.error
        assert "sampleData" not in result.to_dict()

    async def test_polling_interval_is_not_checked(self, make_manager, make_config):
        manager = make_manager(FakeSource(default=signals("A")))

        result = await manager.test_trigger(make_config(interval_ms=10))

        assert result.success

    async def test_missing_credentials_are_reported(self, make_manager, make_config):
        manager = make_manager(FakeSource())

        result = await manager.test_trigger(make_config(credentials={}))

        assert result.success is False
        assert "credentials are required" in result.error

    async def test_unexpected_source_error_is_reported(self, make_manager, make_config):
        manager = make_manager(FakeSource(script=[KeyError(API_KEY)]))

        result = await manager.test_trigger(make_config())

        assert result.success is False
        assert result.error.startswith("KeyError")
        assert API_KEY not in result.error

    @pytest.mark.parametrize("auth_body,search_body", [
        ([], {"data": []}),
        ({"jwt": "token"}, ["not", "an", "object"]),
    ])
    async def test_non_object_zoominfo_payload_is_reported(self, make_manager, make_config, auth_body, search_body):
        def api(request):
            if request.url.path.startswith("/authenticate/"):
                return httpx.Response(200, json=auth_body)
            return httpx.Response(200, json=search_body)

        def zoominfo(_config):
            return ZoomInfoIntentSource(
                config=ZoomInfoConfig(base_url="https://zoominfo.test"),
                transport=httpx.MockTransport(api),
                rate_limiter=RateLimiter(max_requests=100),
            )

        result = await make_manager(zoominfo).test_trigger(make_config())

        assert result.success is False
        assert result.error.startswith("ZoomInfo")

    async def test_undecryptable_credentials(self, make_manager, make_config):
        foreign = CredentialCipher(CredentialCipher.generate_key())
        config = make_config(credentials=foreign.encrypt_credentials({"apiKey": API_KEY}))
        manager = make_manager(FakeSource())

        result = await manager.test_trigger(config)

        assert result.success is False
        assert "could not be decrypted" in result.error
