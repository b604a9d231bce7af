"""
Trigger Manager — recurring polls of external signal sources.

Each workflow has at most one ``PollingHandle``. ``start_polling``
replaces any existing handle for the workflow (never stacks), runs one
poll immediately and then re-polls on the configured interval. Every
signal a poll returns becomes a ``TriggerEvent`` on the handle's
bounded queue; a dispatcher task owned by the handle awaits the
workflow callback for each event in order.

A failing poll is logged and the schedule continues. A tick that
arrives while the previous poll is still running is skipped, so polls
of one workflow never overlap.

``stop_polling`` cancels the timer synchronously. A poll already in
flight finishes and its events are still delivered, but nothing is
scheduled after it.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from automation.config import TriggerConfig, get_config
from automation.triggers.credentials import CredentialCipher, redact, secret_values
from automation.triggers.errors import SignalSourceError, TriggerConfigError
from automation.triggers.models import (
    PollingTriggerConfig,
    TriggerEvent,
    TriggerTestResult,
)
from automation.triggers.sources import SignalSource, create_source

logger = getLogger(__name__)

TriggerCallback = Callable[[TriggerEvent], Awaitable[Any]]
SourceFactory = Callable[[PollingTriggerConfig], SignalSource]
Sleep = Callable[[float], Awaitable[None]]


class PollingHandle:
    """The live polling state of one workflow."""

    def __init__(
        self,
        config: PollingTriggerConfig,
        callback: TriggerCallback,
        queue_size: int,
    ) -> None:
        self.workflow_id = config.workflow_id
        self.config = config
        self.callback = callback
        self.queue: "asyncio.Queue[Optional[TriggerEvent]]" = asyncio.Queue(maxsize=queue_size)
        self.ticker: Optional[asyncio.Task] = None
        self.dispatcher: Optional[asyncio.Task] = None
        self.poll_task: Optional[asyncio.Task] = None
        self.cancelled = False
        self.poll_count = 0
        self.skipped_ticks = 0
        self.events_emitted = 0
        self.last_error: Optional[str] = None

    @property
    def active(self) -> bool:
        return not self.cancelled

    @property
    def polling(self) -> bool:
        """A poll is currently in flight."""
        return self.poll_task is not None and not self.poll_task.done()

    def cancel(self) -> None:
        """Stop the schedule; let an in-flight poll finish and drain."""
        if self.cancelled:
            return
        self.cancelled = True
        if self.ticker is not None:
            self.ticker.cancel()
        if self.polling:
            self.poll_task.add_done_callback(lambda _task: self._close_queue())
        else:
            self._close_queue()

    def _close_queue(self) -> None:
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            if self.dispatcher is not None:
                self.dispatcher.cancel()

    def status(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "nodeType": self.config.node_type,
            "pollingInterval": self.config.polling_interval_ms,
            "active": self.active,
            "polling": self.polling,
            "pollCount": self.poll_count,
            "skippedTicks": self.skipped_ticks,
            "eventsEmitted": self.events_emitted,
            "lastError": self.last_error,
        }


class TriggerManager:
    """Owns every workflow's recurring poll."""

    def __init__(
        self,
        source_factory: Optional[SourceFactory] = None,
        cipher: Optional[CredentialCipher] = None,
        config: Optional[TriggerConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config: TriggerConfig = config or get_config(TriggerConfig.get_config_name())
        self._source_factory = source_factory or create_source
        self._cipher = cipher or CredentialCipher(self._config.credentials_encryption_key)
        self._sleep = sleep
        self._handles: Dict[str, PollingHandle] = {}

    # ── Queries ──

    def get_handle(self, workflow_id: str) -> Optional[PollingHandle]:
        return self._handles.get(workflow_id)

    def is_polling(self, workflow_id: str) -> bool:
        return workflow_id in self._handles

    def active_workflows(self) -> List[str]:
        return list(self._handles)

    # ── Lifecycle ──

    def validate(self, config: PollingTriggerConfig) -> None:
        """Raise ``TriggerConfigError`` if the config cannot be polled."""
        if config.polling_interval_ms < self._config.min_polling_interval_ms:
            raise TriggerConfigError(
                f"Polling interval {config.polling_interval_ms}ms is below the minimum of "
                f"{self._config.min_polling_interval_ms}ms"
            )
        self._validate_credentials(config)

    @staticmethod
    def _validate_credentials(config: PollingTriggerConfig) -> None:
        if not config.credentials:
            raise TriggerConfigError("Trigger credentials are required")

    async def start_polling(
        self,
        config: PollingTriggerConfig,
        callback: TriggerCallback,
    ) -> PollingHandle:
        """Start (or restart) polling for ``config.workflow_id``.

        Runs the first poll before returning; the recurring schedule
        starts afterwards.
        """
        self.validate(config)
        self.stop_polling(config.workflow_id)

        handle = PollingHandle(config, callback, self._config.event_queue_size)
        self._handles[config.workflow_id] = handle
        handle.dispatcher = asyncio.create_task(
            self._dispatch(handle), name=f"trigger-dispatch-{config.workflow_id}",
        )
        logger.info(
            f"Polling started for workflow {config.workflow_id} "
            f"({config.node_type}, every {config.polling_interval_ms}ms)"
        )

        handle.poll_task = asyncio.create_task(self._poll(handle))
        await asyncio.shield(handle.poll_task)

        if not handle.cancelled:
            handle.ticker = asyncio.create_task(
                self._tick(handle), name=f"trigger-poll-{config.workflow_id}",
            )
        return handle

    def stop_polling(self, workflow_id: str) -> bool:
        """Cancel the workflow's poll schedule; no-op if there is none."""
        handle = self._handles.pop(workflow_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.info(f"Polling stopped for workflow {workflow_id}")
        return True

    def stop_all(self) -> None:
        for workflow_id in list(self._handles):
            self.stop_polling(workflow_id)

    # ── One-off test ──

    async def test_trigger(self, config: PollingTriggerConfig) -> TriggerTestResult:
        """Authenticate and fetch a small sample without scheduling anything.

        Never raises; failures come back as ``success=False`` with every
        credential value redacted from the error text. The polling
        interval is not checked since nothing is scheduled.
        """
        secrets = secret_values(config.credentials)
        try:
            self._validate_credentials(config)
            credentials = self._cipher.decrypt_credentials(config.credentials)
            secrets += secret_values(credentials)
            source = self._source_factory(config)
            async with source:
                await source.authenticate(credentials)
                signals = await source.fetch_signals(config.filters, limit=self._config.test_sample_size)
        except (SignalSourceError, TriggerConfigError, ValidationError) as e:
            error = redact(str(e), secrets)
            logger.warning(f"Trigger test failed for workflow {config.workflow_id}: {error}")
            return TriggerTestResult(success=False, error=error)
        except Exception as e:
            error = redact(f"{type(e).__name__}: {e}", secrets)
            logger.error(f"Unexpected trigger test error for workflow {config.workflow_id}: {error}")
            return TriggerTestResult(success=False, error=error)

        sample = [s.payload for s in signals[: self._config.test_sample_size]]
        return TriggerTestResult(
            success=True,
            message=f"Connection successful, {len(sample)} sample signal(s) retrieved",
            sample_data=sample,
        )

    # ── Internals ──

    async def _tick(self, handle: PollingHandle) -> None:
        interval = handle.config.polling_interval_ms / 1000
        while not handle.cancelled:
            await self._sleep(interval)
            if handle.cancelled:
                break
            if handle.polling:
                handle.skipped_ticks += 1
                logger.warning(
                    f"Skipping poll for workflow {handle.workflow_id}: previous poll still running"
                )
                continue
            handle.poll_task = asyncio.create_task(self._poll(handle))

    async def _poll(self, handle: PollingHandle) -> None:
        config = handle.config
        handle.poll_count += 1
        secrets = secret_values(config.credentials)
        try:
            credentials = self._cipher.decrypt_credentials(config.credentials)
            secrets += secret_values(credentials)
            source = self._source_factory(config)
            async with source:
                await source.authenticate(credentials)
                signals = await source.fetch_signals(config.filters)
            for signal in signals:
                await handle.queue.put(TriggerEvent(
                    trigger=source.source_name or config.node_type,
                    timestamp=signal.timestamp,
                    data=signal.payload,
                ))
                handle.events_emitted += 1
            handle.last_error = None
            logger.info(f"Poll for workflow {config.workflow_id}: {len(signals)} signal(s)")
        except (SignalSourceError, TriggerConfigError) as e:
            handle.last_error = redact(str(e), secrets)
            logger.error(f"Poll failed for workflow {config.workflow_id}: {handle.last_error}")
        except Exception as e:
            handle.last_error = redact(f"{type(e).__name__}: {e}", secrets)
            logger.exception(f"Unexpected poll error for workflow {config.workflow_id}: {handle.last_error}")

    async def _dispatch(self, handle: PollingHandle) -> None:
        while True:
            event = await handle.queue.get()
            if event is None:
                break
            try:
                await handle.callback(event)
            except Exception as e:
                logger.error(f"Trigger callback failed for workflow {handle.workflow_id}: {e}")


# ── Singleton ──

_manager_instance: Optional[TriggerManager] = None


def get_trigger_manager() -> TriggerManager:
    """Return the global TriggerManager singleton."""
    global _manager_instance
    if _manager_instance is None:
        _manager_instance = TriggerManager()
    return _manager_instance
