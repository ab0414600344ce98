"""
Typed notifications emitted by the tracker.

Observers subscribe to a notification type and receive an immutable payload
of a fixed shape. Delivery is in-process, in registration order, and one
failing observer never affects another (or the tracker).
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from loguru import logger

from ingest_client.errors import TransportError

from .types import Batch


@dataclass(frozen=True)
class RetryScheduled:
    """A retryable failure; attempt ``attempt + 1`` follows after ``delay_ms``."""

    stream: str
    attempt: int
    delay_ms: float
    error: TransportError


@dataclass(frozen=True)
class DeliveryFailed:
    """A batch was dropped after a permanent error or exhausted retries."""

    stream: str
    batch: Batch[Any]
    error: TransportError


@dataclass(frozen=True)
class BacklogEmpty:
    """The shutdown drain finished: every stream is empty, nothing in flight."""

    streams: tuple[str, ...]


@dataclass(frozen=True)
class TrackerStopped:
    in_flight: int
    streams: tuple[str, ...]


TrackerEvent = Union[RetryScheduled, DeliveryFailed, BacklogEmpty, TrackerStopped]
Observer = Callable[[Any], Union[None, Awaitable[None]]]


class TrackerEventBus:
    """Per-tracker pub/sub keyed by notification type.

    Example:
        bus = tracker.events

        async def on_retry(evt: RetryScheduled):
            logger.info(f"retrying {evt.stream} in {evt.delay_ms}ms")

        bus.subscribe(RetryScheduled, on_retry)
    """

    def __init__(self) -> None:
        self._subs: dict[type, list[Observer]] = defaultdict(list)

    def subscribe(self, event_type: type, callback: Observer) -> None:
        subs = self._subs[event_type]
        if callback not in subs:
            subs.append(callback)
            logger.debug(f"{event_type.__name__} observer added (total: {len(subs)})")

    def unsubscribe(self, event_type: type, callback: Observer) -> None:
        """No-op if ``callback`` was never subscribed."""
        try:
            self._subs[event_type].remove(callback)
        except ValueError:
            pass

    def subscriber_count(self, event_type: type) -> int:
        return len(self._subs.get(event_type, ()))

    async def publish(self, event: TrackerEvent) -> None:
        subs = self._subs.get(type(event))
        if not subs:
            return

        # copy so observers may unsubscribe while being notified
        for callback in list(subs):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                logger.warning(
                    f"{type(event).__name__} observer error (ignored): "
                    f"{type(exc).__name__}: {exc}"
                )
