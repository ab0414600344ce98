from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Generic, Optional, Sequence

from loguru import logger

from ingest_client.errors import (
    RetryExhausted,
    TrackerNotRunning,
    TrackingTimeout,
    TransportError,
    ValidationError,
)
from ingest_client.utils import is_empty

from ..metrics.registry import metrics_registry
from .backlog import Backlog
from .events import BacklogEmpty, DeliveryFailed, RetryScheduled, TrackerEventBus, TrackerStopped
from .policy import RetryOutcome, RetryPolicy
from .settings import TrackerSettings, get_tracker_settings
from .types import (
    Batch,
    Clock,
    E,
    FailureCallback,
    LifecycleState,
    MonotonicClock,
    TrackerHealth,
    Transport,
)


class Tracker(Generic[E]):
    """Buffers events per stream and delivers them in batches.

    ``track()`` admits events into a bounded per-stream backlog (waiting, or
    timing out, while the backlog or the in-flight limit is saturated). A
    scheduler tick decides which streams to flush; each flush is an
    independent task that posts the batch through the Transport, retrying
    5xx/connection failures with exponential backoff. A batch that fails
    permanently, or runs out of retries, is handed to ``on_error`` and
    dropped.

    Usage:

        async with Tracker(AsyncIngestClient(), TrackerSettings(bulk_len=500)) as tracker:
            await tracker.track("my.stream", {"id": 1})
        # stop() on exit: force flush, wait for in-flight sends
    """

    def __init__(
        self,
        transport: Transport,
        settings: Optional[TrackerSettings] = None,
        *,
        on_error: Optional[FailureCallback] = None,
        backlog: Optional[Backlog[E]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        tick_interval: float = 0.5,
        poll_interval: float = 0.1,
    ):
        self.settings = settings or get_tracker_settings()
        self.events = TrackerEventBus()

        self._transport = transport
        self._backlog: Backlog[E] = backlog or Backlog(self.settings.backlog_size)
        self._policy = retry_policy or self.settings.retry_policy()
        self._on_error = on_error or self._log_failure
        self._clock = clock or MonotonicClock()
        self._tick_interval = tick_interval
        self._poll_interval = poll_interval

        self._state = LifecycleState.STOPPED
        self._in_flight = 0
        self._last_flush = self._clock.now()
        self._scheduler: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._drained: Optional[asyncio.Event] = None
        # round-robin start position for scheduler ticks
        self._cursor = 0

    # --------------- context management

    async def __aenter__(self) -> "Tracker[E]":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # --------------- introspection

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def backlog(self) -> Backlog[E]:
        return self._backlog

    def health(self) -> TrackerHealth:
        return TrackerHealth(
            state=self._state,
            in_flight=self._in_flight,
            max_in_flight=self.settings.max_in_flight,
            backlog=self._backlog.sizes(),
            seconds_since_flush=self._clock.now() - self._last_flush,
        )

    # --------------- lifecycle

    async def start(self) -> None:
        """Begin scheduling. No-op when already running."""
        if self._state is LifecycleState.RUNNING:
            return
        if self._state is LifecycleState.DRAINING:
            logger.warning("Tracker is draining; start() ignored")
            return

        self._state = LifecycleState.RUNNING
        self._last_flush = self._clock.now()
        self._scheduler = asyncio.create_task(self._run_scheduler(), name="ingest-tracker-scheduler")
        logger.info(
            f"Tracker started (flush_interval={self.settings.flush_interval}s, "
            f"bulk_len={self.settings.bulk_len}, bulk_size={self.settings.bulk_size}B, "
            f"max_in_flight={self.settings.max_in_flight})"
        )

    async def stop(self) -> None:
        """Drain and stop: force flush every stream, then wait for in-flight sends.

        Only a running tracker is drained. A call made while draining waits
        for that drain to finish; a call on a stopped tracker is a no-op.
        """
        if self._state is LifecycleState.DRAINING and self._drained is not None:
            await self._drained.wait()
            return
        if self._state is not LifecycleState.RUNNING:
            return

        self._state = LifecycleState.DRAINING
        self._drained = asyncio.Event()
        logger.info(f"Tracker draining ({self._backlog.total_size()} buffered events)")
        try:
            await self._stop_scheduler()
            while True:
                if self._backlog.total_size():
                    await self.flush()
                elif self._in_flight == 0:
                    break
                else:
                    await self._clock.sleep(self._poll_interval)
        finally:
            self._state = LifecycleState.STOPPED
            self._drained.set()

        streams = tuple(self._backlog.keys())
        await self.events.publish(BacklogEmpty(streams=streams))
        await self.events.publish(TrackerStopped(in_flight=self._in_flight, streams=streams))
        logger.info("Tracker stopped (drained)")

    # --------------- public API

    async def track(self, stream: str, event: E) -> None:
        """Admit ``event`` into ``stream``'s backlog, waiting under backpressure.

        Raises:
            ValidationError: missing stream/event.
            TrackerNotRunning: the tracker is not running (or stopped while waiting).
            TrackingTimeout: non-blocking mode and not admitted within ``tracking_timeout``.
        """
        if is_empty(stream) or is_empty(event):
            raise ValidationError("Stream name and data are required parameters", 400)

        deadline = self._clock.now() + self.settings.tracking_timeout
        while True:
            if self._state is not LifecycleState.RUNNING:
                raise TrackerNotRunning(f"Tracker is {self._state.value}; events are not accepted")
            if self._admit(stream, event):
                break
            if not self.settings.is_blocking and self._clock.now() >= deadline:
                metrics_registry.admission_rejected.labels(stream).inc()
                raise TrackingTimeout(
                    f"Stream '{stream}' not admitted within {self.settings.tracking_timeout}s "
                    f"(backlog={self._backlog.size(stream)}/{self._backlog.capacity}, "
                    f"in_flight={self._in_flight}/{self.settings.max_in_flight})"
                )
            await self._clock.sleep(self._poll_interval)

        metrics_registry.events_tracked.labels(stream).inc()

    def should_flush(self, stream: str) -> bool:
        return self._should_flush(stream, self._interval_elapsed())

    async def flush(self, stream: Optional[str] = None) -> list[Any]:
        """Force-flush ``stream`` (or every stream) regardless of thresholds.

        Events buffered when the call starts are sent in ``bulk_len`` chunks,
        each waiting for a free in-flight slot. Returns the send results in
        dispatch order; a failed batch yields ``None``.
        """
        if stream is not None and is_empty(stream):
            raise ValidationError("Stream name is required", 400)
        streams = [stream] if stream is not None else self._backlog.keys()
        tasks: list[asyncio.Task] = []

        for s in streams:
            remaining = self._backlog.size(s)
            if remaining:
                logger.info(f"Flushing stream '{s}' with {remaining} items")
            while remaining > 0:
                await self._wait_for_slot()
                events = self._backlog.take(s, min(self.settings.bulk_len, remaining))
                if not events:
                    break
                remaining -= len(events)
                tasks.append(self._dispatch(s, events))

        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    # --------------- scheduling

    async def _run_scheduler(self) -> None:
        logger.debug(f"Tracker scheduler started (tick={self._tick_interval}s)")
        while True:
            try:
                await self._clock.sleep(self._tick_interval)
                self._tick()
            except asyncio.CancelledError:
                logger.debug("Tracker scheduler cancelled")
                raise
            except Exception as exc:
                logger.error(f"Tracker tick error: {type(exc).__name__}: {exc}")

    async def _stop_scheduler(self) -> None:
        task, self._scheduler = self._scheduler, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _tick(self) -> int:
        """One scheduler pass; returns the number of sends launched.

        Streams are visited round-robin, starting after the last stream that
        was sent, so a few busy streams can't monopolize `concurrency`.
        """
        streams = self._backlog.keys()
        if not streams:
            return 0

        # evaluated once per tick so streams due on time alone all go together
        interval_due = self._interval_elapsed()
        start = self._cursor % len(streams)
        launched = 0

        for offset in range(len(streams)):
            if launched >= self.settings.concurrency:
                break
            if self._in_flight >= self.settings.max_in_flight:
                break
            idx = (start + offset) % len(streams)
            stream = streams[idx]
            if not self._should_flush(stream, interval_due):
                continue
            events = self._backlog.take(stream, self.settings.bulk_len)
            if events:
                self._dispatch(stream, events)
                launched += 1
                self._cursor = idx + 1

        for stream in streams:
            metrics_registry.backlog_depth.labels(stream).set(self._backlog.size(stream))
        return launched

    def _should_flush(self, stream: str, interval_due: bool) -> bool:
        size = self._backlog.size(stream)
        if size == 0:
            return False
        return (
            size >= self.settings.bulk_len
            or self._backlog.byte_size(stream) >= self.settings.bulk_size
            or interval_due
        )

    def _interval_elapsed(self) -> bool:
        return self._clock.now() - self._last_flush >= self.settings.flush_interval

    def _admit(self, stream: str, event: E) -> bool:
        if self._in_flight >= self.settings.max_in_flight:
            return False
        return self._backlog.add(stream, event)

    async def _wait_for_slot(self) -> None:
        while self._in_flight >= self.settings.max_in_flight:
            await self._clock.sleep(self._poll_interval)

    # --------------- send / retry pipeline

    def _dispatch(self, stream: str, events: Sequence[E]) -> asyncio.Task:
        # slot reserved before the task runs so one tick can't overshoot max_in_flight
        self._begin_send()
        task = asyncio.create_task(self._complete_send(stream, events))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send(self, stream: str, events: Sequence[E]) -> Any:
        """Deliver one batch with retries; returns the response, or None once reported as failed."""
        self._begin_send()
        return await self._complete_send(stream, events)

    async def _complete_send(self, stream: str, events: Sequence[E]) -> Any:
        batch = Batch(stream=stream, data=list(events))
        try:
            response, error = await self._deliver(batch)
        finally:
            self._end_send()

        if error is not None:
            await self._report_failure(error, batch)
            return None
        return response

    async def _deliver(self, batch: Batch[E]) -> tuple[Any, Optional[TransportError]]:
        attempt = 1
        while True:
            started = self._clock.now()
            try:
                response = await self._transport.post(batch)
            except Exception as exc:
                error = self._policy.classify(exc)
            else:
                logger.debug(
                    f"Flush attempt #{attempt} for stream '{batch.stream}' completed successfully"
                )
                metrics_registry.sends_total.labels(batch.stream, "success").inc()
                return response, None
            finally:
                metrics_registry.send_latency_ms.labels(batch.stream).observe(
                    (self._clock.now() - started) * 1000.0
                )

            logger.debug(
                f"Flush attempt #{attempt} for stream '{batch.stream}' failed due to "
                f"'{error.message}' (status {error.status})"
            )
            decision = self._policy.decide(error, attempt)

            if decision.outcome is RetryOutcome.RETRY:
                metrics_registry.sends_total.labels(batch.stream, "retry").inc()
                logger.warning(
                    f"Retrying stream '{batch.stream}' ({len(batch)} events) in "
                    f"{decision.delay_ms:.0f}ms (attempt {attempt}/{self._policy.retries})"
                )
                await self.events.publish(
                    RetryScheduled(
                        stream=batch.stream,
                        attempt=attempt,
                        delay_ms=decision.delay_ms,
                        error=error,
                    )
                )
                await self._clock.sleep(decision.delay_ms / 1000.0)
                attempt += 1
                continue

            metrics_registry.sends_total.labels(batch.stream, decision.outcome.value).inc()
            if decision.outcome is RetryOutcome.EXHAUSTED:
                return None, RetryExhausted(error, attempt)
            return None, error

    async def _report_failure(self, error: TransportError, batch: Batch[E]) -> None:
        try:
            result = self._on_error(error, batch)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            logger.error(f"on_error callback raised (ignored): {type(exc).__name__}: {exc}")
        await self.events.publish(DeliveryFailed(stream=batch.stream, batch=batch, error=error))

    def _begin_send(self) -> None:
        self._in_flight += 1
        self._last_flush = self._clock.now()
        metrics_registry.in_flight.inc()

    def _end_send(self) -> None:
        self._in_flight -= 1
        metrics_registry.in_flight.dec()

    @staticmethod
    def _log_failure(error: TransportError, batch: Batch[Any]) -> None:
        logger.error(
            f"Dropped {len(batch)} events for stream '{batch.stream}': "
            f"{error.message} (status {error.status})"
        )
