"""
Unit tests for the send/retry pipeline.
"""

import httpx
import pytest

from ingest_client.errors import (
    PermanentTransportError,
    RetryableTransportError,
    RetryExhausted,
)
from ingest_tracker.tracker import DeliveryFailed, RetryOptions, RetryScheduled


def _no_jitter(**kw) -> RetryOptions:
    return RetryOptions(randomize=False, **kw)


@pytest.mark.asyncio
async def test_five_server_errors_then_success(make_tracker, scripted, clock):
    """500 x5 then 200: resolves with the success value after exactly 6 posts."""
    failures = []
    transport = scripted(*[RetryableTransportError("oops", 500)] * 5, {"ok": True})
    tracker = make_tracker(
        transport,
        clock=clock,
        on_error=lambda err, batch: failures.append((err, batch)),
        retry_options=_no_jitter(),
    )

    result = await tracker._send("s", [1, 2])

    assert result == {"ok": True}
    assert len(transport.calls) == 6
    assert failures == []
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert tracker.in_flight == 0


@pytest.mark.asyncio
async def test_client_error_is_not_retried(make_tracker, scripted, clock):
    failures = []
    transport = scripted(PermanentTransportError("Permission denied", 401))
    tracker = make_tracker(
        transport, clock=clock, on_error=lambda err, batch: failures.append((err, batch))
    )

    result = await tracker._send("s", ["e1"])

    assert result is None
    assert len(transport.calls) == 1
    assert len(failures) == 1
    err, batch = failures[0]
    assert isinstance(err, PermanentTransportError)
    assert err.status == 401
    assert batch.stream == "s"
    assert list(batch.data) == ["e1"]
    assert clock.sleeps == []
    assert tracker.in_flight == 0


@pytest.mark.asyncio
async def test_retries_exhausted_drops_batch(make_tracker, scripted, clock):
    failures = []
    transport = scripted(*[RetryableTransportError("down", 503)] * 10)
    tracker = make_tracker(
        transport,
        clock=clock,
        on_error=lambda err, batch: failures.append((err, batch)),
        retry_options=_no_jitter(retries=3, min_timeout=10, max_timeout=50),
    )

    assert await tracker._send("s", [1]) is None

    assert len(transport.calls) == 3
    assert clock.sleeps == [0.01, 0.02]
    [(err, batch)] = failures
    assert isinstance(err, RetryExhausted)
    assert err.attempts == 3
    assert err.status == 503
    assert err.last_error.message == "down"
    # dropped, never re-queued
    assert tracker.backlog.total_size() == 0


@pytest.mark.asyncio
async def test_connection_failure_is_retried(make_tracker, scripted, clock):
    req = httpx.Request("POST", "http://ingest.test/bulk")
    transport = scripted(httpx.ConnectError("refused", request=req), "ok")
    tracker = make_tracker(transport, clock=clock, retry_options=_no_jitter())

    assert await tracker._send("s", [1]) == "ok"
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_unexpected_exception_is_permanent(make_tracker, scripted, clock):
    failures = []
    transport = scripted(RuntimeError("bug in transport"))
    tracker = make_tracker(
        transport, clock=clock, on_error=lambda err, batch: failures.append(err)
    )

    assert await tracker._send("s", [1]) is None
    assert len(transport.calls) == 1
    assert failures[0].status == 400


@pytest.mark.asyncio
async def test_in_flight_counted_during_send(make_tracker, clock):
    seen = []

    class Probe:
        async def post(self, batch):
            seen.append(tracker.in_flight)
            return "ok"

    tracker = make_tracker(Probe(), clock=clock)
    await tracker._send("s", [1])
    assert seen == [1]
    assert tracker.in_flight == 0


@pytest.mark.asyncio
async def test_async_on_error_is_awaited(make_tracker, scripted, clock):
    failures = []

    async def on_error(err, batch):
        failures.append(err.status)

    tracker = make_tracker(
        scripted(PermanentTransportError("bad", 400)), clock=clock, on_error=on_error
    )
    await tracker._send("s", [1])
    assert failures == [400]


@pytest.mark.asyncio
async def test_failing_on_error_does_not_escape(make_tracker, scripted, clock):
    def on_error(err, batch):
        raise RuntimeError("callback broke")

    tracker = make_tracker(
        scripted(PermanentTransportError("bad", 400)), clock=clock, on_error=on_error
    )
    assert await tracker._send("s", [1]) is None
    assert tracker.in_flight == 0


@pytest.mark.asyncio
async def test_retry_and_failure_notifications(make_tracker, scripted, clock):
    retries: list[RetryScheduled] = []
    failed: list[DeliveryFailed] = []
    transport = scripted(*[RetryableTransportError("down", 500)] * 5)
    tracker = make_tracker(
        transport,
        clock=clock,
        retry_options=_no_jitter(retries=3, min_timeout=10, max_timeout=50),
    )
    tracker.events.subscribe(RetryScheduled, retries.append)
    tracker.events.subscribe(DeliveryFailed, failed.append)

    await tracker._send("s", [1, 2])

    assert [(r.attempt, r.delay_ms) for r in retries] == [(1, 10), (2, 20)]
    assert all(r.stream == "s" and r.error.status == 500 for r in retries)
    [evt] = failed
    assert evt.stream == "s"
    assert list(evt.batch.data) == [1, 2]
    assert isinstance(evt.error, RetryExhausted)
