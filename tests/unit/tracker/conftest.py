"""
Fixtures for tracker unit tests.
"""

import asyncio
from typing import Any

import pytest

from ingest_tracker.tracker import Batch, Tracker, TrackerSettings


class FakeClock:
    """Deterministic clock: ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.t = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds
        await asyncio.sleep(0)


class ScriptedTransport:
    """Transport that replays a script of outcomes, then succeeds.

    Each script entry is either an exception (raised) or a value (returned).
    Tracks the peak number of concurrent ``post`` calls.
    """

    def __init__(self, script=(), delay: float = 0.0):
        self.script = list(script)
        self.delay = delay
        self.calls: list[Batch] = []
        self.active = 0
        self.peak = 0

    async def post(self, batch: Batch) -> Any:
        self.calls.append(batch)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.script:
                outcome = self.script.pop(0)
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
            return {"status": 200, "events": len(batch.data)}
        finally:
            self.active -= 1

    @property
    def delivered(self) -> list:
        return [e for b in self.calls for e in b.data]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted():
    def _make(*script, delay: float = 0.0) -> ScriptedTransport:
        return ScriptedTransport(script, delay=delay)

    return _make


@pytest.fixture
def make_tracker():
    """Tracker factory with fast tick/poll intervals for real-time tests."""

    def _make(transport, *, clock=None, on_error=None, **settings) -> Tracker:
        return Tracker(
            transport,
            TrackerSettings(**settings),
            on_error=on_error,
            clock=clock,
            tick_interval=0.01,
            poll_interval=0.005,
        )

    return _make


@pytest.fixture
def wait_until():
    async def _wait(predicate, timeout: float = 2.0, step: float = 0.005) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(step)
        return True

    return _wait
