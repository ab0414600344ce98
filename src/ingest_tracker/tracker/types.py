from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Protocol, Sequence, TypeVar, Union

from ingest_client.errors import TransportError

E = TypeVar("E")


class LifecycleState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    DRAINING = "draining"


@dataclass(frozen=True)
class Batch(Generic[E]):
    """A contiguous slice of one stream's backlog, sent together."""

    stream: str
    data: Sequence[E]

    def __len__(self) -> int:
        return len(self.data)


class Transport(Protocol):
    """Delivers a batch; raises a classified ``TransportError`` on failure."""

    async def post(self, batch: Batch[Any]) -> Any: ...


FailureCallback = Callable[[TransportError, Batch[Any]], Union[None, Awaitable[None]]]


class Clock(Protocol):
    """Time source + sleep primitive; swapped for a fake one in tests."""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass(frozen=True)
class TrackerHealth:
    state: LifecycleState
    in_flight: int
    max_in_flight: int
    backlog: dict[str, int]
    seconds_since_flush: float

    @property
    def backlog_total(self) -> int:
        return sum(self.backlog.values())
