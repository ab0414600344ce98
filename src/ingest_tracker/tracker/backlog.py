from __future__ import annotations

import threading
from collections import deque
from typing import Any, Callable, Generic, Optional

from ingest_client.utils import estimate_size

from .types import E


class Backlog(Generic[E]):
    """Per-stream bounded FIFO store for events awaiting delivery.

    Streams are created on first ``add`` and never removed, only emptied.
    Every operation holds one lock, so ``add``/``take`` on the same stream
    never lose or duplicate an event.
    """

    def __init__(self, capacity: int, *, sizer: Optional[Callable[[Any], int]] = None):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._sizer = sizer or estimate_size
        self._queues: dict[str, deque[E]] = {}
        self._sizes: dict[str, deque[int]] = {}
        self._bytes: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, stream: str, event: E) -> bool:
        """Append ``event``; False (and no change) if the stream is at capacity."""
        nbytes = self._sizer(event)
        with self._lock:
            queue = self._queues.get(stream)
            if queue is None:
                queue = self._queues[stream] = deque()
                self._sizes[stream] = deque()
                self._bytes[stream] = 0
            if len(queue) >= self._capacity:
                return False
            queue.append(event)
            self._sizes[stream].append(nbytes)
            self._bytes[stream] += nbytes
            return True

    def take(self, stream: str, max_amount: Optional[int] = None) -> list[E]:
        """Remove and return up to ``max_amount`` events from the front."""
        with self._lock:
            queue = self._queues.get(stream)
            if not queue:
                return []
            n = len(queue) if max_amount is None else min(max_amount, len(queue))
            sizes = self._sizes[stream]
            out = []
            for _ in range(n):
                out.append(queue.popleft())
                self._bytes[stream] -= sizes.popleft()
            return out

    def get(self, stream: str) -> tuple[E, ...]:
        with self._lock:
            return tuple(self._queues.get(stream, ()))

    def is_empty(self, stream: str) -> bool:
        with self._lock:
            return not self._queues.get(stream)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._queues)

    def size(self, stream: str) -> int:
        with self._lock:
            return len(self._queues.get(stream, ()))

    def byte_size(self, stream: str) -> int:
        with self._lock:
            return self._bytes.get(stream, 0)

    def total_size(self) -> int:
        with self._lock:
            return sum(len(q) for q in self._queues.values())

    def sizes(self) -> dict[str, int]:
        with self._lock:
            return {s: len(q) for s, q in self._queues.items()}
