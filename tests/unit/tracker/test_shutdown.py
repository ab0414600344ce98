"""
Unit tests for the opt-in signal hook.
"""

import asyncio
import signal

import pytest

from ingest_tracker.tracker import LifecycleState, install_signal_handlers, remove_signal_handlers
from ingest_tracker.tracker import shutdown


class RecordingLoop:
    """Stands in for the event loop's signal API."""

    def __init__(self, loop, supported: bool = True):
        self._loop = loop
        self.supported = supported
        self.handlers = {}
        self.removed = []

    def add_signal_handler(self, sig, callback, *args):
        if not self.supported:
            raise NotImplementedError
        self.handlers[sig] = (callback, args)

    def remove_signal_handler(self, sig):
        if not self.supported:
            raise NotImplementedError
        self.removed.append(sig)
        return self.handlers.pop(sig, None) is not None

    def create_task(self, coro):
        return self._loop.create_task(coro)

    def fire(self, sig):
        callback, args = self.handlers[sig]
        callback(*args)


@pytest.mark.asyncio
async def test_signal_triggers_drain(make_tracker, scripted, wait_until):
    transport = scripted()
    tracker = make_tracker(transport, flush_interval=3600)
    loop = RecordingLoop(asyncio.get_running_loop())

    await tracker.start()
    installed = install_signal_handlers(tracker, loop=loop)
    assert installed == [signal.SIGINT, signal.SIGTERM]

    await tracker.track("s", 1)
    loop.fire(signal.SIGTERM)

    assert await wait_until(lambda: tracker.state is LifecycleState.STOPPED)
    assert transport.delivered == [1]


@pytest.mark.asyncio
async def test_unsupported_platform_installs_nothing(make_tracker, scripted):
    tracker = make_tracker(scripted())
    loop = RecordingLoop(asyncio.get_running_loop(), supported=False)

    assert install_signal_handlers(tracker, loop=loop) == []
    # removal tolerates the same limitation
    remove_signal_handlers(loop=loop)


@pytest.mark.asyncio
async def test_remove_signal_handlers(make_tracker, scripted):
    tracker = make_tracker(scripted())
    loop = RecordingLoop(asyncio.get_running_loop())
    install_signal_handlers(tracker, loop=loop, signals=(signal.SIGTERM,))

    remove_signal_handlers(loop=loop, signals=(signal.SIGTERM,))
    assert loop.removed == [signal.SIGTERM]
    assert loop.handlers == {}


@pytest.mark.asyncio
async def test_drain_task_is_held_until_done(make_tracker, scripted, wait_until):
    transport = scripted(delay=0.05)
    tracker = make_tracker(transport, flush_interval=3600)
    loop = RecordingLoop(asyncio.get_running_loop())

    await tracker.start()
    install_signal_handlers(tracker, loop=loop, signals=(signal.SIGINT,))
    await tracker.track("s", 1)
    loop.fire(signal.SIGINT)

    assert len(shutdown._stop_tasks) == 1
    assert await wait_until(lambda: not shutdown._stop_tasks)
    assert tracker.state is LifecycleState.STOPPED
    assert transport.delivered == [1]
