"""
Host-side shutdown hook.

The tracker never installs signal handlers itself; a host that wants a
graceful drain on SIGINT/SIGTERM opts in explicitly:

    tracker = Tracker(transport)
    await tracker.start()
    install_signal_handlers(tracker)
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import Iterable, Optional

from loguru import logger

from .tracker import Tracker

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# strong references to drains started by a signal until they finish
_stop_tasks: set[asyncio.Task] = set()


def _stop_done(task: asyncio.Task) -> None:
    _stop_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Signal-triggered drain failed: {type(exc).__name__}: {exc}")


def install_signal_handlers(
    tracker: Tracker,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
) -> list[signal.Signals]:
    """Schedule ``tracker.stop()`` when any of ``signals`` arrives.

    Returns the signals actually installed; platforms without
    ``loop.add_signal_handler`` (Windows) get an empty list.
    """
    loop = loop or asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def _trigger(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}; draining tracker")
        task = loop.create_task(tracker.stop())
        _stop_tasks.add(task)
        task.add_done_callback(_stop_done)

    for sig in signals:
        try:
            loop.add_signal_handler(sig, _trigger, sig)
        except (NotImplementedError, RuntimeError) as exc:
            logger.warning(f"Cannot install handler for {sig.name}: {exc}")
            continue
        installed.append(sig)
    return installed


def remove_signal_handlers(
    loop: Optional[asyncio.AbstractEventLoop] = None,
    signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
) -> None:
    loop = loop or asyncio.get_running_loop()
    for sig in signals:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(sig)
