"""
Client-side event buffering and delivery.

Usage:
    from ingest_client import AsyncIngestClient
    from ingest_tracker import Tracker, TrackerSettings

    async with Tracker(AsyncIngestClient(), TrackerSettings(bulk_len=500)) as tracker:
        await tracker.track("my.stream", {"id": 1})
"""

from .tracker import (
    Tracker,
    TrackerSettings,
    RetryOptions,
    RetryPolicy,
    Backlog,
    Batch,
    LifecycleState,
    install_signal_handlers,
)
from .logsetup import configure_logging

__version__ = "1.0.0"
__all__ = [
    "Tracker",
    "TrackerSettings",
    "RetryOptions",
    "RetryPolicy",
    "Backlog",
    "Batch",
    "LifecycleState",
    "install_signal_handlers",
    "configure_logging",
]
