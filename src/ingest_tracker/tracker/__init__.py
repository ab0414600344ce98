"""Event tracker (buffer -> schedule -> send/retry)

Core client-side delivery engine with:
- Backlog (per-stream bounded FIFO, atomic take)
- RetryPolicy with capped exponential backoff
- Tracker: admission control, flush scheduling, in-flight limit, drain on stop
- Typed observer notifications
- Environment-based settings
"""

from .types import Batch, Transport, Clock, MonotonicClock, LifecycleState, TrackerHealth
from .backlog import Backlog
from .policy import RetryPolicy, RetryDecision, RetryOutcome, default_error_classifier
from .events import (
    TrackerEventBus,
    RetryScheduled,
    DeliveryFailed,
    BacklogEmpty,
    TrackerStopped,
)
from .settings import TrackerSettings, RetryOptions, get_tracker_settings
from .tracker import Tracker
from .shutdown import install_signal_handlers, remove_signal_handlers

__all__ = [
    # types
    "Batch",
    "Transport",
    "Clock",
    "MonotonicClock",
    "LifecycleState",
    "TrackerHealth",
    # policies
    "RetryPolicy",
    "RetryDecision",
    "RetryOutcome",
    "default_error_classifier",
    # notifications
    "TrackerEventBus",
    "RetryScheduled",
    "DeliveryFailed",
    "BacklogEmpty",
    "TrackerStopped",
    # runtime
    "Backlog",
    "Tracker",
    "TrackerSettings",
    "RetryOptions",
    "get_tracker_settings",
    # host hooks
    "install_signal_handlers",
    "remove_signal_handlers",
]
