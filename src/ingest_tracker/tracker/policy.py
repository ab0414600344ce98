"""
Retry policy for batch delivery.

Pure decision logic, no I/O: given a classified error and the number of the
attempt that produced it, decide whether to retry and how long to wait.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ingest_client.errors import TransportError, map_http_error


class RetryOutcome(str, Enum):
    SUCCESS = "success"
    RETRY = "retry"
    PERMANENT = "permanent"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryDecision:
    attempt: int
    delay_ms: float
    outcome: RetryOutcome


def default_error_classifier(exc: Exception) -> TransportError:
    """Anything raised by a Transport becomes a TransportError with a status."""
    return map_http_error(exc)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with a cap and optional randomization.

    delay(attempt) = min(min_timeout_ms * factor ** (attempt - 1), max_timeout_ms),
    multiplied by a uniform factor in [1, 2) when ``randomize`` is set.
    Attempts are numbered from 1; a retryable failure of attempt ``n`` is
    retried only while ``n < retries``.
    """

    retries: int = 10
    factor: float = 2.0
    min_timeout_ms: float = 1000.0
    max_timeout_ms: float = 90_000.0
    randomize: bool = True
    classify: Callable[[Exception], TransportError] = field(default=default_error_classifier)
    rng: Optional[random.Random] = field(default=None, compare=False)

    def delay_ms(self, attempt: int) -> float:
        try:
            grown = self.min_timeout_ms * (self.factor ** (attempt - 1))
        except OverflowError:
            grown = self.max_timeout_ms
        base = min(grown, self.max_timeout_ms)
        if self.randomize:
            base *= 1.0 + (self.rng or random).random()
        return base

    def decide(self, error: Optional[TransportError], attempt: int) -> RetryDecision:
        if error is None:
            return RetryDecision(attempt, 0.0, RetryOutcome.SUCCESS)
        if not error.retryable:
            return RetryDecision(attempt, 0.0, RetryOutcome.PERMANENT)
        if attempt >= self.retries:
            return RetryDecision(attempt, 0.0, RetryOutcome.EXHAUSTED)
        return RetryDecision(attempt, self.delay_ms(attempt), RetryOutcome.RETRY)
