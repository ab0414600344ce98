"""
Custom exceptions for the ingestion client and tracker.

Every error carries an HTTP-like ``status`` so callers (and the tracker's
retry pipeline) can classify failures the same way regardless of where they
were raised.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base error for the ingestion client."""

    status: int = 400

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def __str__(self) -> str:
        return f"{self.message} (status {self.status})"


class ValidationError(IngestError):
    """Missing stream or data, or a payload that cannot be serialized."""

    status = 400


class TrackerNotRunning(ValidationError):
    """``track()`` called while the tracker is stopped or draining."""


class TransportError(IngestError):
    """Delivery failed; ``retryable`` tells whether backing off may help."""

    @property
    def retryable(self) -> bool:
        return 500 <= self.status < 600


class PermanentTransportError(TransportError):
    """4xx response, never retried."""


class RetryableTransportError(TransportError):
    """5xx response or connection failure."""

    status = 500


class RetryExhausted(TransportError):
    """Terminal state of a batch whose retries ran out."""

    def __init__(self, last_error: TransportError, attempts: int):
        super().__init__(
            f"giving up after {attempts} attempts: {last_error.message}",
            last_error.status,
        )
        self.last_error = last_error
        self.attempts = attempts


class AdmissionError(IngestError):
    """Backlog or in-flight limit reached."""

    status = 429


class TrackingTimeout(AdmissionError):
    """Non-blocking ``track()`` could not be admitted within ``tracking_timeout``."""


CONNECTION_PROBLEM = "Connection Problem"


def classify_status(status: int, message: str) -> TransportError:
    if 500 <= status < 600:
        return RetryableTransportError(message, status)
    return PermanentTransportError(message, status)


def map_http_error(e: Exception) -> TransportError:
    import httpx

    if isinstance(e, TransportError):
        return e
    if isinstance(e, httpx.TransportError):
        return RetryableTransportError(CONNECTION_PROBLEM, 500)
    if isinstance(e, IngestError):
        return PermanentTransportError(e.message, e.status)
    return PermanentTransportError(str(e) or type(e).__name__, 400)
