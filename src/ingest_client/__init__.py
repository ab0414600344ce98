"""
Ingestion API Client Library

Thin HTTP plumbing for the ingestion endpoint: wire format, HMAC signing,
status classification and one-shot sync/async clients. The async client
doubles as the Transport consumed by ``ingest_tracker.Tracker``.

Usage:
    from ingest_client import IngestClient, AsyncIngestClient, ClientSettings

    # Sync client
    client = IngestClient(ClientSettings(ENDPOINT="https://...", AUTH="key"))
    client.put_event("my.stream", {"id": 1})

    # Async client
    async with AsyncIngestClient() as client:
        await client.put_events("my.stream", [{"id": 1}, {"id": 2}])
"""

from .client import IngestClient
from .aclient import AsyncIngestClient
from .config import ClientSettings, get_settings
from .errors import (
    IngestError,
    ValidationError,
    TrackerNotRunning,
    TransportError,
    PermanentTransportError,
    RetryableTransportError,
    RetryExhausted,
    AdmissionError,
    TrackingTimeout,
)
from .models import IngestResponse

__version__ = "1.0.0"
__all__ = [
    "IngestClient",
    "AsyncIngestClient",
    "ClientSettings",
    "get_settings",
    "IngestResponse",
    "IngestError",
    "ValidationError",
    "TrackerNotRunning",
    "TransportError",
    "PermanentTransportError",
    "RetryableTransportError",
    "RetryExhausted",
    "AdmissionError",
    "TrackingTimeout",
]
