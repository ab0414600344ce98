from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx
from loguru import logger

from . import wire
from .config import ClientSettings, get_settings
from .errors import map_http_error
from .models import IngestResponse
from .utils import normalize_endpoint


class IngestClient:
    """Synchronous one-shot client; same surface as ``AsyncIngestClient``."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        client: Optional[httpx.Client] = None,
    ):
        self.settings = settings or get_settings()
        self.endpoint = normalize_endpoint(self.settings.endpoint)
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=self.settings.timeout, headers=self.settings.headers
        )

    def __enter__(self) -> "IngestClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def put_event(self, stream: str, data: Any, method: str = "POST") -> IngestResponse:
        req = wire.event_request(self.endpoint, stream, data, self.settings.auth, method)
        return wire.interpret(self._execute(req))

    def put_events(
        self, stream: str, data: Sequence[Any], method: str | None = None
    ) -> IngestResponse:
        req = wire.bulk_request(self.endpoint, stream, data, self.settings.auth, method)
        return wire.interpret(self._execute(req))

    def health(self) -> bool:
        return wire.interpret_health(self._execute(wire.health_request(self.endpoint)))

    def _execute(self, req: wire.PreparedRequest) -> httpx.Response:
        try:
            return self._client.request(
                req.method,
                req.url,
                json=req.json,
                params=req.params or None,
                headers=self.settings.headers,
            )
        except httpx.HTTPError as e:
            logger.debug(f"{req.method} {req.url} failed: {type(e).__name__}: {e}")
            raise map_http_error(e) from e
