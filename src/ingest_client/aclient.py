from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx
from loguru import logger

from . import wire
from .config import ClientSettings, get_settings
from .errors import map_http_error
from .models import IngestResponse
from .utils import normalize_endpoint


class AsyncIngestClient:
    """
    Async client for the ingestion API; also the tracker's Transport.

    Usage:

        async with AsyncIngestClient(ClientSettings(ENDPOINT="...", AUTH="key")) as client:
            await client.put_event("my.stream", {"id": 1})
            await client.put_events("my.stream", [{"id": 1}, {"id": 2}])
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.endpoint = normalize_endpoint(self.settings.endpoint)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.settings.timeout, headers=self.settings.headers
        )

    async def __aenter__(self) -> "AsyncIngestClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---------- single event ----------

    async def put_event(self, stream: str, data: Any, method: str = "POST") -> IngestResponse:
        req = wire.event_request(self.endpoint, stream, data, self.settings.auth, method)
        return wire.interpret(await self._execute(req))

    # ---------- bulk ----------

    async def put_events(
        self, stream: str, data: Sequence[Any], method: str | None = None
    ) -> IngestResponse:
        req = wire.bulk_request(self.endpoint, stream, data, self.settings.auth, method)
        return wire.interpret(await self._execute(req))

    async def post(self, batch) -> IngestResponse:
        """Transport entry point used by the tracker: sends a ``Batch`` in bulk."""
        return await self.put_events(batch.stream, batch.data)

    # ---------- health ----------

    async def health(self) -> bool:
        return wire.interpret_health(await self._execute(wire.health_request(self.endpoint)))

    # ---------- internals ----------

    async def _execute(self, req: wire.PreparedRequest) -> httpx.Response:
        try:
            return await self._client.request(
                req.method,
                req.url,
                json=req.json,
                params=req.params or None,
                headers=self.settings.headers,
            )
        except httpx.HTTPError as e:
            logger.debug(f"{req.method} {req.url} failed: {type(e).__name__}: {e}")
            raise map_http_error(e) from e
