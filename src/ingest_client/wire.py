"""
Request builders and response interpretation for the ingestion HTTP API.

Shared by the sync (``IngestClient``) and async (``AsyncIngestClient``)
clients so both speak exactly the same wire format:

    POST {endpoint}          {"stream", "auth", "data", "bulk": false}
    GET  {endpoint}?data=... base64(JSON {"data", "stream", "auth"})
    POST {endpoint}bulk      {"stream", "auth", "data", "bulk": true}
    GET  {endpoint}health
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx

from .errors import ValidationError, classify_status
from .models import BulkRequest, EventRequest, IngestResponse
from .utils import encode_query, is_empty, serialize_data, sign

BULK_PATH = "bulk"
HEALTH_PATH = "health"


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    url: str
    json: dict | None = None
    params: dict = field(default_factory=dict)


def event_request(
    endpoint: str, stream: str, data: Any, auth_key: str, method: str = "POST"
) -> PreparedRequest:
    if is_empty(stream):
        raise ValidationError("Stream name is required", 400)
    if is_empty(data):
        raise ValidationError("Data is required", 400)

    payload = serialize_data(data)
    body = EventRequest(stream=stream, data=payload, auth=sign(payload, auth_key))

    if (method or "POST").upper() == "GET":
        query = encode_query({"data": body.data, "stream": body.stream, "auth": body.auth})
        return PreparedRequest("GET", endpoint, params={"data": query})
    return PreparedRequest("POST", endpoint, json=body.model_dump())


def bulk_request(
    endpoint: str,
    stream: str,
    data: Sequence[Any],
    auth_key: str,
    method: str | None = None,
) -> PreparedRequest:
    if is_empty(stream):
        raise ValidationError("Stream name is required", 400)
    if not isinstance(data, (list, tuple)) or not data:
        raise ValidationError("Data must be a non-empty list", 400)
    # only POST is sent, but an explicit GET is a caller bug worth surfacing
    if method and method.upper() == "GET":
        raise ValidationError("GET is not a valid method for bulk requests", 400)

    payload = serialize_data(list(data))
    body = BulkRequest(stream=stream, data=payload, auth=sign(payload, auth_key))
    return PreparedRequest("POST", endpoint + BULK_PATH, json=body.model_dump())


def health_request(endpoint: str) -> PreparedRequest:
    return PreparedRequest("GET", endpoint + HEALTH_PATH)


def interpret(response: httpx.Response) -> IngestResponse:
    """200 -> IngestResponse; anything else raises a classified TransportError."""
    if response.status_code == 200:
        return IngestResponse(status=200, message=response.text)
    raise classify_status(response.status_code, response.text or response.reason_phrase)


def interpret_health(response: httpx.Response) -> bool:
    if response.status_code == 200:
        return True
    raise classify_status(response.status_code, "Ingestion API is down")
