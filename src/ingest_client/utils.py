"""
Utility functions for the ingestion client.

Includes payload serialization, HMAC signing and size estimation helpers.
"""

import base64
import gzip
import hashlib
import hmac
import json
import sys
from typing import Any, Iterator

from .errors import ValidationError

# fixed cost for values json can't measure
FALLBACK_EVENT_SIZE = 256


def normalize_endpoint(endpoint: str) -> str:
    """Ensure the endpoint ends with a slash so paths can be appended."""
    endpoint = endpoint.strip()
    return endpoint if endpoint.endswith("/") else endpoint + "/"


def is_empty(value: Any) -> bool:
    """None, empty strings and empty containers count as missing."""
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


def serialize_data(data: Any) -> str:
    """Return ``data`` as a JSON string (strings pass through unchanged)."""
    if isinstance(data, str):
        return data
    try:
        return json.dumps(_jsonable(data), separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"data is invalid - can't be serialized: {e}", 400) from e


def sign(data: str, key: str | None) -> str:
    """Hex HMAC-SHA256 of ``data``; empty string when no key is configured."""
    if not key:
        return ""
    return hmac.new(key.encode("utf-8"), data.encode("utf-8"), hashlib.sha256).hexdigest()


def encode_query(payload: dict) -> str:
    """Base64 of the JSON payload, used by the GET single-event variant."""
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def estimate_size(event: Any) -> int:
    """Rough serialized byte size of one event."""
    if isinstance(event, (str, bytes)):
        return len(event)
    try:
        return len(json.dumps(_jsonable(event)))
    except (TypeError, ValueError):
        return FALLBACK_EVENT_SIZE


def _jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def iter_ndjson(path: str) -> Iterator[Any]:
    """Yield one decoded object per non-blank line; ``-`` reads stdin, ``.gz`` is decompressed."""
    if path == "-":
        fh = sys.stdin
    elif path.endswith(".gz"):
        fh = gzip.open(path, "rt", encoding="utf-8")
    else:
        fh = open(path, "r", encoding="utf-8")
    try:
        for line in fh:
            line = line.strip()
            if line:
                yield json.loads(line)
    finally:
        if fh is not sys.stdin:
            fh.close()
