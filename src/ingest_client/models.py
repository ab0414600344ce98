"""
Pydantic wire models for the ingestion API.

``data`` always travels as a JSON string; ``auth`` is the HMAC of that exact
string, so the server can verify it without re-serializing.
"""

from pydantic import BaseModel, field_validator


class EventRequest(BaseModel):
    """Single-event request body."""

    stream: str
    data: str
    auth: str = ""
    bulk: bool = False

    @field_validator("stream")
    def _require_stream(cls, v):
        if not v:
            raise ValueError("Stream name is required")
        return v


class BulkRequest(EventRequest):
    """Batched request body for ``{endpoint}bulk``."""

    bulk: bool = True


class IngestResponse(BaseModel):
    """Successful (200) server response."""

    status: int
    message: str

    @property
    def ok(self) -> bool:
        return self.status == 200
