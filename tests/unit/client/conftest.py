"""
Fixtures for client tests: an httpx.MockTransport that records requests.
"""

import json

import httpx
import pytest

from ingest_client import ClientSettings


class Recorder:
    def __init__(self, status: int = 200, text: str = "ok", exc: Exception | None = None):
        self.status = status
        self.text = text
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status, text=self.text)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings():
    return ClientSettings(ENDPOINT="http://ingest.test", AUTH="secret", TIMEOUT=5)


@pytest.fixture
def recorder():
    def _make(**kw) -> Recorder:
        return Recorder(**kw)

    return _make
