"""
Pytest configuration and fixtures for ingest-tracker.

Provides cross-platform event loop configuration and settings isolation.
"""

import asyncio
import sys

import pytest

from ingest_client.config import get_settings
from ingest_tracker.tracker.settings import get_tracker_settings

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment changes in one test don't leak."""
    get_settings.cache_clear()
    get_tracker_settings.cache_clear()
    yield
    get_settings.cache_clear()
    get_tracker_settings.cache_clear()
