"""
Tracker configuration.

Values come from keyword arguments, ``INGEST_TRACKER_*`` environment
variables or a ``.env`` file (``INGEST_TRACKER_RETRY_OPTIONS__RETRIES=5`` for
nested retry options). A value that is out of range, or cannot be coerced at
all, is replaced by its default and logged; construction never fails.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings

from .policy import RetryPolicy

KB = 1024
BULK_LEN_LIMIT = 10_000
BULK_SIZE_LIMIT = 512 * KB

# field -> (min, max); None means unbounded on that side
_TRACKER_BOUNDS: dict[str, tuple[Optional[float], Optional[float]]] = {
    "flush_interval": (1, None),
    "bulk_len": (1, BULK_LEN_LIMIT),
    "bulk_size": (KB, BULK_SIZE_LIMIT),
    "backlog_size": (1, None),
    "max_in_flight": (1, None),
    "concurrency": (1, None),
    "tracking_timeout": (1e-3, None),
}

_RETRY_BOUNDS: dict[str, tuple[Optional[float], Optional[float]]] = {
    "retries": (0, None),
    "factor": (1, None),
    "min_timeout": (0, None),
    "max_timeout": (0, None),
}


def _in_bounds(value: Any, bounds: tuple[Optional[float], Optional[float]]) -> bool:
    lo, hi = bounds
    if lo is not None and value < lo:
        return False
    if hi is not None and value > hi:
        return False
    return True


def _fallback(model: type[BaseModel], bounds: dict, value: Any, handler, info: ValidationInfo):
    default = model.model_fields[info.field_name].default
    try:
        coerced = handler(value)
    except ValueError:
        logger.warning(
            f"Invalid {info.field_name}={value!r}; falling back to default {default!r}"
        )
        return default
    limits = bounds.get(info.field_name)
    if limits is not None and not _in_bounds(coerced, limits):
        logger.warning(
            f"{info.field_name}={coerced!r} outside {limits}; falling back to default {default!r}"
        )
        return default
    return coerced


class RetryOptions(BaseModel):
    """Backoff knobs; timeouts are in milliseconds."""

    retries: int = 10
    factor: float = 2.0
    min_timeout: float = 1000.0
    max_timeout: float = 90_000.0
    randomize: bool = True

    @field_validator("*", mode="wrap")
    @classmethod
    def _bounded(cls, value, handler, info: ValidationInfo):
        return _fallback(cls, _RETRY_BOUNDS, value, handler, info)

    @model_validator(mode="after")
    def _ordered(self) -> "RetryOptions":
        if self.max_timeout < self.min_timeout:
            defaults = RetryOptions.model_fields
            logger.warning(
                f"max_timeout={self.max_timeout} < min_timeout={self.min_timeout}; "
                "falling back to default timeouts"
            )
            self.min_timeout = defaults["min_timeout"].default
            self.max_timeout = defaults["max_timeout"].default
        return self

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            retries=self.retries,
            factor=self.factor,
            min_timeout_ms=self.min_timeout,
            max_timeout_ms=self.max_timeout,
            randomize=self.randomize,
        )


class TrackerSettings(BaseSettings):
    flush_interval: float = 10.0  # seconds
    bulk_len: int = 1000
    bulk_size: int = 128 * KB  # bytes
    backlog_size: int = 10_000  # per stream
    max_in_flight: int = 10
    concurrency: int = 10
    is_blocking: bool = True
    tracking_timeout: float = 1.0  # seconds, non-blocking mode only
    retry_options: RetryOptions = Field(default_factory=RetryOptions)

    @field_validator(
        "flush_interval",
        "bulk_len",
        "bulk_size",
        "backlog_size",
        "max_in_flight",
        "concurrency",
        "is_blocking",
        "tracking_timeout",
        mode="wrap",
    )
    @classmethod
    def _bounded(cls, value, handler, info: ValidationInfo):
        return _fallback(cls, _TRACKER_BOUNDS, value, handler, info)

    @field_validator("retry_options", mode="wrap")
    @classmethod
    def _retry_options(cls, value, handler, info: ValidationInfo):
        try:
            return handler(value)
        except ValueError:
            logger.warning(f"Invalid retry_options={value!r}; falling back to defaults")
            return RetryOptions()

    def retry_policy(self) -> RetryPolicy:
        return self.retry_options.policy()

    class Config:
        env_prefix = "INGEST_TRACKER_"
        env_nested_delimiter = "__"
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


@lru_cache()
def get_tracker_settings() -> TrackerSettings:
    return TrackerSettings()
