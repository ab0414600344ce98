"""
Demo script for the event Tracker.

Shows bulk batching, retry notifications on a flaky transport, the SIGINT/SIGTERM
drain hook and the final drain on exit. No network needed.
"""

import asyncio
import random
from typing import Any

from loguru import logger

from ingest_client.errors import PermanentTransportError, RetryableTransportError
from ingest_tracker import Batch, Tracker, TrackerSettings, RetryOptions, install_signal_handlers
from ingest_tracker.tracker import DeliveryFailed, RetryScheduled


class FlakyTransport:
    """Fails ~20% of posts with a 503 and ~2% with a 400."""

    def __init__(self):
        self.delivered = 0

    async def post(self, batch: Batch[Any]) -> dict:
        # Simulate network latency
        await asyncio.sleep(0.02)
        roll = random.random()
        if roll < 0.02:
            raise PermanentTransportError("Malformed batch", 400)
        if roll < 0.2:
            raise RetryableTransportError("Service unavailable", 503)
        self.delivered += len(batch)
        logger.info(f"Delivered {len(batch)} events to '{batch.stream}'")
        return {"status": 200}


def on_retry(evt: RetryScheduled):
    logger.warning(f"🔁 {evt.stream}: attempt {evt.attempt} failed ({evt.error.status}), retry in {evt.delay_ms:.0f}ms")


def on_dropped(evt: DeliveryFailed):
    logger.error(f"❌ {evt.stream}: dropped {len(evt.batch)} events ({evt.error})")


async def main():
    transport = FlakyTransport()
    settings = TrackerSettings(
        bulk_len=100,
        flush_interval=1,
        max_in_flight=4,
        retry_options=RetryOptions(retries=4, min_timeout=50, max_timeout=400),
    )

    async with Tracker(transport, settings, tick_interval=0.05) as tracker:
        install_signal_handlers(tracker)
        tracker.events.subscribe(RetryScheduled, on_retry)
        tracker.events.subscribe(DeliveryFailed, on_dropped)
        logger.info("🚀 Starting tracker demo - tracking 2,000 events on 3 streams")

        for i in range(2_000):
            await tracker.track(random.choice(["clicks", "views", "errors"]), {"seq": i})
            if i % 500 == 0:
                health = tracker.health()
                logger.info(
                    f"Progress: {i}/2000 | backlog={health.backlog_total} | "
                    f"in_flight={health.in_flight}/{health.max_in_flight}"
                )

        logger.info("⏳ Draining...")

    logger.info(f"✅ Tracker demo complete ({transport.delivered} events delivered)")


if __name__ == "__main__":
    asyncio.run(main())
