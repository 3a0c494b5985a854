# src/pipeline_sync/core/clock.py

from __future__ import annotations

import asyncio
import time


class MonotonicClock:
    """Real clock: time.monotonic() + asyncio.sleep()."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
