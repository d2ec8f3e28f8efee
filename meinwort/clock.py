"""
Time source for the engine.

Everything that compares timestamps or waits (echo window, retry backoff,
clipboard settle delay, router backoff) goes through a Clock so tests can
move time forward without sleeping.
"""

import asyncio
import time


class Clock:
    """Monotonic wall time plus cooperative sleep."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


SYSTEM_CLOCK = Clock()
