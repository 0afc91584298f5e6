"""
Clock abstraction for timers in Relaycast.

Retry delays and poll intervals are driven through a ``Clock`` so they
can be cancelled with their owning task and replaced in tests by a
clock that advances instantly.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Source of monotonic time and cancellable sleeps."""

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for *seconds*."""
        ...


class SystemClock:
    """Wall-clock implementation backed by ``time`` and ``asyncio``."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


SYSTEM_CLOCK = SystemClock()
