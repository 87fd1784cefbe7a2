"""
Clock sources for the automation engine.

SystemClock follows wall-clock time. ManualClock only moves when
advanced, so schedules can be driven deterministically.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class ManualClock:
    """
    Clock that only moves when told to.

    sleep() advances the clock by the requested amount and yields
    once to the event loop.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.advance(seconds)
        await asyncio.sleep(0)
