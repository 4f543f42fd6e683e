"""Cancellable sleep, wall clock and loop wait timings."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


Clock = Callable[[], datetime]

# Recent wait durations kept for inspection.
SLEEP_HISTORY_LIMIT = 50


def system_clock(tz: str = "UTC") -> Clock:
    """Aware wall clock in the given IANA zone (falls back to UTC)."""
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo("UTC")

    def _now() -> datetime:
        return datetime.now(zone)

    return _now


@dataclass(frozen=True)
class EngineTimings:
    """Seconds the main loop waits at each suspension point."""

    pause_poll: float = 1.0
    outside_hours_wait: float = 60.0
    daily_limit_wait: float = 3600.0
    idle_wait: float = 60.0
    circuit_wait: float = 60.0
    scoring_batch_pause: float = 0.5

    @classmethod
    def from_settings(cls, settings) -> "EngineTimings":
        return cls(
            pause_poll=settings.pause_poll_seconds,
            outside_hours_wait=settings.outside_hours_wait_seconds,
            daily_limit_wait=settings.daily_limit_wait_seconds,
            idle_wait=settings.idle_wait_seconds,
            circuit_wait=settings.circuit_wait_seconds,
            scoring_batch_pause=settings.scoring_batch_pause_seconds,
        )


class CancellableSleeper:
    """Timer that resolves on timeout or on the shared cancellation token.

    One token per session: ``cancel()`` wakes every pending ``sleep`` at
    once and makes later sleeps return immediately until ``reset()``.
    """

    def __init__(self) -> None:
        self._token = asyncio.Event()
        self.history: Deque[float] = deque(maxlen=SLEEP_HISTORY_LIMIT)

    @property
    def cancelled(self) -> bool:
        return self._token.is_set()

    def cancel(self) -> None:
        self._token.set()

    def reset(self) -> None:
        self._token = asyncio.Event()

    async def sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``. Returns False when cancelled, True on timeout."""
        self.history.append(float(seconds))
        if self._token.is_set():
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self._token.is_set()
        return await self._wait(seconds)

    async def _wait(self, seconds: float) -> bool:
        token = self._token
        try:
            await asyncio.wait_for(token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False


def remaining_seconds(until: Optional[datetime], now: datetime) -> float:
    if until is None:
        return 0.0
    return max(0.0, (until - now).total_seconds())
