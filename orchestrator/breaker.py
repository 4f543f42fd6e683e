"""Engine-wide circuit breaker over consecutive pipeline failures."""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Optional

from .timer import Clock, remaining_seconds, system_clock


logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Opens after ``threshold`` consecutive failures for ``cooldown_seconds``.

    Any success zeroes the counter. The first ``is_open()`` check after the
    cooldown closes the breaker and zeroes the counter; there is no manual
    reset.
    """

    def __init__(
        self,
        *,
        threshold: int = 5,
        cooldown_seconds: float = 600.0,
        clock: Optional[Clock] = None,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = int(threshold)
        self.cooldown_seconds = float(cooldown_seconds)
        self._clock = clock or system_clock()
        self.consecutive_failures = 0
        self.open_until: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None) -> "CircuitBreaker":
        return cls(
            threshold=settings.circuit_breaker_threshold,
            cooldown_seconds=settings.circuit_breaker_cooldown_seconds,
            clock=clock,
        )

    def record_failure(self) -> bool:
        """Count a failure. Returns True when this failure opened the breaker."""
        self.consecutive_failures += 1
        if self.open_until is None and self.consecutive_failures >= self.threshold:
            self.open_until = self._clock() + timedelta(seconds=self.cooldown_seconds)
            logger.warning(
                "circuit_open failures=%s cooldown_s=%s", self.consecutive_failures, self.cooldown_seconds
            )
            return True
        return False

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def is_open(self) -> bool:
        if self.open_until is None:
            return False
        if self._clock() >= self.open_until:
            self._close()
            return False
        return True

    def remaining_seconds(self) -> float:
        return remaining_seconds(self.open_until, self._clock())

    def _close(self) -> None:
        self.open_until = None
        self.consecutive_failures = 0
