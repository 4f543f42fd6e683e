"""Per-item retry policy with capped exponential backoff and jitter."""

from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Optional

from core import QueueItem


@dataclass
class RetryDecision:
    """Outcome of a failed attempt."""

    requeue: bool
    delay_seconds: float = 0.0
    attempt: int = 0


class RetryPolicy:
    """Decides whether a failed item is retried and how long to back off.

    The delay for the ``k``-th retry (``k`` = retries already spent) is
    ``base * 2**k`` scaled by a factor in ``[1 - jitter, 1 + jitter]`` and
    capped at ``max_delay``. With jitter below 1/3 the uncapped delays are
    strictly increasing in ``k`` regardless of the random draw.
    """

    def __init__(
        self,
        *,
        base_delay: float = 5.0,
        max_delay: float = 300.0,
        jitter: float = 0.2,
        rng: Optional[random.Random] = None,
    ) -> None:
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if max_delay < base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0 <= jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        self.base_delay = float(base_delay)
        self.max_delay = float(max_delay)
        self.jitter = float(jitter)
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings, rng: Optional[random.Random] = None) -> "RetryPolicy":
        return cls(
            base_delay=settings.backoff_base_seconds,
            max_delay=settings.backoff_max_seconds,
            jitter=settings.backoff_jitter,
            rng=rng,
        )

    def backoff_delay(self, retry_count: int) -> float:
        exponent = max(0, int(retry_count))
        raw = self.base_delay * (2 ** exponent)
        if self.jitter:
            raw *= 1.0 + self._rng.uniform(-self.jitter, self.jitter)
        return min(raw, self.max_delay)

    def on_failure(self, item: QueueItem, error: str, *, retry_attempts: int) -> RetryDecision:
        """Record the failure on ``item`` and decide its fate.

        Requeue when retries remain: the delay is computed from the count
        before it is incremented. Otherwise the item is final.
        """
        item.last_error = error
        if item.retry_count < retry_attempts:
            delay = self.backoff_delay(item.retry_count)
            item.retry_count += 1
            return RetryDecision(requeue=True, delay_seconds=delay, attempt=item.retry_count)
        return RetryDecision(requeue=False, attempt=item.retry_count)
