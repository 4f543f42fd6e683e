"""Adaptive inter-item throttle driven by recent quality scores."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List


@dataclass
class QualityTrend:
    avg: float
    avg_latency_ms: float
    trend: str  # improving | declining | stable


class AdaptiveThrottle:
    """Negative-feedback controller over the delay between successful items.

    Low recent quality widens the delay multiplicatively up to ``max_delay``;
    high recent quality eases it back down to ``min_delay``.
    """

    def __init__(
        self,
        *,
        min_delay: float = 2.0,
        max_delay: float = 10.0,
        poor_quality: float = 70.0,
        good_quality: float = 85.0,
        increase_factor: float = 1.5,
        decrease_factor: float = 0.9,
        quality_window: int = 20,
        latency_window: int = 10,
        sample_size: int = 3,
    ) -> None:
        if min_delay > max_delay:
            raise ValueError("min_delay must be <= max_delay")
        self.min_delay = float(min_delay)
        self.max_delay = float(max_delay)
        self.poor_quality = float(poor_quality)
        self.good_quality = float(good_quality)
        self.increase_factor = float(increase_factor)
        self.decrease_factor = float(decrease_factor)
        self.sample_size = max(1, int(sample_size))
        self._quality: Deque[float] = deque(maxlen=max(1, int(quality_window)))
        self._latency: Deque[float] = deque(maxlen=max(1, int(latency_window)))
        self.delay = self.min_delay

    @classmethod
    def from_settings(cls, settings) -> "AdaptiveThrottle":
        return cls(
            min_delay=settings.throttle_min_seconds,
            max_delay=settings.throttle_max_seconds,
            poor_quality=settings.throttle_poor_quality,
            good_quality=settings.throttle_good_quality,
            increase_factor=settings.throttle_increase_factor,
            decrease_factor=settings.throttle_decrease_factor,
            quality_window=settings.throttle_quality_window,
            latency_window=settings.throttle_latency_window,
        )

    @property
    def quality_samples(self) -> List[float]:
        return list(self._quality)

    def reset(self) -> None:
        self._quality.clear()
        self._latency.clear()
        self.delay = self.min_delay

    def record(self, quality_score: float, processing_ms: float) -> None:
        self._quality.append(float(quality_score))
        self._latency.append(float(processing_ms))

    def adjust(self) -> float:
        """Re-tune the delay from the most recent samples. Returns the new delay."""
        if len(self._quality) < self.sample_size:
            return self.delay
        recent = list(self._quality)[-self.sample_size:]
        avg = sum(recent) / len(recent)
        if avg < self.poor_quality:
            self.delay = min(self.delay * self.increase_factor, self.max_delay)
        elif avg > self.good_quality:
            self.delay = max(self.delay * self.decrease_factor, self.min_delay)
        return self.delay

    def trend(self) -> QualityTrend:
        latency = sum(self._latency) / len(self._latency) if self._latency else 0.0
        samples = list(self._quality)
        if len(samples) < 2:
            return QualityTrend(avg=0.0, avg_latency_ms=latency, trend="stable")

        avg = sum(samples) / len(samples)
        recent = samples[-5:]
        older = samples[:-5]
        recent_avg = sum(recent) / len(recent)
        older_avg = sum(older) / max(1, len(older))

        trend = "stable"
        if older and recent_avg > older_avg + 3:
            trend = "improving"
        elif older and recent_avg < older_avg - 3:
            trend = "declining"
        return QualityTrend(avg=avg, avg_latency_ms=latency, trend=trend)
