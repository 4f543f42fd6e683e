"""Pure scheduling rules: active hours, scan cadence, score to priority."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from core import EngineConfig, Priority


CRITICAL_BELOW = 40
HIGH_BELOW = 55

# Health scores given to priority-only items so the queue still orders within a tier.
MANUAL_HEALTH_SCORES = {
    Priority.CRITICAL: 30,
    Priority.HIGH: 50,
}
MANUAL_HEALTH_DEFAULT = 70


def is_within_active_hours(now: datetime, config: EngineConfig) -> bool:
    """Whether ``now`` falls inside the configured processing window.

    ``end`` is exclusive. ``start > end`` wraps past midnight; ``start == end``
    is an empty window. Saturday and Sunday are inactive unless weekends are
    enabled.
    """
    if not config.enable_weekends and now.weekday() >= 5:
        return False

    hour = now.hour
    start = config.active_hours_start
    end = config.active_hours_end
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def scan_due(last_scan_at: Optional[datetime], now: datetime, interval_hours: float) -> bool:
    if last_scan_at is None:
        return True
    return (now - last_scan_at) >= timedelta(hours=interval_hours)


def next_scan_at(
    last_scan_at: Optional[datetime],
    now: datetime,
    interval_hours: float,
    *,
    priority_only: bool = False,
) -> Optional[datetime]:
    if priority_only:
        return None
    base = last_scan_at or now
    return base + timedelta(hours=interval_hours)


def priority_for_score(score: float, min_health_score: int) -> Optional[Priority]:
    """Map a health score to a queue priority, or None when the page is healthy enough."""
    if score < CRITICAL_BELOW:
        return Priority.CRITICAL
    if score < HIGH_BELOW:
        return Priority.HIGH
    if score < min_health_score:
        return Priority.MEDIUM
    return None


def manual_health_score(priority: Priority) -> int:
    return MANUAL_HEALTH_SCORES.get(priority, MANUAL_HEALTH_DEFAULT)
