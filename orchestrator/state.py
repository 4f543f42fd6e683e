"""Engine state accumulation from partial deltas."""

from __future__ import annotations

from typing import List

from core import ActivityEvent, EngineConfig, EngineState, EngineStats, HistoryItem, StateDelta, StatsDelta


HISTORY_LIMIT = 100
ACTIVITY_LIMIT = 100

_PLAIN_FIELDS = ("status", "current_phase", "current_url", "config", "last_error")
_ABSOLUTE_STATS = ("cycle_count", "session_started_at", "last_scan_at", "next_scan_at")


class EngineStateView:
    """Applies :class:`StateDelta` updates to a local :class:`EngineState`.

    The phase controller keeps one as its own state and any host may keep
    another by subscribing to state updates and activity events.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._state = EngineState(config=config or EngineConfig())
        self._quality_samples = 0

    @property
    def state(self) -> EngineState:
        """Deep copy of the current state."""
        return self._state.model_copy(deep=True)

    @property
    def status(self):
        return self._state.status

    @property
    def stats(self) -> EngineStats:
        return self._state.stats.model_copy()

    @property
    def history(self) -> List[HistoryItem]:
        return [item.model_copy(deep=True) for item in self._state.history]

    @property
    def activity_log(self) -> List[ActivityEvent]:
        return [item.model_copy() for item in self._state.activity_log]

    def apply(self, delta: StateDelta) -> None:
        fields = delta.model_fields_set
        for name in _PLAIN_FIELDS:
            if name in fields:
                setattr(self._state, name, getattr(delta, name))
        if "queue" in fields and delta.queue is not None:
            self._state.queue = [item.model_copy(deep=True) for item in delta.queue]
        if "history" in fields and delta.history:
            for entry in delta.history:
                self._state.history.insert(0, entry.model_copy(deep=True))
            del self._state.history[HISTORY_LIMIT:]
        if "stats" in fields and delta.stats is not None:
            self._apply_stats(delta.stats)

    def _apply_stats(self, delta: StatsDelta) -> None:
        if delta.reset:
            self._state.stats = EngineStats()
            self._quality_samples = 0
        stats = self._state.stats

        stats.total_processed += delta.total_processed
        stats.success_count += delta.success_count
        stats.error_count += delta.error_count
        stats.skipped_count += delta.skipped_count
        stats.total_words_generated += delta.words_generated
        if delta.quality_score is not None:
            n = self._quality_samples
            stats.avg_quality_score = (stats.avg_quality_score * n + float(delta.quality_score)) / (n + 1)
            self._quality_samples = n + 1

        set_fields = delta.model_fields_set
        for name in _ABSOLUTE_STATS:
            if name not in set_fields:
                continue
            value = getattr(delta, name)
            if name == "cycle_count" and value is None:
                continue
            setattr(stats, name, value)

    def add_activity(self, event: ActivityEvent) -> None:
        self._state.activity_log.insert(0, event.model_copy())
        del self._state.activity_log[ACTIVITY_LIMIT:]

    def clear_history(self) -> None:
        self._state.history = []

    def clear_activity_log(self) -> None:
        self._state.activity_log = []
