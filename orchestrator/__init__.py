"""Scheduling engine: queue, resilience primitives and the phase controller."""

from .breaker import CircuitBreaker
from .keywords import build_title, extract_keyword, slug_from_url
from .quality_gate import GateRoute, GateVerdict, QualityGate
from .queue import PriorityQueueStore, UrlExclusionFilter, decode_queue, encode_queue, normalize_url
from .retry import RetryDecision, RetryPolicy
from .schedule import is_within_active_hours, priority_for_score
from .service import PhaseController
from .state import EngineStateView
from .throttle import AdaptiveThrottle, QualityTrend
from .timer import CancellableSleeper, EngineTimings, system_clock

__all__ = [
    "AdaptiveThrottle",
    "CancellableSleeper",
    "CircuitBreaker",
    "EngineStateView",
    "EngineTimings",
    "GateRoute",
    "GateVerdict",
    "PhaseController",
    "PriorityQueueStore",
    "QualityGate",
    "QualityTrend",
    "RetryDecision",
    "RetryPolicy",
    "UrlExclusionFilter",
    "build_title",
    "decode_queue",
    "encode_queue",
    "extract_keyword",
    "is_within_active_hours",
    "normalize_url",
    "priority_for_score",
    "slug_from_url",
    "system_clock",
]
