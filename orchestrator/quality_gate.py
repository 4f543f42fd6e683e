"""Quality gate routing a pipeline result to publish or hold-for-review."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core import EngineConfig, PipelineResult


class GateRoute(str, Enum):
    PUBLISH = "publish"
    READY_FOR_MANUAL = "ready_for_manual"
    SKIP = "skip"


@dataclass(frozen=True)
class GateVerdict:
    route: GateRoute
    quality_score: float
    threshold: int
    reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.route != GateRoute.SKIP


class QualityGate:
    """Compares a result's overall score with ``quality_threshold``.

    A rejection is a content outcome, not a pipeline fault: callers record
    it as skipped and do not feed it to the circuit breaker.
    """

    def evaluate(self, result: PipelineResult, config: EngineConfig) -> GateVerdict:
        score = float(result.quality_score or 0.0)
        threshold = int(config.quality_threshold)
        if score < threshold:
            return GateVerdict(
                route=GateRoute.SKIP,
                quality_score=score,
                threshold=threshold,
                reason=f"Quality {score:g} below threshold {threshold}",
            )
        route = GateRoute.PUBLISH if config.auto_publish else GateRoute.READY_FOR_MANUAL
        return GateVerdict(route=route, quality_score=score, threshold=threshold)
