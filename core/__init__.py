"""Core contracts and shared types for the refresh scheduler."""

from .contracts import (
    PRIORITY_WEIGHTS,
    ActivityEvent,
    ActivityType,
    EngineConfig,
    EnginePhase,
    EngineState,
    EngineStats,
    EngineStatus,
    GeneratedContent,
    GenerationOptions,
    HealthAnalysis,
    HistoryAction,
    HistoryItem,
    PipelineResult,
    Priority,
    PublishResult,
    QueueItem,
    QueueSource,
    StateDelta,
    StatsDelta,
    new_id,
)

__all__ = [
    "PRIORITY_WEIGHTS",
    "ActivityEvent",
    "ActivityType",
    "EngineConfig",
    "EnginePhase",
    "EngineState",
    "EngineStats",
    "EngineStatus",
    "GeneratedContent",
    "GenerationOptions",
    "HealthAnalysis",
    "HistoryAction",
    "HistoryItem",
    "PipelineResult",
    "Priority",
    "PublishResult",
    "QueueItem",
    "QueueSource",
    "StateDelta",
    "StatsDelta",
    "new_id",
]
