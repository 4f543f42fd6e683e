"""Canonical data contracts for the refresh scheduler."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class Priority(str, Enum):
    """Urgency tier, primary queue sort key."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        return PRIORITY_WEIGHTS[self]


PRIORITY_WEIGHTS: Dict[Priority, int] = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


class QueueSource(str, Enum):
    MANUAL = "manual"
    SCAN = "scan"


class EngineStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ERROR = "error"


class EnginePhase(str, Enum):
    SCANNING = "scanning"
    SCORING = "scoring"
    GENERATING = "generating"
    PUBLISHING = "publishing"
    NONE = "none"


class HistoryAction(str, Enum):
    GENERATED = "generated"
    PUBLISHED = "published"
    SKIPPED = "skipped"
    ERROR = "error"


class ActivityType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class EngineConfig(BaseModel):
    """Validated scheduler tunables. Immutable for the duration of a run."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    scan_interval_hours: float = Field(default=4, gt=0)
    max_per_day: int = Field(default=10, ge=0)
    quality_threshold: int = Field(default=85, ge=0, le=100)
    auto_publish: bool = False
    default_status: Literal["draft", "publish"] = "draft"
    active_hours_start: int = Field(default=6, ge=0, le=23)
    active_hours_end: int = Field(default=22, ge=0, le=23)
    retry_attempts: int = Field(default=2, ge=0)
    processing_interval_minutes: float = Field(default=30, ge=0)
    enable_weekends: bool = True
    min_health_score: int = Field(default=70, ge=0, le=100)

    def merged(self, **updates: Any) -> "EngineConfig":
        """Return a validated copy with the given fields replaced.

        Keys may be field names or their camelCase aliases.
        """
        names: Dict[str, str] = {}
        for name, field in type(self).model_fields.items():
            names[name] = name
            if field.alias:
                names[field.alias] = name
        data = self.model_dump()
        for key, value in updates.items():
            if key not in names:
                raise ValueError(f"unknown config option: {key}")
            data[names[key]] = value
        return EngineConfig.model_validate(data)


class QueueItem(BaseModel):
    """A unit of pending work."""

    id: str = Field(default_factory=new_id)
    url: str
    priority: Priority = Priority.MEDIUM
    health_score: int = Field(default=100, ge=0, le=100)
    added_at: datetime = Field(default_factory=_utcnow)
    source: QueueSource = QueueSource.SCAN
    retry_count: int = Field(default=0, ge=0)
    last_error: Optional[str] = None

    @field_validator("url", mode="before")
    @classmethod
    def _non_empty_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("url must be a string")
        text = value.strip()
        if not text:
            raise ValueError("url is required")
        return text

    @field_validator("health_score", mode="before")
    @classmethod
    def _clamp_health(cls, value: Any) -> int:
        if value is None:
            return 100
        try:
            number = float(value)
        except TypeError as e:
            raise ValueError(f"health_score must be a number, got {type(value).__name__}") from e
        if not math.isfinite(number):
            raise ValueError("health_score must be a finite number")
        return max(0, min(100, int(round(number))))


class GeneratedContent(BaseModel):
    """Generated article kept in history for viewing or manual publishing."""

    title: str
    content: str
    seo_title: Optional[str] = None
    meta_description: Optional[str] = None
    slug: Optional[str] = None


class HistoryItem(BaseModel):
    """Per-item outcome record."""

    id: str = Field(default_factory=new_id)
    url: str
    action: HistoryAction
    timestamp: datetime = Field(default_factory=_utcnow)
    quality_score: Optional[float] = None
    published_url: Optional[str] = None
    error: Optional[str] = None
    failed_phase: Optional[EnginePhase] = None
    processing_time_ms: Optional[int] = None
    word_count: Optional[int] = None
    generated_content: Optional[GeneratedContent] = None


class ActivityEvent(BaseModel):
    """Structured, human-readable activity log entry."""

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    type: ActivityType
    message: str
    details: Optional[str] = None


class EngineStats(BaseModel):
    """Accumulated session counters plus scan timestamps."""

    total_processed: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    avg_quality_score: float = 0.0
    total_words_generated: int = 0
    cycle_count: int = 0
    session_started_at: Optional[datetime] = None
    last_scan_at: Optional[datetime] = None
    next_scan_at: Optional[datetime] = None


class StatsDelta(BaseModel):
    """Stats change notification.

    Counter fields (``total_processed``, ``success_count``, ``error_count``,
    ``skipped_count``, ``words_generated``) are increments and
    ``quality_score`` is one sample; receivers accumulate them. Metadata
    fields (``cycle_count`` and the timestamps) are absolute values.
    ``reset`` zeroes the receiver's counters before the delta is applied.
    """

    reset: bool = False
    total_processed: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    words_generated: int = 0
    quality_score: Optional[float] = None
    cycle_count: Optional[int] = None
    session_started_at: Optional[datetime] = None
    last_scan_at: Optional[datetime] = None
    next_scan_at: Optional[datetime] = None


class EngineState(BaseModel):
    """Full engine state. Only the phase controller mutates it."""

    status: EngineStatus = EngineStatus.IDLE
    current_phase: EnginePhase = EnginePhase.NONE
    current_url: Optional[str] = None
    queue: List[QueueItem] = Field(default_factory=list)
    stats: EngineStats = Field(default_factory=EngineStats)
    config: EngineConfig = Field(default_factory=EngineConfig)
    activity_log: List[ActivityEvent] = Field(default_factory=list)
    history: List[HistoryItem] = Field(default_factory=list)
    last_error: Optional[str] = None


class StateDelta(BaseModel):
    """Partial state update. Only explicitly set fields are meaningful.

    ``queue`` is a full snapshot, ``history`` lists new entries to prepend,
    ``stats`` follows the :class:`StatsDelta` contract.
    """

    status: Optional[EngineStatus] = None
    current_phase: Optional[EnginePhase] = None
    current_url: Optional[str] = None
    queue: Optional[List[QueueItem]] = None
    stats: Optional[StatsDelta] = None
    config: Optional[EngineConfig] = None
    history: Optional[List[HistoryItem]] = None
    last_error: Optional[str] = None

    def changed_fields(self) -> List[str]:
        return sorted(self.model_fields_set)


class HealthAnalysis(BaseModel):
    """Health scorer verdict for one URL."""

    url: str = ""
    score: float = Field(ge=0, le=100)
    issues: List[str] = Field(default_factory=list)


class GenerationOptions(BaseModel):
    """Options handed to the content pipeline."""

    title: str
    source_url: str
    content_type: str = "guide"
    target_word_count: int = 3000
    extra: Dict[str, Any] = Field(default_factory=dict)


class PipelineResult(BaseModel):
    """Content pipeline output. Only ``quality_score`` drives scheduling."""

    content: str
    title: str
    slug: Optional[str] = None
    quality_score: float = Field(default=0.0, ge=0, le=100)
    word_count: int = Field(default=0, ge=0)
    seo_title: Optional[str] = None
    meta_description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_camel_case(cls, data: Any) -> Any:
        if isinstance(data, dict):
            mapped = dict(data)
            for camel, snake in (
                ("qualityScore", "quality_score"),
                ("wordCount", "word_count"),
                ("seoTitle", "seo_title"),
                ("metaDescription", "meta_description"),
            ):
                if camel in mapped and snake not in mapped:
                    mapped[snake] = mapped.pop(camel)
            return mapped
        return data

    def to_generated_content(self, slug: Optional[str] = None) -> GeneratedContent:
        return GeneratedContent(
            title=self.title,
            content=self.content,
            seo_title=self.seo_title,
            meta_description=self.meta_description,
            slug=slug or self.slug,
        )


class PublishResult(BaseModel):
    """Publisher acknowledgement."""

    published_url: str
