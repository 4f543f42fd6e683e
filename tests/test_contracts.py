from __future__ import annotations

import pytest
from pydantic import ValidationError

from core import EngineConfig, PipelineResult, Priority, QueueItem, QueueSource, StateDelta


def test_engine_config_defaults() -> None:
    config = EngineConfig()

    assert config.scan_interval_hours == 4
    assert config.max_per_day == 10
    assert config.quality_threshold == 85
    assert config.auto_publish is False
    assert config.default_status == "draft"
    assert (config.active_hours_start, config.active_hours_end) == (6, 22)
    assert config.retry_attempts == 2
    assert config.processing_interval_minutes == 30
    assert config.enable_weekends is True
    assert config.min_health_score == 70


def test_engine_config_accepts_camel_case_surface() -> None:
    config = EngineConfig.model_validate({"maxPerDay": 3, "autoPublish": True, "defaultStatus": "publish"})

    assert config.max_per_day == 3
    assert config.auto_publish is True
    assert config.model_dump(by_alias=True)["defaultStatus"] == "publish"


def test_engine_config_rejects_out_of_range_values() -> None:
    with pytest.raises(ValidationError):
        EngineConfig(quality_threshold=101)
    with pytest.raises(ValidationError):
        EngineConfig(active_hours_start=24)
    with pytest.raises(ValidationError):
        EngineConfig(default_status="pending")


def test_engine_config_is_frozen_and_merged_revalidates() -> None:
    config = EngineConfig()
    with pytest.raises(ValidationError):
        config.max_per_day = 99

    merged = config.merged(maxPerDay=5, quality_threshold=70)
    assert merged.max_per_day == 5
    assert merged.quality_threshold == 70
    assert config.max_per_day == 10

    with pytest.raises(ValueError):
        config.merged(unknown_option=1)
    with pytest.raises(ValidationError):
        config.merged(min_health_score=-1)


def test_queue_item_defaults_and_health_clamp() -> None:
    item = QueueItem(url="  https://example.com/a  ", health_score=150.4)

    assert item.url == "https://example.com/a"
    assert item.health_score == 100
    assert item.priority == Priority.MEDIUM
    assert item.source == QueueSource.SCAN
    assert item.retry_count == 0
    assert len(item.id) == 32

    assert QueueItem(url="https://example.com/b", health_score=-3).health_score == 0
    assert QueueItem(url="https://example.com/c", health_score=None).health_score == 100
    assert QueueItem(url="https://example.com/d").id != item.id


def test_queue_item_requires_url() -> None:
    with pytest.raises(ValidationError):
        QueueItem(url="   ")
    with pytest.raises(ValidationError):
        QueueItem(url=42)


def test_priority_weights_order_tiers() -> None:
    weights = [p.weight for p in (Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW)]
    assert weights == [4, 3, 2, 1]


def test_pipeline_result_accepts_camel_case_payload() -> None:
    result = PipelineResult.model_validate(
        {
            "content": "<p>body</p>",
            "title": "Guide",
            "qualityScore": 91.5,
            "wordCount": 2400,
            "seoTitle": "Guide | Site",
            "metaDescription": "All about it",
        }
    )

    assert result.quality_score == 91.5
    assert result.word_count == 2400
    generated = result.to_generated_content("original-slug")
    assert generated.slug == "original-slug"
    assert generated.seo_title == "Guide | Site"


def test_state_delta_tracks_only_explicit_fields() -> None:
    delta = StateDelta(current_url=None, queue=[])
    assert delta.changed_fields() == ["current_url", "queue"]
