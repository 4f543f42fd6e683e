from __future__ import annotations

import json

import httpx
import pytest
from tenacity import wait_none

from adapters import HttpContentPipeline, HttpHealthScorer, HttpPublisher
from core import GenerationOptions, PipelineResult, QueueItem
from utils.exceptions import ConfigurationError, GenerationError, PublishError, ScoringError


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


@pytest.fixture
def no_wait(monkeypatch):
    monkeypatch.setattr(HttpHealthScorer._fetch.retry, "wait", wait_none())


def test_adapter_requires_endpoint() -> None:
    with pytest.raises(ConfigurationError):
        HttpHealthScorer(None)


@pytest.mark.asyncio
async def test_scorer_posts_url_and_parses_analysis() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"score": 42, "issues": ["thin content"]})

    scorer = HttpHealthScorer("https://scorer.test/score", api_token="tkn", transport=_transport(handler))
    analysis = await scorer.score("https://example.com/page")
    await scorer.close()

    assert analysis.score == 42
    assert analysis.issues == ["thin content"]
    assert analysis.url == "https://example.com/page"
    assert seen == {"auth": "Bearer tkn", "body": {"url": "https://example.com/page"}}


@pytest.mark.asyncio
async def test_scorer_retries_transport_errors(no_wait) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        if len(calls) < 3:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200, json={"score": 88})

    scorer = HttpHealthScorer("https://scorer.test/score", transport=_transport(handler))
    analysis = await scorer.score("https://example.com/page")

    assert analysis.score == 88
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_scorer_maps_failures_to_scoring_error(no_wait) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="busy")

    scorer = HttpHealthScorer("https://scorer.test/score", transport=_transport(handler))

    with pytest.raises(ScoringError) as excinfo:
        await scorer.score("https://example.com/page")
    assert excinfo.value.url == "https://example.com/page"
    assert "HTTP 503" in excinfo.value.message

    bad_score = HttpHealthScorer(
        "https://scorer.test/score",
        transport=_transport(lambda request: httpx.Response(200, json={"score": 140})),
    )
    with pytest.raises(ScoringError):
        await bad_score.score("https://example.com/page")


@pytest.mark.asyncio
async def test_pipeline_sends_keyword_and_options() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(
            200,
            json={"content": "<p>new</p>", "title": "Guide", "qualityScore": 91, "wordCount": 2500},
        )

    pipeline = HttpContentPipeline("https://pipeline.test/generate", transport=_transport(handler))
    options = GenerationOptions(title="The Ultimate Garden Tools Guide", source_url="https://example.com/garden-tools")
    result = await pipeline.generate("garden tools", options)

    assert result.quality_score == 91
    assert result.word_count == 2500
    assert seen["keyword"] == "garden tools"
    assert seen["options"]["target_word_count"] == 3000
    assert seen["options"]["content_type"] == "guide"


@pytest.mark.asyncio
async def test_pipeline_errors_become_generation_errors() -> None:
    pipeline = HttpContentPipeline(
        "https://pipeline.test/generate",
        transport=_transport(lambda request: httpx.Response(200, text="not json")),
    )

    with pytest.raises(GenerationError) as excinfo:
        await pipeline.generate("x", GenerationOptions(title="X", source_url="https://example.com/x"))
    assert excinfo.value.stage == "generating"


@pytest.mark.asyncio
async def test_publisher_preserves_original_slug() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(201, json={"link": "https://example.com/best-shoes/"})

    publisher = HttpPublisher("https://cms.test/publish", transport=_transport(handler))
    item = QueueItem(url="https://example.com/best-shoes/")
    content = PipelineResult(content="<p>x</p>", title="Best Shoes", slug="generated-slug", quality_score=90)

    result = await publisher.publish(item, content, status="draft")

    assert result.published_url == "https://example.com/best-shoes/"
    assert seen["slug"] == "best-shoes"
    assert seen["status"] == "draft"
    assert seen["sourceUrl"] == "https://example.com/best-shoes/"


@pytest.mark.asyncio
async def test_publisher_failures_become_publish_errors() -> None:
    item = QueueItem(url="https://example.com/a")
    content = PipelineResult(content="<p>x</p>", title="A", quality_score=90)

    failing = HttpPublisher("https://cms.test/publish", transport=_transport(lambda r: httpx.Response(401, text="nope")))
    with pytest.raises(PublishError) as excinfo:
        await failing.publish(item, content, status="publish")
    assert excinfo.value.stage == "publishing"

    no_link = HttpPublisher("https://cms.test/publish", transport=_transport(lambda r: httpx.Response(200, json={})))
    with pytest.raises(PublishError):
        await no_link.publish(item, content, status="publish")
