"""
HTTP Adapters
JSON-over-HTTP clients for the external scorer, content pipeline and publisher.
"""
from typing import Any, Dict, Optional
import logging

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core import GenerationOptions, HealthAnalysis, PipelineResult, PublishResult, QueueItem
from orchestrator.keywords import slug_from_url
from utils.exceptions import ConfigurationError, GenerationError, PublishError, ScoringError

from .base import BaseContentPipeline, BaseHealthScorer, BasePublisher


logger = logging.getLogger(__name__)


class _JsonService:
    """Lazily created ``httpx.AsyncClient`` bound to one endpoint."""

    def __init__(
        self,
        endpoint: Optional[str],
        *,
        api_token: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not endpoint:
            raise ConfigurationError(f"{type(self).__name__} requires an endpoint URL")
        self.endpoint = endpoint
        self._api_token = api_token
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._api_token:
                headers["Authorization"] = f"Bearer {self._api_token}"
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def _post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._get_client().post(self.endpoint, json=payload)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return data

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _describe(error: Exception) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        body = error.response.text[:200]
        return f"HTTP {error.response.status_code}: {body}" if body else f"HTTP {error.response.status_code}"
    return str(error) or type(error).__name__


class HttpHealthScorer(_JsonService, BaseHealthScorer):
    """
    POST {"url": ...} -> {"score": 0-100, "issues": [...]}.
    Transport errors are retried with tenacity; scoring is read-only.
    """

    def __init__(self, endpoint: Optional[str], *, api_token: Optional[str] = None, timeout: float = 20.0, **kwargs):
        super().__init__(endpoint, api_token=api_token, timeout=timeout, **kwargs)

    async def score(self, url: str) -> HealthAnalysis:
        try:
            data = await self._fetch(url)
            return HealthAnalysis.model_validate({**data, "url": url})
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise ScoringError(f"Health scoring failed: {_describe(e)}", url=url) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _fetch(self, url: str) -> Dict[str, Any]:
        return await self._post_json({"url": url})


class HttpContentPipeline(_JsonService, BaseContentPipeline):
    """POST {"keyword", "options"} -> PipelineResult (camelCase accepted)."""

    async def generate(self, keyword: str, options: GenerationOptions) -> PipelineResult:
        payload = {"keyword": keyword, "options": options.model_dump(mode="json")}
        try:
            data = await self._post_json(payload)
            return PipelineResult.model_validate(data)
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise GenerationError(f"Content pipeline failed: {_describe(e)}", keyword=keyword) from e


class HttpPublisher(_JsonService, BasePublisher):
    """POST the article with the page's original slug -> {"publishedUrl" | "link"}."""

    async def publish(self, item: QueueItem, content: PipelineResult, *, status: str) -> PublishResult:
        payload = {
            "title": content.title,
            "content": content.content,
            "status": status,
            "seoTitle": content.seo_title,
            "metaDescription": content.meta_description,
            "slug": slug_from_url(item.url),
            "sourceUrl": item.url,
        }
        try:
            data = await self._post_json(payload)
        except (httpx.HTTPError, ValueError) as e:
            raise PublishError(f"Publish failed: {_describe(e)}", url=item.url) from e

        published_url = data.get("publishedUrl") or data.get("published_url") or data.get("link")
        if not published_url:
            raise PublishError("Publish response did not include the published URL", url=item.url)
        logger.info("published %s -> %s", item.url, published_url)
        return PublishResult(published_url=str(published_url))
