"""
Collaborator Interfaces
Abstract base classes for every external operation the engine depends on.
"""
from abc import ABC, abstractmethod
from typing import List

from core import HealthAnalysis, GenerationOptions, PipelineResult, PublishResult, QueueItem


class BaseAdapter(ABC):
    """
    Shared lifecycle for collaborator adapters.
    Subclasses that hold network resources override ``close``.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Release resources."""
        return None


class BaseHealthScorer(BaseAdapter):
    """Scores how badly a page needs a refresh (lower is worse)."""

    @abstractmethod
    async def score(self, url: str) -> HealthAnalysis:
        """
        Analyze one page.

        Args:
            url: page URL

        Returns:
            HealthAnalysis with a 0-100 score and the detected issues

        Raises:
            ScoringError: the page could not be scored; it is skipped this cycle
        """
        pass


class BaseContentPipeline(BaseAdapter):
    """Produces refreshed content for a topic keyword."""

    @abstractmethod
    async def generate(self, keyword: str, options: GenerationOptions) -> PipelineResult:
        """
        Generate an article.

        Args:
            keyword: topic derived from the page URL
            options: title, source URL and generation hints

        Returns:
            PipelineResult; only ``quality_score`` influences scheduling

        Raises:
            GenerationError: transient failure, fed to the retry policy
        """
        pass


class BasePublisher(BaseAdapter):
    """Pushes generated content back to the CMS."""

    @abstractmethod
    async def publish(self, item: QueueItem, content: PipelineResult, *, status: str) -> PublishResult:
        """
        Publish ``content`` for ``item``, keeping the page's original slug.

        Args:
            item: queue item being refreshed
            content: pipeline output that passed the quality gate
            status: CMS post status ("draft" or "publish")

        Raises:
            PublishError: transient failure, fed to the retry policy
        """
        pass


class BaseUrlSource(BaseAdapter):
    """Supplies candidate URLs at every scan."""

    @abstractmethod
    async def list_urls(self) -> List[str]:
        pass


class StaticUrlSource(BaseUrlSource):
    """Fixed candidate list."""

    def __init__(self, urls: List[str]):
        self._urls = list(urls)

    async def list_urls(self) -> List[str]:
        return list(self._urls)
