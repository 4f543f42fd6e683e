"""
Adapters Module
Collaborator interfaces and their HTTP implementations.
"""
from .base import (
    BaseAdapter,
    BaseHealthScorer,
    BaseContentPipeline,
    BasePublisher,
    BaseUrlSource,
    StaticUrlSource,
)
from .http import HttpHealthScorer, HttpContentPipeline, HttpPublisher

__all__ = [
    "BaseAdapter",
    "BaseHealthScorer",
    "BaseContentPipeline",
    "BasePublisher",
    "BaseUrlSource",
    "StaticUrlSource",
    "HttpHealthScorer",
    "HttpContentPipeline",
    "HttpPublisher",
]
