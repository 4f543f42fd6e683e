"""
Utils Module
Logging and error types shared by every package.
"""
from .logger import setup_logger, get_logger, get_engine_logger
from .exceptions import (
    AutopilotError,
    ConfigurationError,
    EngineStartupError,
    PipelineError,
    GenerationError,
    PublishError,
    ScoringError,
    StorageError,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "get_engine_logger",
    "AutopilotError",
    "ConfigurationError",
    "EngineStartupError",
    "PipelineError",
    "GenerationError",
    "PublishError",
    "ScoringError",
    "StorageError",
]
