"""
Custom Exceptions
Error taxonomy for the refresh scheduler.
"""


class AutopilotError(Exception):
    """Base class for every scheduler error."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(AutopilotError):
    """Fatal, non-retryable configuration problem raised from start()."""
    pass


class EngineStartupError(AutopilotError):
    """Session initialization failed after preconditions passed."""
    pass


class PipelineError(AutopilotError):
    """Transient failure of an external pipeline stage."""

    def __init__(self, message: str, stage: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.stage = stage


class GenerationError(PipelineError):
    """Content generation failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, stage="generating", **kwargs)


class PublishError(PipelineError):
    """Publishing generated content failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, stage="publishing", **kwargs)


class ScoringError(AutopilotError):
    """Health scoring of a single URL failed."""

    def __init__(self, message: str, url: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.url = url


class StorageError(AutopilotError):
    """Durable snapshot could not be read or written."""
    pass
