"""
Configuration Management Module
Environment-driven settings for the scheduler and its collaborators.
"""
from .settings import (
    EngineSettings,
    LLMSettings,
    ResilienceSettings,
    ServiceSettings,
    Settings,
    StorageSettings,
    get_settings,
    get_engine_settings,
    get_resilience_settings,
    get_llm_settings,
    get_service_settings,
    get_storage_settings,
)

__all__ = [
    "EngineSettings",
    "LLMSettings",
    "ResilienceSettings",
    "ServiceSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "get_engine_settings",
    "get_resilience_settings",
    "get_llm_settings",
    "get_service_settings",
    "get_storage_settings",
]
