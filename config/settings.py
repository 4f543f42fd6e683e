"""
Settings Configuration
Environment-driven configuration validated with Pydantic.
"""
from functools import lru_cache
from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core import EngineConfig


class EngineSettings(BaseSettings):
    """Default scheduler tunables (one run's EngineConfig)."""

    scan_interval_hours: float = Field(default=4, description="Hours between sitemap scans")
    max_per_day: int = Field(default=10, description="Items processed per local day")
    quality_threshold: int = Field(default=85, description="Minimum quality score to publish")
    auto_publish: bool = Field(default=False, description="Publish items that pass the quality gate")
    default_status: Literal["draft", "publish"] = Field(default="draft", description="Publish status")
    active_hours_start: int = Field(default=6, description="First active hour (0-23)")
    active_hours_end: int = Field(default=22, description="Hour the active window closes (0-23)")
    retry_attempts: int = Field(default=2, description="Retries per item before it is finalized")
    processing_interval_minutes: float = Field(default=30, description="Pause between processed items")
    enable_weekends: bool = Field(default=True, description="Process on Saturday and Sunday")
    min_health_score: int = Field(default=70, description="Pages scoring at or above this are left alone")

    timezone: str = Field(default="UTC", description="IANA zone for the active-hours clock")
    priority_only_mode: bool = Field(default=False, description="Only process priority URLs")

    model_config = SettingsConfigDict(env_prefix="ENGINE_")


class ResilienceSettings(BaseSettings):
    """Retry, circuit breaker, throttle and loop timing constants."""

    backoff_base_seconds: float = Field(default=5.0, description="Backoff for the first retry")
    backoff_max_seconds: float = Field(default=300.0, description="Backoff ceiling")
    backoff_jitter: float = Field(default=0.2, description="Relative jitter applied to backoff")

    circuit_breaker_threshold: int = Field(default=5, description="Consecutive failures that open the breaker")
    circuit_breaker_cooldown_seconds: float = Field(default=600.0, description="Open-breaker cooldown")

    throttle_min_seconds: float = Field(default=2.0, description="Lowest inter-item throttle delay")
    throttle_max_seconds: float = Field(default=10.0, description="Highest inter-item throttle delay")
    throttle_poor_quality: float = Field(default=70.0, description="Recent average below this widens the delay")
    throttle_good_quality: float = Field(default=85.0, description="Recent average above this narrows the delay")
    throttle_increase_factor: float = Field(default=1.5)
    throttle_decrease_factor: float = Field(default=0.9)
    throttle_quality_window: int = Field(default=20)
    throttle_latency_window: int = Field(default=10)

    scoring_concurrency: int = Field(default=3, description="Health scorer calls in flight")
    scoring_batch_size: int = Field(default=50, description="URLs scored per scan")

    pause_poll_seconds: float = Field(default=1.0)
    outside_hours_wait_seconds: float = Field(default=60.0)
    daily_limit_wait_seconds: float = Field(default=3600.0)
    idle_wait_seconds: float = Field(default=60.0)
    circuit_wait_seconds: float = Field(default=60.0)
    scoring_batch_pause_seconds: float = Field(default=0.5)

    model_config = SettingsConfigDict(env_prefix="RESILIENCE_")


class LLMSettings(BaseSettings):
    """Content generation credentials. At least one key must be set to start."""

    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API Key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API Key")
    openrouter_api_key: Optional[str] = Field(default=None, description="OpenRouter API Key")
    groq_api_key: Optional[str] = Field(default=None, description="Groq API Key")

    model_config = SettingsConfigDict(env_prefix="LLM_")

    def credentials(self) -> Dict[str, Optional[str]]:
        return {
            "gemini": self.gemini_api_key,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "openrouter": self.openrouter_api_key,
            "groq": self.groq_api_key,
        }


class ServiceSettings(BaseSettings):
    """HTTP endpoints of the external scorer, pipeline and publisher."""

    scorer_url: Optional[str] = Field(default=None, description="POST {url} -> {score, issues}")
    pipeline_url: Optional[str] = Field(default=None, description="POST {keyword, options} -> content")
    publisher_url: Optional[str] = Field(default=None, description="POST {item, content} -> {publishedUrl}")
    api_token: Optional[str] = Field(default=None, description="Bearer token for all three services")
    request_timeout: float = Field(default=120.0, description="Per-request timeout (seconds)")
    scorer_timeout: float = Field(default=20.0, description="Health scoring timeout (seconds)")

    model_config = SettingsConfigDict(env_prefix="SERVICES_")


class StorageSettings(BaseSettings):
    """Durable queue snapshot location."""

    queue_path: str = Field(default="./data/queue.json", description="Queue snapshot file")

    model_config = SettingsConfigDict(env_prefix="STORAGE_")


class Settings(BaseSettings):
    """Top-level settings aggregating every group."""

    engine: EngineSettings = Field(default_factory=EngineSettings)
    resilience: ResilienceSettings = Field(default_factory=ResilienceSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    services: ServiceSettings = Field(default_factory=ServiceSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings, reading the given .env file (default config/.env) first."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            engine=EngineSettings(),
            resilience=ResilienceSettings(),
            llm=LLMSettings(),
            services=ServiceSettings(),
            storage=StorageSettings(),
        )

    def engine_config(self) -> EngineConfig:
        """Validated EngineConfig built from the engine group."""
        data = self.engine.model_dump(exclude={"timezone", "priority_only_mode"})
        return EngineConfig.model_validate(data)

    def timings(self):
        """Main loop waits from the resilience group."""
        from orchestrator.timer import EngineTimings
        return EngineTimings.from_settings(self.resilience)


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings singleton."""
    return Settings.load_from_env_file()


def get_engine_settings() -> EngineSettings:
    return get_settings().engine


def get_resilience_settings() -> ResilienceSettings:
    return get_settings().resilience


def get_llm_settings() -> LLMSettings:
    return get_settings().llm


def get_service_settings() -> ServiceSettings:
    return get_settings().services


def get_storage_settings() -> StorageSettings:
    return get_settings().storage
