# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for AI routing, retry budget, cache, output
and logging settings. Cross-field rules are checked after load.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import ByteSize, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_CLOUD_PROVIDERS = ("anthropic", "openai", "google")


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === AI ROUTING ===
    ai_mode: Literal["cloud", "local", "hybrid"] = "hybrid"
    privacy_mode: bool = False
    cloud_providers: str = "anthropic"
    local_provider: str = "ollama"

    # Provider models
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o"
    google_model: str = "gemini-1.5-pro"
    ollama_model: str = "llama3"

    # Provider credentials / endpoints
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    llm_temperature: float = 0.3
    llm_max_tokens: int = 4096

    # === ROUTER HEALTH (circuit breaker) ===
    router_failure_threshold: int = 3
    router_cooldown_seconds: float = 60.0
    router_health_threshold: float = 0.2
    router_latency_reference_ms: int = 5000

    # === RETRY BUDGET ===
    # Attempts per router call, first attempt included.
    router_max_attempts: int = 3
    router_backoff_base_s: float = 1.0
    router_backoff_factor: float = 2.0
    # Extra attempts the orchestrator grants a mandatory stage.
    orchestrator_stage_retries: int = 1

    # === STAGE TIMEOUTS ===
    stage_timeout_seconds: float = 120.0
    synthesis_timeout_seconds: float = 300.0

    # === CACHE ===
    cache_enabled: bool = True
    cache_backend: Literal["memory", "json", "sqlite", "redis"] = "json"
    cache_root: Path = Path("~/.codexplain/cache")
    cache_redis_url: str = ""
    cache_max_bytes: int = 200 * 1024 * 1024

    # === OUTPUT ===
    output_root: Path = Path("~/.codexplain/output")
    content_base_url: str = ""

    # === Q&A ===
    qa_history_window: int = 6

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path = Path("~/.codexplain/logs/codexplain.log")
    log_rotation: ByteSize = ByteSize(10 * 1024**2)
    log_retention: int = Field(default=30, ge=0)

    # --- Validators ---

    @field_validator("cache_max_bytes")
    @classmethod
    def validate_cache_budget(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("cache_max_bytes must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.ai_mode == "cloud" and self.privacy_mode:
            errors.append("AI_MODE=cloud cannot be combined with PRIVACY_MODE")

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if self.router_failure_threshold < 1:
            errors.append("ROUTER_FAILURE_THRESHOLD must be >= 1")

        if self.router_max_attempts < 1:
            errors.append("ROUTER_MAX_ATTEMPTS must be >= 1")

        if self.orchestrator_stage_retries < 0:
            errors.append("ORCHESTRATOR_STAGE_RETRIES must be >= 0")

        unknown = [
            p for p in self.cloud_providers_list if p not in KNOWN_CLOUD_PROVIDERS
        ]
        if unknown:
            errors.append(f"CLOUD_PROVIDERS contains unknown providers: {unknown}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def cloud_providers_list(self) -> list[str]:
        """Parse comma-separated cloud providers (priority order)."""
        return [p.strip() for p in self.cloud_providers.split(",") if p.strip()]

    def model_for(self, provider: str) -> str:
        """Return the configured model name for a provider."""
        return getattr(self, f"{provider}_model", "")


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
