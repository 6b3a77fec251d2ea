# tests/unit/config/test_settings.py - v2
"""Tests for config/settings.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from codexplain.config.settings import ConfigurationError, Settings, load_settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestDefaults:
    def test_defaults(self):
        s = _settings()
        assert s.ai_mode == "hybrid"
        assert s.privacy_mode is False
        assert s.router_failure_threshold == 3
        assert s.router_health_threshold == 0.2
        assert s.router_max_attempts == 3
        assert s.orchestrator_stage_retries == 1
        assert s.cache_backend == "json"
        assert s.qa_history_window == 6

    def test_cloud_providers_list(self):
        s = _settings(cloud_providers="openai, anthropic,,")
        assert s.cloud_providers_list == ["openai", "anthropic"]

    def test_model_for(self):
        s = _settings(ollama_model="codellama")
        assert s.model_for("ollama") == "codellama"
        assert s.model_for("nope") == ""

    def test_log_rotation_accepts_sizes(self):
        assert _settings().log_rotation == 10 * 1024**2
        assert _settings(log_rotation="10MB").log_rotation == 10_000_000
        assert _settings(log_rotation="512KiB").log_rotation == 512 * 1024

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("AI_MODE", "local")
        monkeypatch.setenv("CACHE_MAX_BYTES", "1024")
        s = _settings()
        assert s.ai_mode == "local"
        assert s.cache_max_bytes == 1024


class TestValidation:
    def test_unparseable_log_rotation(self):
        with pytest.raises(ValidationError):
            _settings(log_rotation="ten megabytes")

    def test_cloud_with_privacy_rejected(self):
        with pytest.raises(ConfigurationError, match="PRIVACY_MODE"):
            _settings(ai_mode="cloud", privacy_mode=True)

    def test_redis_requires_url(self):
        with pytest.raises(ConfigurationError, match="CACHE_REDIS_URL"):
            _settings(cache_backend="redis")

    def test_unknown_cloud_provider(self):
        with pytest.raises(ConfigurationError, match="unknown providers"):
            _settings(cloud_providers="anthropic,acme")

    def test_zero_failure_threshold(self):
        with pytest.raises(ConfigurationError, match="ROUTER_FAILURE_THRESHOLD"):
            _settings(router_failure_threshold=0)

    def test_negative_stage_retries(self):
        with pytest.raises(ConfigurationError, match="ORCHESTRATOR_STAGE_RETRIES"):
            _settings(orchestrator_stage_retries=-1)

    def test_cache_budget_must_be_positive(self):
        with pytest.raises(ValidationError):
            _settings(cache_max_bytes=0)

    def test_several_errors_reported_together(self):
        with pytest.raises(ConfigurationError) as exc:
            _settings(ai_mode="cloud", privacy_mode=True, router_max_attempts=0)
        assert "PRIVACY_MODE" in str(exc.value)
        assert "ROUTER_MAX_ATTEMPTS" in str(exc.value)


class TestLoadSettings:
    def test_overrides(self):
        s = load_settings(_env_file=None, privacy_mode=True, ai_mode="local")
        assert s.privacy_mode is True
        assert s.ai_mode == "local"
