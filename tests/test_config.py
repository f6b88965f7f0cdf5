"""
Tests for settings loading and validation.
"""

import pytest
from pydantic import ValidationError

from harvester.config import RemoteOKSettings, RemotiveSettings, Settings
from harvester.exceptions import ConfigurationError


class TestSettings:
    """Tests for the main settings object."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.max_concurrent_sources == 5
        assert settings.batch_size == 50
        assert settings.scraping_interval_minutes == 15
        assert settings.metrics_interval_minutes == 1
        assert settings.max_retries == 3
        assert settings.retry_initial_delay == 1.0
        assert settings.retry_max_delay == 30.0
        assert settings.retry_backoff_factor == 2.0
        assert settings.storage_backend == "sql"
        assert not settings.report_near_duplicates

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BATCH_SIZE", "10")
        monkeypatch.setenv("MAX_RETRIES", "0")
        monkeypatch.setenv("REMOTIVE_ENABLED", "false")

        settings = Settings(_env_file=None)

        assert settings.batch_size == 10
        assert settings.max_retries == 0
        assert not settings.remotive.enabled

    @pytest.mark.parametrize(
        "field, value",
        [
            ("max_concurrent_sources", 0),
            ("batch_size", -1),
            ("metrics_interval_minutes", 0),
            ("retry_initial_delay", 0),
            ("max_retries", -1),
            ("similarity_threshold", 1.5),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_runtime_requires_a_source(self):
        settings = Settings(
            _env_file=None,
            remoteok=RemoteOKSettings(enabled=False),
            remotive=RemotiveSettings(enabled=False),
        )

        with pytest.raises(ConfigurationError):
            settings.validate_runtime()

    def test_runtime_requires_supabase_credentials(self):
        settings = Settings(_env_file=None, storage_backend="supabase", supabase_url="https://x.supabase.co")

        with pytest.raises(ConfigurationError):
            settings.validate_runtime()

        Settings(
            _env_file=None,
            storage_backend="supabase",
            supabase_url="https://x.supabase.co",
            supabase_key="key",
        ).validate_runtime()

    def test_redacted(self):
        settings = Settings(_env_file=None, supabase_key="secret")

        assert settings.redacted()["supabase_key"] == "***"
        assert settings.supabase_key == "secret"


class TestSourceSettings:
    """Tests for per-source settings."""

    def test_source_defaults(self):
        remoteok = RemoteOKSettings()
        remotive = RemotiveSettings()

        assert remoteok.rate_limit == 60
        assert "golang" in remoteok.search_terms
        assert remotive.rate_limit == 100
        assert remotive.search_terms == []

    def test_rate_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            RemoteOKSettings(rate_limit=0)

    def test_to_source_config(self):
        config = RemotiveSettings(enabled=False, rate_limit=30, search_terms=["devops"]).to_source_config()

        assert not config.enabled
        assert config.rate_limit == 30
        assert config.search_terms == ["devops"]
