"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from harvester.exceptions import ConfigurationError
from harvester.models.domain import SourceConfig


class SourceSettings(BaseSettings):
    """Settings for a single job source."""

    enabled: bool = True
    rate_limit: int = Field(default=60, description="Requests per minute")
    search_terms: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    job_types: list[str] = Field(default_factory=list)

    @field_validator("rate_limit")
    @classmethod
    def validate_rate_limit(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Rate limit must be positive")
        return v

    def to_source_config(self) -> SourceConfig:
        return SourceConfig(
            enabled=self.enabled,
            rate_limit=self.rate_limit,
            search_terms=list(self.search_terms),
            locations=list(self.locations),
            job_types=list(self.job_types),
        )


class RemoteOKSettings(SourceSettings):
    model_config = SettingsConfigDict(env_prefix="REMOTEOK_")

    rate_limit: int = 60
    search_terms: list[str] = Field(
        default_factory=lambda: ["golang", "go", "backend", "api", "microservices"],
    )
    locations: list[str] = Field(default_factory=lambda: ["remote", "worldwide"])
    job_types: list[str] = Field(default_factory=lambda: ["full-time", "contract"])


class RemotiveSettings(SourceSettings):
    model_config = SettingsConfigDict(env_prefix="REMOTIVE_")

    rate_limit: int = 100
    search_terms: list[str] = Field(default_factory=list)  # Remotive categories, empty = all
    locations: list[str] = Field(default_factory=lambda: ["remote"])
    job_types: list[str] = Field(default_factory=lambda: ["full_time", "contract"])


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Job Harvester"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"

    # Orchestration
    max_concurrent_sources: int = Field(default=5, description="Simultaneous source tasks")
    batch_size: int = Field(default=50, description="Records per storage batch")
    request_timeout: float = Field(default=30.0, description="HTTP timeout per request (seconds)")
    scraping_interval_minutes: int = Field(
        default=15,
        description="Interval between scheduled ingestion cycles",
    )
    metrics_interval_minutes: int = Field(
        default=1,
        description="Interval between periodic metrics reports",
    )

    # Retry policy
    max_retries: int = Field(default=3, description="Extra attempts after the first failure")
    retry_initial_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=30.0)
    retry_backoff_factor: float = Field(default=2.0)

    # Near-duplicate reporting
    report_near_duplicates: bool = Field(default=False)
    similarity_threshold: float = Field(default=0.8)

    # Storage
    storage_backend: Literal["sql", "supabase"] = "sql"
    database_url: str = Field(
        default="sqlite+aiosqlite:///./jobs.db",
        description="Async database URL (SQLAlchemy format)",
    )
    supabase_url: str | None = Field(default=None)
    supabase_key: str | None = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    # Sources (nested)
    remoteok: RemoteOKSettings = Field(default_factory=RemoteOKSettings)
    remotive: RemotiveSettings = Field(default_factory=RemotiveSettings)

    @field_validator(
        "max_concurrent_sources", "batch_size", "scraping_interval_minutes", "metrics_interval_minutes"
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("request_timeout", "retry_initial_delay", "retry_max_delay", "retry_backoff_factor")
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Retry attempts cannot be negative")
        return v

    @field_validator("similarity_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Similarity threshold must be between 0 and 1")
        return v

    def validate_runtime(self) -> None:
        """Checks that need more than one field."""
        if not (self.remoteok.enabled or self.remotive.enabled):
            raise ConfigurationError("at least one job source must be enabled")

        if self.storage_backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ConfigurationError("supabase URL and key are required for the supabase backend")

    def redacted(self) -> dict:
        """Settings as a dict with secrets masked."""
        data = self.model_dump()
        if data.get("supabase_key"):
            data["supabase_key"] = "***"
        return data


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
