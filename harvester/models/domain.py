"""
Domain models for the job harvester.
These are the core entities, independent of database/API representation.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

# Placeholder for optional text columns, so batch payloads always carry the same keys
UNKNOWN = "unknown"
DEFAULT_LOCATION = "Remote"


# =============================================================================
# Enums
# =============================================================================

class JobType(str, Enum):
    """Standardized employment types."""
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    FREELANCE = "freelance"
    INTERNSHIP = "internship"


class CycleState(str, Enum):
    """Stages of one ingestion cycle."""
    IDLE = "idle"
    FETCHING = "fetching"
    COLLECTING = "collecting"
    DEDUPLICATING = "deduplicating"
    PERSISTING = "persisting"


# =============================================================================
# Job records
# =============================================================================

class JobRecord(BaseModel):
    """A normalized job posting produced by a source adapter."""

    title: str
    company: str
    location: str = DEFAULT_LOCATION
    url: str = ""
    description: str = UNKNOWN
    salary: str = UNKNOWN
    posted_date: Optional[datetime] = None
    source: str
    job_category: str = UNKNOWN
    job_type: str = JobType.FULL_TIME.value
    scraped_at: Optional[datetime] = None  # Stamped by the store when unset

    @field_validator("title", "company", "description", "salary", "job_category", mode="before")
    @classmethod
    def fill_unknown(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNKNOWN
        return v

    @field_validator("location", mode="before")
    @classmethod
    def fill_location(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_LOCATION
        return v

    @field_validator("job_type", mode="before")
    @classmethod
    def fill_job_type(cls, v: Any) -> Any:
        if isinstance(v, JobType):
            return v.value
        if v is None or (isinstance(v, str) and not v.strip()):
            return JobType.FULL_TIME.value
        return v

    def to_row(self) -> dict[str, Any]:
        """Persistence payload with a fixed key set."""
        return {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "url": self.url,
            "description": self.description,
            "salary": self.salary,
            "posted_date": self.posted_date.isoformat() if self.posted_date else None,
            "source": self.source,
            "job_category": self.job_category,
            "job_type": self.job_type,
            "scraped_at": self.scraped_at.isoformat() if self.scraped_at else None,
        }


# =============================================================================
# Source configuration
# =============================================================================

@dataclass
class SourceConfig:
    """Per-source enablement and request filters."""
    enabled: bool = True
    rate_limit: int = 60  # requests per minute
    search_terms: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    job_types: list[str] = field(default_factory=list)
    custom: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Cycle results
# =============================================================================

@dataclass
class CycleResult:
    """Outcome of fetching a single source."""
    source: str
    jobs: list[JobRecord] = field(default_factory=list)
    error: Optional[BaseException] = None
    duration: float = 0.0  # seconds

    @property
    def success(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        detail = f"jobs={len(self.jobs)}" if self.success else f"error={self.error}"
        return f"{status} {self.source}: {detail}, time={self.duration:.1f}s"


@dataclass
class JobSimilarity:
    """A near-duplicate candidate pair."""
    job_a: JobRecord
    job_b: JobRecord
    similarity: float


@dataclass
class CycleReport:
    """Aggregate outcome of one ingestion cycle."""
    results: list[CycleResult] = field(default_factory=list)
    jobs_scraped: int = 0
    unique_jobs: int = 0
    duplicates: int = 0
    errors: int = 0
    jobs_saved: int = 0
    near_duplicates: list[JobSimilarity] = field(default_factory=list)
    duration: float = 0.0

    @property
    def failed_sources(self) -> list[str]:
        return [r.source for r in self.results if not r.success]

    def __str__(self) -> str:
        return (
            f"scraped={self.jobs_scraped}, unique={self.unique_jobs}, "
            f"duplicates={self.duplicates}, saved={self.jobs_saved}, "
            f"errors={self.errors}, time={self.duration:.1f}s"
        )
