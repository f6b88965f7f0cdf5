"""
SQLAlchemy job store.
Uses SQLAlchemy 2.0 async patterns.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, Text, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from harvester.exceptions import PersistenceError
from harvester.models.domain import JobRecord
from harvester.storage.base import JobStore


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Jobs
# =============================================================================

class DBJob(Base):
    """Stored job posting."""
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    company: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(Text)
    url: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    salary: Mapped[Optional[str]] = mapped_column(Text)
    posted_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    source: Mapped[str] = mapped_column(Text, nullable=False)
    job_category: Mapped[Optional[str]] = mapped_column(Text)
    job_type: Mapped[Optional[str]] = mapped_column(Text)
    scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=func.now()
    )

    # Indexes
    __table_args__ = (
        Index("idx_jobs_source", "source"),
        Index("idx_jobs_category", "job_category"),
        Index("idx_jobs_job_type", "job_type"),
        Index("idx_jobs_posted_date", "posted_date"),
        Index("idx_jobs_scraped_at", "scraped_at"),
        Index("idx_jobs_company", "company"),
        Index("idx_jobs_location", "location"),
        Index(
            "idx_jobs_unique",
            "title", "company", "url",
            unique=True,
            sqlite_where=text("url IS NOT NULL"),
            postgresql_where=text("url IS NOT NULL"),
        ),
    )

    @classmethod
    def from_record(cls, job: JobRecord) -> "DBJob":
        return cls(
            title=job.title,
            company=job.company,
            location=job.location,
            url=job.url or None,
            description=job.description,
            salary=job.salary,
            posted_date=job.posted_date,
            source=job.source,
            job_category=job.job_category,
            job_type=job.job_type,
            scraped_at=job.scraped_at,
        )

    def to_record(self) -> JobRecord:
        return JobRecord(
            title=self.title,
            company=self.company,
            location=self.location,
            url=self.url or "",
            description=self.description,
            salary=self.salary,
            posted_date=self.posted_date,
            source=self.source,
            job_category=self.job_category,
            job_type=self.job_type,
            scraped_at=self.scraped_at,
        )


# =============================================================================
# Store
# =============================================================================

class SQLJobStore(JobStore):
    """Job store backed by an async SQLAlchemy engine."""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(
            database_url,
            echo=False,  # Set to True for SQL logging
            future=True,
        )
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def save_one(self, job: JobRecord) -> None:
        await self.save_many([job])

    async def save_many(self, jobs: list[JobRecord]) -> None:
        """Insert all jobs in one transaction; any failure rolls back the batch."""
        if not jobs:
            return

        rows = [DBJob.from_record(job) for job in self.stamp(jobs)]
        try:
            async with self.async_session() as session:
                async with session.begin():
                    session.add_all(rows)
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to save {len(rows)} jobs: {e}") from e

    async def get_jobs(self) -> list[JobRecord]:
        async with self.async_session() as session:
            result = await session.execute(select(DBJob).order_by(DBJob.id))
            return [row.to_record() for row in result.scalars().all()]

    async def close(self) -> None:
        await self.engine.dispose()
