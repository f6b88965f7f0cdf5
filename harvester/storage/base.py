"""
Persistence interface for job records.
"""
from abc import ABC, abstractmethod
from datetime import datetime

from harvester.models.domain import JobRecord


class JobStore(ABC):
    """
    Abstract store for job records.

    Stores do not handle partial batch failure; callers decide how to
    recover when save_many raises.
    """

    @abstractmethod
    async def save_one(self, job: JobRecord) -> None:
        pass

    @abstractmethod
    async def save_many(self, jobs: list[JobRecord]) -> None:
        pass

    async def close(self) -> None:
        pass

    @staticmethod
    def stamp(jobs: list[JobRecord]) -> list[JobRecord]:
        """Set scraped_at on records that lack it."""
        now = datetime.utcnow()
        return [
            job if job.scraped_at is not None else job.model_copy(update={"scraped_at": now})
            for job in jobs
        ]
