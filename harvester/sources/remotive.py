"""
Remotive adapter for fetching remote job listings.
Remotive API docs: https://remotive.com/api/remote-jobs
"""
from datetime import datetime
from typing import Any, Optional

import httpx
import structlog

from harvester.exceptions import SourceFetchError
from harvester.models.domain import JobRecord, JobType
from harvester.sources.base import JobSourceAdapter

logger = structlog.get_logger(__name__)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)

# Ordered: first matching keyword wins
TITLE_CATEGORIES = [
    (("frontend", "react", "vue", "angular"), "Frontend Development"),
    (("backend", "golang", "go", "python"), "Backend Development"),
    (("fullstack", "full-stack", "full stack"), "Full Stack Development"),
    (("devops", "sre"), "DevOps"),
    (("data", "analyst"), "Data Science"),
    (("mobile", "ios", "android"), "Mobile Development"),
    (("design", "ux", "ui"), "Design"),
]


class RemotiveAdapter(JobSourceAdapter):
    """Adapter for the Remotive remote-jobs API."""

    BASE_URL = "https://remotive.com/api/remote-jobs"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        categories: Optional[list[str]] = None,
    ):
        super().__init__(client=client, timeout=timeout)
        self.categories = list(categories or [])

    @property
    def name(self) -> str:
        return "Remotive"

    @property
    def base_url(self) -> str:
        return self.BASE_URL

    @property
    def rate_limit_per_minute(self) -> int:
        return 100

    @property
    def supports_search(self) -> bool:
        return True

    async def fetch_jobs(self) -> list[JobRecord]:
        """Fetch all listings, or only the configured categories."""
        if not self.categories:
            return await self._fetch(None)

        jobs = []
        for category in self.categories:
            jobs.extend(await self.fetch_jobs_by_category(category))
        return jobs

    async def fetch_jobs_by_category(self, category: str) -> list[JobRecord]:
        return await self._fetch(category.lower())

    async def _fetch(self, category: Optional[str]) -> list[JobRecord]:
        params = {"category": category} if category else None
        context = f" for category {category}" if category else ""

        try:
            payload = await self._get_json(self.BASE_URL, params=params)
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(
                self.name, f"API returned status {e.response.status_code}{context}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceFetchError(self.name, f"request failed{context}: {e}") from e
        except ValueError as e:
            raise SourceFetchError(self.name, f"failed to parse response: {e}") from e

        if not isinstance(payload, dict):
            raise SourceFetchError(self.name, "unexpected response shape")

        return [self._parse_job(item) for item in payload.get("jobs", [])]

    def _parse_job(self, item: dict[str, Any]) -> JobRecord:
        title = item.get("title") or ""

        return JobRecord(
            title=title,
            company=item.get("company_name"),
            location=item.get("candidate_required_location"),
            url=item.get("url") or "",
            description=item.get("description"),
            salary=item.get("salary"),
            posted_date=self.parse_date(item.get("publication_date")),
            source=self.name,
            job_category=self.get_job_category(item.get("category") or "", title),
            job_type=self.get_job_type(item.get("job_type") or ""),
        )

    @staticmethod
    def parse_date(value: Optional[str]) -> Optional[datetime]:
        """Parse the publication date; unparseable dates fall back to now."""
        if not value:
            return None

        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue

        logger.debug("Unparseable publication date", value=value)
        return datetime.utcnow()

    @staticmethod
    def get_job_category(category: str, title: str) -> str:
        if category:
            return " ".join(w.capitalize() for w in category.replace("-", " ").split())

        title = title.lower()
        for keywords, label in TITLE_CATEGORIES:
            if any(k in title for k in keywords):
                return label
        return "Technology"

    @staticmethod
    def get_job_type(job_type: str) -> str:
        lowered = job_type.lower()

        if "full_time" in lowered or "full-time" in lowered:
            return JobType.FULL_TIME.value
        if "part_time" in lowered or "part-time" in lowered:
            return JobType.PART_TIME.value
        if "contract" in lowered:
            return JobType.CONTRACT.value
        if "freelance" in lowered:
            return JobType.FREELANCE.value

        return JobType.FULL_TIME.value
