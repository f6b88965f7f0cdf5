"""
RemoteOK adapter for fetching remote job listings.
RemoteOK API: https://remoteok.com/api
"""
from datetime import datetime
from typing import Any, Optional

import httpx

from harvester.exceptions import SourceFetchError
from harvester.models.domain import JobRecord, JobType
from harvester.sources.base import JobSourceAdapter

# Explicit category tags, checked first
CATEGORY_TAGS = {
    "backend": "Backend Development",
    "frontend": "Frontend Development",
    "fullstack": "Full Stack Development",
    "full-stack": "Full Stack Development",
    "devops": "DevOps",
    "data": "Data Science",
    "ml": "Machine Learning",
    "ai": "Artificial Intelligence",
    "mobile": "Mobile Development",
    "ios": "Mobile Development",
    "android": "Mobile Development",
    "design": "Design",
    "marketing": "Marketing",
    "sales": "Sales",
}

# Technology tags, used when no category tag is present
TECH_TAGS = {
    "golang": "Backend Development",
    "go": "Backend Development",
    "python": "Backend Development",
    "java": "Backend Development",
    "javascript": "Frontend Development",
    "react": "Frontend Development",
    "vue": "Frontend Development",
    "angular": "Frontend Development",
}

JOB_TYPE_TAGS = {
    "full-time": JobType.FULL_TIME,
    "fulltime": JobType.FULL_TIME,
    "permanent": JobType.FULL_TIME,
    "part-time": JobType.PART_TIME,
    "parttime": JobType.PART_TIME,
    "contract": JobType.CONTRACT,
    "contractor": JobType.CONTRACT,
    "freelance": JobType.CONTRACT,
    "internship": JobType.INTERNSHIP,
    "intern": JobType.INTERNSHIP,
}


class RemoteOKAdapter(JobSourceAdapter):
    """Adapter for the RemoteOK public JSON feed."""

    BASE_URL = "https://remoteok.com/api"

    @property
    def name(self) -> str:
        return "RemoteOK"

    @property
    def base_url(self) -> str:
        return self.BASE_URL

    @property
    def rate_limit_per_minute(self) -> int:
        return 60

    @property
    def supports_search(self) -> bool:
        return True

    async def fetch_jobs(self) -> list[JobRecord]:
        try:
            payload = await self._get_json(self.BASE_URL)
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(self.name, f"API returned status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SourceFetchError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise SourceFetchError(self.name, f"failed to parse response: {e}") from e

        if not isinstance(payload, list):
            raise SourceFetchError(self.name, "unexpected response shape")

        return self._parse_jobs(payload)

    def _parse_jobs(self, items: list[dict[str, Any]]) -> list[JobRecord]:
        jobs = []
        for item in items:
            # The first element is a legal notice without an id
            if not item.get("id"):
                continue
            jobs.append(self._parse_job(item))
        return jobs

    def _parse_job(self, item: dict[str, Any]) -> JobRecord:
        tags = item.get("tags") or []

        url = item.get("url") or ""
        if not url:
            url = f"https://remoteok.com/remote-jobs/{item.get('slug', '')}"

        return JobRecord(
            title=item.get("position"),
            company=item.get("company"),
            location=item.get("location"),
            url=url,
            description=item.get("description"),
            salary=None,  # Not provided by RemoteOK
            posted_date=self._parse_date(item.get("date")),
            source=self.name,
            job_category=self.get_job_category(tags),
            job_type=self.get_job_type(tags),
        )

    @staticmethod
    def _parse_date(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    @staticmethod
    def get_job_category(tags: list[str]) -> str:
        lowered = [t.lower() for t in tags]

        for tag in lowered:
            if tag in CATEGORY_TAGS:
                return CATEGORY_TAGS[tag]

        for tag in lowered:
            if tag in TECH_TAGS:
                return TECH_TAGS[tag]

        return "Technology"

    @staticmethod
    def get_job_type(tags: list[str]) -> str:
        for tag in tags:
            job_type = JOB_TYPE_TAGS.get(tag.lower())
            if job_type is not None:
                return job_type.value
        return JobType.FULL_TIME.value
