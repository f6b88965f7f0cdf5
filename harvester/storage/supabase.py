"""
Supabase job store.

Writes rows through the PostgREST endpoint Supabase exposes for each table.
"""
from typing import Optional

import httpx
import structlog

from harvester.exceptions import ConfigurationError, PersistenceError
from harvester.models.domain import JobRecord
from harvester.storage.base import JobStore

logger = structlog.get_logger(__name__)


class SupabaseJobStore(JobStore):
    """Job store backed by a Supabase `jobs` table."""

    TABLE = "jobs"

    def __init__(
        self,
        supabase_url: Optional[str],
        supabase_key: Optional[str],
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not supabase_url or not supabase_key:
            raise ConfigurationError("supabase URL and key must be provided")

        self.endpoint = f"{supabase_url.rstrip('/')}/rest/v1/{self.TABLE}"
        self._headers = {
            "apikey": supabase_key,
            "Authorization": f"Bearer {supabase_key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _insert(self, payload):
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise PersistenceError(f"supabase request failed: {e}") from e

        if response.status_code >= 300:
            raise PersistenceError(
                f"supabase insert returned {response.status_code}: {response.text[:200]}"
            )

        logger.debug(
            "Inserted rows",
            table=self.TABLE,
            count=len(payload) if isinstance(payload, list) else 1,
        )

    async def save_one(self, job: JobRecord) -> None:
        (stamped,) = self.stamp([job])
        await self._insert(stamped.to_row())

    async def save_many(self, jobs: list[JobRecord]) -> None:
        if not jobs:
            return
        await self._insert([job.to_row() for job in self.stamp(jobs)])

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
