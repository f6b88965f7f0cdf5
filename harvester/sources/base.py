"""
Base interface for job sources.
All sources (RemoteOK, Remotive, etc.) implement this interface.
"""
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from harvester.models.domain import JobRecord


class JobSourceAdapter(ABC):
    """Abstract base class for job source adapters."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name, used as the registry key."""
        pass

    @property
    @abstractmethod
    def base_url(self) -> str:
        pass

    @property
    @abstractmethod
    def rate_limit_per_minute(self) -> int:
        """Declared requests-per-minute ceiling."""
        pass

    @property
    def supports_search(self) -> bool:
        return False

    @abstractmethod
    async def fetch_jobs(self) -> list[JobRecord]:
        """
        Fetch and normalize current listings.

        Returns:
            List of JobRecord objects

        Raises:
            SourceFetchError: on network or parse failure
        """
        pass

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": "job-harvester/0.1"},
            )
        return self._client

    async def _get_json(self, url: str, params: Optional[dict] = None):
        response = await self.client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def aclose(self):
        """Close the HTTP client if this adapter created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
