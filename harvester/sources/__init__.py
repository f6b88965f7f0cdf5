"""
Job source adapters for the job harvester.
"""
from harvester.config import Settings
from harvester.models.domain import SourceConfig
from harvester.sources.base import JobSourceAdapter
from harvester.sources.remoteok import RemoteOKAdapter
from harvester.sources.remotive import RemotiveAdapter


def create_sources(settings: Settings) -> list[tuple[JobSourceAdapter, SourceConfig]]:
    """Build the built-in adapters paired with their configured SourceConfig."""
    return [
        (
            RemoteOKAdapter(timeout=settings.request_timeout),
            settings.remoteok.to_source_config(),
        ),
        (
            RemotiveAdapter(timeout=settings.request_timeout, categories=settings.remotive.search_terms),
            settings.remotive.to_source_config(),
        ),
    ]


__all__ = [
    "JobSourceAdapter",
    "RemoteOKAdapter",
    "RemotiveAdapter",
    "create_sources",
]
