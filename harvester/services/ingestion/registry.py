"""
Catalog of registered job sources and their configuration.
"""

import threading
from typing import Optional

from harvester.models.domain import SourceConfig
from harvester.sources.base import JobSourceAdapter


class SourceRegistry:
    """Holds source adapters by name along with their SourceConfig."""

    def __init__(self):
        self._sources: dict[str, JobSourceAdapter] = {}
        self._configs: dict[str, SourceConfig] = {}
        self._lock = threading.Lock()

    def register(self, source: JobSourceAdapter, config: SourceConfig):
        """Register a source, replacing any previous entry with the same name."""
        with self._lock:
            self._sources[source.name] = source
            self._configs[source.name] = config

    def update_config(self, name: str, config: SourceConfig):
        with self._lock:
            if name not in self._sources:
                raise KeyError(f"unknown source: {name}")
            self._configs[name] = config

    def sources(self) -> dict[str, JobSourceAdapter]:
        with self._lock:
            return dict(self._sources)

    def enabled_sources(self) -> dict[str, JobSourceAdapter]:
        """Sources whose config has enabled=True."""
        with self._lock:
            return {
                name: source
                for name, source in self._sources.items()
                if name in self._configs and self._configs[name].enabled
            }

    def config_of(self, name: str) -> Optional[SourceConfig]:
        with self._lock:
            return self._configs.get(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)
