"""
Thread-safe ingestion metrics.
"""

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import structlog


@dataclass
class SourceMetrics:
    """Counters and timing for one source."""
    jobs_scraped: int = 0
    jobs_saved: int = 0
    duplicates: int = 0
    errors: int = 0
    response_time: float = 0.0  # seconds, last run
    last_scraped: Optional[datetime] = None


@dataclass
class MetricsSnapshot:
    """Point-in-time copy of the aggregator state."""
    jobs_scraped: int = 0
    jobs_saved: int = 0
    duplicates: int = 0
    errors: int = 0
    scraping_duration: float = 0.0  # seconds, last cycle
    sources: dict[str, SourceMetrics] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "jobs_scraped": self.jobs_scraped,
            "jobs_saved": self.jobs_saved,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "scraping_duration": round(self.scraping_duration, 3),
            "sources": {
                name: {
                    "jobs_scraped": m.jobs_scraped,
                    "jobs_saved": m.jobs_saved,
                    "duplicates": m.duplicates,
                    "errors": m.errors,
                    "response_time": round(m.response_time, 3),
                    "last_scraped": m.last_scraped.isoformat() if m.last_scraped else None,
                }
                for name, m in self.sources.items()
            },
        }


class IngestionMetrics:
    """
    Cumulative counters shared by all fan-out tasks.

    Every update and read takes the same lock; reads hand back a deep copy.
    """

    def __init__(self):
        self._state = MetricsSnapshot()
        self._lock = threading.Lock()

    def record_source_result(
        self,
        source: str,
        scraped: int,
        duplicates: int,
        response_time: float,
    ):
        """A source finished successfully."""
        with self._lock:
            self._state.jobs_scraped += scraped
            self._state.duplicates += duplicates

            metrics = self._state.sources.setdefault(source, SourceMetrics())
            metrics.jobs_scraped += scraped
            metrics.duplicates += duplicates
            metrics.response_time = response_time
            metrics.last_scraped = datetime.utcnow()

    def record_source_error(self, source: str, response_time: float):
        """A source ended with a terminal error."""
        with self._lock:
            self._state.errors += 1

            metrics = self._state.sources.setdefault(source, SourceMetrics())
            metrics.errors += 1
            metrics.response_time = response_time
            metrics.last_scraped = datetime.utcnow()

    def record_saved(self, saved_by_source: dict[str, int]):
        """Records persisted during a cycle, keyed by source name."""
        with self._lock:
            for source, count in saved_by_source.items():
                self._state.jobs_saved += count
                self._state.sources.setdefault(source, SourceMetrics()).jobs_saved += count

    def record_cycle_duration(self, seconds: float):
        with self._lock:
            self._state.scraping_duration = seconds

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return copy.deepcopy(self._state)


def log_metrics(metrics: MetricsSnapshot, logger=None):
    """Log a metrics snapshot, one event per source."""
    logger = logger or structlog.get_logger(__name__)

    logger.info(
        "Ingestion metrics",
        jobs_scraped=metrics.jobs_scraped,
        jobs_saved=metrics.jobs_saved,
        duplicates=metrics.duplicates,
        errors=metrics.errors,
        last_cycle_seconds=round(metrics.scraping_duration, 3),
    )

    for name, perf in sorted(metrics.sources.items()):
        logger.info(
            "Source performance",
            source=name,
            scraped=perf.jobs_scraped,
            saved=perf.jobs_saved,
            duplicates=perf.duplicates,
            errors=perf.errors,
            response_time=round(perf.response_time, 3),
            last_scraped=perf.last_scraped.isoformat() if perf.last_scraped else None,
        )
