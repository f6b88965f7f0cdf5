"""
Ingestion services for the job harvester.

This module provides the concurrent ingestion core:
- Per-source token bucket rate limiting
- Exact and near-duplicate detection
- Source registry
- Orchestration with retries, batching and metrics
"""

from harvester.services.ingestion.deduplicator import Deduplicator, string_similarity
from harvester.services.ingestion.metrics import (
    IngestionMetrics,
    MetricsSnapshot,
    SourceMetrics,
    log_metrics,
)
from harvester.services.ingestion.orchestrator import (
    IngestionOrchestrator,
    RetryConfig,
    backoff_delay,
)
from harvester.services.ingestion.rate_limiter import RateLimiter
from harvester.services.ingestion.registry import SourceRegistry

__all__ = [
    "Deduplicator",
    "IngestionMetrics",
    "IngestionOrchestrator",
    "MetricsSnapshot",
    "RateLimiter",
    "RetryConfig",
    "SourceMetrics",
    "SourceRegistry",
    "backoff_delay",
    "log_metrics",
    "string_similarity",
]
