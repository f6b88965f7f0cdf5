"""
Ingestion Orchestrator - Runs one collection cycle across all sources.

This module fans out to every enabled source under a global concurrency
cap and per-source rate limits, retries failed fetches, deduplicates each
source's batch and saves the unique jobs in batches.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass
from typing import Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from harvester.config import Settings
from harvester.exceptions import (
    AdmissionCancelledError,
    CycleCancelledError,
    CycleInProgressError,
    NoEnabledSourcesError,
    PersistenceError,
)
from harvester.models.domain import CycleReport, CycleResult, CycleState, JobRecord
from harvester.services.ingestion.deduplicator import Deduplicator
from harvester.services.ingestion.metrics import IngestionMetrics, MetricsSnapshot
from harvester.services.ingestion.rate_limiter import RateLimiter
from harvester.services.ingestion.registry import SourceRegistry
from harvester.sources import JobSourceAdapter, create_sources
from harvester.storage.base import JobStore

logger = structlog.get_logger(__name__)


def backoff_delay(attempt: int, initial_delay: float, backoff_factor: float, max_delay: float) -> float:
    """Delay before retry number `attempt` (1-based): initial * attempt * factor, capped."""
    return min(initial_delay * attempt * backoff_factor, max_delay)


@dataclass
class RetryConfig:
    """Retry behavior for source fetches."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0

    def delay(self, attempt: int) -> float:
        return backoff_delay(attempt, self.initial_delay, self.backoff_factor, self.max_delay)


class LinearBackoff(wait_base):
    """Tenacity wait strategy growing linearly with the attempt number."""

    def __init__(self, config: RetryConfig):
        self.config = config

    def __call__(self, retry_state: RetryCallState) -> float:
        # attempt_number counts attempts already made, i.e. the upcoming retry number
        return self.config.delay(retry_state.attempt_number)


def cancellable_sleep(cancel_event: Optional[asyncio.Event], source: Optional[str] = None):
    """Build a sleep function that aborts when cancel_event fires."""

    async def sleep(seconds: float):
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise CycleCancelledError("cancelled during retry backoff", source=source)

    return sleep


class IngestionOrchestrator:
    """
    Coordinates fetching, deduplication and persistence of job listings.

    Features:
    - Bounded concurrent fetching, one task per source
    - Per-source token bucket rate limiting
    - Retry with linear backoff, cancellable at every wait
    - Per-source exact deduplication, optional near-duplicate report
    - Batched saves with per-record fallback
    """

    def __init__(
        self,
        store: JobStore,
        registry: Optional[SourceRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        deduplicator: Optional[Deduplicator] = None,
        metrics: Optional[IngestionMetrics] = None,
        retry_config: Optional[RetryConfig] = None,
        max_concurrent_sources: int = 5,
        batch_size: int = 50,
        report_near_duplicates: bool = False,
        similarity_threshold: float = 0.8,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Persistence backend for unique jobs
            registry: Source catalog (empty registry if omitted)
            rate_limiter: Shared per-source limiter
            deduplicator: Seen-set for this run
            metrics: Aggregator owned by this orchestrator
            retry_config: Fetch retry policy
            max_concurrent_sources: Size of the fan-out gate
            batch_size: Records per save_many call
            report_near_duplicates: Run the similarity pass after dedup
            similarity_threshold: Minimum score for a near-duplicate
        """
        if max_concurrent_sources <= 0:
            raise ValueError("max_concurrent_sources must be positive")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self.store = store
        self.registry = registry or SourceRegistry()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.deduplicator = deduplicator or Deduplicator()
        self.metrics = metrics or IngestionMetrics()
        self.retry_config = retry_config or RetryConfig()
        self.max_concurrent_sources = max_concurrent_sources
        self.batch_size = batch_size
        self.report_near_duplicates = report_near_duplicates
        self.similarity_threshold = similarity_threshold

        self._state = CycleState.IDLE
        self._cycle_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, store: JobStore) -> "IngestionOrchestrator":
        return cls(
            store=store,
            retry_config=RetryConfig(
                max_retries=settings.max_retries,
                initial_delay=settings.retry_initial_delay,
                max_delay=settings.retry_max_delay,
                backoff_factor=settings.retry_backoff_factor,
            ),
            max_concurrent_sources=settings.max_concurrent_sources,
            batch_size=settings.batch_size,
            report_near_duplicates=settings.report_near_duplicates,
            similarity_threshold=settings.similarity_threshold,
        )

    def initialize_sources(self, settings: Settings):
        """Register the built-in sources."""
        for source, config in create_sources(settings):
            self.registry.register(source, config)

        logger.info(
            "Initialized job sources",
            registered=len(self.registry),
            enabled=sorted(self.registry.enabled_sources()),
        )

    @property
    def state(self) -> CycleState:
        return self._state

    def get_metrics(self) -> MetricsSnapshot:
        """Deep copy of the current metrics."""
        return self.metrics.snapshot()

    async def run_cycle(
        self,
        cancel_event: Optional[asyncio.Event] = None,
        sources: Optional[dict[str, JobSourceAdapter]] = None,
    ) -> CycleReport:
        """
        Run one ingestion cycle.

        Args:
            cancel_event: Signal observed at every wait; fires to abort
            sources: Sources to scrape (default: registry's enabled sources)

        Returns:
            CycleReport with per-source results and totals

        Raises:
            NoEnabledSourcesError: no sources to scrape
            CycleInProgressError: another cycle is running
            PersistenceError: no job could be saved by any path
            CycleCancelledError: cancelled before all batches were saved
        """
        if self._cycle_lock.locked():
            raise CycleInProgressError("an ingestion cycle is already running")

        async with self._cycle_lock:
            start_time = time.monotonic()
            try:
                return await self._run_cycle(cancel_event, sources, start_time)
            finally:
                self.metrics.record_cycle_duration(time.monotonic() - start_time)
                self._state = CycleState.IDLE

    async def _run_cycle(
        self,
        cancel_event: Optional[asyncio.Event],
        sources: Optional[dict[str, JobSourceAdapter]],
        start_time: float,
    ) -> CycleReport:
        if sources is None:
            sources = self.registry.enabled_sources()

        if not sources:
            raise NoEnabledSourcesError()

        report = CycleReport()

        # Fetch and collect
        report.results = await self._fetch_all(sources, cancel_event)

        # Deduplicate each source's batch in arrival order
        self._state = CycleState.DEDUPLICATING
        all_jobs: list[JobRecord] = []

        for result in report.results:
            if not result.success:
                report.errors += 1
                self.metrics.record_source_error(result.source, result.duration)
                logger.error(
                    "Error scraping source",
                    source=result.source,
                    error=str(result.error),
                    error_type=type(result.error).__name__,
                    duration=round(result.duration, 3),
                )
                continue

            unique_jobs = self.deduplicator.remove_duplicates(result.jobs)
            duplicates = len(result.jobs) - len(unique_jobs)
            all_jobs.extend(unique_jobs)

            report.jobs_scraped += len(result.jobs)
            report.duplicates += duplicates
            self.metrics.record_source_result(
                result.source,
                scraped=len(result.jobs),
                duplicates=duplicates,
                response_time=result.duration,
            )

            logger.info(
                "Scraped source",
                source=result.source,
                jobs=len(result.jobs),
                unique=len(unique_jobs),
                duplicates=duplicates,
                duration=round(result.duration, 3),
            )

        report.unique_jobs = len(all_jobs)

        if self.report_near_duplicates and all_jobs:
            report.near_duplicates = self.deduplicator.find_similar_jobs(
                all_jobs, self.similarity_threshold
            )
            for hit in report.near_duplicates:
                logger.info(
                    "Possible near-duplicate",
                    similarity=round(hit.similarity, 3),
                    job_a=f"{hit.job_a.title} @ {hit.job_a.company} ({hit.job_a.source})",
                    job_b=f"{hit.job_b.title} @ {hit.job_b.company} ({hit.job_b.source})",
                )

        # Save
        if all_jobs:
            self._state = CycleState.PERSISTING
            report.jobs_saved = await self._save_jobs(all_jobs, cancel_event)

            if report.jobs_saved == 0:
                raise PersistenceError(f"failed to save any of {len(all_jobs)} jobs")

        report.duration = time.monotonic() - start_time

        logger.info(
            "Scraping completed",
            jobs_scraped=report.jobs_scraped,
            unique=report.unique_jobs,
            saved=report.jobs_saved,
            duplicates=report.duplicates,
            errors=report.errors,
            failed_sources=report.failed_sources,
            duration=round(report.duration, 3),
        )

        return report

    async def _fetch_all(
        self,
        sources: dict[str, JobSourceAdapter],
        cancel_event: Optional[asyncio.Event],
    ) -> list[CycleResult]:
        """Fan out one task per source and drain every result, in completion order."""
        self._state = CycleState.FETCHING

        results_queue: asyncio.Queue[CycleResult] = asyncio.Queue()
        semaphore = asyncio.Semaphore(self.max_concurrent_sources)

        async def worker(name: str, source: JobSourceAdapter):
            start_time = time.monotonic()
            try:
                async with semaphore:
                    result = await self._scrape_source(name, source, cancel_event)
            except Exception as e:
                result = CycleResult(source=name, error=e, duration=time.monotonic() - start_time)
            await results_queue.put(result)

        tasks = [
            asyncio.create_task(worker(name, source), name=f"scrape:{name}")
            for name, source in sources.items()
        ]

        self._state = CycleState.COLLECTING
        results = []
        try:
            for _ in range(len(tasks)):
                results.append(await results_queue.get())
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        return results

    async def _scrape_source(
        self,
        name: str,
        source: JobSourceAdapter,
        cancel_event: Optional[asyncio.Event],
    ) -> CycleResult:
        """Fetch from a single source with rate limiting and retries."""
        start_time = time.monotonic()

        config = self.registry.config_of(name)
        rate_limit = config.rate_limit if config else source.rate_limit_per_minute

        # One token per task, not per attempt
        try:
            await self.rate_limiter.acquire(name, rate_limit, cancel_event)
        except AdmissionCancelledError as e:
            e.source = name
            return CycleResult(source=name, error=e, duration=time.monotonic() - start_time)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_config.max_retries + 1),
            wait=LinearBackoff(self.retry_config),
            retry=(
                retry_if_exception_type(Exception)
                & retry_if_not_exception_type(CycleCancelledError)
            ),
            sleep=cancellable_sleep(cancel_event, name),
            before_sleep=self._log_retry(name),
            reraise=True,
        )

        # Cancellation during backoff surfaces as CycleCancelledError, not the last fetch error
        try:
            jobs = await retrying(self._fetch_once, name, source, cancel_event)
        except Exception as e:
            return CycleResult(source=name, error=e, duration=time.monotonic() - start_time)

        return CycleResult(source=name, jobs=jobs, duration=time.monotonic() - start_time)

    async def _fetch_once(
        self,
        name: str,
        source: JobSourceAdapter,
        cancel_event: Optional[asyncio.Event],
    ) -> list[JobRecord]:
        """One fetch attempt, abandoned as soon as cancel_event fires."""
        if cancel_event is None:
            return await source.fetch_jobs()

        if cancel_event.is_set():
            raise CycleCancelledError("cancelled before fetch", source=name)

        fetch = asyncio.ensure_future(source.fetch_jobs())
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not fetch.done():
                fetch.cancel()

        if fetch.done() and not fetch.cancelled():
            return fetch.result()
        raise CycleCancelledError("cancelled during fetch", source=name)

    def _log_retry(self, name: str):
        max_attempts = self.retry_config.max_retries + 1

        def before_sleep(retry_state: RetryCallState):
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Fetch attempt failed, retrying",
                source=name,
                attempt=retry_state.attempt_number,
                next_attempt=retry_state.attempt_number + 1,
                max_attempts=max_attempts,
                delay=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(error),
            )

        return before_sleep

    async def _save_jobs(
        self,
        jobs: list[JobRecord],
        cancel_event: Optional[asyncio.Event],
    ) -> int:
        """Save jobs in batches, falling back to single saves when a batch fails."""
        saved: Counter[str] = Counter()

        try:
            for i in range(0, len(jobs), self.batch_size):
                if cancel_event is not None and cancel_event.is_set():
                    raise CycleCancelledError(
                        f"cancelled during persistence after {sum(saved.values())} of {len(jobs)} jobs"
                    )

                batch = jobs[i:i + self.batch_size]

                try:
                    await self.store.save_many(batch)
                    saved.update(job.source for job in batch)
                    continue
                except Exception as e:
                    logger.warning(
                        "Batch save failed, falling back to individual saves",
                        batch_start=i,
                        batch_size=len(batch),
                        error=str(e),
                    )

                for job in batch:
                    try:
                        await self.store.save_one(job)
                        saved[job.source] += 1
                    except Exception as e:
                        logger.error(
                            "Failed to save job",
                            title=job.title,
                            company=job.company,
                            source=job.source,
                            error=str(e),
                        )
        finally:
            self.metrics.record_saved(dict(saved))

        return sum(saved.values())

    async def close(self):
        """Stop refill tasks and close source HTTP clients."""
        self.rate_limiter.stop()
        for source in self.registry.sources().values():
            await source.aclose()
