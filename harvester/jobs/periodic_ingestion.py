"""
Periodic ingestion job - runs collection cycles on a fixed interval.

Metrics are also reported on their own interval, independent of cycles.

Each run:
1. Fetches jobs from all enabled sources
2. Deduplicates per source
3. Saves unique jobs
4. Logs cycle results and cumulative metrics
"""
import asyncio
from datetime import datetime
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from harvester.exceptions import HarvesterError
from harvester.models.domain import CycleReport
from harvester.services.ingestion.metrics import log_metrics
from harvester.services.ingestion.orchestrator import IngestionOrchestrator

logger = structlog.get_logger(__name__)


class PeriodicIngestionJob:
    """
    Schedules ingestion cycles with APScheduler.

    A failed cycle is logged and the schedule continues. stop() fires the
    shared cancel event so an in-flight cycle ends at its next wait.
    """

    JOB_ID = "periodic_ingestion"
    METRICS_JOB_ID = "metrics_report"

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        interval_minutes: int = 15,
        metrics_interval_minutes: int = 1,
    ):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.metrics_interval_minutes = metrics_interval_minutes
        self.cancel_event = asyncio.Event()

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._last_run: Optional[datetime] = None
        self._last_report: Optional[CycleReport] = None

    async def start(self, run_immediately: bool = True):
        """Start the scheduler, optionally running one cycle first."""
        if self._scheduler is not None:
            logger.warning("Scheduler already running")
            return

        logger.info(
            "Starting periodic ingestion",
            interval_minutes=self.interval_minutes,
            metrics_interval_minutes=self.metrics_interval_minutes,
        )

        if run_immediately:
            await self.run_once()

        if self.cancel_event.is_set():
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name="Periodic Job Ingestion",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            self.report_metrics,
            IntervalTrigger(minutes=self.metrics_interval_minutes),
            id=self.METRICS_JOB_ID,
            name="Metrics Report",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

    async def stop(self):
        """Cancel any running cycle and shut the scheduler down."""
        self.cancel_event.set()

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        logger.info("Periodic ingestion stopped")

    async def run_once(self) -> Optional[CycleReport]:
        """Execute one cycle; errors are logged, not raised."""
        if self.cancel_event.is_set():
            return None

        logger.info("Starting scheduled scraping")
        started = datetime.utcnow()

        try:
            report = await self.orchestrator.run_cycle(cancel_event=self.cancel_event)
        except HarvesterError as e:
            logger.error("Scheduled scraping failed", error=str(e), error_type=type(e).__name__)
            report = None
        else:
            for result in report.results:
                logger.info(str(result))
            self._last_report = report

        self._last_run = started
        self.report_metrics()
        return report

    def report_metrics(self):
        """Log the current metrics snapshot."""
        log_metrics(self.orchestrator.get_metrics(), logger)

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report

    def _next_run(self, job_id: str) -> Optional[str]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(job_id)
        if job is None or job.next_run_time is None:
            return None
        return job.next_run_time.isoformat()

    def get_status(self) -> dict:
        """Get scheduler status."""
        return {
            "running": self.is_running,
            "state": self.orchestrator.state.value,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "next_run": self._next_run(self.JOB_ID),
            "next_metrics_report": self._next_run(self.METRICS_JOB_ID),
            "interval_minutes": self.interval_minutes,
            "metrics_interval_minutes": self.metrics_interval_minutes,
        }
