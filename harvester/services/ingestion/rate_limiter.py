"""
Rate limiting for source requests.

Ensures we respect each source's requests-per-minute ceiling.
"""

import asyncio
import threading
from typing import Optional

import structlog

from harvester.exceptions import AdmissionCancelledError

logger = structlog.get_logger(__name__)


class TokenBucket:
    """
    Bounded token pool for one source.

    Starts full at `capacity` tokens and gains one token every
    `60 / capacity` seconds. Refills arriving while the pool is full are
    dropped, so bursts never exceed `capacity`.
    """

    def __init__(self, capacity: int, period_seconds: float = 60.0):
        if capacity <= 0:
            raise ValueError("capacity must be positive")

        self.capacity = capacity
        self.interval = period_seconds / capacity
        self._tokens: asyncio.Queue[None] = asyncio.Queue(maxsize=capacity)
        for _ in range(capacity):
            self._tokens.put_nowait(None)

        self._retired = asyncio.Event()
        self._refill_task: Optional[asyncio.Task] = asyncio.get_running_loop().create_task(
            self._refill()
        )

    async def _refill(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self._tokens.put_nowait(None)
            except asyncio.QueueFull:
                pass

    async def take(self, cancel_event: Optional[asyncio.Event] = None, until_retired: bool = False) -> bool:
        """
        Wait for a token.

        Returns True once a token is taken. With until_retired, returns
        False instead if the bucket is retired while waiting empty.

        Raises:
            AdmissionCancelledError: if cancel_event fired first
        """
        if cancel_event is not None and cancel_event.is_set():
            raise AdmissionCancelledError("rate limiter acquisition cancelled")

        if cancel_event is None and not until_retired:
            await self._tokens.get()
            return True

        if until_retired and self.retired and self._tokens.empty():
            return False

        get_token = asyncio.ensure_future(self._tokens.get())
        wakeups = []
        if cancel_event is not None:
            wakeups.append(asyncio.ensure_future(cancel_event.wait()))
        if until_retired:
            wakeups.append(asyncio.ensure_future(self._retired.wait()))

        try:
            await asyncio.wait({get_token, *wakeups}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for wakeup in wakeups:
                wakeup.cancel()
            if not get_token.done():
                get_token.cancel()

        if get_token.done() and not get_token.cancelled():
            return True
        if cancel_event is not None and cancel_event.is_set():
            raise AdmissionCancelledError("rate limiter acquisition cancelled")
        return False

    @property
    def available(self) -> int:
        return self._tokens.qsize()

    @property
    def retired(self) -> bool:
        return self._retired.is_set()

    def retire(self):
        """Stop refilling and wake waiters. Tokens already in the pool can still be taken."""
        self._retired.set()
        if self._refill_task is not None:
            self._refill_task.cancel()
            self._refill_task = None


class RateLimiter:
    """
    Token bucket rate limiter with per-source tracking.

    Features:
    - Independent pool per source, so one saturated source cannot starve others
    - Limit changes retire the old bucket and start a fresh one
    - Cancellable waits
    """

    def __init__(self):
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def _get_bucket(self, source: str, requests_per_minute: int) -> TokenBucket:
        """Get or create the bucket for a source."""
        with self._lock:
            bucket = self._buckets.get(source)
            if bucket is not None and bucket.capacity == requests_per_minute:
                return bucket

            if bucket is not None:
                logger.info(
                    "Rate limit changed, replacing bucket",
                    source=source,
                    old_limit=bucket.capacity,
                    new_limit=requests_per_minute,
                )
                bucket.retire()

            bucket = TokenBucket(requests_per_minute)
            self._buckets[source] = bucket
            return bucket

    async def acquire(
        self,
        source: str,
        requests_per_minute: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        """
        Acquire permission to make a request.

        Args:
            source: Source name for rate limiting
            requests_per_minute: Configured ceiling for the source
            cancel_event: Fires to abandon the wait

        Returns:
            True once a token is taken

        Raises:
            AdmissionCancelledError: if cancel_event fired first
        """
        bucket = self._get_bucket(source, requests_per_minute)

        if bucket.available == 0:
            logger.debug(
                "Rate limited, waiting for token",
                source=source,
                refill_interval=round(bucket.interval, 3),
            )

        while not await bucket.take(cancel_event, until_retired=True):
            with self._lock:
                current = self._buckets.get(source, bucket)

            if current is bucket:
                # Limiter stopped: only leftover tokens or cancellation end the wait
                await bucket.take(cancel_event)
                break

            logger.debug("Bucket retired while waiting, moving to current bucket", source=source)
            bucket = current

        return True

    def stop(self):
        """Stop all refill tasks."""
        with self._lock:
            for bucket in self._buckets.values():
                bucket.retire()

    def get_status(self, source: str) -> dict:
        """Get current rate limit status for a source."""
        with self._lock:
            bucket = self._buckets.get(source)

        if bucket is None:
            return {"source": source, "tracked": False}

        return {
            "source": source,
            "tracked": True,
            "capacity": bucket.capacity,
            "available": bucket.available,
            "refill_interval_seconds": bucket.interval,
        }

    def get_all_status(self) -> list[dict]:
        """Get status for all tracked sources."""
        with self._lock:
            sources = sorted(self._buckets.keys())
        return [self.get_status(s) for s in sources]
