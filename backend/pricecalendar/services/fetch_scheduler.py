"""
Bounded-concurrency price fetching keyed by date range.

Every job moves through:

    queued -> dispatched -> stats | empty
                         -> rate limited -> (cool-down) -> queued

At most one live job exists per DateRangeKey: a key that is queued, in
flight, cooling down after a 429/503, or already resolved in the cache is
never enqueued again. Everything runs on one event loop and ``enqueue`` is
synchronous, so the check and the insert cannot interleave.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Deque, Dict, Optional, Set

import httpx

from pricecalendar.config import Settings, get_settings
from pricecalendar.scrapers.booking_client import FetchResult
from pricecalendar.scrapers.extractors import PriceExtraction, extract_prices
from pricecalendar.services.price_cache import CacheEntry, DateRange, PriceCache
from pricecalendar.services.timers import TimerRegistry

logger = logging.getLogger(__name__)

RETRY_PREFIX = "retry:"
DRAIN_TIMER = "drain"
JOIN_POLL_SECONDS = 0.01


@dataclass(frozen=True)
class FetchJob:
    checkin: date
    checkout: date

    def __post_init__(self):
        # Validates checkout > checkin
        DateRange(self.checkin, self.checkout)

    @property
    def key(self) -> str:
        return DateRange(self.checkin, self.checkout).key


FetchPage = Callable[[FetchJob], Awaitable[FetchResult]]
ParsePrices = Callable[[str], PriceExtraction]
OnResult = Callable[[FetchJob, CacheEntry, Optional[PriceExtraction]], None]


class FetchScheduler:
    """
    Queue of price fetches drained with bounded concurrency.

    Usage:
        scheduler = FetchScheduler(cache, fetch_page)
        scheduler.submit([FetchJob(date(2026, 3, 1), date(2026, 3, 2))])
        await scheduler.join()
    """

    def __init__(
        self,
        cache: PriceCache,
        fetch_page: FetchPage,
        parse_prices: ParsePrices = extract_prices,
        settings: Optional[Settings] = None,
        on_result: Optional[OnResult] = None,
    ):
        self.cache = cache
        self.fetch_page = fetch_page
        self.parse_prices = parse_prices
        self.settings = settings or get_settings()
        self.on_result = on_result

        self.timers = TimerRegistry()
        self._queue: Deque[FetchJob] = deque()
        self._queued: Set[str] = set()
        self._in_flight: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._rate_limit_attempts: Dict[str, int] = {}
        self._draining = False

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def queued_keys(self) -> Set[str]:
        return set(self._queued)

    @property
    def in_flight_keys(self) -> Set[str]:
        return set(self._in_flight)

    def is_cooling_down(self, key: str) -> bool:
        return RETRY_PREFIX + key in self.timers

    def is_live(self, key: str) -> bool:
        return key in self._queued or key in self._in_flight or self.is_cooling_down(key)

    @property
    def is_idle(self) -> bool:
        return not (self._queue or self._in_flight or self._draining or len(self.timers))

    # -------------------------------------------------------------------------
    # Queueing
    # -------------------------------------------------------------------------

    def enqueue(self, job: FetchJob) -> bool:
        """Queue a job unless its range is resolved or already live. Marks it pending."""
        key = job.key
        if self.cache.is_terminal(key) or self.is_live(key):
            return False
        self.cache.mark_pending(key)
        self._queue.append(job)
        self._queued.add(key)
        return True

    def submit(self, jobs) -> int:
        """Enqueue several jobs and start draining. Returns how many were accepted."""
        accepted = sum(1 for job in jobs if self.enqueue(job))
        if accepted:
            self.kick()
        return accepted

    def kick(self):
        """Start a drain round unless one is already running."""
        if self._draining or not self._queue:
            return
        task = asyncio.get_running_loop().create_task(self.drain())
        self._track(task)

    def _track(self, task: asyncio.Task):
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self):
        """Dispatch queued jobs while below the concurrency limit."""
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue and len(self._in_flight) < self.settings.max_concurrent_fetches:
                job = self._queue.popleft()
                self._queued.discard(job.key)
                if self.cache.is_terminal(job.key):
                    continue

                self._in_flight.add(job.key)
                self._track(asyncio.get_running_loop().create_task(self._run(job)))

                if self._queue:
                    await asyncio.sleep(self.settings.fetch_stagger_seconds)
        finally:
            self._draining = False

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _run(self, job: FetchJob):
        key = job.key
        try:
            try:
                result = await self.fetch_page(job)
            except httpx.HTTPError as e:
                logger.warning(f"Fetch for {key} failed: {e}")
                self._resolve(job, self.cache.store_prices(key, []), None)
                return

            if result.is_rate_limited:
                self._handle_rate_limit(job)
                return

            if not result.is_success:
                logger.info(f"Fetch for {key} ended with {result.status} ({result.status_code})")
                self._resolve(job, self.cache.store_prices(key, []), None)
                return

            extraction = self.parse_prices(result.html)
            entry = self.cache.store_prices(key, extraction.prices)
            logger.debug(f"Range {key}: {entry.state} via {extraction.strategy}")
            self._resolve(job, entry, extraction)
        finally:
            self._in_flight.discard(key)
            if self._queue:
                self.timers.schedule(DRAIN_TIMER, self.settings.fetch_delay_seconds, self.kick)

    def _resolve(self, job: FetchJob, entry: CacheEntry, extraction: Optional[PriceExtraction]):
        self._rate_limit_attempts.pop(job.key, None)
        if self.on_result is not None:
            self.on_result(job, entry, extraction)

    def _handle_rate_limit(self, job: FetchJob):
        key = job.key
        attempts = self._rate_limit_attempts.get(key, 0) + 1
        if attempts > self.settings.max_rate_limit_retries:
            logger.warning(f"Giving up on {key} after {attempts - 1} rate-limit retries")
            self._resolve(job, self.cache.store_prices(key, []), None)
            return

        self._rate_limit_attempts[key] = attempts
        logger.warning(
            f"Rate limited on {key}, retry {attempts} in {self.settings.rate_limit_cooldown_seconds}s"
        )
        self.timers.schedule(
            RETRY_PREFIX + key,
            self.settings.rate_limit_cooldown_seconds,
            lambda: self._requeue(job),
        )

    def _requeue(self, job: FetchJob):
        if self.enqueue(job):
            self.kick()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset_queue(self) -> int:
        """
        Drop queued jobs and cool-down retries, keeping in-flight fetches.

        Dropped ranges go back to absent so they can be requested again.
        """
        dropped = [job.key for job in self._queue]
        dropped.extend(name[len(RETRY_PREFIX):] for name in self.timers.cancel_prefix(RETRY_PREFIX))
        self.timers.cancel(DRAIN_TIMER)
        self._queue.clear()
        self._queued.clear()

        for key in dropped:
            self.cache.discard_pending(key)
            self._rate_limit_attempts.pop(key, None)

        if dropped:
            logger.warning(f"Dropped {len(dropped)} pending price fetches")
        return len(dropped)

    async def close(self):
        """Cancel everything, including in-flight fetches. The scheduler stays usable."""
        self.reset_queue()
        self.timers.cancel_all()

        in_flight = list(self._in_flight)
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for key in in_flight:
            self.cache.discard_pending(key)
        self._in_flight.clear()
        self._rate_limit_attempts.clear()

    async def join(self):
        """Wait until nothing is queued, in flight or waiting on a timer."""
        while not self.is_idle:
            await asyncio.sleep(JOIN_POLL_SECONDS)
