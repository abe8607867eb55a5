"""
State for one open Booking.com page.

A PageSession owns the search context parsed from the page URL, the
detected currency, the price cache, the fetch scheduler and the calendar
selection. Navigation rules:

- hard navigation (full page load): cancel all fetches, clear the cache
- soft navigation (in-app URL change) to new dates: drop queued fetches but
  keep the cache; the calendar selection is cleared either way
"""

import logging
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Set, Tuple

from pricecalendar.config import Settings, get_settings
from pricecalendar.scrapers.booking_client import BookingClient, FetchResult
from pricecalendar.scrapers.extractors import DEFAULT_CURRENCY, Currency, PriceExtraction, extract_prices
from pricecalendar.services.calendar_state import BadgeView, CalendarSelection, PickResult, build_badges
from pricecalendar.services.fetch_scheduler import FetchJob, FetchScheduler
from pricecalendar.services.price_cache import CacheEntry, DateRange, PriceCache
from pricecalendar.services.search_context import (
    SearchContext,
    build_homepage_search_url,
    build_search_url,
    parse_search_context,
)

logger = logging.getLogger(__name__)

Listener = Callable[[FetchJob, CacheEntry], None]


class PageSession:
    def __init__(self, settings: Optional[Settings] = None, client: Optional[BookingClient] = None):
        self.settings = settings or get_settings()
        self.client = client or BookingClient(self.settings)

        self.url: str = ""
        self.context: Optional[SearchContext] = None
        self.currency: Currency = DEFAULT_CURRENCY
        self.sort_by_price: bool = self.settings.sort_by_price_default

        self.destination = ""
        self.dest_id = ""
        self.dest_type = ""

        self.cache = PriceCache()
        self.selection = CalendarSelection(window_days=self.settings.checkout_window_days)
        self.scheduler = FetchScheduler(
            self.cache,
            self.fetch_page,
            parse_prices=extract_prices,
            settings=self.settings,
            on_result=self._on_result,
        )
        self.visible_dates: Set[date] = set()
        self.version = 0
        self._listeners: List[Listener] = []

    # -------------------------------------------------------------------------
    # Mode
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> str:
        """Search mode with a full context, homepage mode with only a destination."""
        if self.context is not None:
            return "search"
        if self.destination:
            return "homepage"
        return "idle"

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    async def navigate(self, url: str, hard: bool = False) -> Optional[SearchContext]:
        if hard:
            await self.scheduler.close()
            self.cache.clear()
            self.visible_dates.clear()
            self.currency = DEFAULT_CURRENCY
            self.selection.clear()
            self.url = url
            self.context = parse_search_context(url)
            logger.info(f"Loaded page {url} (search context: {self.context is not None})")
            return self.context

        fresh = parse_search_context(url)
        if fresh is None:
            return self.context

        if self.context is None or (fresh.checkin, fresh.checkout) != (self.context.checkin, self.context.checkout):
            dropped = self.scheduler.reset_queue()
            logger.info(f"Dates changed to {fresh.checkin}/{fresh.checkout}, dropped {dropped} queued fetches")

        self.url = url
        self.context = fresh
        self.selection.clear()
        return self.context

    def set_destination(self, destination: str, dest_id: str = "", dest_type: str = ""):
        self.destination = destination.strip()
        self.dest_id = dest_id
        self.dest_type = dest_type

    def ingest_page(self, html: str) -> PriceExtraction:
        """Record prices scraped from the page the user is looking at."""
        extraction = extract_prices(html)
        if self.context is None or not extraction.prices:
            return extraction

        key = DateRange(self.context.checkin, self.context.checkout).key
        self.cache.store_prices(key, extraction.prices)
        if extraction.currency is not None:
            self.currency = extraction.currency
        self.version += 1
        return extraction

    # -------------------------------------------------------------------------
    # Calendar
    # -------------------------------------------------------------------------

    def _jobs_for(self, ranges: Iterable[DateRange]) -> List[FetchJob]:
        return [FetchJob(r.checkin, r.checkout) for r in ranges]

    def register_dates(self, dates: Iterable[date]) -> int:
        """Queue prices for calendar dates the UI rendered. Returns jobs accepted."""
        dates = list(dates)
        self.visible_dates.update(dates)
        if self.context is None:
            return 0

        nights = timedelta(days=self.context.nights)
        ranges = [DateRange(d, d + nights) for d in dates]
        ranges.extend(self.selection.window_ranges())
        return self.scheduler.submit(self._jobs_for(ranges))

    def pick(self, picked: date) -> Tuple[PickResult, int]:
        result = self.selection.pick(picked)
        queued = 0
        if result.ranges and self.mode != "idle":
            queued = self.scheduler.submit(self._jobs_for(result.ranges))
        return result, queued

    def badges(self, dates: Optional[Iterable[date]] = None) -> List[BadgeView]:
        dates = sorted(self.visible_dates) if dates is None else list(dates)
        return build_badges(dates, self.selection, self.context, self.cache, self.currency)

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    def search_url(self, checkin: date, checkout: date) -> Optional[str]:
        if self.context is not None:
            return build_search_url(
                self.context, checkin, checkout,
                sort_by_price=self.sort_by_price, base_url=self.settings.base_url,
            )
        return build_homepage_search_url(
            self.destination, checkin, checkout,
            dest_id=self.dest_id, dest_type=self.dest_type,
            sort_by_price=self.sort_by_price, base_url=self.settings.base_url,
        )

    async def fetch_page(self, job: FetchJob) -> FetchResult:
        url = self.search_url(job.checkin, job.checkout)
        if url is None:
            return FetchResult(status="http_error", url="", error_message="No destination to search")
        return await self.client.fetch(url)

    def _on_result(self, job: FetchJob, entry: CacheEntry, extraction: Optional[PriceExtraction]):
        if extraction is not None and extraction.currency is not None:
            self.currency = extraction.currency

        # Homepage picks are superseded by the next pick; keep the result but stay quiet
        if self.context is None and self.selection.selected != job.checkin:
            logger.debug(f"Suppressing update for stale range {job.key}")
            return

        self.version += 1
        for listener in self._listeners:
            listener(job, entry)

    async def close(self):
        await self.scheduler.close()
        await self.client.close()
