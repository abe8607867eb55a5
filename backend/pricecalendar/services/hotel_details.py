import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from playwright.async_api import Error as PlaywrightError

from pricecalendar.config import Settings, get_settings
from pricecalendar.scrapers.booking_client import BookingClient
from pricecalendar.scrapers.detail_extractors import HotelDetails, extract_hotel_details
from pricecalendar.scrapers.rendered_capture import RenderedCapture
from pricecalendar.services.detail_merger import merge_details

logger = logging.getLogger(__name__)

RETRY_QUERY = "?lang=en-us"

CaptureFn = Callable[[str], Awaitable[Optional[str]]]


def canonical_hotel_url(url: str) -> str:
    """Origin + path; query and fragment select booking-flow views we don't want."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class HotelDetailsFetcher:
    """
    Gather facilities, area info and photos for one hotel page.

    Pipeline per URL (sequential):
    1. Fetch the server-rendered page
    2. If facility groups or area info are missing, wait and refetch with
       ``?lang=en-us``
    3. Capture the fully rendered page (bounded by a hard timeout)
    4. Merge every snapshot that produced data

    Results are memoised per canonical URL, including failures (None). A
    pipeline still in flight is shared by every caller for that URL.
    """

    def __init__(
        self,
        client: BookingClient,
        settings: Optional[Settings] = None,
        capture: Optional[CaptureFn] = None,
    ):
        self.client = client
        self.settings = settings or get_settings()
        if capture is None and self.settings.rendered_capture_enabled:
            capture = RenderedCapture(self.settings).capture
        self.capture = capture
        self._memo: Dict[str, "asyncio.Future[Optional[HotelDetails]]"] = {}

    def clear(self):
        self._memo.clear()

    async def fetch(self, url: str) -> Optional[HotelDetails]:
        clean_url = canonical_hotel_url(url)
        task = self._memo.get(clean_url)
        if task is None:
            # Reserve the slot before awaiting; concurrent callers share the task
            task = asyncio.ensure_future(self._fetch_uncached(clean_url))
            self._memo[clean_url] = task

        try:
            return await asyncio.shield(task)
        except Exception:
            if self._memo.get(clean_url) is task:
                del self._memo[clean_url]
            raise

    async def _fetch_snapshot(self, url: str) -> Optional[HotelDetails]:
        result = await self.client.fetch(url)
        if not result.is_success:
            return None
        return extract_hotel_details(
            result.html, base_url=self.settings.base_url, max_photos=self.settings.max_photos
        )

    async def _fetch_uncached(self, url: str) -> Optional[HotelDetails]:
        initial = await self._fetch_snapshot(url)
        if initial is None:
            logger.info(f"Hotel page {url} could not be fetched")
            return None

        retry = None
        if not initial.facility_groups or not initial.area_info:
            # Lazy sections are sometimes absent from the first server render
            await asyncio.sleep(self.settings.detail_retry_delay_seconds)
            retry = await self._fetch_snapshot(url + RETRY_QUERY)
            if retry is not None and retry.is_empty:
                retry = None

        rendered = await self._capture(url)

        details = merge_details(initial, retry, rendered, max_photos=self.settings.max_photos)
        logger.info(
            f"Hotel details for {url}: {len(details.facility_groups)} facility groups, "
            f"{len(details.area_info)} POI categories, {len(details.photo_urls)} photos "
            f"(retry={'yes' if retry else 'no'}, rendered={'yes' if rendered else 'no'})"
        )
        return details

    async def _capture(self, url: str) -> Optional[HotelDetails]:
        if self.capture is None:
            return None
        try:
            html = await asyncio.wait_for(
                self.capture(url), timeout=self.settings.rendered_capture_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Rendered capture of {url} timed out")
            return None
        except PlaywrightError as e:
            logger.warning(f"Rendered capture of {url} failed: {e}")
            return None
        if not html:
            return None
        return extract_hotel_details(
            html, base_url=self.settings.base_url, max_photos=self.settings.max_photos
        )
