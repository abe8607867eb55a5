import logging
from dataclasses import dataclass
from typing import Literal, Optional

import httpx

from pricecalendar.config import Settings, get_settings

logger = logging.getLogger(__name__)


# Outcome classification for one upstream request
FetchStatus = Literal[
    "success",
    "rate_limited",
    "http_error",
    "network_error",
]

RATE_LIMIT_STATUS_CODES = {429, 503}


@dataclass
class FetchResult:
    status: FetchStatus
    url: str
    status_code: Optional[int] = None
    html: str = ""
    error_message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def is_rate_limited(self) -> bool:
        return self.status == "rate_limited"


def classify_status(status_code: int) -> FetchStatus:
    if status_code in RATE_LIMIT_STATUS_CODES:
        return "rate_limited"
    if 200 <= status_code < 300:
        return "success"
    return "http_error"


class BookingClient:
    """
    HTML client for Booking.com pages.

    Requests look like a same-origin browser navigation: HTML accept header,
    English language and the user's session cookies when configured.

    Usage:
        client = BookingClient()
        result = await client.fetch("https://www.booking.com/searchresults.html?ss=Lisbon")
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "text/html,application/xhtml+xml",
                "Accept-Language": self.settings.accept_language,
                "User-Agent": self.settings.user_agent,
            }
            if self.settings.session_cookies:
                headers["Cookie"] = self.settings.session_cookies
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=self.settings.request_timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def fetch(self, url: str) -> FetchResult:
        """GET a page and classify the outcome. Never raises for upstream failures."""
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.RequestError as e:
            logger.warning(f"Request to {url} failed: {e}")
            return FetchResult(status="network_error", url=url, error_message=str(e))

        status = classify_status(response.status_code)
        if status == "rate_limited":
            logger.warning(f"Rate limited ({response.status_code}) fetching {url}")
        elif status == "http_error":
            logger.info(f"HTTP {response.status_code} fetching {url}")

        return FetchResult(
            status=status,
            url=url,
            status_code=response.status_code,
            html=response.text if status == "success" else "",
        )
