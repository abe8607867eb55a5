"""
Search-page URL handling for Booking.com.

Booking.com encodes dates in two ways:
  1. checkin=2026-02-21                                     (ISO, newer)
  2. checkin_year=2026&checkin_month=2&checkin_monthday=21  (legacy)

Both are accepted when parsing. Fetch URLs are always built with the
separate-field encoding.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Literal, Mapping, Optional
from urllib.parse import parse_qs, unquote, urlencode, urlsplit

DEFAULT_BASE_URL = "https://www.booking.com"
BOOKING_HOST = "booking.com"
SEARCH_PATH = "/searchresults.html"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class SearchContext:
    checkin: date
    checkout: date
    dest: str = ""
    dest_id: str = ""
    dest_type: str = ""
    adults: str = "2"
    children: str = "0"
    rooms: str = "1"

    @property
    def nights(self) -> int:
        return (self.checkout - self.checkin).days


def _query(url: str) -> Mapping[str, str]:
    """First value of each query parameter."""
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query, keep_blank_values=True).items()}


def resolve_date(params: Mapping[str, str], key: str) -> Optional[date]:
    """Read ``key`` as an ISO date, falling back to the ``_year/_month/_monthday`` triple."""
    iso = params.get(key)
    try:
        if iso and _ISO_DATE.match(iso):
            return date.fromisoformat(iso)

        year = params.get(f"{key}_year")
        month = params.get(f"{key}_month")
        day = params.get(f"{key}_monthday")
        if year and month and day:
            return date(int(year), int(month), int(day))
    except ValueError:
        return None
    return None


def parse_search_context(url: str) -> Optional[SearchContext]:
    """Search context from a results-page URL, or None without a valid date pair."""
    params = _query(url)
    checkin = resolve_date(params, "checkin")
    checkout = resolve_date(params, "checkout")
    if checkin is None or checkout is None or checkout <= checkin:
        return None

    return SearchContext(
        checkin=checkin,
        checkout=checkout,
        dest=params.get("ss") or "",
        dest_id=params.get("dest_id") or "",
        dest_type=params.get("dest_type") or "",
        adults=params.get("group_adults") or "2",
        children=params.get("group_children") or "0",
        rooms=params.get("no_rooms") or "1",
    )


def build_search_url(
    context: SearchContext,
    checkin: date,
    checkout: date,
    sort_by_price: bool = True,
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Results URL for another date pair within the same search."""
    params = {}
    if context.dest:
        params["ss"] = context.dest
    if context.dest_id:
        params["dest_id"] = context.dest_id
    if context.dest_type:
        params["dest_type"] = context.dest_type

    params.update({
        "checkin_year": str(checkin.year),
        "checkin_month": str(checkin.month),
        "checkin_monthday": str(checkin.day),
        "checkout_year": str(checkout.year),
        "checkout_month": str(checkout.month),
        "checkout_monthday": str(checkout.day),
        "group_adults": context.adults,
        "group_children": context.children,
        "no_rooms": context.rooms,
    })
    if sort_by_price:
        params["order"] = "price"

    return f"{base_url}{SEARCH_PATH}?{urlencode(params)}"


def build_homepage_search_url(
    destination: str,
    checkin: date,
    checkout: date,
    dest_id: str = "",
    dest_type: str = "",
    sort_by_price: bool = True,
    base_url: str = DEFAULT_BASE_URL,
) -> Optional[str]:
    """Results URL from only a typed destination (no search context yet)."""
    if not destination:
        return None

    params = {
        "ss": destination,
        "lang": "en-us",
        "sb": "1",
        "src_elem": "sb",
        "src": "index",
    }
    # Set once the user picks an autocomplete suggestion
    if dest_id:
        params["dest_id"] = dest_id
    if dest_type:
        params["dest_type"] = dest_type

    params.update({
        "checkin": checkin.isoformat(),
        "checkout": checkout.isoformat(),
        "group_adults": "2",
        "no_rooms": "1",
        "group_children": "0",
    })
    if sort_by_price:
        params["order"] = "price"

    return f"{base_url}{SEARCH_PATH}?{urlencode(params)}"


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url or "").hostname or "").lower()
    except ValueError:
        return ""


def is_booking_page(url: str) -> bool:
    host = _hostname(url)
    return host == BOOKING_HOST or host.endswith("." + BOOKING_HOST)


def is_search_page(url: str) -> bool:
    return is_booking_page(url) and urlsplit(url).path.startswith("/searchresults")


# =============================================================================
# Page status
# =============================================================================

PageState = Literal["active", "on_site", "elsewhere"]


@dataclass
class PageStatus:
    state: PageState
    text: str
    detail: str


def describe_page_status(url: str) -> PageStatus:
    """Human-readable activation status for the page at ``url``."""
    if is_search_page(url):
        params = _query(url)
        dest = params.get("ss") or params.get("dest_id") or ""
        checkin = resolve_date(params, "checkin")
        checkout = resolve_date(params, "checkout")
        if dest and checkin and checkout:
            detail = (
                f"Destination: {unquote(dest)}\n"
                f"Check-in: {checkin.isoformat()}  →  Check-out: {checkout.isoformat()}\n"
                f"Open the date picker to see price stats on each day."
            )
        else:
            detail = "Open the date picker to see prices on each calendar day."
        return PageStatus(state="active", text="Active on this page", detail=detail)

    if is_booking_page(url):
        return PageStatus(
            state="on_site",
            text="On Booking.com",
            detail="Navigate to a hotel search results page to activate the price calendar.",
        )

    return PageStatus(
        state="elsewhere",
        text="Not on Booking.com",
        detail="Visit Booking.com and search for hotels to use this extension.",
    )
