"""
Bounded traversal of the untrusted JSON embedded in Booking.com pages.

Two payloads show up in fetched HTML:

1. ``__NEXT_DATA__`` - the Next.js SSR state, an arbitrarily deep tree
2. The Apollo GraphQL client cache - an inline script starting with
   ``{"ROOT_QUERY"`` whose entities are flattened to keys like
   ``"FacilityGroup:12"`` and linked through ``{"__ref": "..."}``

Every recursive walk is capped by depth and result count so a pathological
payload cannot exhaust the stack or stall extraction. Walks return plain
dicts; callers turn them into typed records.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

NEXT_DATA_ID = "__NEXT_DATA__"
APOLLO_CACHE_PREFIX = '{"ROOT_QUERY"'

PRICE_MAX_DEPTH = 12
PRICE_MAX_RESULTS = 60
DETAIL_MAX_DEPTH = 16
DETAIL_MAX_RESULTS = 60

PRICE_KEY_PATTERN = re.compile(r"price|amount|rate|lowestPrice|minPrice", re.I)
FACILITY_KEY_PATTERN = re.compile(r"facilit|amenity|feature", re.I)
POI_KEY_PATTERN = re.compile(
    r"poi|attraction|area|location|nearby|surroundin|transit|transport|station|airport",
    re.I,
)
APOLLO_POI_KEY_PATTERN = re.compile(
    r"poi|attraction|transit|transport|station|airport|surrounding|nearby", re.I
)
HOTEL_IMAGE_PATTERN = re.compile(r"^(?:https?:)?//[^\s\"']+/images/hotel/[^\s\"']+$", re.I)

_LEADING_NUMBER = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

FACILITY_LIST_KEYS = ("facilities", "amenities", "items", "features", "featureList", "facilityList")
POI_LIST_KEYS = ("pois", "places", "items", "landmarks", "locations", "attractions")
DISTANCE_KEYS = (
    "distance", "distanceText", "distanceFormatted",
    "distanceInMeters", "distanceKm", "walkingTime", "drivingTime",
)


# =============================================================================
# Payload loading
# =============================================================================

def load_next_data(soup: BeautifulSoup) -> Optional[Any]:
    """Parse the ``__NEXT_DATA__`` script, or None if absent or malformed."""
    script = soup.find("script", id=NEXT_DATA_ID)
    if script is None:
        return None
    try:
        return json.loads(script.get_text())
    except ValueError as e:
        logger.debug(f"Malformed {NEXT_DATA_ID} payload: {e}")
        return None


def load_apollo_cache(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    """Find and parse the inline Apollo cache script, or None."""
    for script in soup.select("script:not([src])"):
        text = script.get_text().strip()
        if not text.startswith(APOLLO_CACHE_PREFIX):
            continue
        try:
            cache = json.loads(text)
        except ValueError as e:
            logger.debug(f"Malformed Apollo cache payload: {e}")
            continue
        if isinstance(cache, dict):
            return cache
    return None


def to_number(value: Any) -> Optional[float]:
    """Leading-number coercion: 120 -> 120.0, "89.5 EUR" -> 89.5, {} -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match:
            return float(match.group(1))
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _first_text(obj: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


# =============================================================================
# Prices
# =============================================================================

def collect_prices(
    obj: Any,
    max_depth: int = PRICE_MAX_DEPTH,
    max_results: int = PRICE_MAX_RESULTS,
) -> List[float]:
    """Walk a JSON tree collecting values of price-like keys."""
    prices: List[float] = []
    _collect_prices(obj, prices, 0, max_depth, max_results)
    return prices


def _collect_prices(obj: Any, prices: List[float], depth: int, max_depth: int, max_results: int):
    if depth > max_depth or len(prices) >= max_results or obj is None:
        return
    if isinstance(obj, dict):
        items = obj.items()
    elif isinstance(obj, list):
        items = ((str(i), v) for i, v in enumerate(obj))
    else:
        return

    for key, value in items:
        if len(prices) >= max_results:
            return
        if PRICE_KEY_PATTERN.search(key):
            n = to_number(value)
            if n is not None and 1 < n < 999_999:
                prices.append(n)
        if isinstance(value, (dict, list)):
            _collect_prices(value, prices, depth + 1, max_depth, max_results)


# =============================================================================
# Facility groups
# =============================================================================

def _is_named_entry(item: Any) -> bool:
    return isinstance(item, dict) and (
        isinstance(item.get("name"), str) or isinstance(item.get("title"), str)
    )


def pick_facility_array(obj: Dict[str, Any]) -> list:
    """First list in ``obj`` that looks like facility entries; well-known keys first."""
    for key in FACILITY_LIST_KEYS:
        named = obj.get(key)
        if isinstance(named, list) and named:
            return named
    for value in obj.values():
        if isinstance(value, list) and value and all(
            isinstance(x, str) or _is_named_entry(x) for x in value
        ):
            return value
    return []


def find_facility_groups(
    obj: Any,
    max_depth: int = DETAIL_MAX_DEPTH,
    max_results: int = DETAIL_MAX_RESULTS,
) -> List[Dict[str, Any]]:
    """
    Search a JSON tree for facility-group arrays.

    A group is an object with a name/title and either a facility-like list
    or a description string.
    """
    results: List[Dict[str, Any]] = []
    _find_facility_groups(obj, results, 0, max_depth, max_results)
    return results


def _find_facility_groups(obj: Any, results: list, depth: int, max_depth: int, max_results: int):
    if depth > max_depth or len(results) >= max_results or not isinstance(obj, (dict, list)):
        return

    if isinstance(obj, list):
        candidates = [
            item for item in obj
            if _is_named_entry(item)
            and (pick_facility_array(item) or isinstance(item.get("description"), str))
        ]
        before = len(results)
        for group in candidates:
            if len(results) >= max_results:
                return
            name = _first_text(group, "name", "title")
            facilities = []
            for f in pick_facility_array(group):
                if isinstance(f, str):
                    facilities.append(f)
                elif isinstance(f, dict):
                    facilities.append(_first_text(f, "name", "title", "label"))
            facilities = [f for f in facilities if f]
            description = _text(group.get("description"))
            if name and (facilities or description):
                if not any(r["name"] == name for r in results):
                    results.append({"name": name, "facilities": facilities, "description": description})
        # Two or more groups from one array means we found the real list
        if len(results) - before >= 2:
            return
        for item in obj:
            _find_facility_groups(item, results, depth + 1, max_depth, max_results)
        return

    # Visit facility-looking keys first
    entries = sorted(obj.items(), key=lambda kv: 0 if FACILITY_KEY_PATTERN.search(kv[0]) else 1)
    for _, value in entries:
        if isinstance(value, (dict, list)):
            _find_facility_groups(value, results, depth + 1, max_depth, max_results)


def _deref(cache: Dict[str, Any], ref: Any) -> Any:
    if isinstance(ref, dict) and isinstance(ref.get("__ref"), str):
        return cache.get(ref["__ref"])
    return ref


def parse_apollo_facilities(cache: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Facility groups from Apollo cache keys like ``FacilityGroup:1``."""
    groups = []
    for key, value in cache.items():
        if not isinstance(value, dict) or not re.search(r"facilit", key, re.I):
            continue
        name = _first_text(value, "name", "title", "groupName")
        if not name:
            continue
        refs = value.get("facilities") or value.get("amenities") or value.get("items") or []
        facilities = []
        for ref in refs if isinstance(refs, list) else []:
            if isinstance(ref, str):
                facilities.append(ref)
                continue
            item = _deref(cache, ref)
            if isinstance(item, dict):
                facilities.append(_first_text(item, "name", "title"))
        facilities = [f for f in facilities if f]
        description = _text(value.get("description"))
        if facilities or description:
            groups.append({"name": name, "facilities": facilities, "description": description})
    return groups


# =============================================================================
# Points of interest
# =============================================================================

def _has_distance(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    if not isinstance(item.get("name") or item.get("title"), str):
        return False
    return any(item.get(key) for key in DISTANCE_KEYS)


def pick_poi_array(obj: Dict[str, Any]) -> list:
    """First list in ``obj`` containing POI-like entries (a name and a distance)."""
    for key in POI_LIST_KEYS:
        named = obj.get(key)
        if isinstance(named, list) and any(_has_distance(x) for x in named):
            return named
    for value in obj.values():
        if isinstance(value, list) and any(_has_distance(x) for x in value):
            return value
    return []


def _poi_record(raw: Any) -> Dict[str, str]:
    if isinstance(raw, str):
        return {"name": raw, "type": "", "distance": ""}
    if not isinstance(raw, dict):
        return {"name": "", "type": "", "distance": ""}
    distance = ""
    for key in DISTANCE_KEYS[:5]:
        value = raw.get(key)
        if value not in (None, ""):
            distance = str(value)
            break
    return {
        "name": _first_text(raw, "name", "title", "label"),
        "type": _first_text(raw, "type", "category", "subCategory"),
        "distance": distance,
    }


def find_poi_categories(
    obj: Any,
    max_depth: int = DETAIL_MAX_DEPTH,
    max_results: int = DETAIL_MAX_RESULTS,
) -> List[Dict[str, Any]]:
    """Search a JSON tree for arrays of named POI categories."""
    results: List[Dict[str, Any]] = []
    _find_poi_categories(obj, results, 0, max_depth, max_results)
    return results


def _find_poi_categories(obj: Any, results: list, depth: int, max_depth: int, max_results: int):
    if depth > max_depth or len(results) >= max_results or not isinstance(obj, (dict, list)):
        return

    if isinstance(obj, list):
        candidates = [
            item for item in obj
            if isinstance(item, dict)
            and isinstance(item.get("name") or item.get("categoryName") or item.get("title"), str)
            and pick_poi_array(item)
        ]
        before = len(results)
        for category in candidates:
            if len(results) >= max_results:
                return
            name = _first_text(category, "name", "categoryName", "title")
            pois = [p for p in (_poi_record(raw) for raw in pick_poi_array(category)) if p["name"]]
            if name and pois and not any(r["name"] == name for r in results):
                results.append({"name": name, "pois": pois})
        if len(results) - before >= 2:
            return
        for item in obj:
            _find_poi_categories(item, results, depth + 1, max_depth, max_results)
        return

    entries = sorted(obj.items(), key=lambda kv: 0 if POI_KEY_PATTERN.search(kv[0]) else 1)
    for _, value in entries:
        if isinstance(value, (dict, list)):
            _find_poi_categories(value, results, depth + 1, max_depth, max_results)


def parse_apollo_poi_categories(cache: Dict[str, Any]) -> List[Dict[str, Any]]:
    groups = []
    for key, value in cache.items():
        if not isinstance(value, dict) or not APOLLO_POI_KEY_PATTERN.search(key):
            continue
        name = _first_text(value, "name", "categoryName", "title")
        if not name:
            continue
        refs = (
            value.get("pois") or value.get("places")
            or value.get("items") or value.get("locations") or []
        )
        pois = []
        for ref in refs if isinstance(refs, list) else []:
            item = _deref(cache, ref)
            if not isinstance(item, dict):
                continue
            poi = {
                "name": _first_text(item, "name", "title"),
                "type": _first_text(item, "type", "category"),
                "distance": _first_text(item, "distance", "distanceText"),
            }
            if poi["name"]:
                pois.append(poi)
        if pois:
            groups.append({"name": name, "pois": pois})
    return groups


# =============================================================================
# Photos
# =============================================================================

def collect_image_urls(
    obj: Any,
    max_depth: int = DETAIL_MAX_DEPTH,
    max_results: int = DETAIL_MAX_RESULTS,
) -> List[str]:
    """Collect string leaves that look like hotel photo URLs."""
    urls: List[str] = []
    _collect_image_urls(obj, urls, 0, max_depth, max_results)
    return urls


def _collect_image_urls(obj: Any, urls: List[str], depth: int, max_depth: int, max_results: int):
    if depth > max_depth or len(urls) >= max_results:
        return
    if isinstance(obj, str):
        if HOTEL_IMAGE_PATTERN.match(obj.strip()):
            urls.append(obj.strip())
        return
    if isinstance(obj, dict):
        values = obj.values()
    elif isinstance(obj, list):
        values = obj
    else:
        return
    for value in values:
        if len(urls) >= max_results:
            return
        _collect_image_urls(value, urls, depth + 1, max_depth, max_results)


def parse_apollo_image_urls(cache: Dict[str, Any], max_results: int = DETAIL_MAX_RESULTS) -> List[str]:
    """Photo URLs from Apollo entities; entities are flat so depth 2 is enough."""
    urls: List[str] = []
    for key, value in cache.items():
        if not re.search(r"photo|image|picture", key, re.I):
            continue
        _collect_image_urls(value, urls, 0, 2, max_results)
        if len(urls) >= max_results:
            break
    return urls
