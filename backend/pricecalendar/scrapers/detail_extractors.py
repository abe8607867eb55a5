"""
Hotel detail extraction: facilities, points of interest and photos.

Each section is a three-tier waterfall over one HTML document:

1. Rendered markup (``data-testid`` containers)
2. The ``__NEXT_DATA__`` SSR payload
3. The Apollo GraphQL client cache

Lazy-loaded sections are often missing from server HTML, which is why the
JSON tiers exist. Results are merged across fetches by the detail merger.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, NavigableString, Tag

from pricecalendar.scrapers.json_search import (
    collect_image_urls,
    find_facility_groups,
    find_poi_categories,
    load_apollo_cache,
    load_next_data,
    parse_apollo_facilities,
    parse_apollo_image_urls,
    parse_apollo_poi_categories,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.booking.com"
MAX_PHOTOS = 12

BLOCK_TAGS = {
    "div", "p", "li", "ul", "ol", "section", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
}
SKIP_TAGS = {"script", "style", "noscript", "template"}

_PHOTO_SIZE = re.compile(r"/max\d+(x\d+)?/", re.I)
_PHOTO_ID = re.compile(r"/(\d+)\.(?:jpg|jpeg|png|webp)$", re.I)


# =============================================================================
# Records
# =============================================================================

@dataclass
class FacilityGroup:
    name: str
    description: str = ""
    facilities: List[str] = field(default_factory=list)


@dataclass
class POI:
    name: str
    type: str = ""
    distance: str = ""


@dataclass
class POICategory:
    name: str
    pois: List[POI] = field(default_factory=list)


@dataclass
class HotelDetails:
    """Everything gathered about one listing, from one or more snapshots."""
    popular_facilities: List[str] = field(default_factory=list)
    facility_groups: List[FacilityGroup] = field(default_factory=list)
    area_info: List[POICategory] = field(default_factory=list)
    photo_urls: List[str] = field(default_factory=list)

    @property
    def facility_lines(self) -> List[str]:
        """Group names, descriptions and facilities flattened and deduplicated."""
        lines = []
        for group in self.facility_groups:
            lines.append(group.name)
            lines.append(group.description)
            lines.extend(group.facilities)
        return unique_lines(lines)

    @property
    def is_empty(self) -> bool:
        return not (
            self.popular_facilities or self.facility_groups
            or self.area_info or self.photo_urls
        )


# =============================================================================
# Text helpers
# =============================================================================

def normalize_text(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text).strip() if isinstance(text, str) else ""


def unique_lines(lines) -> List[str]:
    """Normalise and deduplicate case-insensitively, keeping first-seen order."""
    out = []
    seen = set()
    for line in lines or []:
        text = normalize_text(line)
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        out.append(text)
    return out


def inner_text(element) -> str:
    """Approximate the browser's innerText: block elements break lines."""
    parts: List[str] = []
    _inner_text(element, parts)
    return "".join(parts)


def _inner_text(node, parts: List[str]):
    if isinstance(node, NavigableString):
        parts.append(str(node))
        return
    if not isinstance(node, Tag) or node.name in SKIP_TAGS:
        return
    if node.name == "br":
        parts.append("\n")
        return
    block = node.name in BLOCK_TAGS
    if block:
        parts.append("\n")
    for child in node.children:
        _inner_text(child, parts)
    if block:
        parts.append("\n")


def element_lines(element, split_lines: bool = True) -> List[str]:
    if element is None:
        return []
    raw = inner_text(element)
    chunks = raw.split("\n") if split_lines else [raw]
    return [line for line in (normalize_text(c) for c in chunks) if line]


# =============================================================================
# Photo URLs
# =============================================================================

def normalize_photo_url(url, base_url: str = DEFAULT_BASE_URL) -> str:
    """
    Canonical hotel photo URL, or "" if the URL is not a hotel photo.

    Query and fragment are dropped and the size segment is pinned to
    ``/max1024x768/`` so the same photo at different sizes compares equal.
    """
    if not isinstance(url, str) or not url.strip():
        return ""
    parts = urlsplit(urljoin(base_url + "/", url.strip()))
    if parts.scheme.lower() not in ("http", "https"):
        return ""
    if "/images/hotel/" not in parts.path.lower():
        return ""
    path = _PHOTO_SIZE.sub("/max1024x768/", parts.path, count=1)
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def photo_key(url: str) -> str:
    path = urlsplit(url).path
    match = _PHOTO_ID.search(path)
    if match:
        return match.group(1)
    return _PHOTO_SIZE.sub("/max/", path, count=1)


def merge_photo_urls(*lists, max_count: int = MAX_PHOTOS, base_url: str = DEFAULT_BASE_URL) -> List[str]:
    out = []
    seen = set()
    for urls in lists:
        for url in urls or []:
            normalized = normalize_photo_url(url, base_url)
            if not normalized:
                continue
            key = photo_key(normalized)
            if key in seen:
                continue
            seen.add(key)
            out.append(normalized)
    return out[:max_count]


# =============================================================================
# Extractors
# =============================================================================

def _facility_groups_from_records(records) -> List[FacilityGroup]:
    return [
        FacilityGroup(
            name=r["name"],
            description=r.get("description", ""),
            facilities=unique_lines(r.get("facilities", [])),
        )
        for r in records
    ]


def _poi_categories_from_records(records) -> List[POICategory]:
    return [
        POICategory(
            name=r["name"],
            pois=[POI(name=p["name"], type=p.get("type", ""), distance=p.get("distance", "")) for p in r["pois"]],
        )
        for r in records
    ]


class DetailExtractor:
    """Extract a HotelDetails snapshot from one hotel page document."""

    PHOTO_SELECTORS = [
        '[data-testid*="gallery"] img',
        '[data-testid*="photo"] img',
        '[data-testid*="image"] img',
        'img[src*="/images/hotel/"]',
        'img[data-src*="/images/hotel/"]',
    ]

    def __init__(self, html: str, base_url: str = DEFAULT_BASE_URL, max_photos: int = MAX_PHOTOS):
        self.soup = BeautifulSoup(html, "lxml")
        self.base_url = base_url
        self.max_photos = max_photos
        self._next_data = None
        self._apollo = None
        self._loaded_next_data = False
        self._loaded_apollo = False

    @property
    def next_data(self):
        if not self._loaded_next_data:
            self._next_data = load_next_data(self.soup)
            self._loaded_next_data = True
        return self._next_data

    @property
    def apollo_cache(self):
        if not self._loaded_apollo:
            self._apollo = load_apollo_cache(self.soup)
            self._loaded_apollo = True
        return self._apollo

    def extract(self) -> HotelDetails:
        return HotelDetails(
            popular_facilities=self.popular_facilities(),
            facility_groups=self.facility_groups(),
            area_info=self.area_info(),
            photo_urls=self.photo_urls(),
        )

    def popular_facilities(self) -> List[str]:
        primary = []
        for el in self.soup.select(
            '[data-testid="property-most-popular-facilities-wrapper"] .f6b6d2a959'
        ):
            primary.extend(element_lines(el))
        if primary:
            return unique_lines(primary)

        fallback = []
        for el in self.soup.select('[data-testid*="facility"] li, [data-testid*="facility"] span'):
            fallback.extend(element_lines(el))
        return [line for line in unique_lines(fallback) if 1 < len(line) < 60]

    def facility_groups(self) -> List[FacilityGroup]:
        groups = []
        for container in self.soup.select('[data-testid="facility-group-container"]'):
            title = container.select_one("h3")
            if title is None:
                continue
            name = normalize_text(inner_text(title))
            if not name:
                continue
            desc_el = container.select_one("h3 + div, h3 div + div")
            description = normalize_text(inner_text(desc_el)) if desc_el is not None else ""

            facilities = []
            for item in container.select("li"):
                facilities.extend(element_lines(item))
            facilities = unique_lines(facilities)
            if facilities or description:
                groups.append(FacilityGroup(name=name, description=description, facilities=facilities))
        if groups:
            logger.debug(f"Facility groups via markup: {len(groups)}")
            return groups

        if self.next_data is not None:
            records = find_facility_groups(self.next_data)
            if records:
                logger.debug(f"Facility groups via __NEXT_DATA__: {len(records)}")
                return _facility_groups_from_records(records)

        if self.apollo_cache is not None:
            records = parse_apollo_facilities(self.apollo_cache)
            if records:
                logger.debug(f"Facility groups via Apollo cache: {len(records)}")
                return _facility_groups_from_records(records)

        return []

    def area_info(self) -> List[POICategory]:
        categories = []
        for block in self.soup.select('[data-testid="poi-block"]'):
            name = ""
            for selector in ("h3 .cc045b173b", "h3 div", "h3"):
                el = block.select_one(selector)
                if el is not None and el.get_text(strip=True):
                    name = el.get_text(strip=True)
                    break
            if not name:
                continue
            pois = [
                poi for poi in (self._poi_from_item(li) for li in block.select('[data-testid="poi-block-list"] li'))
                if poi is not None
            ]
            categories.append(POICategory(name=name, pois=pois))
        if categories:
            logger.debug(f"POI categories via markup: {len(categories)}")
            return categories

        if self.next_data is not None:
            records = find_poi_categories(self.next_data)
            if records:
                logger.debug(f"POI categories via __NEXT_DATA__: {len(records)}")
                return _poi_categories_from_records(records)

        if self.apollo_cache is not None:
            records = parse_apollo_poi_categories(self.apollo_cache)
            if records:
                logger.debug(f"POI categories via Apollo cache: {len(records)}")
                return _poi_categories_from_records(records)

        return []

    @staticmethod
    def _poi_from_item(li) -> Optional[POI]:
        stack = li.select_one('span[role="listitem"] > div')
        stack_children = [c for c in stack.children if isinstance(c, Tag)] if stack is not None else []

        name_el = li.select_one(".d1bc97eb82")
        if name_el is None and stack_children:
            name_el = stack_children[0]
        if name_el is None:
            return None

        # The type label sits inside the name element
        type_el = name_el.select_one(".f0595bb7c6")
        poi_type = type_el.get_text(strip=True) if type_el is not None else ""
        name = "".join(
            s for s in name_el.find_all(string=True)
            if type_el is None or not any(p is type_el for p in s.parents)
        ).strip()
        if not name:
            return None

        distance_el = li.select_one(".cbf0753d0c")
        distance = distance_el.get_text(strip=True) if distance_el is not None else ""
        if not distance and len(stack_children) >= 2:
            distance = stack_children[1].get_text(strip=True)
        return POI(name=name, type=poi_type, distance=distance)

    def photo_urls(self) -> List[str]:
        raw = []
        for selector in self.PHOTO_SELECTORS:
            for img in self.soup.select(selector):
                raw.append(img.get("src") or img.get("data-src") or img.get("data-lazy-src") or "")
        og_image = self.soup.select_one('meta[property="og:image"]')
        if og_image is not None and og_image.get("content"):
            raw.append(og_image["content"])

        photos = merge_photo_urls(raw, max_count=self.max_photos, base_url=self.base_url)
        if photos:
            return photos

        if self.next_data is not None:
            photos = merge_photo_urls(
                collect_image_urls(self.next_data), max_count=self.max_photos, base_url=self.base_url
            )
            if photos:
                logger.debug(f"Photos via __NEXT_DATA__: {len(photos)}")
                return photos

        if self.apollo_cache is not None:
            photos = merge_photo_urls(
                parse_apollo_image_urls(self.apollo_cache), max_count=self.max_photos, base_url=self.base_url
            )
            if photos:
                logger.debug(f"Photos via Apollo cache: {len(photos)}")
        return photos


def extract_hotel_details(html: str, base_url: str = DEFAULT_BASE_URL, max_photos: int = MAX_PHOTOS) -> HotelDetails:
    return DetailExtractor(html, base_url=base_url, max_photos=max_photos).extract()
