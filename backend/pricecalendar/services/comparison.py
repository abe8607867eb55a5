"""
Side-by-side comparison of saved listings.

The table has fixed field sections built from the search-result cards and a
features section built from each listing's merged hotel details. Rows carry
a ``differs`` flag so callers can show only what actually varies.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from pricecalendar.scrapers.detail_extractors import DEFAULT_BASE_URL, HotelDetails, normalize_text
from pricecalendar.schemas.compare import CompareEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMPARE = 4
TOP_FACILITIES = "Top Facilities"

CompareTab = Literal["all", "general", "pricing", "ratings", "stay", "features"]
COMPARE_TABS = ("all", "general", "pricing", "ratings", "stay", "features")
FeatureRowType = Literal["boolean", "value"]


class CompareListFull(Exception):
    """Raised when adding to a compare list that already holds the maximum."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"You can compare up to {max_size} hotels at once")


# =============================================================================
# Compare list
# =============================================================================

class CompareList:
    """
    Ordered, bounded list of saved listings.

    Every mutation is written through to ``store`` when one is given.
    """

    def __init__(self, entries: Sequence[CompareEntry] = (), max_size: int = DEFAULT_MAX_COMPARE, store=None):
        self.max_size = max_size
        self.store = store
        self._entries: List[CompareEntry] = list(entries)[:max_size]

    @classmethod
    def load(cls, store, max_size: int = DEFAULT_MAX_COMPARE) -> "CompareList":
        return cls(store.load(), max_size=max_size, store=store)

    @property
    def entries(self) -> List[CompareEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return any(e.id == entry_id for e in self._entries)

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self.max_size

    def _save(self):
        if self.store is not None:
            self.store.save(self._entries)

    def add(self, entry: CompareEntry) -> bool:
        """Add an entry. False if already present; CompareListFull when at capacity."""
        if entry.id in self:
            return False
        if self.is_full:
            raise CompareListFull(self.max_size)
        self._entries.append(entry)
        self._save()
        return True

    def remove(self, entry_id: str) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.id != entry_id]
        if len(self._entries) == before:
            return False
        self._save()
        return True

    def toggle(self, entry: CompareEntry) -> bool:
        """Remove the entry if present, add it otherwise. Returns whether it is now listed."""
        if self.remove(entry.id):
            return False
        self.add(entry)
        return True

    def clear(self):
        self._entries = []
        self._save()


# =============================================================================
# Listing cards
# =============================================================================

def _select_text(root, selector: str) -> str:
    el = root.select_one(selector)
    return el.get_text(strip=True) if el is not None else ""


def listing_id(url: str) -> str:
    return urlsplit(url).path


def extract_listing_card(html: str, base_url: str = DEFAULT_BASE_URL) -> CompareEntry:
    """Read a search-result property card. Raises ValueError without a title link."""
    soup = BeautifulSoup(html, "lxml")
    card = soup.select_one('[data-testid="property-card"]') or soup

    link = card.select_one('[data-testid="title-link"]')
    if link is None or not link.get("href"):
        raise ValueError("Property card has no title link")
    url = urljoin(base_url + "/", link["href"])

    img = card.select_one('[data-testid="property-card-desktop-single-image"] img, [data-testid="image"]')

    stars = 0
    stars_el = card.select_one('[aria-label*="out of 5"]')
    if stars_el is not None:
        match = re.match(r"^(\d)", stars_el.get("aria-label", ""))
        if match:
            stars = int(match.group(1))

    score = score_label = review_count = ""
    score_el = card.select_one('[data-testid="review-score"]')
    if score_el is not None:
        score = _select_text(score_el, '[aria-hidden="true"]')
        score_label = _select_text(score_el, '[aria-hidden="false"] div:first-child')
        review_count = _select_text(score_el, '[aria-hidden="false"] div:last-child')

    return CompareEntry(
        id=listing_id(url),
        name=_select_text(card, '[data-testid="title"]'),
        url=url,
        img=img.get("src", "") if img is not None else "",
        stars=stars,
        score=score,
        score_label=score_label,
        review_count=review_count,
        location=_select_text(card, '[data-testid="address-link"] .d823fbbeed'),
        distance=_select_text(card, '[data-testid="distance"]'),
        price=_select_text(card, '[data-testid="price-and-discounted-price"]'),
        orig_price=_select_text(card, ".d68334ea31"),
        nights=_select_text(card, '[data-testid="price-for-x-nights"]'),
        room=_select_text(card, '[data-testid="recommended-units"] h4'),
        payment=_select_text(card, '[data-testid="availability-single"] strong'),
    )


# =============================================================================
# Comparison table
# =============================================================================

def normalize_compare_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return re.sub(r"\s+", " ", str(value)).strip().lower()


def has_differences(values: Sequence[Any]) -> bool:
    if len(values) <= 1:
        return False
    baseline = normalize_compare_value(values[0])
    return any(normalize_compare_value(v) != baseline for v in values[1:])


@dataclass
class FieldRow:
    label: str
    values: List[Any]
    differs: bool


@dataclass
class FieldSection:
    id: str
    title: str
    rows: List[FieldRow] = field(default_factory=list)


@dataclass
class FeatureRow:
    label: str
    type: FeatureRowType
    values: List[Any]
    differs: bool = False


@dataclass
class FeatureSection:
    name: str
    rows: List[FeatureRow] = field(default_factory=list)


@dataclass
class ComparisonTable:
    entries: List[CompareEntry]
    sections: List[FieldSection]
    features: List[FeatureSection]
    has_features: bool = False
    empty_differences: bool = False


FIELD_SECTIONS: List[Dict[str, Any]] = [
    {
        "id": "general",
        "title": "General Information",
        "rows": [
            ("Stars", lambda e: e.stars or ""),
            ("Location", lambda e: e.location),
            ("Distance", lambda e: e.distance),
        ],
    },
    {
        "id": "ratings",
        "title": "Ratings",
        "rows": [
            ("Guest score", lambda e: f"{e.score}|{e.score_label}"),
            ("Reviews", lambda e: e.review_count),
        ],
    },
    {
        "id": "pricing",
        "title": "Pricing",
        "rows": [
            ("Price", lambda e: e.price),
            ("Previous price", lambda e: e.orig_price),
            ("Duration", lambda e: e.nights),
        ],
    },
    {
        "id": "stay",
        "title": "Stay Details",
        "rows": [
            ("Room", lambda e: e.room),
            ("Payment", lambda e: e.payment),
        ],
    },
]


def build_field_sections(entries: Sequence[CompareEntry]) -> List[FieldSection]:
    sections = []
    for section_def in FIELD_SECTIONS:
        rows = []
        for label, value_of in section_def["rows"]:
            values = [value_of(e) for e in entries]
            rows.append(FieldRow(label=label, values=values, differs=has_differences(values)))
        sections.append(FieldSection(id=section_def["id"], title=section_def["title"], rows=rows))
    return sections


class _FeatureCollector:
    def __init__(self, count: int):
        self.count = count
        self.sections: Dict[str, FeatureSection] = {}
        self.rows: Dict[str, Dict[str, FeatureRow]] = {}

    def add(self, section_name: str, label: str, idx: int, value: Any, row_type: FeatureRowType):
        label = normalize_text(label)
        if not label:
            return
        name = normalize_text(section_name) or "Features"
        section_key = name.lower()
        if section_key not in self.sections:
            self.sections[section_key] = FeatureSection(name=name)
            self.rows[section_key] = {}

        rows = self.rows[section_key]
        row_key = label.lower()
        if row_key not in rows:
            rows[row_key] = FeatureRow(label=label, type=row_type, values=[None] * self.count)
        row = rows[row_key]

        if row.values[idx] is None:
            row.values[idx] = value
        elif row.type == "value" and isinstance(value, str) and value and row.values[idx] != value:
            row.values[idx] = value

    def build(self) -> List[FeatureSection]:
        sections = []
        for key, section in self.sections.items():
            rows = [
                r for r in self.rows[key].values()
                if any(v is not None and v != "" for v in r.values)
            ]
            rows.sort(key=lambda r: r.label.casefold())
            for row in rows:
                row.differs = has_differences(row.values)
            if rows:
                sections.append(FeatureSection(name=section.name, rows=rows))

        sections.sort(key=lambda s: (s.name.lower() != TOP_FACILITIES.lower(), s.name.casefold()))
        return sections


def build_feature_sections(details_by_entry: Sequence[Optional[HotelDetails]]) -> List[FeatureSection]:
    collector = _FeatureCollector(len(details_by_entry))
    for idx, details in enumerate(details_by_entry):
        if details is None:
            continue
        for item in details.popular_facilities:
            collector.add(TOP_FACILITIES, item, idx, True, "boolean")
        for group in details.facility_groups:
            section = normalize_text(group.name) or "Facilities"
            for item in group.facilities:
                collector.add(section, item, idx, True, "boolean")
        for category in details.area_info:
            section = normalize_text(category.name) or "Nearby Places"
            for poi in category.pois:
                name = normalize_text(poi.name)
                if not name:
                    continue
                poi_type = normalize_text(poi.type)
                label = f"{poi_type}: {name}" if poi_type else name
                collector.add(section, label, idx, normalize_text(poi.distance), "value")
    return collector.build()


def build_comparison(
    entries: Sequence[CompareEntry],
    details_by_entry: Optional[Sequence[Optional[HotelDetails]]] = None,
) -> ComparisonTable:
    details = list(details_by_entry) if details_by_entry is not None else [None] * len(entries)
    features = build_feature_sections(details)
    return ComparisonTable(
        entries=list(entries),
        sections=build_field_sections(entries),
        features=features,
        has_features=bool(features),
    )


def filter_table(table: ComparisonTable, tab: str = "all", differences_only: bool = False) -> ComparisonTable:
    """
    Apply the tab and "only differences" filters.

    Sections and feature subsections with no remaining rows are dropped.
    ``empty_differences`` is set when features exist but none differ.
    """
    if tab not in COMPARE_TABS:
        raise ValueError(f"Unknown comparison tab: {tab}")

    def keep(row) -> bool:
        return row.differs or not differences_only

    sections = []
    for section in table.sections:
        if tab not in ("all", section.id):
            continue
        rows = [r for r in section.rows if keep(r)]
        if rows:
            sections.append(replace(section, rows=rows))

    features = []
    empty_differences = False
    if tab in ("all", "features"):
        for section in table.features:
            rows = [r for r in section.rows if keep(r)]
            if rows:
                features.append(replace(section, rows=rows))
        empty_differences = differences_only and table.has_features and not features

    return replace(
        table,
        sections=sections,
        features=features,
        empty_differences=empty_differences,
    )


async def load_comparison(
    entries: Sequence[CompareEntry],
    fetch_details: Callable,
) -> ComparisonTable:
    """Fetch details for every entry concurrently and build the full table."""
    results = await asyncio.gather(
        *(fetch_details(entry.url) for entry in entries),
        return_exceptions=True,
    )
    details = []
    for entry, result in zip(entries, results):
        if isinstance(result, Exception):
            logger.warning(f"Details for {entry.id} failed: {result}")
            result = None
        details.append(result)
    return build_comparison(entries, details)
