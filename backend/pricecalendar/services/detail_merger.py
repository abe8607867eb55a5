"""
Merge hotel detail snapshots gathered from several fetches.

Snapshots overlap heavily and disagree on casing, whitespace and photo
sizes, so every list is merged case-insensitively in first-seen order.
Merging is associative and merging a snapshot with itself changes nothing.
"""

from typing import Iterable, List, Optional

from pricecalendar.scrapers.detail_extractors import (
    MAX_PHOTOS,
    FacilityGroup,
    HotelDetails,
    POI,
    POICategory,
    merge_photo_urls,
    normalize_text,
    unique_lines,
)


def merge_unique_strings(*lists: Iterable[str]) -> List[str]:
    merged = []
    for strings in lists:
        merged.extend(strings or [])
    return unique_lines(merged)


def merge_facility_groups(*lists: Iterable[FacilityGroup]) -> List[FacilityGroup]:
    """
    Combine groups by case-insensitive name.

    The longest description wins (first seen on ties) and facility lists are
    unioned. Groups left with neither facilities nor a description are dropped.
    """
    merged = {}
    for groups in lists:
        for group in groups or []:
            name = normalize_text(group.name)
            if not name:
                continue
            key = name.lower()
            description = (group.description or "").strip()
            facilities = unique_lines(group.facilities)

            existing = merged.get(key)
            if existing is None:
                merged[key] = FacilityGroup(name=name, description=description, facilities=facilities)
                continue
            if len(description) > len(existing.description):
                existing.description = description
            existing.facilities = merge_unique_strings(existing.facilities, facilities)

    return [g for g in merged.values() if g.facilities or g.description]


def merge_area_info(*lists: Iterable[POICategory]) -> List[POICategory]:
    """Combine POI categories by name; POIs are unique by (name, distance)."""
    merged = {}
    seen = {}
    for categories in lists:
        for category in categories or []:
            name = normalize_text(category.name)
            if not name:
                continue
            key = name.lower()
            if key not in merged:
                merged[key] = POICategory(name=name)
                seen[key] = set()

            for poi in category.pois or []:
                poi_name = (poi.name or "").strip()
                if not poi_name:
                    continue
                distance = (poi.distance or "").strip()
                poi_key = (poi_name.lower(), distance.lower())
                if poi_key in seen[key]:
                    continue
                seen[key].add(poi_key)
                merged[key].pois.append(POI(name=poi_name, type=(poi.type or "").strip(), distance=distance))

    return [c for c in merged.values() if c.pois]


def merge_details(*snapshots: Optional[HotelDetails], max_photos: int = MAX_PHOTOS) -> HotelDetails:
    """Merge snapshots in order; None entries (failed fetches) are skipped."""
    present = [s for s in snapshots if s is not None]
    return HotelDetails(
        popular_facilities=merge_unique_strings(*(s.popular_facilities for s in present)),
        facility_groups=merge_facility_groups(*(s.facility_groups for s in present)),
        area_info=merge_area_info(*(s.area_info for s in present)),
        photo_urls=merge_photo_urls(*(s.photo_urls for s in present), max_count=max_photos),
    )
