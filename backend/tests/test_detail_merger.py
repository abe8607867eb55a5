"""Tests for merging hotel detail snapshots."""
from pricecalendar.scrapers.detail_extractors import FacilityGroup, HotelDetails, POI, POICategory
from pricecalendar.services.detail_merger import (
    merge_area_info,
    merge_details,
    merge_facility_groups,
    merge_unique_strings,
)


def _snapshot(**kwargs) -> HotelDetails:
    return HotelDetails(**kwargs)


class TestMergeStrings:
    def test_case_insensitive_first_seen(self):
        assert merge_unique_strings(["Free WiFi", "Pool"], ["free wifi", " Spa "], None) == [
            "Free WiFi", "Pool", "Spa",
        ]


class TestMergeFacilityGroups:
    def test_groups_combined_by_name(self):
        merged = merge_facility_groups(
            [FacilityGroup(name="Parking", description="Free", facilities=["Garage"])],
            [
                FacilityGroup(name="parking", description="Free private parking on site", facilities=["garage", "EV charger"]),
                FacilityGroup(name="Pool", facilities=["Outdoor pool"]),
            ],
        )
        assert merged == [
            FacilityGroup(name="Parking", description="Free private parking on site", facilities=["Garage", "EV charger"]),
            FacilityGroup(name="Pool", description="", facilities=["Outdoor pool"]),
        ]

    def test_first_description_wins_ties(self):
        merged = merge_facility_groups(
            [FacilityGroup(name="Pets", description="Allowed")],
            [FacilityGroup(name="Pets", description="Charged")],
        )
        assert merged[0].description == "Allowed"

    def test_empty_and_nameless_groups_dropped(self):
        merged = merge_facility_groups([
            FacilityGroup(name="Empty"),
            FacilityGroup(name="  ", facilities=["Orphan"]),
        ])
        assert merged == []


class TestMergeAreaInfo:
    def test_pois_unique_by_name_and_distance(self):
        merged = merge_area_info(
            [POICategory(name="Nearby", pois=[POI(name="Park", distance="200 m")])],
            [POICategory(name="nearby", pois=[
                POI(name="park", distance="200 M"),
                POI(name="Park", distance="1 km"),
                POI(name=" "),
            ])],
        )
        assert merged == [
            POICategory(name="Nearby", pois=[
                POI(name="Park", distance="200 m"),
                POI(name="Park", distance="1 km"),
            ]),
        ]

    def test_categories_without_pois_dropped(self):
        assert merge_area_info([POICategory(name="Empty")]) == []


class TestMergeDetails:
    def test_none_snapshots_skipped(self):
        a = _snapshot(popular_facilities=["Pool"], photo_urls=["https://cf.bstatic.com/xdata/images/hotel/max500/1.jpg"])
        b = _snapshot(
            popular_facilities=["Spa"],
            photo_urls=["https://cf.bstatic.com/xdata/images/hotel/max300/1.jpg?k=x"],
            area_info=[POICategory(name="Airports", pois=[POI(name="LIS", distance="7 km")])],
        )

        merged = merge_details(a, None, b)

        assert merged.popular_facilities == ["Pool", "Spa"]
        assert merged.photo_urls == ["https://cf.bstatic.com/xdata/images/hotel/max1024x768/1.jpg"]
        assert merged.area_info[0].pois == [POI(name="LIS", distance="7 km")]

    def test_merge_with_itself_is_stable(self):
        snapshot = _snapshot(
            popular_facilities=["Pool"],
            facility_groups=[FacilityGroup(name="Bathroom", facilities=["Towels"])],
            area_info=[POICategory(name="Nearby", pois=[POI(name="Park", distance="1 km")])],
            photo_urls=["https://cf.bstatic.com/xdata/images/hotel/max1024x768/1.jpg"],
        )
        once = merge_details(snapshot)
        assert merge_details(once, once) == once

    def test_nothing_to_merge(self):
        assert merge_details(None, None).is_empty

    def test_photo_cap(self):
        urls = [f"https://cf.bstatic.com/xdata/images/hotel/max500/{i}.jpg" for i in range(10)]
        merged = merge_details(_snapshot(photo_urls=urls), _snapshot(photo_urls=urls), max_photos=5)
        assert len(merged.photo_urls) == 5
