"""
Tests for hotel detail extraction.

Facilities, points of interest and photos each fall back from rendered
markup to __NEXT_DATA__ and then to the Apollo cache.
"""
import json

import pytest

from pricecalendar.scrapers.detail_extractors import (
    DetailExtractor,
    FacilityGroup,
    HotelDetails,
    POI,
    POICategory,
    element_lines,
    extract_hotel_details,
    merge_photo_urls,
    normalize_photo_url,
    unique_lines,
)

from bs4 import BeautifulSoup


FACILITIES_HTML = """
<div data-testid="property-most-popular-facilities-wrapper">
  <ul>
    <li class="f6b6d2a959">Free WiFi</li>
    <li class="f6b6d2a959">  Non-smoking   rooms </li>
    <li class="f6b6d2a959">free wifi</li>
  </ul>
</div>
<div data-testid="facility-group-container">
  <h3>Bathroom</h3>
  <ul><li>Towels</li><li>Hairdryer<br>Free toiletries</li></ul>
</div>
<div data-testid="facility-group-container">
  <h3>Parking</h3>
  <div>Free private parking is possible on site.</div>
</div>
<div data-testid="facility-group-container">
  <h3>Empty</h3>
</div>
"""

POI_HTML = """
<div data-testid="poi-block">
  <h3><div class="cc045b173b">Top attractions</div></h3>
  <ul data-testid="poi-block-list">
    <li>
      <div class="d1bc97eb82"><span class="f0595bb7c6">Museum</span>Rijksmuseum</div>
      <div class="cbf0753d0c">1.2 km</div>
    </li>
    <li>
      <span role="listitem"><div><div>Vondelpark</div><div>800 m</div></div></span>
    </li>
    <li><span>No name here</span></li>
  </ul>
</div>
"""


def _next_data(payload: dict) -> str:
    return f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(payload)}</script>'


def _apollo(cache: dict) -> str:
    return f"<script>{json.dumps(cache)}</script>"


class TestTextHelpers:
    def test_unique_lines_normalizes_and_dedupes(self):
        assert unique_lines(["  Pool ", "pool", "", None, "Spa\n  centre"]) == ["Pool", "Spa centre"]

    def test_element_lines_breaks_on_blocks(self):
        soup = BeautifulSoup(
            "<div><p>First</p>Second<br>Third<script>var x;</script><span> and more</span></div>",
            "lxml",
        )
        assert element_lines(soup.div) == ["First", "Second", "Third and more"]

    def test_element_lines_none(self):
        assert element_lines(None) == []


class TestPhotoUrls:
    def test_normalize_pins_size_and_strips_query(self):
        url = "https://cf.bstatic.com/xdata/images/hotel/max500/123.jpg?k=abc&o=#frag"
        assert normalize_photo_url(url) == "https://cf.bstatic.com/xdata/images/hotel/max1024x768/123.jpg"

    def test_normalize_resolves_relative(self):
        assert normalize_photo_url("/images/hotel/max300/5.jpg") == (
            "https://www.booking.com/images/hotel/max1024x768/5.jpg"
        )

    @pytest.mark.parametrize("url", [
        "",
        None,
        "https://cf.bstatic.com/static/img/logo.png",
        "data:image/png;base64,abc",
    ])
    def test_normalize_rejects_non_photos(self, url):
        assert normalize_photo_url(url) == ""

    def test_merge_dedupes_same_photo_across_sizes(self):
        merged = merge_photo_urls(
            ["https://cf.bstatic.com/xdata/images/hotel/max500/1.jpg?k=a"],
            ["https://cf.bstatic.com/xdata/images/hotel/max1280x900/1.jpg", "not a url"],
            ["https://cf.bstatic.com/xdata/images/hotel/max300/2.jpg"],
        )
        assert merged == [
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/1.jpg",
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/2.jpg",
        ]

    def test_merge_caps_count(self):
        urls = [f"https://cf.bstatic.com/xdata/images/hotel/max500/{i}.jpg" for i in range(20)]
        assert len(merge_photo_urls(urls)) == 12
        assert len(merge_photo_urls(urls, max_count=3)) == 3


class TestMarkupExtraction:
    def test_popular_facilities(self):
        extractor = DetailExtractor(FACILITIES_HTML)
        assert extractor.popular_facilities() == ["Free WiFi", "Non-smoking rooms"]

    def test_popular_facilities_fallback(self):
        html = """
        <div data-testid="facility-list">
          <ul><li>Garden</li><li>X</li><li>Terrace</li></ul>
        </div>
        """
        assert DetailExtractor(html).popular_facilities() == ["Garden", "Terrace"]

    def test_facility_groups(self):
        groups = DetailExtractor(FACILITIES_HTML).facility_groups()
        assert groups == [
            FacilityGroup(name="Bathroom", description="", facilities=["Towels", "Hairdryer", "Free toiletries"]),
            FacilityGroup(name="Parking", description="Free private parking is possible on site.", facilities=[]),
        ]

    def test_area_info(self):
        categories = DetailExtractor(POI_HTML).area_info()
        assert categories == [
            POICategory(
                name="Top attractions",
                pois=[
                    POI(name="Rijksmuseum", type="Museum", distance="1.2 km"),
                    POI(name="Vondelpark", type="", distance="800 m"),
                ],
            )
        ]

    def test_photos_from_images_and_og_tag(self):
        html = """
        <head><meta property="og:image" content="https://cf.bstatic.com/xdata/images/hotel/max500/3.jpg"></head>
        <div data-testid="gallery-grid">
          <img src="https://cf.bstatic.com/xdata/images/hotel/max500/1.jpg?k=x">
          <img data-src="https://cf.bstatic.com/xdata/images/hotel/max300/2.jpg">
          <img src="https://cf.bstatic.com/static/img/flag.png">
        </div>
        """
        assert DetailExtractor(html).photo_urls() == [
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/1.jpg",
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/2.jpg",
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/3.jpg",
        ]


class TestJsonFallbacks:
    def test_next_data_facilities_and_photos(self):
        payload = {
            "props": {
                "facilities": [
                    {"name": "Pool", "facilities": ["Outdoor pool"]},
                    {"name": "Internet", "description": "WiFi is available in all areas."},
                ],
                "photos": ["https://cf.bstatic.com/xdata/images/hotel/max500/7.jpg"],
            }
        }
        details = extract_hotel_details(_next_data(payload))

        assert [g.name for g in details.facility_groups] == ["Pool", "Internet"]
        assert details.facility_groups[1].description == "WiFi is available in all areas."
        assert details.area_info == []
        assert details.photo_urls == ["https://cf.bstatic.com/xdata/images/hotel/max1024x768/7.jpg"]

    def test_next_data_area_info(self):
        payload = {
            "props": {
                "surroundings": [
                    {"name": "Closest airports", "items": [{"name": "Schiphol", "distance": "15 km"}]},
                ],
            }
        }
        details = extract_hotel_details(_next_data(payload))
        assert details.area_info == [
            POICategory(name="Closest airports", pois=[POI(name="Schiphol", distance="15 km")]),
        ]

    def test_apollo_cache_used_last(self):
        cache = {
            "ROOT_QUERY": {},
            "FacilityGroup:1": {"name": "Kitchen", "facilities": [{"__ref": "Facility:1"}]},
            "Facility:1": {"name": "Kettle"},
            "TransitCategory:1": {"name": "Public transit", "pois": [{"__ref": "Station:1"}]},
            "Station:1": {"name": "Central", "distance": "400 m"},
            "HotelPhoto:1": {"url": "https://cf.bstatic.com/xdata/images/hotel/max500/8.jpg"},
        }
        details = extract_hotel_details(_apollo(cache))

        assert details.facility_groups == [FacilityGroup(name="Kitchen", facilities=["Kettle"])]
        assert details.area_info == [
            POICategory(name="Public transit", pois=[POI(name="Central", distance="400 m")]),
        ]
        assert details.photo_urls == ["https://cf.bstatic.com/xdata/images/hotel/max1024x768/8.jpg"]

    def test_markup_wins_over_json(self):
        payload = {"facilities": [
            {"name": "Pool", "facilities": ["Outdoor pool"]},
            {"name": "Spa", "facilities": ["Sauna"]},
        ]}
        details = extract_hotel_details(FACILITIES_HTML + _next_data(payload))
        assert [g.name for g in details.facility_groups] == ["Bathroom", "Parking"]

    def test_nothing_found(self):
        details = extract_hotel_details("<html><body>Closed</body></html>")
        assert details.is_empty
        assert details == HotelDetails()


class TestHotelDetails:
    def test_facility_lines_flatten_and_dedupe(self):
        details = HotelDetails(facility_groups=[
            FacilityGroup(name="Pool", description="Open all year", facilities=["Outdoor pool", "pool"]),
            FacilityGroup(name="Spa", facilities=["Sauna", "Outdoor Pool"]),
        ])
        assert details.facility_lines == ["Pool", "Open all year", "Outdoor pool", "Spa", "Sauna"]

    def test_is_empty(self):
        assert HotelDetails().is_empty
        assert not HotelDetails(photo_urls=["https://x/images/hotel/max500/1.jpg"]).is_empty
