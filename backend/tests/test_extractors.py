"""
Tests for the search-page price extraction pipeline.

Covers price text parsing, currency detection and the
selectors -> JSON-LD -> __NEXT_DATA__ waterfall.
"""
import json

import pytest

from pricecalendar.scrapers.extractors import (
    DEFAULT_CURRENCY,
    Currency,
    JsonLdPriceStrategy,
    NextDataPriceStrategy,
    PriceExtractor,
    SelectorPriceStrategy,
    detect_currency,
    extract_prices,
    parse_price,
)


def _card(price_text: str) -> str:
    return (
        '<div data-testid="property-card-container">'
        f'<span data-testid="price-and-discounted-price">{price_text}</span>'
        "</div>"
    )


def _next_data(payload: dict) -> str:
    return f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(payload)}</script>'


class TestParsePrice:
    """Tests for parse_price()."""

    @pytest.mark.parametrize("text,expected", [
        ("€ 120", 120),
        ("US$1,234", 1234),
        ("1,234.56", 1234.56),
        ("1.234,56", 1234.56),
        ("€ 1 234", 1234),
        ("Price: 89.50 per night", 89.5),
        ("12,345,678", 0),
    ])
    def test_parses_display_formats(self, text, expected):
        assert parse_price(text) == expected

    def test_no_digits_is_zero(self):
        assert parse_price("abc") == 0

    def test_empty_and_none_are_zero(self):
        assert parse_price("") == 0
        assert parse_price(None) == 0

    def test_values_not_above_one_are_rejected(self):
        """Prices must be strictly greater than 1."""
        assert parse_price("0.5") == 0
        assert parse_price("1") == 0

    def test_values_at_upper_bound_are_rejected(self):
        assert parse_price("999999") == 0
        assert parse_price("999998") == 999998

    def test_trailing_separator_is_ignored(self):
        assert parse_price("150.") == 150


class TestDetectCurrency:
    """Tests for detect_currency()."""

    def test_known_symbols(self):
        assert detect_currency("€ 120") == Currency("€", "EUR")
        assert detect_currency("£85") == Currency("£", "GBP")
        assert detect_currency("¥12,000") == Currency("¥", "JPY")

    def test_dollar_is_checked_last(self):
        """A string with both symbols resolves to the non-dollar one."""
        assert detect_currency("$ / € 100").code == "EUR"
        assert detect_currency("US$100") == DEFAULT_CURRENCY

    def test_three_letter_code_fallback(self):
        currency = detect_currency("CHF 230")
        assert currency.code == "CHF"
        assert currency.symbol == "CHF\u202f"

    def test_no_currency(self):
        assert detect_currency("230") is None
        assert detect_currency("") is None


class TestSelectorStrategy:
    """Tests for the structural selector tier."""

    def test_dedupes_and_detects_currency_from_first_price(self):
        html = "".join(_card(p) for p in ["€ 120", "€ 95", "€ 120", "€ 210"])
        result = PriceExtractor.extract(html, strategies=[SelectorPriceStrategy()])

        assert result.prices == [120, 95, 210]
        assert result.currency == Currency("€", "EUR")
        assert result.strategy == "selectors"

    def test_less_specific_selectors_skipped_once_enough(self):
        html = (
            "".join(_card(p) for p in ["£100", "£110", "£120"])
            + '<span class="bui-price-display__value">£999</span>'
        )
        result = extract_prices(html)
        assert result.prices == [100, 110, 120]

    def test_falls_through_selectors_when_few_prices(self):
        html = _card("£100") + '<span class="bui-price-display__value">£130</span>'
        result = extract_prices(html)
        assert result.prices == [100, 130]

    def test_unparseable_text_is_skipped(self):
        html = _card("Sold out") + _card("$75")
        result = extract_prices(html)
        assert result.prices == [75]
        assert result.currency == DEFAULT_CURRENCY


class TestWaterfall:
    """Tests for PriceExtractor fallbacks."""

    def test_json_ld_used_when_markup_has_no_prices(self):
        ld = {
            "@type": "Hotel",
            "offers": [{"price": "140"}, {"lowPrice": 99}, {"price": "n/a"}],
        }
        html = f'<script type="application/ld+json">{json.dumps(ld)}</script>'
        result = extract_prices(html)

        assert result.prices == [140, 99]
        assert result.strategy == "json-ld"
        assert result.currency is None

    def test_malformed_json_ld_does_not_abort(self):
        html = (
            '<script type="application/ld+json">{not json</script>'
            + _next_data({"props": {"results": [{"priceValue": 80}]}})
        )
        result = extract_prices(html)
        assert result.prices == [80]
        assert result.strategy == "next-data"

    def test_next_data_price_like_keys(self):
        payload = {
            "props": {
                "pageProps": {
                    "results": [
                        {"name": "A", "minPrice": "120.5 EUR"},
                        {"name": "B", "displayAmount": 95},
                        {"name": "C", "rating": 8.5, "reviewCount": 1200},
                    ]
                }
            }
        }
        result = PriceExtractor.extract(_next_data(payload), strategies=[NextDataPriceStrategy()])
        assert result.prices == [120.5, 95]

    def test_malformed_next_data_yields_nothing(self):
        html = '<script id="__NEXT_DATA__">{"props": </script>'
        result = extract_prices(html)
        assert result.prices == []
        assert result.strategy is None

    def test_empty_document(self):
        result = extract_prices("<html><body><p>No results</p></body></html>")
        assert result.prices == []
        assert result.currency is None

    def test_first_successful_strategy_wins(self):
        ld = {"offers": {"price": 500}}
        html = _card("€ 80") + f'<script type="application/ld+json">{json.dumps(ld)}</script>'
        result = extract_prices(html)
        assert result.prices == [80]
        assert result.strategy == "selectors"

    def test_json_ld_strategy_ignores_non_dict_items(self):
        html = '<script type="application/ld+json">[1, "x", {"offers": [2, {"price": 60}]}]</script>'
        result = PriceExtractor.extract(html, strategies=[JsonLdPriceStrategy()])
        assert result.prices == [60]
