"""
Multi-fallback price extraction for Booking.com search result pages.

Prices are pulled from one HTML document through an ordered waterfall:

1. Structural selectors on property cards (most specific first)
2. schema.org JSON-LD ``offers``
3. The ``__NEXT_DATA__`` SSR payload (bounded recursive walk)

Principles:
1. Try specific selectors first
2. Fall back to embedded JSON only when markup yields nothing
3. Log which strategy succeeded
4. Malformed data never aborts the waterfall
"""

import json
import re
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from bs4 import BeautifulSoup

from pricecalendar.scrapers.json_search import collect_prices, load_next_data, to_number

logger = logging.getLogger(__name__)

MIN_PRICE = 1
MAX_PRICE = 999_999

_NUMERIC_RUN = re.compile(r"\d[\d,.]*")
_THOUSANDS_COMMA = re.compile(r",(?=\d{3}(?!\d))")
_CURRENCY_CODE = re.compile(r"\b([A-Z]{3})\b")


# =============================================================================
# Currency
# =============================================================================

@dataclass(frozen=True)
class Currency:
    symbol: str
    code: str


DEFAULT_CURRENCY = Currency(symbol="$", code="USD")

# Checked in order, "$" last
CURRENCY_SYMBOLS = [
    Currency("€", "EUR"),
    Currency("£", "GBP"),
    Currency("¥", "JPY"),
    Currency("₹", "INR"),
    Currency("₩", "KRW"),
    Currency("฿", "THB"),
    Currency("$", "USD"),
]


def detect_currency(text: str) -> Optional[Currency]:
    """
    Detect the currency of a price string.

    Known symbols win; otherwise a standalone 3-letter uppercase code is used,
    rendered as the code followed by a narrow no-break space.
    """
    if not text:
        return None
    for currency in CURRENCY_SYMBOLS:
        if currency.symbol in text:
            return currency
    match = _CURRENCY_CODE.search(text)
    if match:
        return Currency(symbol=match.group(1) + "\u202f", code=match.group(1))
    return None


# =============================================================================
# Price parsing
# =============================================================================

def parse_price(text: Optional[str]) -> float:
    """
    Parse a displayed price into a float, or 0 when there is none.

    "1,234.56" -> 1234.56, "1.234,56" -> 1234.56, "abc" -> 0, "0.5" -> 0
    """
    if not text:
        return 0
    cleaned = re.sub(r"\s", "", text)
    match = _NUMERIC_RUN.search(cleaned)
    if not match:
        return 0

    number = match.group(0).rstrip(".,")
    # A comma followed by exactly three digits groups thousands
    number = _THOUSANDS_COMMA.sub("", number)

    # Of whatever separators remain, the last is the decimal point
    last_sep = max(number.rfind("."), number.rfind(","))
    if last_sep >= 0:
        integer = number[:last_sep].replace(".", "").replace(",", "")
        number = f"{integer}.{number[last_sep + 1:]}"

    try:
        value = float(number)
    except ValueError:
        return 0
    return value if MIN_PRICE < value < MAX_PRICE else 0


# =============================================================================
# Extraction Strategies
# =============================================================================

@dataclass
class PriceExtraction:
    """Result of running the price waterfall over one document."""
    prices: List[float] = field(default_factory=list)
    currency: Optional[Currency] = None
    strategy: Optional[str] = None


class SelectorPriceStrategy:
    """
    Structural selectors on the rendered result list.

    Values are deduplicated by exact value across selectors. Once a selector
    brings the total to 3 or more, less specific selectors are skipped.
    """

    name = "selectors"

    SELECTORS = [
        {"name": "discounted-price", "selector": '[data-testid="price-and-discounted-price"]', "level": 0},
        {"name": "card-price", "selector": '[data-testid="property-card-container"] [class*="price"]', "level": 1},
        {"name": "bui-price", "selector": ".bui-price-display__value", "level": 2},
        {"name": "prco-helper", "selector": ".prco-valign-middle-helper", "level": 2},
        {"name": "price-amount", "selector": '[class*="Price__amount"]', "level": 3},
        {"name": "final-price", "selector": '[class*="finalPrice"]', "level": 3},
        {"name": "sr-price", "selector": '[class*="sr_price"] [class*="price"]', "level": 4},
    ]

    ENOUGH_PRICES = 3

    def extract(self, soup: BeautifulSoup) -> PriceExtraction:
        result = PriceExtraction()
        seen = set()

        for strategy in self.SELECTORS:
            elements = soup.select(strategy["selector"])
            if not elements:
                continue

            for element in elements:
                text = element.get_text()
                price = parse_price(text)
                if price > 0 and price not in seen:
                    seen.add(price)
                    result.prices.append(price)
                    if len(result.prices) == 1:
                        result.currency = detect_currency(text)
                    logger.debug(
                        f"Price {price} extracted via {strategy['name']} (level {strategy['level']})"
                    )

            if len(result.prices) >= self.ENOUGH_PRICES:
                break

        if result.prices:
            result.strategy = self.name
        return result


class JsonLdPriceStrategy:
    """schema.org ``offers[].price`` (or ``lowPrice``) from JSON-LD blocks."""

    name = "json-ld"

    def extract(self, soup: BeautifulSoup) -> PriceExtraction:
        result = PriceExtraction()
        for script in soup.select('script[type="application/ld+json"]'):
            try:
                data = json.loads(script.get_text())
            except ValueError as e:
                logger.debug(f"Skipping malformed JSON-LD block: {e}")
                continue

            items = data if isinstance(data, list) else [data]
            for item in items:
                if not isinstance(item, dict):
                    continue
                offers = item.get("offers") or []
                if not isinstance(offers, list):
                    offers = [offers]
                for offer in offers:
                    if not isinstance(offer, dict):
                        continue
                    price = to_number(offer.get("price") or offer.get("lowPrice") or 0)
                    if price is not None and price > 0:
                        result.prices.append(price)

        if result.prices:
            result.strategy = self.name
        return result


class NextDataPriceStrategy:
    """Price-like keys anywhere in the ``__NEXT_DATA__`` payload."""

    name = "next-data"

    def extract(self, soup: BeautifulSoup) -> PriceExtraction:
        result = PriceExtraction()
        data = load_next_data(soup)
        if data is not None:
            result.prices = collect_prices(data)
        if result.prices:
            result.strategy = self.name
        return result


class PriceExtractor:
    """Run price strategies in order; the first that yields prices wins."""

    STRATEGIES = [
        SelectorPriceStrategy(),
        JsonLdPriceStrategy(),
        NextDataPriceStrategy(),
    ]

    @classmethod
    def extract(cls, html: str, strategies: Optional[List[Any]] = None) -> PriceExtraction:
        soup = BeautifulSoup(html, "lxml")

        for strategy in strategies or cls.STRATEGIES:
            extraction = strategy.extract(soup)
            if extraction.prices:
                logger.info(
                    f"Extracted {len(extraction.prices)} prices via {strategy.name}"
                )
                return extraction
            logger.debug(f"Price strategy {strategy.name} found nothing")

        logger.debug("No prices extracted from any strategy")
        return PriceExtraction()


def extract_prices(html: str) -> PriceExtraction:
    return PriceExtractor.extract(html)
