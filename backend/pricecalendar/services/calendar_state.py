"""
Calendar selection and badge view-model.

The date picker has two selection states:

    NoSelection  --pick(d)-->  CheckinSelected(d)
    CheckinSelected(d)  --pick(x <= d)-->  CheckinSelected(x)
    CheckinSelected(d)  --pick(x > d)-->   NoSelection   (checkout picked)

While a check-in is selected, the following ``checkout_window_days`` dates
show prices for stays starting on the selected day. Otherwise every date
shows the price of a stay of the searched length starting on that date.
"""

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Literal, Optional

from pricecalendar.scrapers.extractors import Currency, DEFAULT_CURRENCY
from pricecalendar.services.price_cache import DateRange, PriceCache
from pricecalendar.services.search_context import SearchContext
from pricecalendar.services.stats import PriceStats

DEFAULT_WINDOW_DAYS = 10
MIN_COLORED_BADGES = 3
LOW_QUANTILE = 0.33
HIGH_QUANTILE = 0.66

SelectionState = Literal["no_selection", "checkin_selected"]
BadgeState = Literal["hidden", "loading", "loaded"]
BadgeColor = Literal["low", "mid", "high"]


@dataclass
class PickResult:
    selected: Optional[date]
    ranges: List[DateRange] = field(default_factory=list)
    dismiss_picker: bool = False


class CalendarSelection:
    def __init__(self, window_days: int = DEFAULT_WINDOW_DAYS):
        self.window_days = window_days
        self.selected: Optional[date] = None

    @property
    def state(self) -> SelectionState:
        return "no_selection" if self.selected is None else "checkin_selected"

    def clear(self):
        self.selected = None

    def window_ranges(self) -> List[DateRange]:
        """Candidate stays starting on the selected check-in."""
        if self.selected is None:
            return []
        return [
            DateRange(self.selected, self.selected + timedelta(days=i))
            for i in range(1, self.window_days + 1)
        ]

    def pick(self, picked: date) -> PickResult:
        if self.selected is None or picked <= self.selected:
            self.selected = picked
            return PickResult(selected=picked, ranges=self.window_ranges())

        # A later date completes the range
        self.selected = None
        return PickResult(selected=None, dismiss_picker=True)

    def resolve_range(self, badge_date: date, context: Optional[SearchContext]) -> Optional[DateRange]:
        """The stay whose price a badge on ``badge_date`` shows, if any."""
        if self.selected is not None:
            diff = (badge_date - self.selected).days
            if 1 <= diff <= self.window_days:
                return DateRange(self.selected, badge_date)
        if context is None:
            return None
        return DateRange(badge_date, badge_date + timedelta(days=context.nights))


# =============================================================================
# Badges
# =============================================================================

def _round_half_up(n: float) -> int:
    return math.floor(n + 0.5)


def fmt(n: Optional[float]) -> str:
    """Compact price label: 12345 -> "12k", 1234 -> "1.2k", 85.4 -> "85"."""
    if n is None:
        return "?"
    if n >= 10_000:
        return f"{_round_half_up(n / 1000)}k"
    if n >= 1_000:
        return f"{n / 1000:.1f}k"
    return str(_round_half_up(n))


def nights_label(nights: int) -> str:
    return "1 night" if nights == 1 else f"{nights} nights"


@dataclass
class BadgeView:
    date: date
    state: BadgeState
    checkin: Optional[date] = None
    checkout: Optional[date] = None
    stats: Optional[PriceStats] = None
    symbol: str = DEFAULT_CURRENCY.symbol
    label: str = ""
    suffix: str = ""
    color: Optional[BadgeColor] = None


def classify_colors(mins: Dict[date, float]) -> Dict[date, BadgeColor]:
    """
    Bucket badge minimums into thirds.

    Fewer than three values yields no colours. A value equal to a cutoff
    goes to the lower bucket.
    """
    if len(mins) < MIN_COLORED_BADGES:
        return {}
    ordered = sorted(mins.values())
    lo = ordered[math.floor(len(ordered) * LOW_QUANTILE)]
    hi = ordered[math.floor(len(ordered) * HIGH_QUANTILE)]

    colors: Dict[date, BadgeColor] = {}
    for day, value in mins.items():
        if value <= lo:
            colors[day] = "low"
        elif value <= hi:
            colors[day] = "mid"
        else:
            colors[day] = "high"
    return colors


def build_badges(
    dates: Iterable[date],
    selection: CalendarSelection,
    context: Optional[SearchContext],
    cache: PriceCache,
    currency: Currency = DEFAULT_CURRENCY,
) -> List[BadgeView]:
    """Badge view-models for the given calendar dates, colours included."""
    badges = []
    for day in dict.fromkeys(dates):
        date_range = selection.resolve_range(day, context)
        if date_range is None:
            badges.append(BadgeView(date=day, state="hidden", symbol=currency.symbol))
            continue

        entry = cache.get(date_range.key)
        badge = BadgeView(
            date=day,
            state="hidden",
            checkin=date_range.checkin,
            checkout=date_range.checkout,
            symbol=currency.symbol,
        )
        if entry.state == "pending" or (entry.state == "absent" and context is not None):
            badge.state = "loading"
        elif entry.state == "stats":
            badge.state = "loaded"
            badge.stats = entry.stats
            badge.label = f"{currency.symbol}{fmt(entry.stats.min)}"
            if date_range.checkin != day:
                badge.suffix = nights_label(date_range.nights)
        badges.append(badge)

    colors = classify_colors({b.date: b.stats.min for b in badges if b.state == "loaded"})
    for badge in badges:
        badge.color = colors.get(badge.date)
    return badges
