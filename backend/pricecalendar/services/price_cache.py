import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterator, Literal, Optional, Sequence, Tuple

from pricecalendar.services.stats import PriceStats, calc_stats

logger = logging.getLogger(__name__)

CacheState = Literal["absent", "pending", "empty", "stats"]
TERMINAL_STATES = ("empty", "stats")


@dataclass(frozen=True)
class DateRange:
    checkin: date
    checkout: date

    def __post_init__(self):
        if self.checkout <= self.checkin:
            raise ValueError(f"checkout {self.checkout} must be after checkin {self.checkin}")

    @property
    def key(self) -> str:
        return f"{self.checkin.isoformat()}/{self.checkout.isoformat()}"

    @property
    def nights(self) -> int:
        return (self.checkout - self.checkin).days

    @classmethod
    def from_key(cls, key: str) -> "DateRange":
        checkin, _, checkout = key.partition("/")
        return cls(date.fromisoformat(checkin), date.fromisoformat(checkout))


@dataclass(frozen=True)
class CacheEntry:
    state: CacheState
    stats: Optional[PriceStats] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


ABSENT = CacheEntry("absent")
PENDING = CacheEntry("pending")
EMPTY = CacheEntry("empty")


class PriceCache:
    """
    Price results keyed by date range.

    ``empty`` and ``stats`` are terminal: once a range has a result it is
    never fetched again for the lifetime of the cache.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> CacheEntry:
        return self._entries.get(key, ABSENT)

    def state(self, key: str) -> CacheState:
        return self.get(key).state

    def stats(self, key: str) -> Optional[PriceStats]:
        return self.get(key).stats

    def is_terminal(self, key: str) -> bool:
        return self.get(key).is_terminal

    def mark_pending(self, key: str) -> bool:
        """Mark a range as being fetched. Refused (False) if it already has a result."""
        if self.is_terminal(key):
            return False
        self._entries[key] = PENDING
        return True

    def set_stats(self, key: str, stats: PriceStats):
        self._entries[key] = CacheEntry("stats", stats)

    def set_empty(self, key: str):
        self._entries[key] = EMPTY

    def store_prices(self, key: str, prices: Sequence[float]) -> CacheEntry:
        if prices:
            self.set_stats(key, calc_stats(prices))
        else:
            self.set_empty(key)
        return self._entries[key]

    def discard_pending(self, key: str):
        """Forget a pending range whose job was dropped before completing."""
        if self.state(key) == "pending":
            del self._entries[key]

    def clear(self):
        self._entries.clear()

    def stats_items(self) -> Iterator[Tuple[str, PriceStats]]:
        for key, entry in self._entries.items():
            if entry.state == "stats":
                yield key, entry.stats
