import math
from dataclasses import dataclass
from typing import Iterable, Union


@dataclass(frozen=True)
class PriceStats:
    min: float
    max: float
    avg: Union[int, float]
    count: int

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "avg": self.avg, "count": self.count}


def calc_stats(prices: Iterable[float]) -> PriceStats:
    """
    Summarise a non-empty list of prices.

    The average is rounded half up: [1.5, 2.5] -> 2, [89, 104, 97, 210, 185] -> 137.
    Rounding never moves it outside [min, max]: [89.5, 89.5] -> 89.5.
    """
    values = sorted(prices)
    if not values:
        raise ValueError("calc_stats requires at least one price")

    mean = sum(values) / len(values)
    avg = min(max(math.floor(mean + 0.5), values[0]), values[-1])
    return PriceStats(
        min=values[0],
        max=values[-1],
        avg=avg,
        count=len(values),
    )
