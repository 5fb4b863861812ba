"""
Distance -> valuation premium model

Piecewise-linear lookup over the calibration table:
- at or below the first distance: the first premium (flat)
- between entries: linear interpolation
- past the last distance: linear decay per mile, floored at 0
"""

import math
from typing import List, Optional, Sequence, Tuple

from ..config import ValuationConfig


class DistancePremiumModel:
    """Estimate the percentage value uplift for a distance to a park edge"""

    def __init__(
        self,
        table: Optional[Sequence[Tuple[float, float]]] = None,
        decay_rate_per_mile: Optional[float] = None,
    ):
        defaults = ValuationConfig()
        entries = list(table if table is not None else defaults.premium_table)
        if not entries:
            raise ValueError("premium table must not be empty")

        for (d1, p1), (d2, p2) in zip(entries, entries[1:]):
            if d2 <= d1:
                raise ValueError(f"premium table distances must ascend ({d1} -> {d2})")
            if p2 > p1:
                raise ValueError(f"premium table must be non-increasing ({p1} -> {p2})")

        self.table: Tuple[Tuple[float, float], ...] = tuple((float(d), float(p)) for d, p in entries)
        self.decay_rate_per_mile = (
            defaults.decay_rate_per_mile if decay_rate_per_mile is None else decay_rate_per_mile
        )

    @classmethod
    def from_config(cls, valuation: ValuationConfig) -> "DistancePremiumModel":
        return cls(valuation.premium_table, valuation.decay_rate_per_mile)

    @property
    def max_premium(self) -> float:
        return self.table[0][1]

    def estimate(self, distance_miles: float) -> float:
        """
        Premium percent for a distance in miles

        Callers must pass a finite, non-negative distance; anything else
        raises ValueError.
        """
        if distance_miles is None or not math.isfinite(distance_miles) or distance_miles < 0:
            raise ValueError(f"distance must be a finite non-negative number of miles, got {distance_miles!r}")

        first_miles, first_premium = self.table[0]
        if distance_miles <= first_miles:
            return first_premium

        last_miles, last_premium = self.table[-1]
        if distance_miles >= last_miles:
            return max(0.0, last_premium - (distance_miles - last_miles) * self.decay_rate_per_mile)

        for (cur_miles, cur_premium), (next_miles, next_premium) in zip(self.table, self.table[1:]):
            if cur_miles <= distance_miles <= next_miles:
                ratio = (distance_miles - cur_miles) / (next_miles - cur_miles)
                return cur_premium - ratio * (cur_premium - next_premium)

        return 0.0

    def as_rows(self) -> List[dict]:
        return [{"miles": d, "premium": p} for d, p in self.table]
