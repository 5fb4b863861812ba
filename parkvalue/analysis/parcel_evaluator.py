"""
Point (parcel) valuation

Finds the nearest park edge for a clicked location and simulates a
before/after value. The premium here is the single buffer tier: full
premium within the buffer radius, zero beyond it, and no valuation at all
past the valuation-zone cutoff. The interpolated model is used by the
hover path instead.
"""

from typing import Any, Dict, Optional, Tuple

from .boundary_index import NearestBoundaryIndex
from ..config import ValuationConfig, get_config
from ..models import NearestAsset, ParcelAnalysisResult, Valuation


class ParcelEvaluator:
    """Evaluate a single (lon, lat) point against the park boundary index"""

    def __init__(self, valuation: Optional[ValuationConfig] = None):
        self.valuation = valuation or get_config().valuation

    def premium_for(self, distance_miles: float) -> float:
        if distance_miles <= self.valuation.buffer_distance_miles:
            return self.valuation.buffer_premium
        return 0.0

    def evaluate(
        self,
        point: Tuple[float, float],
        index: NearestBoundaryIndex,
        parcel: Optional[Dict[str, Any]] = None,
    ) -> ParcelAnalysisResult:
        nearest = index.nearest(point, self.valuation.parcel_search_ceiling_miles)

        if nearest is None or nearest.distance_miles > self.valuation.valuation_zone_cutoff_miles:
            return ParcelAnalysisResult(parcel=parcel, is_in_valuation_zone=False)

        premium = self.premium_for(nearest.distance_miles)
        base_value = self.valuation.base_value

        return ParcelAnalysisResult(
            parcel=parcel,
            is_in_valuation_zone=True,
            nearest_asset=NearestAsset(name=nearest.name, distance_miles=nearest.distance_miles),
            valuation=Valuation(
                premium=premium,
                base_value=base_value,
                valuated_value=base_value * (1 + premium / 100),
            ),
        )
