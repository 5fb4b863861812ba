"""
Analysis modules for park proximity valuation
"""

from .geometry_utils import GeometryUtils
from .premium_model import DistancePremiumModel
from .buffer_generator import BufferSet, ValuationBufferGenerator
from .boundary_index import IndexNotBuiltError, NearestBoundary, NearestBoundaryIndex
from .coverage_estimator import AreaCoverageEstimator
from .parcel_evaluator import ParcelEvaluator
from .park_filter import parks_in_area, total_park_acres

__all__ = [
    "GeometryUtils",
    "DistancePremiumModel",
    "BufferSet",
    "ValuationBufferGenerator",
    "IndexNotBuiltError",
    "NearestBoundary",
    "NearestBoundaryIndex",
    "AreaCoverageEstimator",
    "ParcelEvaluator",
    "parks_in_area",
    "total_park_acres",
]
