"""
Area coverage estimation (isochrone analysis)

Estimates the share of a community area lying inside any valuation
buffer by sampling a regular point grid over the area instead of
computing polygon unions and intersections. Accuracy is bounded by the
sample spacing; results can move a few points between spacings.
"""

from typing import Callable, List, Optional, Tuple

from loguru import logger
from pyproj.exceptions import ProjError
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from .buffer_generator import BufferSet
from .geometry_utils import BBox, GeometryUtils
from ..cache import CacheStore
from ..config import ValuationConfig, get_config
from ..models import AdministrativeArea, IsochroneAnalysisResult

CACHE_NAMESPACE = "GEOMETRIC_CALC"

ProgressCallback = Callable[[int, int], None]


class AreaCoverageEstimator:
    """
    Sample-based coverage of an area by valuation buffers

    Degenerate inputs (no geometry, zero area, no nearby buffers, no
    sample points) produce the 0% fallback result instead of an error.
    """

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        valuation: Optional[ValuationConfig] = None,
    ):
        self.cache = cache
        self.valuation = valuation or get_config().valuation

    @staticmethod
    def cache_key(area: AdministrativeArea, buffers: BufferSet) -> str:
        return f"bufcov-{area.area_code}-{len(buffers)}-{buffers.fingerprint}"

    def analyze(
        self,
        area: AdministrativeArea,
        buffers: BufferSet,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IsochroneAnalysisResult:
        if not isinstance(buffers, BufferSet):
            raise TypeError("analyze() requires a BufferSet from ValuationBufferGenerator.generate_all()")

        key = self.cache_key(area, buffers)
        if self.cache is not None:
            cached = self.cache.get(CACHE_NAMESPACE, key)
            if cached is not None:
                try:
                    return IsochroneAnalysisResult.model_validate(cached)
                except ValueError as e:
                    logger.warning(f"Ignoring malformed cached coverage {key}: {e}")

        area_geom = self._area_shape(area)
        if area_geom is None:
            return IsochroneAnalysisResult.fallback()

        try:
            result = self._estimate(area, area_geom, buffers, on_progress)
        except (GEOSException, ProjError, ValueError) as e:
            logger.error(f"Coverage analysis failed for area {area.area_code}: {e}")
            return IsochroneAnalysisResult.fallback()

        if self.cache is not None:
            self.cache.set(CACHE_NAMESPACE, key, result.model_dump())
        return result

    def _area_shape(self, area: AdministrativeArea) -> Optional[BaseGeometry]:
        """Area polygon, or None when it is missing or has no positive area"""
        if not GeometryUtils.is_valid_geometry(area.geometry):
            logger.warning(f"Community area {area.area_code} ({area.name}) has no usable geometry")
            return None

        geom = GeometryUtils.to_shape(area.geometry)
        if geom is None:
            logger.warning(f"Community area {area.area_code} ({area.name}) has no usable rings")
            return None

        try:
            total_area = GeometryUtils.area_sqm(geom)
        except (GEOSException, ProjError, ValueError) as e:
            logger.warning(f"Could not measure community area {area.area_code}: {e}")
            return None

        if not total_area or total_area <= 0 or geom.area <= 0:
            logger.warning(f"Community area {area.area_code} ({area.name}) has zero area")
            return None
        return geom

    def _candidates(
        self,
        area_bbox: BBox,
        buffers: BufferSet,
    ) -> List[Tuple[BaseGeometry, BBox]]:
        return [
            (geom, bb)
            for _buffer, geom, bb in buffers.shapes()
            if GeometryUtils.bboxes_overlap(area_bbox, bb)
        ]

    def _estimate(
        self,
        area: AdministrativeArea,
        area_geom: BaseGeometry,
        buffers: BufferSet,
        on_progress: Optional[ProgressCallback],
    ) -> IsochroneAnalysisResult:
        area_bbox = GeometryUtils.bbox(area_geom)

        candidates = self._candidates(area_bbox, buffers)
        if not candidates:
            logger.info(f"No valuation buffers near area {area.area_code}")
            return IsochroneAnalysisResult.fallback()

        xs, ys = GeometryUtils.point_grid(
            area_geom, self.valuation.sample_spacing_miles, area_bbox
        )
        total = len(xs)
        if total == 0:
            logger.info(f"Area {area.area_code} is too small to sample")
            return IsochroneAnalysisResult.fallback()

        chunk = max(1, self.valuation.sample_chunk_size)
        inside_count = 0
        for i, (lon, lat) in enumerate(zip(xs, ys), start=1):
            for geom, bb in candidates:
                if not GeometryUtils.point_in_bbox(lon, lat, bb):
                    continue
                if GeometryUtils.point_in_polygon(lon, lat, geom):
                    inside_count += 1
                    break

            if on_progress is not None and (i % chunk == 0 or i == total):
                on_progress(i, total)

        inside_pct = max(0.0, min(100.0, inside_count / total * 100))
        outside_pct = max(0.0, 100.0 - inside_pct)
        avg_premium = inside_pct / 100 * buffers.premium

        logger.info(
            f"Area {area.area_code}: {inside_count}/{total} samples inside "
            f"{len(candidates)} candidate buffers ({inside_pct:.1f}%)"
        )

        return IsochroneAnalysisResult(
            inside_percentage=f"{inside_pct:.1f}",
            outside_percentage=f"{outside_pct:.1f}",
            average_premium=f"{avg_premium:.1f}",
        )
