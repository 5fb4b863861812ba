"""
Main Pipeline Orchestrator for Park Proximity Valuation

Owns all state the analyses share:

  1. Datasets: community areas and parks (fetched once per session)
  2. Valuation buffers, regenerated whenever the park set changes
  3. Nearest park boundary index, rebuilt with the buffers
  4. Cache store for datasets and coverage results

Analyses:
  - analyze_area: parks in the area, acreage, buffer coverage
  - evaluate_point / analyze_parcel: click popup valuation
  - hover_premium: tooltip distance and interpolated premium
"""

import json
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from loguru import logger

from .analysis import (
    AreaCoverageEstimator,
    BufferSet,
    DistancePremiumModel,
    GeometryUtils,
    NearestBoundaryIndex,
    ParcelEvaluator,
    ValuationBufferGenerator,
    parks_in_area,
    total_park_acres,
)
from .cache import CacheStore, DirectoryBackend, MemoryBackend
from .collectors import SocrataCollector
from .config import PipelineConfig, get_config, validate_config
from .models import (
    AdministrativeArea,
    AreaSummary,
    HoverInfo,
    IsochroneAnalysisResult,
    ParcelAnalysisResult,
    ParkFeature,
)


class PipelineStateError(RuntimeError):
    """Raised when an analysis runs before its inputs are loaded"""


class ValuationPipeline:
    """
    Orchestrate dataset loading and the valuation analyses

    Usage:
        pipeline = ValuationPipeline()
        pipeline.load_datasets()
        summary = pipeline.analyze_area("23")
        parcel = pipeline.evaluate_point(-87.70, 41.90)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        cache: Optional[CacheStore] = None,
        collector: Optional[SocrataCollector] = None,
    ):
        self.config = config or get_config()
        validate_config(self.config)

        self.cache = cache or self._make_cache()
        self._collector = collector

        valuation = self.config.valuation
        self.buffer_generator = ValuationBufferGenerator(valuation)
        self.premium_model = DistancePremiumModel.from_config(valuation)
        self.coverage_estimator = AreaCoverageEstimator(self.cache, valuation)
        self.parcel_evaluator = ParcelEvaluator(valuation)
        self.boundary_index = NearestBoundaryIndex()

        self.areas: List[AdministrativeArea] = []
        self.parks: List[ParkFeature] = []
        self.buffers: Optional[BufferSet] = None
        self.selected_area_code: Optional[str] = None
        self._areas_by_code: Dict[str, AdministrativeArea] = {}

    def _make_cache(self) -> CacheStore:
        cache_config = self.config.cache
        if cache_config.cache_dir:
            backend = DirectoryBackend(cache_config.cache_dir, cache_config.max_bytes)
        else:
            backend = MemoryBackend(cache_config.max_bytes)
        return CacheStore(backend, cache_config)

    @property
    def collector(self) -> SocrataCollector:
        if self._collector is None:
            self._collector = SocrataCollector(cache=self.cache, api=self.config.api)
        return self._collector

    # ============================================================
    # Datasets
    # ============================================================

    def load_datasets(self) -> None:
        """Fetch areas and parks together, then derive buffers and index"""
        with ThreadPoolExecutor(max_workers=self.config.load_workers) as pool:
            areas_future = pool.submit(self.collector.fetch_community_areas)
            parks_future = pool.submit(self.collector.fetch_parks)
            areas = areas_future.result()
            parks = parks_future.result()

        self.set_areas(areas)
        self.set_parks(parks)

    def set_areas(self, areas: List[AdministrativeArea]) -> None:
        self.areas = list(areas)
        self._areas_by_code = {a.area_code: a for a in self.areas}
        if self.selected_area_code not in self._areas_by_code:
            self.selected_area_code = None
        logger.info(f"Loaded {len(self.areas)} community areas")

    def set_parks(self, parks: List[ParkFeature]) -> None:
        """Replace the park set; buffers and index are rebuilt wholesale"""
        self.parks = list(parks)
        logger.info(f"Loaded {len(self.parks)} parks")
        self.invalidate()
        self.rebuild()

    def invalidate(self) -> None:
        self.buffers = None
        self.boundary_index.invalidate()

    def rebuild(self) -> None:
        self.generate_buffers()
        self.boundary_index.rebuild(self.parks)

    def generate_buffers(self) -> BufferSet:
        self.buffers = self.buffer_generator.generate_all(self.parks)
        return self.buffers

    def get_area(self, area_code: str) -> AdministrativeArea:
        area = self._areas_by_code.get(str(area_code))
        if area is None:
            raise KeyError(f"Unknown community area {area_code!r}")
        return area

    def select_area(self, area_code: Optional[str]) -> Optional[AdministrativeArea]:
        """Mark an area as selected; only its code is held"""
        if area_code is None:
            self.selected_area_code = None
            return None
        area = self.get_area(area_code)
        self.selected_area_code = area.area_code
        return area

    def _require_parks(self) -> None:
        if self.buffers is None or not self.boundary_index.is_built:
            raise PipelineStateError("parks must be loaded (set_parks/load_datasets) before analysis")

    # ============================================================
    # Analyses
    # ============================================================

    def analyze_isochrone(self, area: AdministrativeArea) -> IsochroneAnalysisResult:
        self._require_parks()
        return self.coverage_estimator.analyze(area, self.buffers)

    def analyze_area(self, area_code: str) -> AreaSummary:
        """Strategic summary for one community area"""
        self._require_parks()
        area = self.select_area(area_code)

        area_parks = parks_in_area(area, self.parks, self.cache)
        isochrone = self.analyze_isochrone(area)

        centroid_distance = None
        area_geom = GeometryUtils.to_shape(area.geometry)
        if area_geom is not None:
            centroid_distance = self.distance_to_nearest_park_boundary(
                GeometryUtils.centroid(area_geom),
                self.config.valuation.hover_max_miles,
            )

        return AreaSummary(
            area_code=area.area_code,
            area_name=area.name,
            park_ids=[p.park_id for p in area_parks],
            park_count=len(area_parks),
            total_park_acres=total_park_acres(area_parks),
            centroid_distance_miles=centroid_distance,
            isochrone=isochrone,
        )

    def distance_to_nearest_park_boundary(
        self,
        point: Tuple[float, float],
        max_miles: Optional[float] = None,
    ) -> Optional[float]:
        """Miles from a (lon, lat) point to the nearest park edge, None if out of range"""
        self._require_parks()
        limit = self.config.valuation.hover_max_miles if max_miles is None else max_miles
        return self.boundary_index.query(point, limit)

    def distance_to_nearest_park_centroid(self, point: Tuple[float, float]) -> Optional[float]:
        """Great-circle miles to the closest park centroid; coarser than the edge distance"""
        best = None
        for park in self.parks:
            geom = GeometryUtils.to_shape(park.geometry)
            if geom is None:
                continue
            distance = GeometryUtils.centroid_distance_miles(point[0], point[1], geom)
            if best is None or distance < best:
                best = distance
        return best

    def hover_premium(self, point: Tuple[float, float], max_miles: Optional[float] = None) -> HoverInfo:
        """Tooltip content: edge distance and the interpolated premium"""
        distance = self.distance_to_nearest_park_boundary(point, max_miles)
        if distance is None:
            return HoverInfo()
        return HoverInfo(distance_miles=distance, premium=self.premium_model.estimate(distance))

    def evaluate_point(self, lon: float, lat: float, parcel: Optional[dict] = None) -> ParcelAnalysisResult:
        self._require_parks()
        return self.parcel_evaluator.evaluate((lon, lat), self.boundary_index, parcel)

    def analyze_parcel(self, lat: float, lon: float) -> Optional[ParcelAnalysisResult]:
        """Look up the parcel at a clicked location and value it; None if no parcel"""
        self._require_parks()
        parcel = self.collector.fetch_parcel_by_location(lat, lon)
        if not parcel:
            logger.warning(f"No parcel found at ({lat}, {lon})")
            return None
        return self.evaluate_point(lon, lat, parcel)

    # ============================================================
    # Output
    # ============================================================

    def save_buffers(self, output_path: str) -> str:
        """Write the valuation buffers as a GeoJSON FeatureCollection"""
        self._require_parks()
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.buffers.to_feature_collection(), f, ensure_ascii=False)

        logger.info(f"Saved {len(self.buffers)} buffers to {output_path}")
        return output_path
