"""
Parks by community area

The park and community-area datasets share no keys, so membership is
computed spatially: bounding-box overlap first, then polygon intersection.
"""

from typing import Iterable, List, Optional

from loguru import logger
from shapely.errors import GEOSException

from .geometry_utils import GeometryUtils
from ..cache import CacheStore
from ..models import AdministrativeArea, ParkFeature

CACHE_NAMESPACE = "GEOMETRIC_CALC"


def parks_in_area(
    area: AdministrativeArea,
    parks: List[ParkFeature],
    cache: Optional[CacheStore] = None,
) -> List[ParkFeature]:
    """Parks whose geometry intersects the area polygon"""
    cache_key = f"area-{area.area_code}-{len(parks)}"
    if cache is not None:
        cached_ids = cache.get(CACHE_NAMESPACE, cache_key)
        if cached_ids is not None:
            wanted = set(cached_ids)
            return [p for p in parks if p.park_id in wanted]

    area_geom = GeometryUtils.to_shape(area.geometry)
    if area_geom is None:
        logger.warning(f"Community area {area.area_code} ({area.name}) has no geometry")
        return []
    area_bbox = GeometryUtils.bbox(area_geom)
    GeometryUtils.prepare(area_geom)

    found = []
    for park in parks:
        park_geom = GeometryUtils.to_shape(park.geometry)
        if park_geom is None:
            continue
        try:
            if not GeometryUtils.bboxes_overlap(area_bbox, GeometryUtils.bbox(park_geom)):
                continue
            if area_geom.intersects(park_geom):
                found.append(park)
        except GEOSException as e:
            logger.warning(f"Failed to test park {park.name} against area {area.area_code}: {e}")

    if cache is not None:
        cache.set(CACHE_NAMESPACE, cache_key, [p.park_id for p in found])
    return found


def total_park_acres(parks: Iterable[ParkFeature]) -> float:
    return sum(p.acres or 0.0 for p in parks)
