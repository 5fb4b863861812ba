"""
Nearest park boundary index

Stores each park's boundary (polygon rings as lines) with its bounding
box. Queries reject entries whose box misses the query box before any
exact point-to-line distance is computed.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from loguru import logger
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from .geometry_utils import BBox, GeometryUtils
from ..models import ParkFeature


class IndexNotBuiltError(RuntimeError):
    """Raised when querying an index that has not been built"""


@dataclass
class BoundaryEntry:
    park_id: int
    name: str
    bbox: BBox
    lines: BaseGeometry


@dataclass
class NearestBoundary:
    park_id: int
    name: str
    distance_miles: float


class NearestBoundaryIndex:
    """
    Bounding-box filtered index over park edges

    Usage:
        index = NearestBoundaryIndex()
        index.build(parks)
        index.query((lon, lat), max_distance=1.0)
    """

    def __init__(self):
        self._entries: Optional[List[BoundaryEntry]] = None

    @property
    def is_built(self) -> bool:
        return self._entries is not None

    @property
    def size(self) -> int:
        return len(self._entries) if self._entries is not None else 0

    def invalidate(self) -> None:
        """Drop all entries; queries fail until the next build"""
        self._entries = None

    def rebuild(self, parks: Iterable[ParkFeature]) -> "NearestBoundaryIndex":
        self.invalidate()
        return self.build(parks)

    def build(self, parks: Iterable[ParkFeature]) -> "NearestBoundaryIndex":
        entries = []
        skipped = 0
        for park in parks:
            entry = self._entry(park)
            if entry is None:
                skipped += 1
                continue
            entries.append(entry)

        self._entries = entries
        logger.info(f"Built boundary index with {len(entries)} parks ({skipped} skipped)")
        return self

    def _entry(self, park: ParkFeature) -> Optional[BoundaryEntry]:
        if not GeometryUtils.is_valid_geometry(park.geometry):
            return None

        geom = GeometryUtils.to_shape(park.geometry)
        if geom is None:
            logger.warning(f"Park {park.name} ({park.park_id}) has no usable rings, skipping")
            return None
        if not geom.is_valid:
            logger.warning(f"Park {park.name} ({park.park_id}) has a self-intersecting boundary, skipping")
            return None

        try:
            lines = GeometryUtils.boundary_lines(geom)
        except (GEOSException, ValueError) as e:
            logger.warning(f"Failed to convert park {park.name} ({park.park_id}) to lines: {e}")
            return None

        return BoundaryEntry(
            park_id=park.park_id,
            name=park.name,
            bbox=GeometryUtils.bbox(geom),
            lines=lines,
        )

    def nearest(self, point: Tuple[float, float], max_distance: float) -> Optional[NearestBoundary]:
        """Nearest park edge within max_distance miles of a (lon, lat) point"""
        if self._entries is None:
            raise IndexNotBuiltError("boundary index queried before build()")

        lon, lat = point
        query_box = GeometryUtils.query_bbox(lon, lat, max_distance)

        best: Optional[NearestBoundary] = None
        for entry in self._entries:
            if not GeometryUtils.bboxes_overlap(query_box, entry.bbox):
                continue
            distance = GeometryUtils.point_to_line_distance_miles(lon, lat, entry.lines)
            if distance > max_distance:
                continue
            if best is None or distance < best.distance_miles:
                best = NearestBoundary(entry.park_id, entry.name, distance)

        return best

    def query(self, point: Tuple[float, float], max_distance: float) -> Optional[float]:
        """Distance in miles to the nearest park edge, or None if none is in range"""
        found = self.nearest(point, max_distance)
        return found.distance_miles if found else None
