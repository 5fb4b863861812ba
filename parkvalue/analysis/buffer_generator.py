"""
Valuation buffer generation

One buffer per park: the park polygon expanded by the configured radius
(0.2 mi) and tagged with that tier's premium. Finer tiers are handled by
the premium model, not rendered as separate polygons.
"""

import hashlib
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pyproj.exceptions import ProjError
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from .geometry_utils import BBox, GeometryUtils
from ..config import ValuationConfig, get_config
from ..models import ParkFeature, ValuationBuffer


class BufferSet:
    """
    Completed collection of valuation buffers

    Built by ValuationBufferGenerator.generate_all; consumers take a
    BufferSet rather than a list so they cannot run before generation.
    Shapes and bounding boxes are parsed once and shared.
    """

    def __init__(self, buffers: Iterable[ValuationBuffer], premium: float):
        self.buffers: Tuple[ValuationBuffer, ...] = tuple(buffers)
        self.premium = premium
        self._shapes: Optional[List[Tuple[ValuationBuffer, BaseGeometry, BBox]]] = None

        digest = hashlib.sha1()
        for buffer_id in sorted(b.id for b in self.buffers):
            digest.update(buffer_id.encode())
            digest.update(b"\0")
        self.fingerprint = digest.hexdigest()[:12]

    def __len__(self) -> int:
        return len(self.buffers)

    def __iter__(self):
        return iter(self.buffers)

    def shapes(self) -> List[Tuple[ValuationBuffer, BaseGeometry, BBox]]:
        """(buffer, prepared shape, bbox) for every buffer with a usable geometry"""
        if self._shapes is None:
            shapes = []
            for buffer in self.buffers:
                geom = GeometryUtils.to_shape(buffer.geometry)
                if geom is None:
                    logger.warning(f"Buffer {buffer.id} has no usable geometry, skipping")
                    continue
                shapes.append((buffer, GeometryUtils.prepare(geom), GeometryUtils.bbox(geom)))
            self._shapes = shapes
        return self._shapes

    def to_feature_collection(self) -> Dict[str, Any]:
        """GeoJSON FeatureCollection for map overlays"""
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "id": b.id,
                    "geometry": b.geometry,
                    "properties": {
                        "source_type": b.source_type,
                        "source_id": b.source_id,
                        "source_name": b.source_name,
                        "distance_zone": b.distance_zone,
                        "premium": b.premium,
                    },
                }
                for b in self.buffers
            ],
        }


class ValuationBufferGenerator:
    """Create valuation buffers around park polygons"""

    def __init__(self, valuation: Optional[ValuationConfig] = None):
        self.valuation = valuation or get_config().valuation

    def generate(self, park: ParkFeature) -> List[ValuationBuffer]:
        """Buffer for one park; empty when the geometry is missing or invalid"""
        if not park.geometry or not GeometryUtils.is_valid_geometry(park.geometry):
            return []

        try:
            geom = GeometryUtils.to_shape(park.geometry)
            if geom is None:
                return []
            buffered = GeometryUtils.buffer_miles(
                geom,
                self.valuation.buffer_distance_miles,
                resolution=self.valuation.buffer_resolution,
            )
        except (GEOSException, ProjError, ValueError) as e:
            logger.warning(f"Failed to buffer park {park.name} ({park.park_id}): {e}")
            return []

        return [ValuationBuffer(
            id=f"park-{park.park_id}-buffer",
            source_id=park.park_id,
            source_name=park.name,
            distance_zone=self.valuation.buffer_zone_label,
            premium=self.valuation.buffer_premium,
            geometry=GeometryUtils.to_geojson(buffered),
        )]

    def generate_all(self, parks: Iterable[ParkFeature]) -> BufferSet:
        """Buffers for every park; invalid parks are skipped"""
        buffers: List[ValuationBuffer] = []
        skipped = 0
        for park in parks:
            park_buffers = self.generate(park)
            if park_buffers:
                buffers.extend(park_buffers)
            else:
                skipped += 1

        logger.info(f"Generated {len(buffers)} valuation buffers ({skipped} parks skipped)")
        return BufferSet(buffers, premium=self.valuation.buffer_premium)
