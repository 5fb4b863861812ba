"""
Geometry utilities wrapping shapely and pyproj

Inputs and outputs are GeoJSON-style [lon, lat] geometries. Distances are
in miles. Buffers are built in a local azimuthal equidistant projection so
the radius is true on the ground; point distances use a local planar
approximation that is accurate at city scale.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import shapely
from pyproj import CRS, Geod, Transformer
from shapely.geometry import MultiPolygon, Point, Polygon, mapping
from shapely.geometry.base import BaseGeometry

BBox = Tuple[float, float, float, float]  # (min_lon, min_lat, max_lon, max_lat)

EARTH_RADIUS_MILES = 3958.8
METERS_PER_MILE = 1609.344
MILES_PER_DEG = math.radians(1) * EARTH_RADIUS_MILES  # ~69.09
QUERY_MILES_PER_DEG = 69.0  # Rounded value for query boxes; never undersizes them

_GEOD = Geod(ellps="WGS84")


class GeometryUtils:
    """Utility functions for geometric operations"""

    # ------------------------------------------------------------------
    # Validation and conversion
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_geometry(geometry: Optional[Dict[str, Any]]) -> bool:
        """Polygon/MultiPolygon with an outer ring of at least 4 positions"""
        if not isinstance(geometry, dict):
            return False
        gtype = geometry.get("type")
        coords = geometry.get("coordinates")
        if not gtype or not isinstance(coords, list) or not coords:
            return False

        if gtype == "Polygon":
            ring = coords[0]
            return isinstance(ring, list) and len(ring) >= 4

        if gtype == "MultiPolygon":
            return all(
                isinstance(poly, list) and len(poly) > 0 and isinstance(poly[0], list) and len(poly[0]) >= 4
                for poly in coords
            )

        return False

    @staticmethod
    def _ring(coords: Any) -> Optional[List[Tuple[float, float]]]:
        """Ring as (lon, lat) tuples, or None if it cannot form a ring"""
        if not isinstance(coords, list) or len(coords) < 4:
            return None
        try:
            ring = [(float(c[0]), float(c[1])) for c in coords]
        except (TypeError, ValueError, IndexError):
            return None
        if not all(math.isfinite(v) for pt in ring for v in pt):
            return None
        return ring

    @staticmethod
    def _polygon(rings: Any) -> Optional[Polygon]:
        if not isinstance(rings, list) or not rings:
            return None
        shell = GeometryUtils._ring(rings[0])
        if shell is None:
            return None
        holes = [h for h in (GeometryUtils._ring(r) for r in rings[1:]) if h is not None]
        poly = Polygon(shell, holes)
        return None if poly.is_empty else poly

    @staticmethod
    def to_shape(geometry: Optional[Dict[str, Any]]) -> Optional[BaseGeometry]:
        """
        Build a shapely geometry from a GeoJSON Polygon/MultiPolygon

        Rings with fewer than 4 positions or non-numeric positions are
        skipped; returns None when no polygon survives.
        """
        if not isinstance(geometry, dict):
            return None
        gtype = geometry.get("type")
        coords = geometry.get("coordinates")

        if gtype == "Polygon":
            return GeometryUtils._polygon(coords)

        if gtype == "MultiPolygon" and isinstance(coords, list):
            polys = [p for p in (GeometryUtils._polygon(c) for c in coords) if p is not None]
            if not polys:
                return None
            return polys[0] if len(polys) == 1 else MultiPolygon(polys)

        return None

    @staticmethod
    def to_geojson(geom: BaseGeometry) -> Dict[str, Any]:
        """GeoJSON dict with list coordinates (JSON round-trip safe)"""
        def _lists(value):
            if isinstance(value, (list, tuple)):
                return [_lists(v) for v in value]
            return value

        geo = mapping(geom)
        return {"type": geo["type"], "coordinates": _lists(geo["coordinates"])}

    # ------------------------------------------------------------------
    # Bounding boxes
    # ------------------------------------------------------------------

    @staticmethod
    def bbox(geom: BaseGeometry) -> BBox:
        return tuple(geom.bounds)

    @staticmethod
    def bboxes_overlap(a: BBox, b: BBox) -> bool:
        return a[0] <= b[2] and a[2] >= b[0] and a[1] <= b[3] and a[3] >= b[1]

    @staticmethod
    def point_in_bbox(lon: float, lat: float, bb: BBox) -> bool:
        return bb[0] <= lon <= bb[2] and bb[1] <= lat <= bb[3]

    @staticmethod
    def query_bbox(lon: float, lat: float, max_miles: float) -> BBox:
        """Box around a point expanded by max_miles (planar degrees approximation)"""
        d_lat = max_miles / QUERY_MILES_PER_DEG
        d_lon = max_miles / (QUERY_MILES_PER_DEG * math.cos(math.radians(lat)))
        return (lon - d_lon, lat - d_lat, lon + d_lon, lat + d_lat)

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    @staticmethod
    def centroid(geom: BaseGeometry) -> Tuple[float, float]:
        c = geom.centroid
        return (c.x, c.y)

    @staticmethod
    def area_sqm(geom: BaseGeometry) -> float:
        """Geodesic area in square meters (WGS84 ellipsoid)"""
        area, _ = _GEOD.geometry_area_perimeter(geom)
        return abs(area)

    @staticmethod
    def haversine_miles(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
        """Great-circle distance between two points in miles"""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        delta_phi = math.radians(lat2 - lat1)
        delta_lambda = math.radians(lon2 - lon1)

        a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return EARTH_RADIUS_MILES * c

    @staticmethod
    def boundary_lines(geom: BaseGeometry) -> BaseGeometry:
        """Polygon rings (holes included) as LineString/MultiLineString"""
        lines = geom.boundary
        if lines.is_empty:
            raise ValueError("polygon has an empty boundary")
        return lines

    @staticmethod
    def point_to_line_distance_miles(lon: float, lat: float, lines: BaseGeometry) -> float:
        """
        Distance from a point to the nearest segment of a line geometry

        Coordinates are scaled to miles around the query point
        (equirectangular), then measured in the plane.
        """
        kx = MILES_PER_DEG * math.cos(math.radians(lat))
        ky = MILES_PER_DEG
        origin = np.array([lon, lat])
        scale = np.array([kx, ky])
        local = shapely.transform(lines, lambda xy: (xy - origin) * scale)
        return float(local.distance(Point(0.0, 0.0)))

    @staticmethod
    def centroid_distance_miles(lon: float, lat: float, geom: BaseGeometry) -> float:
        """Great-circle distance from a point to a geometry's centroid"""
        c_lon, c_lat = GeometryUtils.centroid(geom)
        return GeometryUtils.haversine_miles(lon, lat, c_lon, c_lat)

    # ------------------------------------------------------------------
    # Containment
    # ------------------------------------------------------------------

    @staticmethod
    def prepare(geom: BaseGeometry) -> BaseGeometry:
        """Prepare a geometry in place for repeated point tests"""
        shapely.prepare(geom)
        return geom

    @staticmethod
    def point_in_polygon(lon: float, lat: float, geom: BaseGeometry) -> bool:
        """Containment test; points on the boundary count as inside"""
        return bool(shapely.intersects_xy(geom, lon, lat))

    # ------------------------------------------------------------------
    # Constructions
    # ------------------------------------------------------------------

    @staticmethod
    def _local_transformers(lon: float, lat: float) -> Tuple[Transformer, Transformer]:
        """WGS84 <-> azimuthal equidistant projection centred on (lon, lat)"""
        local = CRS.from_proj4(
            f"+proj=aeqd +lat_0={lat} +lon_0={lon} +datum=WGS84 +units=m +no_defs"
        )
        forward = Transformer.from_crs("EPSG:4326", local, always_xy=True)
        inverse = Transformer.from_crs(local, "EPSG:4326", always_xy=True)
        return forward, inverse

    @staticmethod
    def _projector(transformer: Transformer):
        """Vectorised (N, 2) coordinate array transform for shapely.transform"""
        def _apply(xy: np.ndarray) -> np.ndarray:
            x, y = transformer.transform(xy[:, 0], xy[:, 1])
            return np.column_stack([x, y])
        return _apply

    @staticmethod
    def buffer_miles(geom: BaseGeometry, miles: float, resolution: int = 16) -> BaseGeometry:
        """Expand a lon/lat geometry outward by a ground distance in miles"""
        lon, lat = GeometryUtils.centroid(geom)
        forward, inverse = GeometryUtils._local_transformers(lon, lat)

        projected = shapely.transform(geom, GeometryUtils._projector(forward))
        buffered = projected.buffer(miles * METERS_PER_MILE, quad_segs=resolution)
        if buffered.is_empty:
            raise ValueError("buffer produced an empty geometry")
        return shapely.transform(buffered, GeometryUtils._projector(inverse))

    @staticmethod
    def point_grid(
        geom: BaseGeometry,
        spacing_miles: float,
        bb: Optional[BBox] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Regular grid over a bounding box, masked to points inside geom

        The grid is centred in the box; columns use the longitude spacing
        at the box's mid latitude.
        """
        min_lon, min_lat, max_lon, max_lat = bb or GeometryUtils.bbox(geom)
        mid_lat = (min_lat + max_lat) / 2

        step_lat = spacing_miles / MILES_PER_DEG
        step_lon = spacing_miles / (MILES_PER_DEG * math.cos(math.radians(mid_lat)))

        def _axis(lo: float, hi: float, step: float) -> np.ndarray:
            count = int(math.floor((hi - lo) / step))
            offset = ((hi - lo) - count * step) / 2
            return lo + offset + step * np.arange(count + 1)

        xs, ys = np.meshgrid(_axis(min_lon, max_lon, step_lon), _axis(min_lat, max_lat, step_lat))
        xs = xs.ravel()
        ys = ys.ravel()

        mask = shapely.intersects_xy(geom, xs, ys)
        return xs[mask], ys[mask]
