"""Shared fixtures for the parkvalue test suite.

Synthetic parks and community areas are squares laid out in miles around
a point in Chicago, so expected distances can be read off the layout.
"""

import math

import pytest

from parkvalue.analysis.geometry_utils import MILES_PER_DEG
from parkvalue.cache import CacheStore, MemoryBackend
from parkvalue.config import CacheConfig, PipelineConfig
from parkvalue.models import AdministrativeArea, ParkFeature

ORIGIN_LON = -87.70
ORIGIN_LAT = 41.90


def offset(east_miles: float, north_miles: float, lon: float = ORIGIN_LON, lat: float = ORIGIN_LAT):
    """(lon, lat) of a point east/north of the origin, in miles"""
    return (
        lon + east_miles / (MILES_PER_DEG * math.cos(math.radians(lat))),
        lat + north_miles / MILES_PER_DEG,
    )


def square(half_miles: float, east: float = 0.0, north: float = 0.0) -> dict:
    """GeoJSON Polygon: square of side 2*half_miles centred east/north of the origin"""
    corners = [(-1, -1), (1, -1), (1, 1), (-1, 1), (-1, -1)]
    ring = [list(offset(east + sx * half_miles, north + sy * half_miles)) for sx, sy in corners]
    return {"type": "Polygon", "coordinates": [ring]}


def make_park(park_id: int, half_miles: float = 0.1, east: float = 0.0, north: float = 0.0, **kw) -> ParkFeature:
    return ParkFeature(
        park_no=park_id,
        park_name=kw.pop("name", f"Park {park_id}"),
        the_geom=kw.pop("geometry", square(half_miles, east, north)),
        **kw,
    )


def make_area(code: str, half_miles: float = 0.2, east: float = 0.0, north: float = 0.0, **kw) -> AdministrativeArea:
    return AdministrativeArea(
        area_numbe=code,
        community=kw.pop("name", f"Area {code}"),
        the_geom=kw.pop("geometry", square(half_miles, east, north)),
    )


class FakeClock:
    """Callable clock returning seconds; advance() moves time forward"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(MemoryBackend(), CacheConfig(), clock=clock)


@pytest.fixture
def pipeline_config():
    return PipelineConfig()


@pytest.fixture
def valuation(pipeline_config):
    return pipeline_config.valuation


@pytest.fixture
def park():
    return make_park(1, name="Humboldt Park")


@pytest.fixture
def parks():
    return [
        make_park(1, name="Humboldt Park"),
        make_park(2, east=3.0, name="Garfield Park"),
        make_park(3, north=5.0, acres=12.5, name="Lincoln Park"),
    ]
