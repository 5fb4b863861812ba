"""
Pydantic models for the park proximity valuation data
Field aliases match the Socrata dataset column names
"""

from typing import List, Optional, Dict, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================
# GeoJSON Types
# ============================================================

class GeoJSONPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]  # [longitude, latitude]


class GeoJSONPolygon(BaseModel):
    type: Literal["Polygon"] = "Polygon"
    coordinates: List[List[List[float]]]  # [[[lon, lat], ...]]


class GeoJSONMultiPolygon(BaseModel):
    type: Literal["MultiPolygon"] = "MultiPolygon"
    coordinates: List[List[List[List[float]]]]  # [[[[lon, lat], ...]]]


GeographicPolygon = Union[GeoJSONPolygon, GeoJSONMultiPolygon]


# ============================================================
# Source Datasets
# ============================================================

class AdministrativeArea(BaseModel):
    """Community area (77 fixed subdivisions of the city)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    area_code: str = Field(alias="area_numbe")
    name: str = Field(default="", alias="community")
    # Raw geometry; may be absent or malformed and is validated on use
    geometry: Optional[Dict[str, Any]] = Field(default=None, alias="the_geom")

    @field_validator("area_code", mode="before")
    @classmethod
    def _code_as_string(cls, v):
        return str(v) if v is not None else v


class ParkFeature(BaseModel):
    """Park District park boundary record"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    park_id: int = Field(alias="park_no")
    name: str = Field(default="", alias="park_name")
    location: Optional[str] = None
    acres: float = 0.0
    geometry: Optional[Dict[str, Any]] = Field(default=None, alias="the_geom")

    @field_validator("acres", mode="before")
    @classmethod
    def _acres_default(cls, v):
        return 0.0 if v in (None, "") else v


# ============================================================
# Derived Geometry
# ============================================================

class ValuationBuffer(BaseModel):
    """Buffered park polygon tagged with its valuation premium"""
    model_config = ConfigDict(frozen=True)

    id: str
    source_type: Literal["park"] = "park"
    source_id: int
    source_name: str
    distance_zone: str
    premium: float
    geometry: Dict[str, Any]  # GeoJSON Polygon or MultiPolygon


# ============================================================
# Analysis Results
# ============================================================

class IsochroneAnalysisResult(BaseModel):
    """Share of an area inside valuation buffers (decimal strings, one place)"""
    inside_percentage: str
    outside_percentage: str
    average_premium: str

    @classmethod
    def fallback(cls) -> "IsochroneAnalysisResult":
        """No coverage; the displayable result for degenerate inputs"""
        return cls(inside_percentage="0.0", outside_percentage="100.0", average_premium="0.0")


class NearestAsset(BaseModel):
    type: Literal["park"] = "park"
    name: str
    distance_miles: float


class Valuation(BaseModel):
    premium: float  # Percent, e.g. 22.3
    base_value: float
    valuated_value: float


class ParcelAnalysisResult(BaseModel):
    parcel: Optional[Dict[str, Any]] = None  # Raw parcel record when looked up
    is_in_valuation_zone: bool
    nearest_asset: Optional[NearestAsset] = None
    valuation: Optional[Valuation] = None


class HoverInfo(BaseModel):
    """Tooltip content for a pointer position"""
    distance_miles: Optional[float] = None
    premium: float = 0.0


class AreaSummary(BaseModel):
    """Strategic summary for a selected community area"""
    area_code: str
    area_name: str
    park_ids: List[int] = Field(default_factory=list)
    park_count: int = 0
    total_park_acres: float = 0.0
    centroid_distance_miles: Optional[float] = None
    isochrone: IsochroneAnalysisResult
