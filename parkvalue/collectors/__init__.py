"""
Data collectors for park proximity valuation

- SocrataCollector: community areas and parks from the City of Chicago
  portal, parcels from the Cook County portal
- GeoJSON file loading for offline runs
"""

from .socrata import SocrataCollector, SocrataAPIClient, SocrataAPIError, validate_api_connection
from .geojson_files import load_areas_file, load_parks_file

__all__ = [
    "SocrataCollector",
    "SocrataAPIClient",
    "SocrataAPIError",
    "validate_api_connection",
    "load_areas_file",
    "load_parks_file",
]
