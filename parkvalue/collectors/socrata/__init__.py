"""
Socrata open-data collection module

- API client: HTTP communication, app tokens, paging, retries
- Collector: community areas, parks and parcel lookups
- Validator: connectivity probe
"""

from .api_client import SocrataAPIClient, SocrataAPIError
from .collector import SocrataCollector
from .validator import APIStatus, validate_api_connection

__all__ = [
    "SocrataAPIClient",
    "SocrataAPIError",
    "SocrataCollector",
    "APIStatus",
    "validate_api_connection",
]
