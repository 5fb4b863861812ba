"""
Main Socrata Collector

Fetches community areas, parks and parcels, parsing rows into the
pydantic models and caching the raw rows between sessions.
"""

from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from .api_client import SocrataAPIClient, SocrataAPIError
from ...cache import CacheStore
from ...config import APIConfig, get_config
from ...models import AdministrativeArea, ParkFeature


class SocrataCollector:
    """
    Collect the park and community area datasets

    Raw rows are cached under the COMMUNITY_AREAS and PARKS namespaces;
    parcel lookups are never cached.
    """

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        client: Optional[SocrataAPIClient] = None,
        api: Optional[APIConfig] = None,
    ):
        self.api = api or get_config().api
        self.cache = cache
        self.client = client or SocrataAPIClient(self.api)

    def _rows(self, namespace: str, dataset: str) -> List[Dict[str, Any]]:
        if self.cache is not None:
            cached = self.cache.get(namespace, "all")
            if cached is not None:
                return cached

        logger.info(f"Fetching {namespace} from {self.api.chicago_base_url}/{dataset}")
        rows = self.client.get_all(self.api.chicago_base_url, dataset)
        logger.info(f"Fetched {len(rows)} {namespace} rows")

        if self.cache is not None:
            self.cache.set(namespace, "all", rows)
        return rows

    @staticmethod
    def _parse(model, rows: List[Dict[str, Any]], label: str) -> list:
        items = []
        for row in rows:
            try:
                items.append(model.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed {label} row: {e.error_count()} errors")
        return items

    def fetch_community_areas(self) -> List[AdministrativeArea]:
        rows = self._rows("COMMUNITY_AREAS", self.api.community_areas_dataset)
        return self._parse(AdministrativeArea, rows, "community area")

    def fetch_parks(self) -> List[ParkFeature]:
        rows = self._rows("PARKS", self.api.parks_dataset)
        return self._parse(ParkFeature, rows, "park")

    def fetch_parcel_by_location(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        """First parcel within the search radius of a point, or None"""
        where = f"within_circle(the_geom,{lat},{lon},{self.api.parcel_search_radius_m})"
        params = self.client.build_params(limit=1, where=where)
        try:
            parcels = self.client.get(self.api.cook_county_base_url, self.api.parcels_dataset, params)
        except SocrataAPIError as e:
            logger.warning(f"Parcel lookup failed at ({lat}, {lon}): {e}")
            return None

        if not parcels:
            logger.info(f"No parcel found at ({lat}, {lon})")
            return None
        return parcels[0]
