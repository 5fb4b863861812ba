"""
Local dataset files

Accepts either a GeoJSON FeatureCollection (properties carry the Socrata
column names) or a JSON array of raw Socrata rows.
"""

import json
from typing import Any, Dict, List

from loguru import logger
from pydantic import ValidationError

from ..models import AdministrativeArea, ParkFeature


def _rows(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict) and data.get("type") == "FeatureCollection":
        rows = []
        for feature in data.get("features", []):
            row = dict(feature.get("properties") or {})
            row["the_geom"] = feature.get("geometry")
            rows.append(row)
        return rows

    if isinstance(data, list):
        return data

    raise ValueError(f"{path} is neither a FeatureCollection nor a list of rows")


def _load(path: str, model, label: str) -> list:
    items = []
    for row in _rows(path):
        try:
            items.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {label} in {path}: {e.error_count()} errors")
    logger.info(f"Loaded {len(items)} {label}s from {path}")
    return items


def load_parks_file(path: str) -> List[ParkFeature]:
    return _load(path, ParkFeature, "park")


def load_areas_file(path: str) -> List[AdministrativeArea]:
    return _load(path, AdministrativeArea, "community area")
