"""
Configuration settings for Park Proximity Valuation
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import math
import os


DAY_MS = 24 * 60 * 60 * 1000


@dataclass
class ValuationConfig:
    """Calibration for buffers, the premium model and the samplers"""
    # Single rendered buffer tier (miles from the park perimeter)
    buffer_distance_miles: float = 0.2
    buffer_premium: float = 22.3
    buffer_zone_label: str = "0-0.2 mi"
    buffer_resolution: int = 16  # Segments per quarter circle

    # Distance -> premium calibration (miles, percent), ascending by distance
    premium_table: List[Tuple[float, float]] = field(default_factory=lambda: [
        (0.2, 22.3),
        (0.3, 18.3),
        (0.4, 14.6),
        (0.5, 11.2),
        (0.6, 7.9),
        (0.8, 2.1),
    ])
    decay_rate_per_mile: float = 10.0  # Premium points lost per mile past the table

    # Coverage sampling
    sample_spacing_miles: float = 0.12  # ~190m
    sample_chunk_size: int = 500

    # Point evaluation
    valuation_zone_cutoff_miles: float = 0.8
    parcel_search_ceiling_miles: float = 1.0
    hover_max_miles: float = 1.0
    base_value: float = 1000.0  # Nominal value for the before/after simulation


@dataclass
class CacheConfig:
    """Cache store settings"""
    key_prefix: str = "chicago-parks"

    # Default TTL per namespace (milliseconds)
    namespace_ttls: Dict[str, int] = field(default_factory=lambda: {
        "COMMUNITY_AREAS": 7 * DAY_MS,
        "PARKS": 7 * DAY_MS,
        "WATERWAYS": 7 * DAY_MS,
        "PROPERTY_DATA": 1 * DAY_MS,
        "GEOMETRIC_CALC": 1 * DAY_MS,
    })
    fallback_namespace: str = "GEOMETRIC_CALC"

    # Persistent directory (None = in-memory only)
    cache_dir: Optional[str] = None
    max_bytes: int = 5 * 1024 * 1024  # Same order as a browser localStorage quota


@dataclass
class APIConfig:
    """Socrata open-data endpoints and request settings"""
    chicago_base_url: str = "https://data.cityofchicago.org/resource"
    cook_county_base_url: str = "https://datacatalog.cookcountyil.gov/resource"

    # Dataset resource ids
    parks_dataset: str = "ejsh-fztr"
    community_areas_dataset: str = "igwz-8jzy"
    parcels_dataset: str = "77tz-riq7"

    page_limit: int = 1000
    parcel_search_radius_m: int = 50

    # App tokens are not interchangeable between domains
    chicago_token_env: str = "CHICAGO_APP_TOKEN"
    cook_county_token_env: str = "COOKCOUNTY_APP_TOKEN"

    # Request settings
    request_timeout: int = 30
    probe_timeout: int = 5
    max_retries: int = 3
    retry_delay: float = 1.0

    user_agent: str = "ParkValue/1.0"


@dataclass
class PipelineConfig:
    """Pipeline configuration"""
    valuation: ValuationConfig = field(default_factory=ValuationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    api: APIConfig = field(default_factory=APIConfig)

    # Datasets are loaded together; two independent fetches
    load_workers: int = 2

    output_dir: str = "output"


# Global config instance
config = PipelineConfig()

# Allow the cache directory to be set without code changes
if os.environ.get("PARKVALUE_CACHE_DIR"):
    config.cache.cache_dir = os.environ["PARKVALUE_CACHE_DIR"]


def get_config() -> PipelineConfig:
    """Get global configuration"""
    return config


def validate_config(config: PipelineConfig) -> None:
    """
    Validate that all required configuration values are set.
    Raises ValueError if any required value is missing or invalid.
    """
    errors = []

    val = getattr(config, "valuation", None)
    if val is None:
        errors.append("valuation configuration is required but not set")
    else:
        for name in (
            "buffer_distance_miles",
            "sample_spacing_miles",
            "valuation_zone_cutoff_miles",
            "parcel_search_ceiling_miles",
            "base_value",
        ):
            value = getattr(val, name, None)
            if value is None or not math.isfinite(value) or value <= 0:
                errors.append(f"valuation.{name} must be positive, got {value}")

        if val.decay_rate_per_mile is None or val.decay_rate_per_mile < 0:
            errors.append(f"valuation.decay_rate_per_mile must be >= 0, got {val.decay_rate_per_mile}")

        if val.parcel_search_ceiling_miles < val.valuation_zone_cutoff_miles:
            errors.append("valuation.parcel_search_ceiling_miles must not be below the valuation zone cutoff")

        table = val.premium_table or []
        if not table:
            errors.append("valuation.premium_table must not be empty")
        for (d1, p1), (d2, p2) in zip(table, table[1:]):
            if d2 <= d1:
                errors.append(f"valuation.premium_table distances must ascend ({d1} -> {d2})")
            if p2 > p1:
                errors.append(f"valuation.premium_table premiums must not increase ({p1} -> {p2})")

    cache = getattr(config, "cache", None)
    if cache is None:
        errors.append("cache configuration is required but not set")
    else:
        if not cache.key_prefix:
            errors.append("cache.key_prefix is required but not set")
        for namespace, ttl in cache.namespace_ttls.items():
            if ttl is None or ttl <= 0:
                errors.append(f"cache TTL for {namespace} must be positive, got {ttl}")
        if cache.fallback_namespace not in cache.namespace_ttls:
            errors.append(f"cache.fallback_namespace {cache.fallback_namespace!r} has no TTL")
        if cache.max_bytes <= 0:
            errors.append(f"cache.max_bytes must be positive, got {cache.max_bytes}")

    api = getattr(config, "api", None)
    if api is None:
        errors.append("api configuration is required but not set")
    elif not api.chicago_base_url:
        errors.append("api.chicago_base_url is required but not set")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)
