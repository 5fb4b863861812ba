#!/usr/bin/env python
"""
Command-line interface for Park Proximity Valuation

Usage:
    python cli.py area --code 23
    python cli.py parcel --lat 41.90 --lon -87.70
    python cli.py hover --lat 41.90 --lon -87.70 --max-miles 1.0
    python cli.py batch --input locations.csv --output parcels.json
    python cli.py buffers --output buffers.geojson
    python cli.py cache stats
"""

import os
import sys
import csv
import json
import argparse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
from parkvalue.collectors import SocrataAPIError, load_areas_file, load_parks_file, validate_api_connection
from parkvalue.config import get_config
from parkvalue.pipeline import ValuationPipeline


def setup_logging(verbose: bool = False):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def build_pipeline(args) -> ValuationPipeline:
    """Pipeline with datasets from local files or the open-data portal"""
    config = get_config()
    if getattr(args, "cache_dir", None):
        config.cache.cache_dir = args.cache_dir

    pipeline = ValuationPipeline(config)

    parks_file = getattr(args, "parks_file", None)
    areas_file = getattr(args, "areas_file", None)
    if parks_file or areas_file:
        if areas_file:
            pipeline.set_areas(load_areas_file(areas_file))
        pipeline.set_parks(load_parks_file(parks_file) if parks_file else [])
        return pipeline

    status = validate_api_connection(pipeline.collector.client)
    if not status.connected:
        raise SocrataAPIError(f"Open data portal unreachable: {status.error}")
    pipeline.load_datasets()
    return pipeline


def cmd_area(args):
    """Coverage summary for a community area"""
    setup_logging(args.verbose)

    try:
        pipeline = build_pipeline(args)
        summary = pipeline.analyze_area(args.code)
    except KeyError as e:
        logger.error(str(e))
        return 1
    except (SocrataAPIError, OSError, ValueError) as e:
        logger.error(f"Failed to analyze area {args.code}: {e}")
        return 1

    logger.info(f"✓ {summary.area_name}: {summary.isochrone.inside_percentage}% inside valuation buffers")
    print_json(summary.model_dump())
    return 0


def cmd_parcel(args):
    """Valuation for a clicked location"""
    setup_logging(args.verbose)

    try:
        pipeline = build_pipeline(args)
        if args.no_lookup:
            result = pipeline.evaluate_point(args.lon, args.lat)
        else:
            result = pipeline.analyze_parcel(args.lat, args.lon)
    except (SocrataAPIError, OSError, ValueError) as e:
        logger.error(f"Failed to evaluate ({args.lat}, {args.lon}): {e}")
        return 1

    if result is None:
        logger.error("No parcel found at this location")
        return 1

    print_json(result.model_dump())
    return 0


def cmd_hover(args):
    """Distance to the nearest park edge and interpolated premium"""
    setup_logging(args.verbose)

    try:
        pipeline = build_pipeline(args)
        info = pipeline.hover_premium((args.lon, args.lat), args.max_miles)
        centroid_distance = pipeline.distance_to_nearest_park_centroid((args.lon, args.lat))
    except (SocrataAPIError, OSError, ValueError) as e:
        logger.error(f"Failed hover query at ({args.lat}, {args.lon}): {e}")
        return 1

    print_json({**info.model_dump(), "centroid_distance_miles": centroid_distance})
    return 0


def cmd_batch(args):
    """Evaluate many locations from a CSV file"""
    setup_logging(args.verbose)

    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1

    # Read locations from CSV
    locations = []
    with open(args.input, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            try:
                locations.append({
                    "name": row.get("name", ""),
                    "lat": float(row["lat"]),
                    "lon": float(row["lon"]),
                })
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping invalid row: {e}")

    if not locations:
        logger.error("No valid locations found in CSV")
        return 1

    try:
        pipeline = build_pipeline(args)
    except (SocrataAPIError, OSError, ValueError) as e:
        logger.error(f"Failed to load datasets: {e}")
        return 1

    results = []
    for i, loc in enumerate(locations, 1):
        name = loc["name"] or f"location_{i:03d}"
        result = pipeline.evaluate_point(loc["lon"], loc["lat"])
        hover = pipeline.hover_premium((loc["lon"], loc["lat"]))
        logger.info(
            f"[{i}/{len(locations)}] {name}: "
            f"{'in zone' if result.is_in_valuation_zone else 'outside zone'}"
        )
        results.append({
            "name": name,
            "lat": loc["lat"],
            "lon": loc["lon"],
            "parcel": result.model_dump(),
            "hover": hover.model_dump(),
        })

    os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved {len(results)} evaluations to {args.output}")
    return 0


def cmd_buffers(args):
    """Export valuation buffers as GeoJSON"""
    setup_logging(args.verbose)

    try:
        pipeline = build_pipeline(args)
        pipeline.save_buffers(args.output)
    except (SocrataAPIError, OSError, ValueError) as e:
        logger.error(f"Failed to export buffers: {e}")
        return 1
    return 0


def cmd_cache(args):
    """Inspect or clear the persistent cache"""
    setup_logging(args.verbose)

    config = get_config()
    if args.cache_dir:
        config.cache.cache_dir = args.cache_dir
    if not config.cache.cache_dir:
        logger.error("No cache directory configured (use --cache-dir or PARKVALUE_CACHE_DIR)")
        return 1

    cache = ValuationPipeline(config).cache
    if args.action == "stats":
        print_json(vars(cache.stats()))
    elif args.action == "clear":
        print_json({"removed": cache.clear()})
    else:
        print_json({"removed": cache.clear_expired()})
    return 0


def add_dataset_args(sub):
    sub.add_argument("--parks-file", help="Parks GeoJSON/JSON file (skips the API)")
    sub.add_argument("--areas-file", help="Community areas GeoJSON/JSON file (skips the API)")
    sub.add_argument("--cache-dir", help="Persistent cache directory")


def main():
    parser = argparse.ArgumentParser(
        description="Park Proximity Valuation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Summarize a community area:
    python cli.py area --code 23

  Value a location without a parcel lookup, from local files:
    python cli.py parcel --lat 41.90 --lon -87.70 --no-lookup --parks-file parks.geojson

  Export buffers:
    python cli.py buffers --output buffers.geojson
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Area command
    area_parser = subparsers.add_parser("area", help="Coverage summary for a community area")
    area_parser.add_argument("--code", required=True, help="Community area number")
    add_dataset_args(area_parser)
    area_parser.set_defaults(func=cmd_area)

    # Parcel command
    parcel_parser = subparsers.add_parser("parcel", help="Valuation for a location")
    parcel_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    parcel_parser.add_argument("--lon", type=float, required=True, help="Longitude")
    parcel_parser.add_argument("--no-lookup", action="store_true", help="Skip the parcel record lookup")
    add_dataset_args(parcel_parser)
    parcel_parser.set_defaults(func=cmd_parcel)

    # Hover command
    hover_parser = subparsers.add_parser("hover", help="Nearest park edge distance and premium")
    hover_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    hover_parser.add_argument("--lon", type=float, required=True, help="Longitude")
    hover_parser.add_argument("--max-miles", type=float, default=None, help="Search distance in miles")
    add_dataset_args(hover_parser)
    hover_parser.set_defaults(func=cmd_hover)

    # Batch command
    batch_parser = subparsers.add_parser("batch", help="Evaluate locations from a CSV file")
    batch_parser.add_argument("--input", "-i", required=True, help="Input CSV file (columns: name,lat,lon)")
    batch_parser.add_argument("--output", "-o", default="output/evaluations.json", help="Output JSON file")
    add_dataset_args(batch_parser)
    batch_parser.set_defaults(func=cmd_batch)

    # Buffers command
    buffers_parser = subparsers.add_parser("buffers", help="Export valuation buffers")
    buffers_parser.add_argument("--output", "-o", default="output/buffers.geojson", help="Output GeoJSON file")
    add_dataset_args(buffers_parser)
    buffers_parser.set_defaults(func=cmd_buffers)

    # Cache command
    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the cache")
    cache_parser.add_argument("action", choices=["stats", "clear", "clear-expired"])
    cache_parser.add_argument("--cache-dir", help="Persistent cache directory")
    cache_parser.set_defaults(func=cmd_cache)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
