#!/usr/bin/env python
"""
Command-line interface for the OSM Map Explorer

Usage:
    python cli.py categories
    python cli.py fetch --bbox -0.13 51.50 -0.12 51.51 --projection EPSG:4326 --categories water_bodies
    python cli.py custom --bbox -0.13 51.50 -0.12 51.51 --projection EPSG:4326 --filter amenity=hospital,clinic
    python cli.py inspect --x -0.1276 --y 51.5074 --projection EPSG:4326
"""

import os
import sys
import json
import argparse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
from mapexplorer.config import get_config, validate_config
from mapexplorer.models import AreaOfInterest, CustomFilter, ExportFormat, LogicalOperator
from mapexplorer.pipeline import MapExplorerPipeline


def setup_logging(verbose: bool = False):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def _area_from_args(args) -> AreaOfInterest:
    return AreaOfInterest.from_extent(args.bbox, args.projection)


def _has_errors(pipeline: MapExplorerPipeline) -> bool:
    return any(n.level == "error" for n in pipeline.notifications)


def _export(pipeline: MapExplorerPipeline, args) -> None:
    if not pipeline.osm_layers():
        return
    pipeline.download_osm_layers(args.format, output_dir=args.output_dir)


def cmd_categories(args):
    """List the category catalog"""
    setup_logging(args.verbose)
    config = get_config()
    for category in config.categories:
        marker = "*" if category.id in config.default_category_ids else " "
        print(f"{marker} {category.id:<16} {category.name}")
    return 0


def cmd_fetch(args):
    """Fetch catalog categories for a bounding box and export them"""
    setup_logging(args.verbose)
    config = get_config()
    validate_config(config)

    try:
        area = _area_from_args(args)
    except ValueError as e:
        logger.error(f"Invalid bounding box: {e}")
        return 1

    category_ids = args.categories.split(",") if args.categories else list(config.default_category_ids)
    category_ids = [c.strip() for c in category_ids if c.strip()]

    pipeline = MapExplorerPipeline(config)
    pipeline.fetch_osm_data(area, category_ids, mode=args.mode)
    _export(pipeline, args)

    for layer in pipeline.layers:
        logger.info(f"  {layer.name}")

    return 1 if _has_errors(pipeline) else 0


def cmd_custom(args):
    """Fetch ad hoc key/value filters for a bounding box and export them"""
    setup_logging(args.verbose)
    config = get_config()
    validate_config(config)

    try:
        area = _area_from_args(args)
    except ValueError as e:
        logger.error(f"Invalid bounding box: {e}")
        return 1

    filters = [CustomFilter.parse(text) for text in args.filter]

    pipeline = MapExplorerPipeline(config)
    pipeline.fetch_custom_osm_data(area, filters, LogicalOperator(args.operator))
    _export(pipeline, args)

    return 1 if _has_errors(pipeline) else 0


def cmd_inspect(args):
    """List OSM features around a point"""
    setup_logging(args.verbose)
    config = get_config()
    validate_config(config)

    pipeline = MapExplorerPipeline(config)
    features = pipeline.inspect_point(args.x, args.y, args.projection)

    summary = [
        {
            "id": feature.id,
            "geometry_type": feature.geometry_type,
            "properties": feature.properties,
        }
        for feature in features
    ]
    print(json.dumps(summary, indent=2, ensure_ascii=False, default=str))

    return 1 if _has_errors(pipeline) else 0


def _add_area_arguments(parser):
    parser.add_argument(
        "--bbox", type=float, nargs=4, required=True,
        metavar=("MIN_X", "MIN_Y", "MAX_X", "MAX_Y"),
        help="Bounding box in the given projection"
    )
    parser.add_argument("--projection", default="EPSG:3857", help="Projection of --bbox (default: EPSG:3857)")


def _add_export_arguments(parser):
    parser.add_argument(
        "--format", "-f", choices=[f.value for f in ExportFormat], default=ExportFormat.GEOJSON.value,
        help="Export format"
    )
    parser.add_argument("--output-dir", "-o", default="output", help="Output directory")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="OSM Map Explorer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  List categories:
    python cli.py categories

  Fetch water layers for a box in lon/lat and save GeoJSON:
    python cli.py fetch --bbox -0.13 51.50 -0.12 51.51 --projection EPSG:4326 --categories watercourses,water_bodies

  Hospitals or clinics as a zipped Shapefile:
    python cli.py custom --bbox -0.13 51.50 -0.12 51.51 --projection EPSG:4326 --filter amenity=hospital,clinic -f shp

  Features around a point:
    python cli.py inspect --x -0.1276 --y 51.5074 --projection EPSG:4326
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Categories command
    cat_parser = subparsers.add_parser("categories", help="List available OSM categories")
    cat_parser.set_defaults(func=cmd_categories)

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch OSM categories into layers")
    _add_area_arguments(fetch_parser)
    fetch_parser.add_argument("--categories", "-c", help="Comma-separated category ids (default: config defaults)")
    fetch_parser.add_argument("--mode", choices=["sequential", "batch"], help="One query per category or one union query")
    _add_export_arguments(fetch_parser)
    fetch_parser.set_defaults(func=cmd_fetch)

    # Custom command
    custom_parser = subparsers.add_parser("custom", help="Fetch OSM features matching key/value filters")
    _add_area_arguments(custom_parser)
    custom_parser.add_argument(
        "--filter", action="append", required=True,
        help="key=value1,value2 or a bare key (repeatable)"
    )
    custom_parser.add_argument(
        "--operator", choices=[op.value for op in LogicalOperator], default=LogicalOperator.AND.value,
        help="How to combine filters"
    )
    _add_export_arguments(custom_parser)
    custom_parser.set_defaults(func=cmd_custom)

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="List OSM features around a point")
    inspect_parser.add_argument("--x", type=float, required=True, help="X / longitude")
    inspect_parser.add_argument("--y", type=float, required=True, help="Y / latitude")
    inspect_parser.add_argument("--projection", default="EPSG:3857", help="Projection of the point")
    inspect_parser.set_defaults(func=cmd_inspect)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
