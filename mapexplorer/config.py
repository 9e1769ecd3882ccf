"""
Configuration settings for the OSM Map Explorer
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .categories import CategoryCatalog, CategoryStyle, build_default_catalog


@dataclass
class APIConfig:
    """API endpoints and configuration"""
    # Overpass API (OSM)
    # Options: overpass-api.de (main), lz4.overpass-api.de, z.overpass-api.de
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    http_method: str = "POST"

    # Server-side query timeouts embedded in the QL header (seconds)
    category_query_timeout: int = 60
    point_query_timeout: int = 25

    # Client-side socket timeout; None leaves it to the Overpass-side timeout
    request_timeout: Optional[float] = None

    # User agent for API requests
    user_agent: str = "OSMMapExplorer/1.0"


@dataclass
class ExplorerConfig:
    """Explorer configuration"""
    # Coordinate systems
    map_projection: str = "EPSG:3857"  # Web Mercator, the map's working projection
    data_projection: str = "EPSG:4326"  # WGS84 lon/lat, what Overpass speaks

    # Decimal places kept when formatting bbox strings (OSM stores 7)
    coordinate_precision: int = 7

    # Radius used by the point inspection query (meters)
    point_query_radius_m: float = 10.0

    # "osm2geojson" (generic converter) or "elements" (node/way/relation switch)
    reconstruction_strategy: str = "osm2geojson"

    # "sequential" runs one round trip per category, "batch" one union query
    category_fetch_mode: str = "sequential"

    default_category_ids: List[str] = field(default_factory=lambda: [
        "watercourses",
        "water_bodies",
    ])

    # Style for layers whose bucket carries none (custom queries)
    default_layer_style: CategoryStyle = field(default_factory=lambda: CategoryStyle(
        stroke_color="#FFA500",
        stroke_width=2.0,
        fill_color="#FFA500",
        fill_opacity=0.3,
    ))

    # Export settings
    export_basename: str = "osm_layers"
    mime_types: Dict[str, str] = field(default_factory=lambda: {
        "geojson": "application/geo+json",
        "kml": "application/vnd.google-earth.kml+xml",
        "shp": "application/zip",
    })

    # API config
    api: APIConfig = field(default_factory=APIConfig)

    # Category catalog handed to the query builder and classifier
    categories: CategoryCatalog = field(default_factory=build_default_catalog)


RECONSTRUCTION_STRATEGIES = ("osm2geojson", "elements")
CATEGORY_FETCH_MODES = ("sequential", "batch")
HTTP_METHODS = ("POST", "GET")


# Global config instance
config = ExplorerConfig()


def get_config() -> ExplorerConfig:
    """Get global configuration"""
    return config


def validate_config(config: ExplorerConfig) -> None:
    """
    Validate that all required configuration values are set.
    Raises ValueError if any required value is missing or invalid.
    """
    errors = []

    if not config.map_projection:
        errors.append("map_projection is required but not set")
    if not config.data_projection:
        errors.append("data_projection is required but not set")

    if config.coordinate_precision is None or config.coordinate_precision < 0:
        errors.append(f"coordinate_precision must be >= 0, got {config.coordinate_precision}")

    if config.point_query_radius_m is None or config.point_query_radius_m <= 0:
        errors.append(f"point_query_radius_m must be positive, got {config.point_query_radius_m}")

    if config.reconstruction_strategy not in RECONSTRUCTION_STRATEGIES:
        errors.append(
            f"reconstruction_strategy must be one of {RECONSTRUCTION_STRATEGIES}, "
            f"got {config.reconstruction_strategy!r}"
        )

    if config.category_fetch_mode not in CATEGORY_FETCH_MODES:
        errors.append(
            f"category_fetch_mode must be one of {CATEGORY_FETCH_MODES}, "
            f"got {config.category_fetch_mode!r}"
        )

    if config.api is None:
        errors.append("api configuration is required but not set")
    else:
        if not config.api.overpass_url:
            errors.append("api.overpass_url is required but not set")
        if config.api.http_method not in HTTP_METHODS:
            errors.append(f"api.http_method must be one of {HTTP_METHODS}, got {config.api.http_method!r}")
        for name in ("category_query_timeout", "point_query_timeout"):
            value = getattr(config.api, name)
            if value is None or value <= 0:
                errors.append(f"api.{name} must be positive, got {value}")

    if config.categories is None or len(config.categories) == 0:
        errors.append("categories catalog is required but empty")
    else:
        unknown = [cid for cid in config.default_category_ids if cid not in config.categories]
        if unknown:
            errors.append(f"default_category_ids reference unknown categories: {unknown}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)
