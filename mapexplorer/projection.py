"""
Coordinate reference system helpers

Thin wrappers over pyproj transformers, always in (x, y) = (lon, lat) order.
"""

from functools import lru_cache
from typing import Tuple

import shapely
from pyproj import CRS, Transformer
from shapely.geometry.base import BaseGeometry


Bounds = Tuple[float, float, float, float]


def same_crs(source: str, target: str) -> bool:
    if source == target:
        return True
    return CRS.from_user_input(source) == CRS.from_user_input(target)


@lru_cache(maxsize=32)
def get_transformer(source: str, target: str) -> Transformer:
    """Cached transformer between two CRS identifiers"""
    return Transformer.from_crs(source, target, always_xy=True)


def transform_point(x: float, y: float, source: str, target: str) -> Tuple[float, float]:
    if same_crs(source, target):
        return x, y
    return get_transformer(source, target).transform(x, y)


def transform_bounds(bounds: Bounds, source: str, target: str) -> Bounds:
    """Reproject (min_x, min_y, max_x, max_y), densifying the edges"""
    if same_crs(source, target):
        return bounds
    return tuple(get_transformer(source, target).transform_bounds(*bounds, densify_pts=21))


def transform_geometry(geometry: BaseGeometry, source: str, target: str) -> BaseGeometry:
    """Pure coordinate transform; topology is untouched"""
    if same_crs(source, target):
        return geometry
    return shapely.transform(geometry, get_transformer(source, target).transform, interleaved=False)
