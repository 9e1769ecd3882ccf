"""
Data collectors for the OSM Map Explorer

- OSMCollector: Category and custom-filter layers from OpenStreetMap (Overpass API)
"""

from .osm import OSMCollector

__all__ = [
    "OSMCollector",
]
