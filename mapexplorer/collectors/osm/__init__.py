"""
OpenStreetMap data collection module

Modular OSM collector with separate components for:
- Query builder: Overpass QL compilation
- API client: Overpass API communication
- Models: Data structures (OSMNode, OSMWay, OSMRelation, ReconstructedFeature)
- Parser: Response parsing
- Geometry: Raw elements to geometries, reprojection
- Classifier: First-match category buckets
- Layers: MapLayer, accumulator and registry
- Collector: Main orchestrator class
"""

from .models import OSMNode, OSMWay, OSMRelation, ReconstructedFeature
from .layers import MapLayer, LayerRegistry
from .collector import OSMCollector, FetchResult

__all__ = [
    "OSMNode",
    "OSMWay",
    "OSMRelation",
    "ReconstructedFeature",
    "MapLayer",
    "LayerRegistry",
    "OSMCollector",
    "FetchResult",
]
