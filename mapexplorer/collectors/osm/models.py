"""
OSM data models

Data classes for raw OSM elements (nodes, ways, relations) and for the
normalized features built from them
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from shapely.geometry.base import BaseGeometry


@dataclass
class OSMNode:
    """Represents an OSM node (point)"""
    id: int
    lat: Optional[float]
    lon: Optional[float]
    tags: Dict[str, str]

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class OSMWay:
    """Represents an OSM way (line or polygon)"""
    id: int
    nodes: List[OSMNode]
    tags: Dict[str, str]
    geometry: Optional[List[List[float]]] = None  # Direct geometry from Overpass
    node_ids: List[int] = field(default_factory=list)

    def get_coordinates(self) -> List[List[float]]:
        """Get coordinates as [lon, lat] list"""
        # Prefer direct geometry if available (from 'out geom')
        if self.geometry:
            return [list(c) for c in self.geometry]
        # Fallback to node-based coordinates
        return [[n.lon, n.lat] for n in self.nodes if n.has_location]


@dataclass
class OSMRelationMember:
    type: str
    ref: int
    role: str = ""
    geometry: Optional[List[List[float]]] = None  # [lon, lat] pairs from 'out geom'


@dataclass
class OSMRelation:
    """Represents an OSM relation (ordered members of other elements)"""
    id: int
    members: List[OSMRelationMember]
    tags: Dict[str, str]
    center: Optional[Tuple[float, float]] = None  # (lon, lat) from 'out center' or 'bounds'


@dataclass
class ReconstructedFeature:
    """
    Normalized feature: geometry, flattened tags plus osm_id/osm_type,
    and a locally generated id that is unique across queries
    """
    id: str
    geometry: BaseGeometry
    properties: Dict[str, Any]
    projection: str = "EPSG:4326"

    @property
    def geometry_type(self) -> str:
        return self.geometry.geom_type

    @property
    def tags(self) -> Dict[str, Any]:
        return {k: v for k, v in self.properties.items() if k not in ("osm_id", "osm_type")}
