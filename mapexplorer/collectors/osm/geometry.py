"""
Geometry reconstruction

Turns a raw Overpass JSON payload into ReconstructedFeature objects.

Two strategies sit behind one interface:
- "osm2geojson": hands the whole payload to osm2geojson, which assembles
  relation members (multipolygons, route relations) properly. Default.
- "elements": node/way/relation switch over the parsed elements. Ways
  become polygons only when closed with at least 4 points; relations
  collapse to a center point. Untagged nodes and ways that only exist as
  members of other elements are not emitted.

Every feature gets a process-unique id, a property set pruned to tags
plus osm_id/osm_type, and is reprojected from the data projection into
the map projection as the last step.
"""

import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from osm2geojson import json2geojson
from shapely.geometry import LineString, MultiPoint, Point, Polygon, shape
from shapely.geometry.base import BaseGeometry

from ...config import ExplorerConfig, get_config
from ...errors import MalformedResponseError
from ...projection import transform_geometry
from .models import OSMNode, OSMRelation, OSMWay, ReconstructedFeature
from .parser import OSMResponseParser


RawFeature = Tuple[BaseGeometry, Dict[str, Any]]

# Embedded geometry and membership back-references do not serialize cleanly
PRUNED_KEYS = ("geometry", "nodes", "members", "relations", "memberOf", "meta")


def new_feature_id() -> str:
    return uuid.uuid4().hex


def is_closed_ring(coords: List[List[float]]) -> bool:
    """At least 4 points and first == last"""
    return len(coords) >= 4 and list(coords[0]) == list(coords[-1])


def way_geometry(coords: List[List[float]]) -> Optional[BaseGeometry]:
    """Polygon for a closed ring, LineString otherwise, None below 2 points"""
    if len(coords) < 2:
        return None
    if is_closed_ring(coords):
        return Polygon(coords)
    return LineString(coords)


def prune_properties(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten element tags and keep only tags plus osm_id/osm_type"""
    raw = {k: v for k, v in raw.items() if k not in PRUNED_KEYS}
    properties: Dict[str, Any] = {}
    tags = raw.get("tags") or {}
    for key, value in tags.items():
        if key in PRUNED_KEYS:
            continue
        properties[key] = value
    if raw.get("id") is not None:
        properties["osm_id"] = raw["id"]
    if raw.get("type") is not None:
        properties["osm_type"] = raw["type"]
    return properties


class Osm2GeoJSONStrategy:
    """Delegate the payload to a generic OSM -> GeoJSON converter"""

    name = "osm2geojson"

    def __init__(self, converter: Callable[..., Dict[str, Any]] = json2geojson):
        self.converter = converter

    def convert(self, payload: Dict[str, Any]) -> List[RawFeature]:
        collection = self.converter(payload)
        raw_features: List[RawFeature] = []
        for feature in collection.get("features", []):
            geometry = feature.get("geometry")
            if not geometry:
                continue
            raw_features.append((shape(geometry), feature.get("properties") or {}))
        return raw_features


class ElementGeometryStrategy:
    """Hand-rolled node/way/relation reconstruction"""

    name = "elements"

    def __init__(self, parser: Optional[OSMResponseParser] = None):
        self.parser = parser or OSMResponseParser()

    def convert(self, payload: Dict[str, Any]) -> List[RawFeature]:
        nodes, ways, relations = self.parser.parse_elements(payload)
        used_refs = self.parser.referenced_node_ids(ways, relations)
        member_ways = self.parser.referenced_way_ids(relations)
        ways_by_id = {way.id: way for way in ways}
        raw_features: List[RawFeature] = []

        for node in nodes.values():
            # Untagged vertices pulled in by member recursion are not features
            if not node.tags and node.id in used_refs:
                continue
            if not node.has_location:
                logger.debug(f"Dropping node {node.id}: missing coordinates")
                continue
            raw_features.append((
                Point(node.lon, node.lat),
                {"type": "node", "id": node.id, "tags": node.tags},
            ))

        for way in ways:
            # Untagged relation members are parts of the relation, not features
            if not way.tags and way.id in member_ways:
                continue
            geometry = self._way_geometry(way)
            if geometry is None:
                logger.debug(f"Dropping way {way.id}: fewer than 2 points")
                continue
            raw_features.append((geometry, {"type": "way", "id": way.id, "tags": way.tags}))

        for relation in relations:
            geometry = self._relation_geometry(relation, nodes, ways_by_id)
            if geometry is None:
                logger.debug(f"Dropping relation {relation.id}: no center and no located members")
                continue
            raw_features.append((geometry, {"type": "relation", "id": relation.id, "tags": relation.tags}))

        return raw_features

    @staticmethod
    def _way_geometry(way: OSMWay) -> Optional[BaseGeometry]:
        return way_geometry(way.get_coordinates())

    @staticmethod
    def _relation_geometry(
        relation: OSMRelation,
        nodes: Dict[int, OSMNode],
        ways_by_id: Dict[int, OSMWay],
    ) -> Optional[BaseGeometry]:
        """
        Point at the relation center

        Uses the precomputed center when Overpass sent one, otherwise the
        middle of the members' bounding box. Members without inline
        geometry ('out body') are resolved against the parsed elements.
        Approximation only; the osm2geojson strategy assembles members.
        """
        if relation.center is not None:
            return Point(*relation.center)

        coords: List[List[float]] = []
        for member in relation.members:
            if member.geometry:
                coords.extend(member.geometry)
            elif member.type == "way" and member.ref in ways_by_id:
                coords.extend(ways_by_id[member.ref].get_coordinates())
            elif member.type == "node" and member.ref in nodes and nodes[member.ref].has_location:
                node = nodes[member.ref]
                coords.append([node.lon, node.lat])

        if not coords:
            return None
        min_x, min_y, max_x, max_y = MultiPoint(coords).bounds
        return Point((min_x + max_x) / 2.0, (min_y + max_y) / 2.0)


STRATEGIES = {
    Osm2GeoJSONStrategy.name: Osm2GeoJSONStrategy,
    ElementGeometryStrategy.name: ElementGeometryStrategy,
}


def build_strategy(name: str):
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown reconstruction strategy: {name}") from None


class GeometryReconstructor:
    """Raw Overpass payload -> features in the map projection"""

    def __init__(self, config: Optional[ExplorerConfig] = None, strategy=None):
        self.config = config or get_config()
        self.strategy = strategy or build_strategy(self.config.reconstruction_strategy)

    def reconstruct(self, payload: Dict[str, Any], target_projection: Optional[str] = None) -> List[ReconstructedFeature]:
        if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
            raise MalformedResponseError("Overpass payload has no 'elements' array")

        target = target_projection or self.config.map_projection
        source = self.config.data_projection

        features: List[ReconstructedFeature] = []
        for geometry, raw_properties in self.strategy.convert(payload):
            if geometry.is_empty:
                continue
            features.append(ReconstructedFeature(
                id=new_feature_id(),
                geometry=transform_geometry(geometry, source, target),
                properties=prune_properties(raw_properties),
                projection=target,
            ))

        logger.debug(
            f"Reconstructed {len(features)} features from {len(payload['elements'])} elements "
            f"using '{self.strategy.name}'"
        )
        return features
