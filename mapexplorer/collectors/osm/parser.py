"""
OSM response parser

Parses Overpass API responses into OSMNode, OSMWay and OSMRelation objects
"""

from typing import Any, Dict, List, Optional, Set, Tuple
from loguru import logger

from .models import OSMNode, OSMRelation, OSMRelationMember, OSMWay


def _parse_coordinates(points: List[Any]) -> List[List[float]]:
    """
    Overpass 'out geom' geometry as [lon, lat] pairs

    Accepts {lat, lon} objects or [lon, lat] lists; points missing a
    coordinate are skipped.
    """
    coords = []
    for point in points or []:
        if isinstance(point, dict):
            if point.get("lon") is None or point.get("lat") is None:
                continue
            coords.append([point["lon"], point["lat"]])
        elif isinstance(point, (list, tuple)) and len(point) >= 2:
            coords.append([point[0], point[1]])
    return coords


def _relation_center(element: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    """(lon, lat) from 'out center', else the middle of 'out geom' bounds"""
    center = element.get("center")
    if center and center.get("lon") is not None and center.get("lat") is not None:
        return (center["lon"], center["lat"])

    bounds = element.get("bounds")
    if bounds and all(bounds.get(k) is not None for k in ("minlat", "minlon", "maxlat", "maxlon")):
        return (
            (bounds["minlon"] + bounds["maxlon"]) / 2.0,
            (bounds["minlat"] + bounds["maxlat"]) / 2.0,
        )
    return None


def _parse_member(member: Dict[str, Any]) -> OSMRelationMember:
    geometry = None
    if "geometry" in member:
        geometry = _parse_coordinates(member["geometry"])
    elif member.get("lon") is not None and member.get("lat") is not None:
        # node members carry their own position under 'out geom'
        geometry = [[member["lon"], member["lat"]]]
    return OSMRelationMember(
        type=member.get("type", ""),
        ref=member.get("ref"),
        role=member.get("role", ""),
        geometry=geometry,
    )


class OSMResponseParser:
    """Parses Overpass API responses"""

    @staticmethod
    def parse_elements(data: Dict[str, Any]) -> Tuple[Dict[int, OSMNode], List[OSMWay], List[OSMRelation]]:
        """
        Parse Overpass response into nodes, ways and relations

        Handles both 'out body' (node references) and 'out geom' (direct geometry) formats

        Args:
            data: JSON response from Overpass API

        Returns:
            Tuple of (nodes dict, ways list, relations list)
        """
        nodes: Dict[int, OSMNode] = {}
        ways: List[OSMWay] = []
        relations: List[OSMRelation] = []
        elements = data.get("elements", [])

        # Nodes first so 'out body' ways can resolve their references
        # regardless of element order in the payload
        for element in elements:
            if element.get("type") == "node":
                nodes[element["id"]] = OSMNode(
                    id=element["id"],
                    lat=element.get("lat"),
                    lon=element.get("lon"),
                    tags=element.get("tags", {}),
                )

        for element in elements:
            element_type = element.get("type")
            if element_type == "way":
                # Check if geometry is directly provided (from 'out geom')
                geometry = None
                if "geometry" in element:
                    geometry = _parse_coordinates(element["geometry"])

                node_ids = list(element.get("nodes", []))
                way_nodes = [nodes[node_id] for node_id in node_ids if node_id in nodes]

                ways.append(OSMWay(
                    id=element["id"],
                    nodes=way_nodes,
                    tags=element.get("tags", {}),
                    geometry=geometry,
                    node_ids=node_ids,
                ))
            elif element_type == "relation":
                relations.append(OSMRelation(
                    id=element["id"],
                    members=[_parse_member(m) for m in element.get("members", [])],
                    tags=element.get("tags", {}),
                    center=_relation_center(element),
                ))
            elif element_type != "node":
                logger.debug(f"Ignoring OSM element of type '{element_type}'")

        return nodes, ways, relations

    @staticmethod
    def referenced_node_ids(ways: List[OSMWay], relations: List[OSMRelation]) -> Set[int]:
        """Node ids used as way vertices or relation members"""
        refs: Set[int] = set()
        for way in ways:
            refs.update(way.node_ids)
        for relation in relations:
            refs.update(m.ref for m in relation.members if m.type == "node")
        return refs

    @staticmethod
    def referenced_way_ids(relations: List[OSMRelation]) -> Set[int]:
        """Way ids used as relation members"""
        return {m.ref for relation in relations for m in relation.members if m.type == "way"}
