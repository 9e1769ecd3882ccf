import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mapexplorer.config import ExplorerConfig
from mapexplorer.errors import NetworkError
from mapexplorer.models import AreaOfInterest


LONDON_BBOX = [-0.13, 51.50, -0.12, 51.51]


def closed_ring(n_points: int = 5):
    """Small square-ish ring of n_points (first == last) near Westminster"""
    ring = [
        {"lat": 51.501, "lon": -0.125},
        {"lat": 51.501, "lon": -0.124},
        {"lat": 51.502, "lon": -0.124},
        {"lat": 51.502, "lon": -0.125},
    ][: n_points - 1]
    return ring + [dict(ring[0])]


def way_element(way_id, tags, geometry):
    """Way with 'out geom' geometry; a closed ring repeats its first node ref as in real OSM data"""
    node_ids = list(range(way_id * 100, way_id * 100 + len(geometry)))
    if len(geometry) > 2 and geometry[0] == geometry[-1]:
        node_ids[-1] = node_ids[0]
    element = {
        "type": "way",
        "id": way_id,
        "nodes": node_ids,
        "geometry": geometry,
    }
    if tags is not None:
        element["tags"] = tags
    return element


def node_element(node_id, lat, lon, tags=None):
    element = {"type": "node", "id": node_id, "lat": lat, "lon": lon}
    if tags is not None:
        element["tags"] = tags
    return element


def multipolygon_relation(relation_id, tags, outer_way_id, geometry, with_bounds=False):
    """Relation as returned by 'out geom': members carry their own geometry"""
    element = {
        "type": "relation",
        "id": relation_id,
        "members": [{"type": "way", "ref": outer_way_id, "role": "outer", "geometry": geometry}],
        "tags": {"type": "multipolygon", **tags},
    }
    if with_bounds:
        lats = [p["lat"] for p in geometry]
        lons = [p["lon"] for p in geometry]
        element["bounds"] = {"minlat": min(lats), "minlon": min(lons), "maxlat": max(lats), "maxlon": max(lons)}
    return element


class StubOverpassClient:
    """Returns queued payloads (or raises queued errors) in call order"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.queries = []

    def query(self, query, method=None):
        self.queries.append(query)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def config():
    return ExplorerConfig(reconstruction_strategy="elements")


@pytest.fixture
def default_config():
    """Stock configuration, reconstruction through osm2geojson"""
    return ExplorerConfig()


@pytest.fixture
def wgs84_area():
    return AreaOfInterest.from_extent(LONDON_BBOX, "EPSG:4326")


@pytest.fixture
def water_payload():
    return {
        "version": 0.6,
        "elements": [
            way_element(1, {"natural": "water", "name": "Pond"}, closed_ring(5)),
        ],
    }


@pytest.fixture
def gateway_timeout():
    return NetworkError("Overpass API error: 504 Gateway Timeout", status_code=504, body="Gateway Timeout")
