import io
import json
import zipfile

import pytest
from shapely.geometry import GeometryCollection, Point

from mapexplorer.categories import build_default_catalog
from mapexplorer.collectors.osm.geometry import GeometryReconstructor
from mapexplorer.collectors.osm.layers import LAYER_TYPE_DRAW, MapLayer
from mapexplorer.collectors.osm.models import ReconstructedFeature
from mapexplorer.errors import NothingToExportError
from mapexplorer.exporter import LayerExporter, slugify
from mapexplorer.models import ExportFormat

from conftest import closed_ring, node_element, way_element


WATER_STYLE = build_default_catalog().get("water_bodies").style


@pytest.fixture
def exporter(config):
    return LayerExporter(config)


@pytest.fixture
def water_layer(config, water_payload):
    features = GeometryReconstructor(config).reconstruct(water_payload)
    return MapLayer(id="osm-water", name="Water Bodies (1)", features=features, style=WATER_STYLE)


@pytest.fixture
def mixed_layer(config):
    payload = {"elements": [
        way_element(2, {"amenity": "hospital", "name": "St Thomas'"}, closed_ring(5)),
        node_element(3, 51.5005, -0.1185, {"amenity": "clinic"}),
    ]}
    features = GeometryReconstructor(config).reconstruct(payload)
    return MapLayer(id="osm-health", name="Healthcare (2)", features=features, style=WATER_STYLE)


# ============================================================
# GeoJSON
# ============================================================

def test_geojson_export_metadata(exporter, water_layer):
    result = exporter.export([water_layer], ExportFormat.GEOJSON)

    assert result.filename == "osm_layers.geojson"
    assert result.mime_type == "application/geo+json"
    assert result.feature_count == 1
    assert result.layer_count == 1


def test_geojson_is_deterministic(exporter, water_layer):
    first = exporter.export([water_layer], "geojson").content
    second = exporter.export([water_layer], "geojson").content
    assert first == second


def test_geojson_coordinates_are_back_in_wgs84(exporter, water_layer):
    collection = json.loads(exporter.export([water_layer], "geojson").content)

    feature = collection["features"][0]
    assert collection["type"] == "FeatureCollection"
    assert feature["id"] == water_layer.features[0].id
    assert feature["geometry"]["type"] == "Polygon"
    assert feature["properties"] == {"natural": "water", "name": "Pond", "osm_id": 1, "osm_type": "way"}

    ring = feature["geometry"]["coordinates"][0]
    assert ring[0][0] == pytest.approx(-0.125, abs=1e-9)
    assert ring[0][1] == pytest.approx(51.501, abs=1e-9)
    assert ring[0] == ring[-1]


def test_non_osm_layers_are_not_exported(exporter, water_layer):
    drawn = MapLayer(
        id="draw-1", name="Sketch", style=WATER_STYLE, type=LAYER_TYPE_DRAW,
        features=[ReconstructedFeature(id="d1", geometry=Point(0, 0), properties={}, projection="EPSG:3857")],
    )
    result = exporter.export([drawn, water_layer], "geojson")

    assert result.layer_count == 1
    assert [f["id"] for f in json.loads(result.content)["features"]] == [water_layer.features[0].id]


def test_nothing_to_export(exporter):
    empty = MapLayer(id="osm-empty", name="Empty (0)", features=[], style=WATER_STYLE)

    with pytest.raises(NothingToExportError):
        exporter.export([empty], "kml")
    with pytest.raises(NothingToExportError):
        exporter.export([], "shp")


# ============================================================
# KML
# ============================================================

def test_kml_has_one_folder_per_layer_with_style(exporter, water_layer, mixed_layer):
    result = exporter.export([water_layer, mixed_layer], ExportFormat.KML)
    kml = result.content.decode("utf-8")

    assert result.filename == "osm_layers.kml"
    assert result.mime_type == "application/vnd.google-earth.kml+xml"
    assert kml.count("<Folder") == 2
    assert "<name>Water Bodies (1)</name>" in kml
    assert "<name>Healthcare (2)</name>" in kml
    # #4682B4 as aabbggrr
    assert "ffb48246" in kml
    assert "<Polygon" in kml and "<Point" in kml
    assert 'name="natural"' in kml


# ============================================================
# Shapefile
# ============================================================

def test_shapefile_bundle_has_one_inner_zip_per_layer(exporter, water_layer, mixed_layer):
    result = exporter.export([water_layer, mixed_layer], ExportFormat.SHP)

    assert result.filename == "osm_layers_shp.zip"
    assert result.mime_type == "application/zip"

    with zipfile.ZipFile(io.BytesIO(result.content)) as outer:
        assert outer.namelist() == ["Water_Bodies_1.zip", "Healthcare_2.zip"]
        with zipfile.ZipFile(io.BytesIO(outer.read("Water_Bodies_1.zip"))) as inner:
            names = inner.namelist()

    for extension in (".shp", ".shx", ".dbf"):
        assert f"Water_Bodies_1_polygon{extension}" in names


def test_mixed_layer_is_split_by_geometry_family(exporter, mixed_layer):
    content = exporter.export([mixed_layer], "shp").content

    with zipfile.ZipFile(io.BytesIO(content)) as outer:
        with zipfile.ZipFile(io.BytesIO(outer.read("Healthcare_2.zip"))) as inner:
            names = set(inner.namelist())

    assert {"Healthcare_2_point.shp", "Healthcare_2_polygon.shp"} <= names
    assert not any("_line" in name for name in names)


def test_layers_with_same_name_get_distinct_entries(exporter, water_layer, config, water_payload):
    again = MapLayer(
        id="osm-water-2", name=water_layer.name, style=WATER_STYLE,
        features=GeometryReconstructor(config).reconstruct(water_payload),
    )
    content = exporter.export([water_layer, again], "shp").content

    with zipfile.ZipFile(io.BytesIO(content)) as outer:
        assert outer.namelist() == ["Water_Bodies_1.zip", "Water_Bodies_1_2.zip"]


def test_geometry_collections_are_skipped_in_shapefiles(exporter, water_layer):
    collection = ReconstructedFeature(
        id="gc", geometry=GeometryCollection([Point(0, 0)]), properties={"osm_id": 9, "osm_type": "relation"},
        projection="EPSG:3857",
    )
    water_layer.features.append(collection)

    content = exporter.export([water_layer], "shp").content
    with zipfile.ZipFile(io.BytesIO(content)) as outer:
        with zipfile.ZipFile(io.BytesIO(outer.read("Water_Bodies_1.zip"))) as inner:
            assert all("polygon" in name for name in inner.namelist())


def test_save_writes_file(exporter, water_layer, tmp_path):
    result = exporter.export([water_layer], "geojson")
    path = exporter.save(result, str(tmp_path))

    assert path == str(tmp_path / "osm_layers.geojson")
    assert (tmp_path / "osm_layers.geojson").read_bytes() == result.content
    assert [p.name for p in tmp_path.iterdir()] == ["osm_layers.geojson"]


def test_slugify():
    assert slugify("Parks & Green Areas (3)") == "Parks_Green_Areas_3"
    assert slugify("(()") == "layer"
