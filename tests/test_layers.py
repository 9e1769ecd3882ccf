import pytest
from shapely.geometry import Point

from mapexplorer.categories import CategoryStyle
from mapexplorer.collectors.osm.classifier import FeatureBucket
from mapexplorer.collectors.osm.layers import LAYER_TYPE_DRAW, LayerAccumulator, LayerRegistry, MapLayer
from mapexplorer.collectors.osm.models import ReconstructedFeature
from mapexplorer.config import ExplorerConfig


def features(*ids):
    return [ReconstructedFeature(id=i, geometry=Point(0, 0), properties={"osm_id": 1, "osm_type": "node"}) for i in ids]


@pytest.fixture
def registry():
    return LayerRegistry()


@pytest.fixture
def accumulator(registry):
    return LayerAccumulator(registry.add_layer, ExplorerConfig().default_layer_style)


def test_layer_name_carries_feature_count(accumulator, registry):
    style = CategoryStyle(fill_color="#87CEEB")
    layers = accumulator.accumulate([FeatureBucket("Water Bodies", features("a", "b"), style, "water_bodies")])

    assert [layer.name for layer in layers] == ["Water Bodies (2)"]
    assert layers[0].style == style
    assert layers[0].type == "osm"
    assert layers[0].visible
    assert layers[0].id.startswith("osm-water_bodies-")
    assert registry.layers == layers


def test_empty_buckets_produce_no_layer(accumulator, registry):
    layers = accumulator.accumulate([
        FeatureBucket("Wetlands", [], None, "wetlands"),
        FeatureBucket("Forests", features("a"), None, "forests"),
    ])

    assert [layer.name for layer in layers] == ["Forests (1)"]
    assert len(registry) == 1


def test_bucket_without_style_gets_default_orange(accumulator):
    layer = accumulator.build_layer(FeatureBucket("amenity=cafe", features("a")))

    assert layer.style.stroke_color == "#FFA500"
    assert layer.id.startswith("osm-custom-")


def test_repeated_fetch_appends_layers_with_same_name(accumulator, registry):
    accumulator.accumulate([FeatureBucket("Buildings", features("a"), None, "buildings")])
    accumulator.accumulate([FeatureBucket("Buildings", features("b"), None, "buildings")])

    assert [layer.name for layer in registry.layers] == ["Buildings (1)", "Buildings (1)"]
    assert registry.layers[0].id != registry.layers[1].id


def test_registry_rejects_shared_features(registry):
    shared = features("a")
    registry.add_layer(MapLayer(id="one", name="One (1)", features=shared, style=CategoryStyle()))

    with pytest.raises(ValueError):
        registry.add_layer(MapLayer(id="two", name="Two (1)", features=shared, style=CategoryStyle()))
    with pytest.raises(ValueError):
        registry.add_layer(MapLayer(id="one", name="Again (0)", features=[], style=CategoryStyle()))


def test_removed_layer_releases_its_features(registry):
    shared = features("a")
    registry.add_layer(MapLayer(id="one", name="One (1)", features=shared, style=CategoryStyle()))

    assert registry.remove_layer("one").id == "one"
    assert registry.remove_layer("one") is None
    registry.add_layer(MapLayer(id="two", name="Two (1)", features=shared, style=CategoryStyle()))
    assert registry.get("two") is not None


def test_registry_filters_by_type(registry):
    registry.add_layer(MapLayer(id="osm", name="OSM (1)", features=features("a"), style=CategoryStyle()))
    registry.add_layer(MapLayer(id="draw", name="Drawn", features=features("b"), style=CategoryStyle(), type=LAYER_TYPE_DRAW))

    assert [layer.id for layer in registry.by_type("osm")] == ["osm"]
    assert [layer.id for layer in registry] == ["osm", "draw"]
