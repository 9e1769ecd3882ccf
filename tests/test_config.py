import pytest

from mapexplorer.config import APIConfig, ExplorerConfig, get_config, validate_config
from mapexplorer.errors import UnknownCategoryError


def test_defaults_validate():
    validate_config(ExplorerConfig())
    assert get_config().map_projection == "EPSG:3857"
    assert get_config().data_projection == "EPSG:4326"


def test_invalid_values_are_all_reported():
    config = ExplorerConfig(
        reconstruction_strategy="magic",
        category_fetch_mode="parallel",
        default_category_ids=["lava_flows"],
        api=APIConfig(http_method="PUT"),
    )

    with pytest.raises(ValueError) as excinfo:
        validate_config(config)

    message = str(excinfo.value)
    assert "reconstruction_strategy" in message
    assert "category_fetch_mode" in message
    assert "lava_flows" in message
    assert "http_method" in message


def test_catalog_lookup_and_selection():
    catalog = ExplorerConfig().categories

    assert catalog.ids[:2] == ["watercourses", "water_bodies"]
    assert catalog.get("green_areas").name == "Parks & Green Areas"
    assert [c.id for c in catalog.select(["forests", "nope", "forests", "railways"])] == ["forests", "railways"]
    with pytest.raises(UnknownCategoryError):
        catalog.get("nope")
