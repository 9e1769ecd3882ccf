"""
Layer export

Serializes OSM layers to GeoJSON, KML or a zipped Shapefile bundle.

GeoJSON and KML flatten every selected layer into one file. Shapefile
output is one archive holding one inner zip per layer; since a shapefile
holds a single geometry type, each layer is split into point, line and
polygon component sets. Geometry collections cannot be represented and
are skipped.

Output is built fully in memory before anything touches disk, so a
failed export never leaves a partial file behind.
"""

import io
import json
import os
import re
import tempfile
import zipfile
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Union

import geopandas as gpd
import simplekml
from loguru import logger
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from .categories import CategoryStyle
from .collectors.osm.layers import LAYER_TYPE_OSM, MapLayer
from .collectors.osm.models import ReconstructedFeature
from .config import ExplorerConfig, get_config
from .errors import ExportError, NothingToExportError
from .models import ExportFormat, ExportResult
from .projection import transform_geometry


GEOMETRY_FAMILIES = {
    "Point": "point",
    "MultiPoint": "point",
    "LineString": "line",
    "MultiLineString": "line",
    "LinearRing": "line",
    "Polygon": "polygon",
    "MultiPolygon": "polygon",
}

# dBASE allows 255 fields; one is reserved by some drivers
MAX_DBF_FIELDS = 254

SHAPEFILE_EXTENSIONS = (".shp", ".shx", ".dbf", ".prj", ".cpg")


def slugify(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_")
    return slug or "layer"


class LayerExporter:
    """Serialize OSM layers to GeoJSON, KML or zipped Shapefiles"""

    def __init__(self, config: Optional[ExplorerConfig] = None):
        self.config = config or get_config()
        self.output_projection = self.config.data_projection

    def export(self, layers: Sequence[MapLayer], fmt: Union[str, ExportFormat]) -> ExportResult:
        """
        Serialize the OSM layers among `layers`

        Raises:
            NothingToExportError: no OSM layer holds any feature
            ExportError: serialization or archive writing failed
        """
        fmt = ExportFormat.coerce(fmt)
        osm_layers = [layer for layer in layers if layer.type == LAYER_TYPE_OSM]
        feature_count = sum(layer.feature_count for layer in osm_layers)
        if feature_count == 0:
            raise NothingToExportError("There are no OSM features to export")

        basename = self.config.export_basename
        logger.info(f"Exporting {feature_count} features from {len(osm_layers)} layer(s) as {fmt.value}")

        try:
            if fmt == ExportFormat.GEOJSON:
                content = self.to_geojson(osm_layers).encode("utf-8")
                filename = f"{basename}.geojson"
            elif fmt == ExportFormat.KML:
                content = self.to_kml(osm_layers).encode("utf-8")
                filename = f"{basename}.kml"
            else:
                content = self.to_shapefile_zip(osm_layers)
                filename = f"{basename}_shp.zip"
        except ExportError:
            raise
        except Exception as e:
            logger.error(f"Export to {fmt.value} failed: {e}")
            raise ExportError(f"Export to {fmt.value.upper()} failed: {e}") from e

        return ExportResult(
            filename=filename,
            mime_type=self.config.mime_types[fmt.value],
            content=content,
            feature_count=feature_count,
            layer_count=len(osm_layers),
        )

    def save(self, result: ExportResult, output_dir: str) -> str:
        """Write an export result into `output_dir` atomically"""
        os.makedirs(output_dir or ".", exist_ok=True)
        output_path = os.path.join(output_dir, result.filename)
        fd, tmp_path = tempfile.mkstemp(dir=output_dir or ".", prefix=".export-", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(result.content)
            os.replace(tmp_path, output_path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ExportError(f"Could not write {output_path}: {e}") from e

        logger.info(f"Saved {result.filename} ({len(result.content)} bytes) to {output_dir}")
        return output_path

    # ============================================================
    # GeoJSON
    # ============================================================

    def _output_geometry(self, feature: ReconstructedFeature) -> BaseGeometry:
        return transform_geometry(feature.geometry, feature.projection, self.output_projection)

    def feature_to_geojson(self, feature: ReconstructedFeature) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "id": feature.id,
            "geometry": mapping(self._output_geometry(feature)),
            "properties": dict(feature.properties),
        }

    def to_geojson(self, layers: Sequence[MapLayer]) -> str:
        """One FeatureCollection with every layer's features, in layer order"""
        collection = {
            "type": "FeatureCollection",
            "features": [
                self.feature_to_geojson(feature)
                for layer in layers
                for feature in layer.features
            ],
        }
        return json.dumps(collection, ensure_ascii=False, default=str)

    # ============================================================
    # KML
    # ============================================================

    def to_kml(self, layers: Sequence[MapLayer]) -> str:
        """One folder per layer; every placemark carries the layer style"""
        kml = simplekml.Kml(name=self.config.export_basename)
        for layer in layers:
            folder = kml.newfolder(name=layer.name)
            style = self._kml_style(layer.style)
            for feature in layer.features:
                geometry = self._output_geometry(feature)
                placemark = self._add_kml_geometry(folder, geometry, self._feature_name(feature))
                if placemark is None:
                    logger.warning(f"Skipping feature {feature.id}: {geometry.geom_type} has no KML mapping")
                    continue
                placemark.style = style
                for key, value in feature.properties.items():
                    placemark.extendeddata.newdata(name=str(key), value=str(value))
        return kml.kml()

    @staticmethod
    def _feature_name(feature: ReconstructedFeature) -> str:
        name = feature.properties.get("name")
        if name:
            return str(name)
        return f"{feature.properties.get('osm_type', 'feature')}/{feature.properties.get('osm_id', feature.id)}"

    @staticmethod
    def _kml_color(hex_color: str, opacity: float) -> str:
        value = hex_color.lstrip("#")
        r, g, b = int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
        alpha = max(0, min(255, int(round(opacity * 255))))
        return simplekml.Color.rgb(r, g, b, alpha)

    def _kml_style(self, style: CategoryStyle) -> simplekml.Style:
        kml_style = simplekml.Style()
        kml_style.linestyle.color = self._kml_color(style.stroke_color, 1.0)
        kml_style.linestyle.width = style.stroke_width
        kml_style.polystyle.color = self._kml_color(style.fill_color, style.fill_opacity)
        kml_style.iconstyle.color = self._kml_color(style.stroke_color, 1.0)
        kml_style.iconstyle.scale = max(style.point_radius / 5.0, 0.1)
        return kml_style

    def _add_kml_geometry(self, container, geometry: BaseGeometry, name: str):
        geom_type = geometry.geom_type
        if geom_type == "Point":
            return container.newpoint(name=name, coords=[(geometry.x, geometry.y)])
        if geom_type in ("LineString", "LinearRing"):
            return container.newlinestring(name=name, coords=list(geometry.coords))
        if geom_type == "Polygon":
            return container.newpolygon(
                name=name,
                outerboundaryis=list(geometry.exterior.coords),
                innerboundaryis=[list(ring.coords) for ring in geometry.interiors],
            )
        if geom_type in ("MultiPoint", "MultiLineString", "MultiPolygon", "GeometryCollection"):
            multi = container.newmultigeometry(name=name)
            for part in geometry.geoms:
                if self._add_kml_geometry(multi, part, name) is None:
                    return None
            return multi
        return None

    # ============================================================
    # Shapefile
    # ============================================================

    def to_shapefile_zip(self, layers: Sequence[MapLayer]) -> bytes:
        """Outer archive with one `<layer>.zip` entry per layer"""
        buffer = io.BytesIO()
        used_names = set()
        written = 0
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for layer in layers:
                name = slugify(layer.name)
                candidate, suffix = name, 1
                while candidate in used_names:
                    suffix += 1
                    candidate = f"{name}_{suffix}"
                used_names.add(candidate)

                layer_zip = self.layer_to_shapefile_zip(layer, candidate)
                if layer_zip is None:
                    continue
                archive.writestr(f"{candidate}.zip", layer_zip)
                written += 1

        if not written:
            raise ExportError("No layer could be written as a shapefile")
        return buffer.getvalue()

    def layer_to_shapefile_zip(self, layer: MapLayer, name: str) -> Optional[bytes]:
        """Zip of one component set per geometry family in the layer"""
        groups: Dict[str, List[ReconstructedFeature]] = OrderedDict()
        for feature in layer.features:
            family = GEOMETRY_FAMILIES.get(feature.geometry_type)
            if family is None:
                logger.warning(f"Skipping feature {feature.id} in \"{layer.name}\": "
                               f"{feature.geometry_type} cannot be stored in a shapefile")
                continue
            groups.setdefault(family, []).append(feature)

        if not groups:
            return None

        buffer = io.BytesIO()
        with tempfile.TemporaryDirectory() as tmp_dir:
            for family, features in groups.items():
                path = os.path.join(tmp_dir, f"{name}_{family}.shp")
                self._frame(features).to_file(path, driver="ESRI Shapefile", encoding="utf-8")

            with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
                for filename in sorted(os.listdir(tmp_dir)):
                    if filename.endswith(SHAPEFILE_EXTENSIONS):
                        archive.write(os.path.join(tmp_dir, filename), arcname=filename)

        return buffer.getvalue()

    def _frame(self, features: Sequence[ReconstructedFeature]) -> gpd.GeoDataFrame:
        columns: List[str] = ["osm_id", "osm_type"]
        for feature in features:
            for key in feature.properties:
                if key not in columns:
                    columns.append(key)
        if len(columns) > MAX_DBF_FIELDS:
            logger.warning(f"Dropping {len(columns) - MAX_DBF_FIELDS} attribute columns beyond the dBASE limit")
            columns = columns[:MAX_DBF_FIELDS]

        records = []
        for feature in features:
            records.append({
                key: (str(feature.properties[key]) if feature.properties.get(key) is not None else None)
                for key in columns
            })

        geometries = [self._output_geometry(feature) for feature in features]
        return gpd.GeoDataFrame(records, columns=columns, geometry=geometries, crs=self.output_projection)
