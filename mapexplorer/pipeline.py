"""
Main Pipeline Orchestrator for the OSM Map Explorer

Ties the OSM collector, the layer registry and the exporter together and
is the operation boundary: every user action (fetch by categories, fetch
by custom filters, inspect a point, export) runs to completion or
failure here, and every outcome becomes a notification instead of an
exception.

Flow for a fetch:

  1. Resolve the area of interest (drawn polygon, else viewport)
  2. Compile Overpass QL (categories or custom filters)
  3. Run the Overpass round trip
  4. Reconstruct geometries and reproject to the map projection
  5. Classify into per-category buckets
  6. Register one layer per non-empty bucket
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from loguru import logger

from .collectors.osm import OSMCollector
from .collectors.osm.collector import FetchResult
from .collectors.osm.layers import LAYER_TYPE_OSM, LayerRegistry, MapLayer
from .collectors.osm.models import ReconstructedFeature
from .config import ExplorerConfig, get_config
from .errors import ExplorerError, InvalidInputError
from .exporter import LayerExporter
from .models import AreaOfInterest, CustomFilter, ExportFormat, ExportResult, LogicalOperator


@dataclass
class Notification:
    level: str  # "info" | "success" | "error"
    message: str


Notify = Callable[[Notification], None]


class MapExplorerPipeline:
    """
    Main pipeline behind the map explorer's OSM tools

    Usage:
        pipeline = MapExplorerPipeline()
        area = AreaOfInterest.from_extent([-14471533, 6711542, -14468000, 6715000])
        pipeline.fetch_osm_data(area, ["water_bodies"])
        pipeline.download_osm_layers("geojson", "output/")
    """

    def __init__(
        self,
        config: Optional[ExplorerConfig] = None,
        collector: Optional[OSMCollector] = None,
        exporter: Optional[LayerExporter] = None,
        registry: Optional[LayerRegistry] = None,
        notify: Optional[Notify] = None,
    ):
        self.config = config or get_config()
        self.collector = collector or OSMCollector(self.config)
        self.exporter = exporter or LayerExporter(self.config)
        self.registry = registry or LayerRegistry()
        self.notifications: List[Notification] = []
        self._notify_callback = notify
        self.selected_category_ids: List[str] = list(self.config.default_category_ids)

    # ============================================================
    # Notifications
    # ============================================================

    def notify(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        if level == "error":
            logger.error(message)
        else:
            logger.info(message)
        if self._notify_callback:
            self._notify_callback(notification)
        return notification

    # ============================================================
    # Area of interest
    # ============================================================

    def resolve_area(
        self,
        drawn_polygon: Optional[Sequence[Sequence[float]]] = None,
        viewport_extent: Optional[Sequence[float]] = None,
        projection: Optional[str] = None,
    ) -> Optional[AreaOfInterest]:
        """Drawn polygon extent if there is one, else the current viewport"""
        projection = projection or self.config.map_projection
        try:
            if drawn_polygon:
                area = AreaOfInterest.from_polygon(drawn_polygon, projection)
                self.notify("info", "Using the drawn polygon as the OSM search boundary.")
                return area
            if viewport_extent:
                area = AreaOfInterest.from_extent(viewport_extent, projection)
                self.notify("info", "Using the current view as the OSM search boundary.")
                return area
        except InvalidInputError as e:
            self.notify("error", f"Invalid search area: {e}")
            return None
        self.notify("info", "Could not determine a search area. Draw a polygon or make sure the map is visible.")
        return None

    # ============================================================
    # Fetch
    # ============================================================

    def fetch_osm_data(
        self,
        area: AreaOfInterest,
        category_ids: Optional[Sequence[str]] = None,
        mode: Optional[str] = None,
    ) -> Optional[FetchResult]:
        """
        Fetch catalog categories into layers

        Returns the fetch result, or None when the operation failed (the
        failure is reported as an error notification; layers registered
        before the failure stay in place).
        """
        ids = list(category_ids) if category_ids is not None else self.selected_category_ids
        if ids:
            self.notify("info", f"Searching {len(ids)} OSM category(ies)...")
        try:
            result = self.collector.fetch_category_layers(area, ids, self.registry.add_layer, mode=mode)
        except ExplorerError as e:
            self.notify("error", f"Error fetching OSM data: {e}")
            return None
        self._report(result)
        return result

    def fetch_custom_osm_data(
        self,
        area: AreaOfInterest,
        filters: Sequence[Union[CustomFilter, dict, str]],
        operator: Union[LogicalOperator, str] = LogicalOperator.AND,
    ) -> Optional[FetchResult]:
        """
        Fetch ad hoc key/value filters into a single layer

        Filters may be CustomFilter models, {"key", "value"} mappings or
        `key=v1,v2` strings.
        """
        try:
            parsed = [CustomFilter.coerce(f) for f in filters]
            result = self.collector.fetch_custom_layer(
                area, parsed, self.registry.add_layer, operator=LogicalOperator.coerce(operator)
            )
        except ExplorerError as e:
            self.notify("error", f"Error fetching OSM data: {e}")
            return None
        self._report(result)
        return result

    def inspect_point(self, x: float, y: float, projection: Optional[str] = None) -> List[ReconstructedFeature]:
        """Features near a clicked point; empty list on failure"""
        try:
            features = self.collector.query_point(x, y, projection or self.config.map_projection)
        except ExplorerError as e:
            self.notify("error", f"Error querying OSM at point: {e}")
            return []
        if not features:
            self.notify("info", "No OSM features found at this location.")
        return features

    def _report(self, result: FetchResult) -> None:
        for layer in result.layers:
            self.notify("success", f"Layer \"{layer.name}\" added.")
        for warning in result.no_results:
            self.notify("info", str(warning))

    # ============================================================
    # Layers
    # ============================================================

    @property
    def layers(self) -> List[MapLayer]:
        return self.registry.layers

    def osm_layers(self) -> List[MapLayer]:
        return self.registry.by_type(LAYER_TYPE_OSM)

    def remove_layer(self, layer_id: str) -> Optional[MapLayer]:
        return self.registry.remove_layer(layer_id)

    # ============================================================
    # Export
    # ============================================================

    def download_osm_layers(
        self,
        fmt: Union[ExportFormat, str],
        output_dir: Optional[str] = None,
        layers: Optional[Sequence[MapLayer]] = None,
    ) -> Optional[ExportResult]:
        """
        Export OSM layers (all registered ones by default)

        With `output_dir` the file is also written to disk. Returns None
        when nothing was exported.
        """
        candidates = list(layers) if layers is not None else self.layers
        if not any(layer.type == LAYER_TYPE_OSM for layer in candidates):
            self.notify("info", "There are no OSM layers to download.")
            return None
        try:
            fmt = ExportFormat.coerce(fmt)
            result = self.exporter.export(candidates, fmt)
            if output_dir is not None:
                self.exporter.save(result, output_dir)
        except ExplorerError as e:
            self.notify("error", f"Download failed: {e}")
            return None
        self.notify("success", f"OSM layers downloaded as {fmt.value.upper()}.")
        return result
