"""
Main OSM Collector

Orchestrates the OSM components:
query builder -> Overpass client -> geometry reconstructor
-> feature classifier -> layer accumulator
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger

from ...config import CATEGORY_FETCH_MODES, ExplorerConfig, get_config
from ...errors import EmptySelectionError, InvalidInputError, NoResultsWarning
from ...models import AreaOfInterest, CustomFilter, LogicalOperator
from .api_client import OverpassAPIClient
from .classifier import FeatureClassifier
from .geometry import GeometryReconstructor
from .layers import AddLayer, LayerAccumulator, MapLayer
from .models import ReconstructedFeature
from .query_builder import OverpassQueryBuilder


@dataclass
class FetchResult:
    """Layers registered by one fetch and the labels that came back empty"""
    layers: List[MapLayer] = field(default_factory=list)
    empty_labels: List[str] = field(default_factory=list)

    @property
    def feature_count(self) -> int:
        return sum(layer.feature_count for layer in self.layers)

    @property
    def no_results(self) -> List[NoResultsWarning]:
        return [NoResultsWarning(f"No features found for \"{label}\".") for label in self.empty_labels]


class OSMCollector:
    """
    Fetch OSM features for an area and turn them into map layers

    Category fetches run one Overpass round trip per category in selection
    order ("sequential", the default) or one union query classified with
    first-match semantics ("batch"). A failure aborts the remaining
    categories; layers already registered stay registered.
    """

    def __init__(
        self,
        config: Optional[ExplorerConfig] = None,
        api_client: Optional[OverpassAPIClient] = None,
        reconstructor: Optional[GeometryReconstructor] = None,
    ):
        self.config = config or get_config()
        self.catalog = self.config.categories
        self.query_builder = OverpassQueryBuilder(self.catalog, self.config)
        self.api_client = api_client or OverpassAPIClient(self.config)
        self.reconstructor = reconstructor or GeometryReconstructor(self.config)
        self.classifier = FeatureClassifier(self.catalog)

    def fetch_category_layers(
        self,
        area: AreaOfInterest,
        category_ids: Sequence[str],
        add_layer: AddLayer,
        mode: Optional[str] = None,
        full_members: bool = False,
    ) -> FetchResult:
        """
        Fetch the selected categories and register one layer per
        non-empty category

        Args:
            area: Area of interest in any projection
            category_ids: Catalog ids, in priority order
            add_layer: Registration callback owned by the caller
            mode: "sequential" or "batch" (default from config)
            full_members: request `out body` instead of `out geom`

        Raises:
            EmptySelectionError: nothing selected
            InvalidInputError: unknown fetch mode
            NetworkError / MalformedResponseError: from the round trip
        """
        mode = mode or self.config.category_fetch_mode
        if mode not in CATEGORY_FETCH_MODES:
            raise InvalidInputError(f"Unknown fetch mode {mode!r}, expected one of: {', '.join(CATEGORY_FETCH_MODES)}")
        categories = self.query_builder.resolve_categories(category_ids)
        accumulator = LayerAccumulator(add_layer, self.config.default_layer_style)
        result = FetchResult()

        logger.info(f"Fetching {len(categories)} OSM category(ies) in {mode} mode")

        if mode == "batch":
            query = self.query_builder.build_query_for_categories(area, categories, full_members)
            features = self._run(query)
            buckets = self.classifier.classify_into(features, categories)
            result.layers.extend(accumulator.accumulate(buckets))
            result.empty_labels.extend(b.label for b in buckets if not b.features)
            return result

        for category in categories:
            query = self.query_builder.build_query_for_categories(area, [category], full_members)
            features = self._run(query)
            buckets = self.classifier.classify_into(features, [category])
            layers = accumulator.accumulate(buckets)
            if layers:
                result.layers.extend(layers)
            else:
                logger.info(f"No features found for \"{category.name}\"")
                result.empty_labels.append(category.name)

        return result

    def fetch_custom_layer(
        self,
        area: AreaOfInterest,
        filters: Sequence[CustomFilter],
        add_layer: AddLayer,
        operator: LogicalOperator = LogicalOperator.AND,
        label: Optional[str] = None,
        full_members: bool = False,
    ) -> FetchResult:
        """Fetch ad hoc tag filters into a single undifferentiated layer"""
        valid = OverpassQueryBuilder.valid_filters(filters)
        operator = LogicalOperator.coerce(operator)
        label = label or self.describe_filters(valid, operator)

        query = self.query_builder.build_custom_query(area, valid, operator, full_members)
        features = self._run(query)

        accumulator = LayerAccumulator(add_layer, self.config.default_layer_style)
        bucket = self.classifier.single_bucket(features, label)
        result = FetchResult(layers=accumulator.accumulate([bucket]))
        if not result.layers:
            result.empty_labels.append(label)
        return result

    def query_point(
        self,
        x: float,
        y: float,
        projection: Optional[str] = None,
        radius_m: Optional[float] = None,
    ) -> List[ReconstructedFeature]:
        """Features around a point, e.g. a map click; no layer is created"""
        query = self.query_builder.build_point_query(x, y, projection, radius_m)
        return self._run(query, target_projection=projection)

    def _run(self, query: str, target_projection: Optional[str] = None) -> List[ReconstructedFeature]:
        data = self.api_client.query(query)
        return self.reconstructor.reconstruct(data, target_projection)

    @staticmethod
    def describe_filters(filters: Sequence[CustomFilter], operator: LogicalOperator) -> str:
        if not filters:
            raise EmptySelectionError("Enter at least one OSM tag key")
        parts = [f"{f.key}={','.join(f.values)}" if f.values else f.key for f in filters]
        return f" {LogicalOperator.coerce(operator).value} ".join(parts)
