"""
Map layers

MapLayer is the named, styled container the map renders. The accumulator
wraps non-empty buckets into layers and hands them to a registration
callback; the registry itself belongs to the surrounding application.
"""

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from loguru import logger

from ...categories import CategoryStyle
from .classifier import FeatureBucket
from .models import ReconstructedFeature


LAYER_TYPE_OSM = "osm"
LAYER_TYPE_DRAW = "draw"


@dataclass
class MapLayer:
    id: str
    name: str
    features: List[ReconstructedFeature]
    style: CategoryStyle
    visible: bool = True
    opacity: float = 1.0
    type: str = LAYER_TYPE_OSM
    category_id: Optional[str] = None

    @property
    def feature_count(self) -> int:
        return len(self.features)


AddLayer = Callable[[MapLayer], None]


class LayerAccumulator:
    """Wraps feature buckets into layers and registers them"""

    def __init__(self, add_layer: AddLayer, default_style: CategoryStyle):
        self.add_layer = add_layer
        self.default_style = default_style

    def accumulate(self, buckets: Sequence[FeatureBucket]) -> List[MapLayer]:
        """
        Register one layer per non-empty bucket

        Never merges into an existing layer: repeating a fetch appends
        layers with the same names.
        """
        layers = []
        for bucket in buckets:
            if not bucket.features:
                continue
            layer = self.build_layer(bucket)
            self.add_layer(layer)
            logger.info(f"Layer \"{layer.name}\" added")
            layers.append(layer)
        return layers

    def build_layer(self, bucket: FeatureBucket) -> MapLayer:
        slug = bucket.category_id or "custom"
        return MapLayer(
            id=f"osm-{slug}-{uuid.uuid4().hex[:12]}",
            name=f"{bucket.label} ({len(bucket.features)})",
            features=list(bucket.features),
            style=bucket.style or self.default_style,
            category_id=bucket.category_id,
        )


class LayerRegistry:
    """Ordered layer list owned by the application"""

    def __init__(self):
        self._layers: List[MapLayer] = []
        self._feature_owner: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[MapLayer]:
        return iter(list(self._layers))

    def add_layer(self, layer: MapLayer) -> None:
        """
        Append a layer

        Raises:
            ValueError: layer id already registered or a feature already
                belongs to another layer
        """
        if any(existing.id == layer.id for existing in self._layers):
            raise ValueError(f"Layer id already registered: {layer.id}")
        for feature in layer.features:
            owner = self._feature_owner.get(feature.id)
            if owner is not None:
                raise ValueError(f"Feature {feature.id} already belongs to layer {owner}")
        for feature in layer.features:
            self._feature_owner[feature.id] = layer.id
        self._layers.append(layer)

    def remove_layer(self, layer_id: str) -> Optional[MapLayer]:
        for index, layer in enumerate(self._layers):
            if layer.id == layer_id:
                del self._layers[index]
                for feature in layer.features:
                    self._feature_owner.pop(feature.id, None)
                return layer
        return None

    def get(self, layer_id: str) -> Optional[MapLayer]:
        return next((layer for layer in self._layers if layer.id == layer_id), None)

    def by_type(self, layer_type: str) -> List[MapLayer]:
        return [layer for layer in self._layers if layer.type == layer_type]

    @property
    def layers(self) -> List[MapLayer]:
        return list(self._layers)
