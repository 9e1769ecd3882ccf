"""
Feature classification

Partitions reconstructed features into per-category buckets. Predicates
are evaluated in selection order and the first match wins, so a feature
lands in at most one bucket even when predicates overlap. Features that
match nothing are dropped.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger

from ...categories import CategoryCatalog, CategoryDefinition, CategoryStyle
from .models import ReconstructedFeature


@dataclass
class FeatureBucket:
    label: str
    features: List[ReconstructedFeature] = field(default_factory=list)
    style: Optional[CategoryStyle] = None
    category_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self.features)


class FeatureClassifier:
    """Assigns features to the first category whose predicate accepts them"""

    def __init__(self, catalog: CategoryCatalog):
        self.catalog = catalog

    def classify(
        self,
        features: Sequence[ReconstructedFeature],
        category_ids: Sequence[str],
    ) -> List[FeatureBucket]:
        return self.classify_into(features, self.catalog.select(category_ids))

    def classify_into(
        self,
        features: Sequence[ReconstructedFeature],
        categories: Sequence[CategoryDefinition],
    ) -> List[FeatureBucket]:
        """
        One bucket per category, in the given order (empty buckets included)
        """
        buckets = [
            FeatureBucket(label=c.name, style=c.style, category_id=c.id)
            for c in categories
        ]
        dropped = 0
        for feature in features:
            tags = feature.tags
            for category, bucket in zip(categories, buckets):
                if category.matches(tags):
                    bucket.features.append(feature)
                    break
            else:
                dropped += 1

        if dropped:
            logger.debug(f"{dropped} features matched no selected category and were dropped")
        return buckets

    @staticmethod
    def single_bucket(
        features: Sequence[ReconstructedFeature],
        label: str,
        style: Optional[CategoryStyle] = None,
        category_id: Optional[str] = None,
    ) -> FeatureBucket:
        """Custom queries: everything matched goes into one bucket"""
        return FeatureBucket(label=label, features=list(features), style=style, category_id=category_id)
