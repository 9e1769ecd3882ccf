"""
OSM category catalog

A category pairs an Overpass query fragment with a predicate that decides
whether a returned feature belongs to it, plus the style used to draw it.
The catalog is an immutable, ordered value that is handed to the query
builder and the classifier when they are constructed.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple
from loguru import logger

from .errors import UnknownCategoryError


Tags = Mapping[str, str]
TagPredicate = Callable[[Tags], bool]
QueryFragment = Callable[[str], str]


@dataclass(frozen=True)
class CategoryStyle:
    """Rendering style for a vector layer"""
    stroke_color: str = "#3388FF"
    stroke_width: float = 2.0
    fill_color: str = "#3388FF"
    fill_opacity: float = 0.3
    point_radius: float = 5.0


@dataclass(frozen=True)
class CategoryDefinition:
    """Named rule: what to ask Overpass for and how to recognise the answer"""
    id: str
    name: str
    query_fragment: QueryFragment
    matches: TagPredicate
    style: CategoryStyle = field(default_factory=CategoryStyle)

    def fragment(self, bbox: str) -> str:
        return self.query_fragment(bbox)


class CategoryCatalog:
    """Ordered, read-only collection of category definitions"""

    def __init__(self, definitions: Iterable[CategoryDefinition]):
        ordered: Dict[str, CategoryDefinition] = {}
        for definition in definitions:
            if definition.id in ordered:
                raise ValueError(f"Duplicate category id: {definition.id}")
            ordered[definition.id] = definition
        self._definitions: Tuple[CategoryDefinition, ...] = tuple(ordered.values())
        self._by_id: Dict[str, CategoryDefinition] = ordered

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[CategoryDefinition]:
        return iter(self._definitions)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    @property
    def ids(self) -> List[str]:
        return [d.id for d in self._definitions]

    def get(self, category_id: str) -> CategoryDefinition:
        try:
            return self._by_id[category_id]
        except KeyError:
            raise UnknownCategoryError(f"Unknown OSM category: {category_id}") from None

    def select(self, category_ids: Iterable[str]) -> List[CategoryDefinition]:
        """
        Resolve ids to definitions, keeping the caller's order

        Unknown ids are skipped with a warning; repeated ids keep their
        first position.
        """
        selected: List[CategoryDefinition] = []
        seen = set()
        for category_id in category_ids:
            if category_id in seen:
                continue
            seen.add(category_id)
            definition = self._by_id.get(category_id)
            if definition is None:
                logger.warning(f"Skipping unknown OSM category '{category_id}'")
                continue
            selected.append(definition)
        return selected


# ============================================================
# Predicate helpers
# ============================================================

def has_key(key: str) -> TagPredicate:
    return lambda tags: key in tags


def tag_in(key: str, *values: str) -> TagPredicate:
    allowed = frozenset(values)
    return lambda tags: tags.get(key) in allowed


def any_of(*predicates: TagPredicate) -> TagPredicate:
    return lambda tags: any(p(tags) for p in predicates)


def _alternation(values: Iterable[str]) -> str:
    return "^(" + "|".join(values) + ")$"


def _fragments(*selectors: str) -> QueryFragment:
    """Build a fragment function emitting one bbox-bound statement per selector"""
    def build(bbox: str) -> str:
        return "\n".join(f"{selector}({bbox});" for selector in selectors)
    return build


# ============================================================
# Default catalog
# ============================================================

WATERCOURSE_TYPES = ("river", "stream", "canal", "ditch", "drain")
WATER_BODY_TYPES = ("lake", "pond", "reservoir", "basin", "lagoon")
MAJOR_ROAD_TYPES = (
    "motorway", "motorway_link", "trunk", "trunk_link",
    "primary", "primary_link", "secondary", "secondary_link",
)
MINOR_ROAD_TYPES = ("tertiary", "unclassified", "residential", "living_street", "service")
RAILWAY_TYPES = ("rail", "light_rail", "subway", "tram", "narrow_gauge")
HEALTHCARE_TYPES = ("hospital", "clinic", "doctors", "pharmacy")
EDUCATION_TYPES = ("school", "university", "college", "kindergarten")


def build_default_catalog(extra: Optional[Iterable[CategoryDefinition]] = None) -> CategoryCatalog:
    """Return the built-in category catalog, optionally extended"""
    water_style = CategoryStyle(stroke_color="#4682B4", stroke_width=1.0, fill_color="#87CEEB", fill_opacity=0.6)

    definitions = [
        CategoryDefinition(
            id="watercourses",
            name="Watercourses",
            query_fragment=_fragments(
                f'way["waterway"~"{_alternation(WATERCOURSE_TYPES)}"]',
                'relation["waterway"="river"]',
            ),
            matches=tag_in("waterway", *WATERCOURSE_TYPES),
            style=CategoryStyle(stroke_color="#1E90FF", stroke_width=2.0, fill_color="#1E90FF", fill_opacity=0.0),
        ),
        CategoryDefinition(
            id="water_bodies",
            name="Water Bodies",
            query_fragment=_fragments(
                'nwr["natural"="water"]',
                f'nwr["water"~"{_alternation(WATER_BODY_TYPES)}"]',
                'nwr["landuse"~"^(reservoir|basin)$"]',
            ),
            matches=any_of(
                tag_in("natural", "water"),
                tag_in("water", *WATER_BODY_TYPES),
                tag_in("landuse", "reservoir", "basin"),
            ),
            style=water_style,
        ),
        CategoryDefinition(
            id="wetlands",
            name="Wetlands",
            query_fragment=_fragments('nwr["natural"="wetland"]'),
            matches=tag_in("natural", "wetland"),
            style=CategoryStyle(stroke_color="#5F9EA0", stroke_width=1.0, fill_color="#8FBC8F", fill_opacity=0.5),
        ),
        CategoryDefinition(
            id="roads_major",
            name="Major Roads",
            query_fragment=_fragments(f'way["highway"~"{_alternation(MAJOR_ROAD_TYPES)}"]'),
            matches=tag_in("highway", *MAJOR_ROAD_TYPES),
            style=CategoryStyle(stroke_color="#FFD700", stroke_width=3.0, fill_color="#FFD700", fill_opacity=0.0),
        ),
        CategoryDefinition(
            id="roads_minor",
            name="Minor Roads",
            query_fragment=_fragments(f'way["highway"~"{_alternation(MINOR_ROAD_TYPES)}"]'),
            matches=tag_in("highway", *MINOR_ROAD_TYPES),
            style=CategoryStyle(stroke_color="#FF6347", stroke_width=1.5, fill_color="#FF6347", fill_opacity=0.0),
        ),
        CategoryDefinition(
            id="railways",
            name="Railways",
            query_fragment=_fragments(f'way["railway"~"{_alternation(RAILWAY_TYPES)}"]'),
            matches=tag_in("railway", *RAILWAY_TYPES),
            style=CategoryStyle(stroke_color="#555555", stroke_width=2.0, fill_color="#555555", fill_opacity=0.0),
        ),
        CategoryDefinition(
            id="buildings",
            name="Buildings",
            query_fragment=_fragments('way["building"]', 'relation["building"]'),
            matches=has_key("building"),
            style=CategoryStyle(stroke_color="#8B4513", stroke_width=1.0, fill_color="#D2B48C", fill_opacity=0.5),
        ),
        CategoryDefinition(
            id="green_areas",
            name="Parks & Green Areas",
            query_fragment=_fragments(
                'nwr["leisure"~"^(park|garden)$"]',
                'nwr["landuse"~"^(grass|meadow|recreation_ground)$"]',
            ),
            matches=any_of(
                tag_in("leisure", "park", "garden"),
                tag_in("landuse", "grass", "meadow", "recreation_ground"),
            ),
            style=CategoryStyle(stroke_color="#228B22", stroke_width=1.0, fill_color="#90EE90", fill_opacity=0.5),
        ),
        CategoryDefinition(
            id="forests",
            name="Forests",
            query_fragment=_fragments('nwr["landuse"="forest"]', 'nwr["natural"="wood"]'),
            matches=any_of(tag_in("landuse", "forest"), tag_in("natural", "wood")),
            style=CategoryStyle(stroke_color="#006400", stroke_width=1.0, fill_color="#228B22", fill_opacity=0.5),
        ),
        CategoryDefinition(
            id="healthcare",
            name="Healthcare",
            query_fragment=_fragments(f'nwr["amenity"~"{_alternation(HEALTHCARE_TYPES)}"]'),
            matches=tag_in("amenity", *HEALTHCARE_TYPES),
            style=CategoryStyle(stroke_color="#DC143C", stroke_width=1.5, fill_color="#FF69B4", fill_opacity=0.4),
        ),
        CategoryDefinition(
            id="education",
            name="Education",
            query_fragment=_fragments(f'nwr["amenity"~"{_alternation(EDUCATION_TYPES)}"]'),
            matches=tag_in("amenity", *EDUCATION_TYPES),
            style=CategoryStyle(stroke_color="#6A5ACD", stroke_width=1.5, fill_color="#9370DB", fill_opacity=0.4),
        ),
    ]

    if extra:
        definitions.extend(extra)

    return CategoryCatalog(definitions)
