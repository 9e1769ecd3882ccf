"""
Overpass QL query builder

Compiles an area of interest plus a selection (catalog categories or
ad hoc tag filters) into Overpass QL text. Output is deterministic:
fragments follow the order of the input.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from ...categories import CategoryCatalog, CategoryDefinition
from ...config import ExplorerConfig, get_config
from ...errors import EmptySelectionError
from ...models import AreaOfInterest, CustomFilter, LogicalOperator
from ...projection import transform_point


# Characters with meaning in Overpass (POSIX extended) regular expressions
_REGEX_SPECIAL = set(".^$*+?()[]{}|\\")

# Pulls in all members of matched ways/relations so their geometry is complete
RECURSE_MEMBERS = "(._;>;);"


def escape_ql_string(text: str) -> str:
    """Escape a value for use inside a double-quoted Overpass string"""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def escape_regex(text: str) -> str:
    return "".join("\\" + ch if ch in _REGEX_SPECIAL else ch for ch in text)


def tag_selector(custom_filter: CustomFilter) -> str:
    """
    Compile one filter into an Overpass tag selector

    - no value:      ["key"]
    - one value:     ["key"="value"]
    - many values:   ["key"~"^(v1|v2|...)$"]
    """
    key = escape_ql_string(custom_filter.key)
    values = custom_filter.values
    if not values:
        return f'["{key}"]'
    if len(values) == 1:
        return f'["{key}"="{escape_ql_string(values[0])}"]'
    alternation = "|".join(escape_regex(v) for v in values)
    return f'["{key}"~"{escape_ql_string("^(" + alternation + ")$")}"]'


class OverpassQueryBuilder:
    """Builds Overpass QL text for category, custom and point queries"""

    def __init__(self, catalog: CategoryCatalog, config: Optional[ExplorerConfig] = None):
        self.catalog = catalog
        self.config = config or get_config()

    # ============================================================
    # Bounding box
    # ============================================================

    def bbox_string(self, area: AreaOfInterest) -> str:
        """
        Reproject the area to the data projection and format it as
        `south,west,north,east`
        """
        west, south, east, north = area.to_projection(self.config.data_projection)
        return ",".join(self._format_coord(v) for v in (south, west, north, east))

    def _format_coord(self, value: float) -> str:
        text = f"{value:.{self.config.coordinate_precision}f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        if text in ("-0", ""):
            text = "0"
        return text

    # ============================================================
    # Query text
    # ============================================================

    def _header(self, timeout: int) -> str:
        return f"[out:json][timeout:{timeout}];"

    def _assemble(self, statements: Iterable[str], timeout: int, full_members: bool = False) -> str:
        body = "\n".join(f"  {line}" for stmt in statements for line in stmt.splitlines() if line.strip())
        output = "out body;" if full_members else "out geom;"
        return "\n".join([
            self._header(timeout),
            "(",
            body,
            ");",
            RECURSE_MEMBERS,
            output,
        ])

    def build_category_query(
        self,
        area: AreaOfInterest,
        category_ids: Sequence[str],
        full_members: bool = False,
    ) -> str:
        """
        Union of every selected category's fragment, bound to the area

        Raises:
            EmptySelectionError: no known category selected
        """
        categories = self.resolve_categories(category_ids)
        return self.build_query_for_categories(area, categories, full_members=full_members)

    def build_query_for_categories(
        self,
        area: AreaOfInterest,
        categories: Sequence[CategoryDefinition],
        full_members: bool = False,
    ) -> str:
        if not categories:
            raise EmptySelectionError("Select at least one OSM category")
        bbox = self.bbox_string(area)
        fragments = [category.fragment(bbox) for category in categories]
        return self._assemble(fragments, self.config.api.category_query_timeout, full_members)

    def resolve_categories(self, category_ids: Sequence[str]) -> List[CategoryDefinition]:
        if not category_ids:
            raise EmptySelectionError("Select at least one OSM category")
        categories = self.catalog.select(category_ids)
        if not categories:
            raise EmptySelectionError(
                f"None of the selected categories exist: {list(category_ids)} "
                f"(available: {', '.join(self.catalog.ids)})"
            )
        return categories

    def build_custom_query(
        self,
        area: AreaOfInterest,
        filters: Sequence[CustomFilter],
        operator: LogicalOperator = LogicalOperator.AND,
        full_members: bool = False,
    ) -> str:
        """
        Compile ad hoc tag filters

        OR emits one `nwr` statement per filter inside the union block, so
        Overpass returns elements matching any of them. AND chains every
        selector onto a single `nwr` statement, which Overpass evaluates as
        an intersection.

        Raises:
            EmptySelectionError: no filter with a non-empty key
        """
        valid = self.valid_filters(filters)
        bbox = self.bbox_string(area)
        operator = LogicalOperator.coerce(operator)

        if operator == LogicalOperator.AND:
            selectors = "".join(tag_selector(f) for f in valid)
            statements = [f"nwr{selectors}({bbox});"]
        else:
            statements = [f"nwr{tag_selector(f)}({bbox});" for f in valid]

        return self._assemble(statements, self.config.api.category_query_timeout, full_members)

    @staticmethod
    def valid_filters(filters: Sequence[CustomFilter]) -> List[CustomFilter]:
        valid = [f for f in filters if f.key]
        if not valid:
            raise EmptySelectionError("Enter at least one OSM tag key")
        return valid

    def build_point_query(
        self,
        x: float,
        y: float,
        projection: Optional[str] = None,
        radius_m: Optional[float] = None,
    ) -> str:
        """All elements within `radius_m` of a point given in `projection`"""
        lon, lat = self.point_to_lonlat(x, y, projection)
        radius = radius_m if radius_m is not None else self.config.point_query_radius_m
        radius_text = f"{radius:g}"
        return "\n".join([
            self._header(self.config.api.point_query_timeout),
            "(",
            f"  nwr(around:{radius_text},{self._format_coord(lat)},{self._format_coord(lon)});",
            ");",
            "out geom;",
        ])

    def point_to_lonlat(self, x: float, y: float, projection: Optional[str] = None) -> Tuple[float, float]:
        source = projection or self.config.map_projection
        return transform_point(x, y, source, self.config.data_projection)
