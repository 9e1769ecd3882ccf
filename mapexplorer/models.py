"""
Pydantic models for explorer inputs
Area of interest, custom tag filters and export formats
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from .errors import InvalidInputError
from .projection import transform_bounds


# ============================================================
# Area of Interest
# ============================================================

class AreaOfInterest(BaseModel):
    """
    Axis-aligned bounding box in the caller's projection

    Degenerate (zero-area) boxes are allowed; they are valid queries
    that may simply return nothing.
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    projection: str = "EPSG:3857"

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_ordering(self) -> "AreaOfInterest":
        if self.min_x > self.max_x:
            raise ValueError(f"min_x ({self.min_x}) must be <= max_x ({self.max_x})")
        if self.min_y > self.max_y:
            raise ValueError(f"min_y ({self.min_y}) must be <= max_y ({self.max_y})")
        return self

    @classmethod
    def from_extent(cls, extent: Sequence[float], projection: str = "EPSG:3857") -> "AreaOfInterest":
        """
        Build from [minX, minY, maxX, maxY]

        Raises:
            InvalidInputError: wrong length, non-numeric or inverted extent
        """
        if len(extent) != 4:
            raise InvalidInputError(f"Extent must have 4 values, got {len(extent)}")
        try:
            min_x, min_y, max_x, max_y = (float(v) for v in extent)
            return cls(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y, projection=projection)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid extent {list(extent)}: {e}") from e

    @classmethod
    def from_polygon(cls, coords: Sequence[Sequence[float]], projection: str = "EPSG:3857") -> "AreaOfInterest":
        """Bounding extent of a drawn polygon ring"""
        try:
            polygon = Polygon(coords)
        except (TypeError, ValueError, ShapelyError) as e:
            raise InvalidInputError(f"Invalid polygon: {e}") from e
        if polygon.is_empty:
            raise InvalidInputError("Cannot derive an area of interest from an empty polygon")
        return cls.from_extent(polygon.bounds, projection)

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def to_projection(self, target: str) -> Tuple[float, float, float, float]:
        """Extent reprojected to `target` as (west, south, east, north)"""
        return transform_bounds(self.extent, self.projection, target)


# ============================================================
# Custom Filters
# ============================================================

class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"

    @classmethod
    def coerce(cls, value: Union["LogicalOperator", str]) -> "LogicalOperator":
        """Accept the enum or its name in any case"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidInputError(f"Unknown logical operator {value!r}, expected AND or OR") from None


class CustomFilter(BaseModel):
    """
    User-entered tag filter

    `value` is a comma-separated list of alternatives; empty means
    "key present, any value".
    """
    key: str
    value: str = ""

    @field_validator("key", "value", mode="before")
    @classmethod
    def _strip(cls, v: Optional[str]) -> str:
        return "" if v is None else str(v).strip()

    @property
    def values(self) -> List[str]:
        return [v.strip() for v in self.value.split(",") if v.strip()]

    @classmethod
    def parse(cls, text: str) -> "CustomFilter":
        """Parse `key=v1,v2` or a bare `key`"""
        key, _, value = text.partition("=")
        return cls(key=key, value=value)

    @classmethod
    def coerce(cls, value: Union["CustomFilter", Dict[str, Any], str]) -> "CustomFilter":
        """
        Filter from a model, a {"key", "value"} mapping or `key=v1,v2` text

        Raises:
            InvalidInputError: the value has no usable shape
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, dict):
            try:
                return cls(**value)
            except ValidationError as e:
                fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
                raise InvalidInputError(f"Invalid custom filter {value!r} ({fields})") from e
        raise InvalidInputError(f"Invalid custom filter {value!r}")


# ============================================================
# Export
# ============================================================

class ExportFormat(str, Enum):
    GEOJSON = "geojson"
    KML = "kml"
    SHP = "shp"

    @classmethod
    def coerce(cls, value: Union["ExportFormat", str]) -> "ExportFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise InvalidInputError(f"Unsupported export format {value!r}, expected one of: {choices}") from None


class ExportResult(BaseModel):
    """An in-memory file ready to be written or downloaded"""
    filename: str
    mime_type: str
    content: bytes = Field(repr=False)
    feature_count: int = 0
    layer_count: int = 0
