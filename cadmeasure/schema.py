"""Canonical data model for measurements, groups and snap candidates.

Python attributes are snake_case; the JSON form uses camelCase aliases so that
exported files keep the ``createdAt`` / ``totalDistance`` field names.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cadmeasure.geometry.contract import EPSILON


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MeasurementKind(str, Enum):
    LINEAR = "linear"
    ANGULAR = "angular"
    AREA = "area"
    VOLUME = "volume"
    RADIUS = "radius"
    DIAMETER = "diameter"
    PATH = "path"
    CLEARANCE = "clearance"


class LengthUnit(str, Enum):
    FEET = "feet"
    INCHES = "inches"
    FT_IN = "ft-in"
    METERS = "meters"
    MILLIMETERS = "millimeters"
    CENTIMETERS = "centimeters"


class AngularUnit(str, Enum):
    DEGREES = "degrees"
    RADIANS = "radians"


class AreaUnit(str, Enum):
    SQFT = "sqft"
    SQIN = "sqin"
    SQM = "sqm"
    SQCM = "sqcm"


class VolumeUnit(str, Enum):
    CUFT = "cuft"
    CUIN = "cuin"
    CUM = "cum"
    LITERS = "liters"


class SnapPointType(str, Enum):
    CORNER = "corner"
    MIDPOINT = "midpoint"
    CENTER = "center"
    EDGE = "edge"
    INTERSECTION = "intersection"
    PERPENDICULAR = "perpendicular"
    TANGENT = "tangent"
    ENDPOINT = "endpoint"
    QUADRANT = "quadrant"
    GRID = "grid"


class Point3D(BaseModel):
    """World-space point in feet. Y is up; the plan view is the x/z plane."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    @model_validator(mode="before")
    @classmethod
    def _from_sequence(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            if len(value) != 3:
                raise ValueError("Point3D requires exactly 3 coordinates")
            return {"x": value[0], "y": value[1], "z": value[2]}
        return value

    @classmethod
    def of(cls, x: float, y: float, z: float) -> "Point3D":
        return cls(x=float(x), y=float(y), z=float(z))

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)


ORIGIN = Point3D(x=0.0, y=0.0, z=0.0)


def _require_finite(value: Point3D) -> Point3D:
    if not value.is_finite():
        raise ValueError("Point coordinates must be finite")
    return value


# Stored measurement geometry; captured points stay plain Point3D.
FinitePoint = Annotated[Point3D, AfterValidator(_require_finite)]


class Bounds(CamelModel):
    """Axis-aligned world bounds."""
    min: Point3D
    max: Point3D


class MeasurementStyle(CamelModel):
    color: str = "#00ff00"
    thickness: float = 2.0
    opacity: float = Field(1.0, ge=0.0, le=1.0)
    text_size: float = 12.0
    text_color: str = "#ffffff"
    arrow_size: float = 8.0
    arrow_style: Literal["arrow", "circle", "square", "none"] = "arrow"
    line_style: Literal["solid", "dashed", "dotted"] = "solid"
    extension_line_length: float = 20.0
    text_offset: Point3D = Field(default_factory=lambda: Point3D(x=0.0, y=5.0, z=0.0))
    dimension_line_offset: float = 10.0
    show_extension_lines: bool = True
    show_dimension_line: bool = True
    show_text: bool = True
    background_opacity: float = Field(0.8, ge=0.0, le=1.0)
    background_color: str = "#000000"


class MeasurementBase(CamelModel):
    """Fields shared by every measurement kind."""
    id: str = ""
    name: str = ""
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    visible: bool = True
    locked: bool = False
    group_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    style: Optional[MeasurementStyle] = None
    precision: int = Field(2, ge=0, le=6)


class LinearSegment(CamelModel):
    start_point: Point3D
    end_point: Point3D
    distance: float
    label: Optional[str] = None


class LinearMeasurement(MeasurementBase):
    type: Literal["linear"] = "linear"
    points: List[FinitePoint] = Field(..., min_length=2)
    segments: List[LinearSegment] = Field(default_factory=list)
    total_distance: float = 0.0
    unit: LengthUnit = LengthUnit.FEET
    metric: Literal["horizontal", "3d"] = "horizontal"
    show_segments: bool = False
    chain_dimensions: bool = False


class AngularMeasurement(MeasurementBase):
    type: Literal["angular"] = "angular"
    vertex: FinitePoint
    start_point: FinitePoint
    end_point: FinitePoint
    angle: float = Field(0.0, description="Angle in radians")
    unit: AngularUnit = AngularUnit.DEGREES
    precision: int = Field(1, ge=0, le=6)
    clockwise: bool = False

    @model_validator(mode="after")
    def _arms_distinct_from_vertex(self) -> "AngularMeasurement":
        _require_distinct(self.vertex, self.start_point, "Vertex and start point cannot be the same")
        _require_distinct(self.vertex, self.end_point, "Vertex and end point cannot be the same")
        return self


class AreaMeasurement(MeasurementBase):
    type: Literal["area"] = "area"
    boundary: List[FinitePoint] = Field(..., min_length=3)
    area: float = 0.0
    perimeter: float = 0.0
    centroid: Point3D = ORIGIN
    unit: AreaUnit = AreaUnit.SQFT
    show_perimeter: bool = True
    show_centroid: bool = True


class VolumeMeasurement(MeasurementBase):
    type: Literal["volume"] = "volume"
    bounding_box: Bounds
    volume: float = 0.0
    surface_area: float = 0.0
    centroid: Point3D = ORIGIN
    unit: VolumeUnit = VolumeUnit.CUFT

    @field_validator("bounding_box")
    @classmethod
    def _finite_box(cls, value: Bounds) -> Bounds:
        _require_finite(value.min)
        _require_finite(value.max)
        return value


class RadiusMeasurement(MeasurementBase):
    type: Literal["radius"] = "radius"
    center: FinitePoint
    edge_point: FinitePoint
    radius: float = 0.0
    unit: LengthUnit = LengthUnit.FEET
    show_center: bool = True


class DiameterMeasurement(MeasurementBase):
    type: Literal["diameter"] = "diameter"
    center: FinitePoint
    start_point: FinitePoint
    end_point: FinitePoint
    diameter: float = 0.0
    unit: LengthUnit = LengthUnit.FEET
    show_center: bool = True

    @model_validator(mode="after")
    def _arms_distinct_from_center(self) -> "DiameterMeasurement":
        _require_distinct(self.center, self.start_point, "Center and start point cannot be the same")
        _require_distinct(self.center, self.end_point, "Center and end point cannot be the same")
        return self


class PathSegment(CamelModel):
    start_point: Point3D
    end_point: Point3D
    distance: float
    direction: Point3D


class PathMeasurement(MeasurementBase):
    type: Literal["path"] = "path"
    waypoints: List[FinitePoint] = Field(..., min_length=2)
    segments: List[PathSegment] = Field(default_factory=list)
    total_distance: float = 0.0
    unit: LengthUnit = LengthUnit.FEET
    show_waypoints: bool = True


class ClosestPoints(CamelModel):
    point1: FinitePoint
    point2: FinitePoint
    object_id1: str
    object_id2: str


class ComplianceCheck(CamelModel):
    required_distance: float = Field(..., ge=0.0)
    is_compliant: bool = False
    code_reference: str = ""


class ClearanceMeasurement(MeasurementBase):
    type: Literal["clearance"] = "clearance"
    object_ids: List[str] = Field(..., min_length=2, max_length=2)
    clearance_type: Literal["minimum", "maximum"] = "minimum"
    distance: float = 0.0
    closest_points: ClosestPoints
    unit: LengthUnit = LengthUnit.FEET
    compliance_check: Optional[ComplianceCheck] = None

    @field_validator("object_ids")
    @classmethod
    def _distinct_objects(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("Clearance requires two distinct object references")
        return value


Measurement = Annotated[
    Union[
        LinearMeasurement,
        AngularMeasurement,
        AreaMeasurement,
        VolumeMeasurement,
        RadiusMeasurement,
        DiameterMeasurement,
        PathMeasurement,
        ClearanceMeasurement,
    ],
    Field(discriminator="type"),
]

MEASUREMENT_ADAPTER: TypeAdapter[Measurement] = TypeAdapter(Measurement)

MEASUREMENT_TYPES: dict[MeasurementKind, type[MeasurementBase]] = {
    MeasurementKind.LINEAR: LinearMeasurement,
    MeasurementKind.ANGULAR: AngularMeasurement,
    MeasurementKind.AREA: AreaMeasurement,
    MeasurementKind.VOLUME: VolumeMeasurement,
    MeasurementKind.RADIUS: RadiusMeasurement,
    MeasurementKind.DIAMETER: DiameterMeasurement,
    MeasurementKind.PATH: PathMeasurement,
    MeasurementKind.CLEARANCE: ClearanceMeasurement,
}


class SnapPoint(CamelModel):
    """Precomputed candidate position a captured point can be attracted to."""
    position: Point3D
    type: SnapPointType
    confidence: float = Field(..., ge=0.0, le=1.0)
    element_id: Optional[str] = None
    description: str = ""
    normal: Optional[Point3D] = None


class MeasurementGroup(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    color: str = "#ffffff"
    visible: bool = True
    locked: bool = False
    measurements: List[str] = Field(default_factory=list, description="Ordered member measurement ids")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _require_distinct(a: Point3D, b: Point3D, message: str) -> None:
    if math.dist(a.as_tuple(), b.as_tuple()) < EPSILON:
        raise ValueError(message)


__all__ = [
    "AngularMeasurement",
    "AngularUnit",
    "AreaMeasurement",
    "AreaUnit",
    "Bounds",
    "ClearanceMeasurement",
    "ClosestPoints",
    "ComplianceCheck",
    "DiameterMeasurement",
    "LengthUnit",
    "LinearMeasurement",
    "LinearSegment",
    "MEASUREMENT_ADAPTER",
    "MEASUREMENT_TYPES",
    "Measurement",
    "MeasurementBase",
    "MeasurementGroup",
    "MeasurementKind",
    "MeasurementStyle",
    "ORIGIN",
    "PathMeasurement",
    "PathSegment",
    "Point3D",
    "RadiusMeasurement",
    "SnapPoint",
    "SnapPointType",
    "VolumeMeasurement",
]
