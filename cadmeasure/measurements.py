"""
Measurement builders

Turn raw captured geometry into fully derived measurement models through the
geometry kernel, recompute derived results after edits, and map every kind to
its primary value and display string. Every dispatch over the measurement
union ends in ``assert_never`` so a new kind cannot silently skip a branch.
"""

from __future__ import annotations

import math
from typing import Any, Sequence, assert_never

from cadmeasure.exceptions import InsufficientPointsError
from cadmeasure.geometry import kernel
from cadmeasure.geometry.contract import DEFAULT_PRECISION, EPSILON
from cadmeasure.geometry.units import (
    convert_unit,
    format_angle,
    format_area,
    format_length,
    format_volume,
)
from cadmeasure.schema import (
    AngularMeasurement,
    AngularUnit,
    AreaMeasurement,
    AreaUnit,
    Bounds,
    ClearanceMeasurement,
    ClosestPoints,
    ComplianceCheck,
    DiameterMeasurement,
    LengthUnit,
    LinearMeasurement,
    LinearSegment,
    Measurement,
    MeasurementKind,
    PathMeasurement,
    PathSegment,
    Point3D,
    RadiusMeasurement,
    VolumeMeasurement,
    VolumeUnit,
)
from cadmeasure.styles import default_style

MIN_POINTS: dict[MeasurementKind, int] = {
    MeasurementKind.LINEAR: 2,
    MeasurementKind.PATH: 2,
    MeasurementKind.RADIUS: 2,
    MeasurementKind.VOLUME: 2,
    MeasurementKind.ANGULAR: 3,
    MeasurementKind.AREA: 3,
    MeasurementKind.DIAMETER: 3,
    MeasurementKind.CLEARANCE: 0,
}

# Length unit that pairs with each area / volume unit (perimeter, surface area)
_AREA_LENGTH: dict[AreaUnit, LengthUnit] = {
    AreaUnit.SQFT: LengthUnit.FEET,
    AreaUnit.SQIN: LengthUnit.INCHES,
    AreaUnit.SQM: LengthUnit.METERS,
    AreaUnit.SQCM: LengthUnit.CENTIMETERS,
}

_VOLUME_AREA: dict[VolumeUnit, AreaUnit] = {
    VolumeUnit.CUFT: AreaUnit.SQFT,
    VolumeUnit.CUIN: AreaUnit.SQIN,
    VolumeUnit.CUM: AreaUnit.SQM,
    VolumeUnit.LITERS: AreaUnit.SQM,
}


def default_name(kind: MeasurementKind | str) -> str:
    value = MeasurementKind(kind).value
    return f"{value[:1].upper()}{value[1:]} Measurement"


def _base_fields(kind: MeasurementKind, name: str | None, precision: int) -> dict[str, Any]:
    return {
        "name": name or default_name(kind),
        "style": default_style(kind),
        "precision": precision,
    }


def _length(value_ft: float, unit: LengthUnit) -> float:
    return convert_unit(value_ft, LengthUnit.FEET, unit)


def validate_points(kind: MeasurementKind | str, points: Sequence[Point3D]) -> list[str]:
    """Return human-readable problems with ``points`` for a point-driven tool.

    An empty list means the points can be built into a measurement.
    """
    kind = MeasurementKind(kind)
    errors: list[str] = []
    if kind is MeasurementKind.CLEARANCE:
        errors.append("Clearance measurement is built from two object selections")
        return errors
    required = MIN_POINTS[kind]
    if len(points) < required:
        errors.append(f"{default_name(kind).split()[0]} measurement requires at least {required} points")
    if any(not kernel.is_valid_point(p) for p in points):
        errors.append("All points must have valid coordinates")
    if errors:
        return errors
    if kind in (MeasurementKind.ANGULAR, MeasurementKind.DIAMETER):
        start, middle, end = points[0], points[1], points[2]
        label = "Vertex" if kind is MeasurementKind.ANGULAR else "Center"
        if kernel.distance_3d(start, middle) < EPSILON:
            errors.append(f"{label} and start point cannot be the same")
        if kernel.distance_3d(end, middle) < EPSILON:
            errors.append(f"{label} and end point cannot be the same")
    return errors


def build_linear(
    points: Sequence[Point3D],
    *,
    unit: LengthUnit = LengthUnit.FEET,
    precision: int = DEFAULT_PRECISION,
    metric: kernel.Metric = "horizontal",
    name: str | None = None,
) -> LinearMeasurement:
    chain = kernel.chain_distance(points, metric)
    segments = [
        LinearSegment(start_point=s.start, end_point=s.end, distance=_length(s.distance, unit))
        for s in chain.segments
    ]
    return LinearMeasurement(
        **_base_fields(MeasurementKind.LINEAR, name, precision),
        points=list(points),
        segments=segments,
        total_distance=_length(chain.total, unit),
        unit=unit,
        metric=metric,
        show_segments=len(points) > 2,
        chain_dimensions=len(points) > 2,
    )


def build_angular(
    start: Point3D,
    vertex: Point3D,
    end: Point3D,
    *,
    unit: AngularUnit = AngularUnit.DEGREES,
    precision: int = 1,
    name: str | None = None,
) -> AngularMeasurement:
    return AngularMeasurement(
        **_base_fields(MeasurementKind.ANGULAR, name, precision),
        vertex=vertex,
        start_point=start,
        end_point=end,
        angle=kernel.angle(start, vertex, end),
        unit=unit,
        clockwise=False,
    )


def build_area(
    boundary: Sequence[Point3D],
    *,
    unit: AreaUnit = AreaUnit.SQFT,
    precision: int = DEFAULT_PRECISION,
    name: str | None = None,
) -> AreaMeasurement:
    return AreaMeasurement(
        **_base_fields(MeasurementKind.AREA, name, precision),
        boundary=list(boundary),
        area=convert_unit(kernel.polygon_area(boundary), AreaUnit.SQFT, unit),
        perimeter=_length(kernel.perimeter(boundary, closed=True), _AREA_LENGTH[unit]),
        centroid=kernel.centroid(boundary),
        unit=unit,
    )


def build_volume(
    corner_a: Point3D,
    corner_b: Point3D,
    *,
    unit: VolumeUnit = VolumeUnit.CUFT,
    precision: int = DEFAULT_PRECISION,
    name: str | None = None,
) -> VolumeMeasurement:
    """Axis-aligned box spanned by two diagonal corners."""
    box = kernel.bounds_of([corner_a, corner_b]) or Bounds(min=corner_a, max=corner_b)
    area_unit = _VOLUME_AREA[unit]
    return VolumeMeasurement(
        **_base_fields(MeasurementKind.VOLUME, name, precision),
        bounding_box=box,
        volume=convert_unit(kernel.box_volume(box.min, box.max), VolumeUnit.CUFT, unit),
        surface_area=convert_unit(kernel.box_surface_area(box.min, box.max), AreaUnit.SQFT, area_unit),
        centroid=kernel.box_centroid(box.min, box.max),
        unit=unit,
    )


def build_radius(
    center: Point3D,
    edge_point: Point3D,
    *,
    unit: LengthUnit = LengthUnit.FEET,
    precision: int = DEFAULT_PRECISION,
    name: str | None = None,
) -> RadiusMeasurement:
    return RadiusMeasurement(
        **_base_fields(MeasurementKind.RADIUS, name, precision),
        center=center,
        edge_point=edge_point,
        radius=_length(kernel.distance_3d(center, edge_point), unit),
        unit=unit,
    )


def build_diameter(
    start: Point3D,
    center: Point3D,
    end: Point3D,
    *,
    unit: LengthUnit = LengthUnit.FEET,
    precision: int = DEFAULT_PRECISION,
    name: str | None = None,
) -> DiameterMeasurement:
    return DiameterMeasurement(
        **_base_fields(MeasurementKind.DIAMETER, name, precision),
        center=center,
        start_point=start,
        end_point=end,
        diameter=_length(kernel.distance_3d(start, end), unit),
        unit=unit,
    )


def build_path(
    waypoints: Sequence[Point3D],
    *,
    unit: LengthUnit = LengthUnit.FEET,
    precision: int = DEFAULT_PRECISION,
    name: str | None = None,
) -> PathMeasurement:
    chain = kernel.chain_distance(waypoints, metric="3d")
    segments = [
        PathSegment(
            start_point=s.start,
            end_point=s.end,
            distance=_length(s.distance, unit),
            direction=kernel.direction(s.start, s.end),
        )
        for s in chain.segments
    ]
    return PathMeasurement(
        **_base_fields(MeasurementKind.PATH, name, precision),
        waypoints=list(waypoints),
        segments=segments,
        total_distance=_length(chain.total, unit),
        unit=unit,
    )


def _compliance(distance_ft: float, required_ft: float | None, code_reference: str) -> ComplianceCheck | None:
    if required_ft is None:
        return None
    return ComplianceCheck(
        required_distance=required_ft,
        is_compliant=distance_ft >= required_ft,
        code_reference=code_reference,
    )


def build_clearance(
    object_a: str,
    points_a: Sequence[Point3D],
    object_b: str,
    points_b: Sequence[Point3D],
    *,
    required_distance: float | None = None,
    code_reference: str = "",
    unit: LengthUnit = LengthUnit.FEET,
    precision: int = DEFAULT_PRECISION,
    name: str | None = None,
) -> ClearanceMeasurement:
    """Minimum clearance between two objects given their sample points.

    ``required_distance`` is in feet; the compliance check passes when the
    measured clearance is at least that distance.
    """
    result = kernel.min_clearance(points_a, points_b)
    if result.point_a is None or result.point_b is None:
        raise InsufficientPointsError(
            "Clearance requires at least one valid point per object",
            {"object_a": object_a, "object_b": object_b},
        )
    return ClearanceMeasurement(
        **_base_fields(MeasurementKind.CLEARANCE, name, precision),
        object_ids=[object_a, object_b],
        clearance_type="minimum",
        distance=_length(result.distance, unit),
        closest_points=ClosestPoints(
            point1=result.point_a,
            point2=result.point_b,
            object_id1=object_a,
            object_id2=object_b,
        ),
        unit=unit,
        compliance_check=_compliance(result.distance, required_distance, code_reference),
    )


def build_from_points(
    kind: MeasurementKind | str,
    points: Sequence[Point3D],
    *,
    unit: LengthUnit = LengthUnit.FEET,
    precision: int = DEFAULT_PRECISION,
) -> Measurement | None:
    """Build a point-driven measurement, or None when the points are not yet usable."""
    kind = MeasurementKind(kind)
    if validate_points(kind, points):
        return None
    if kind is MeasurementKind.LINEAR:
        return build_linear(points, unit=unit, precision=precision)
    if kind is MeasurementKind.ANGULAR:
        return build_angular(points[0], points[1], points[2])
    if kind is MeasurementKind.AREA:
        return build_area(points, precision=precision)
    if kind is MeasurementKind.VOLUME:
        return build_volume(points[0], points[1], precision=precision)
    if kind is MeasurementKind.RADIUS:
        return build_radius(points[0], points[1], unit=unit, precision=precision)
    if kind is MeasurementKind.DIAMETER:
        return build_diameter(points[0], points[1], points[2], unit=unit, precision=precision)
    if kind is MeasurementKind.PATH:
        return build_path(points, unit=unit, precision=precision)
    if kind is MeasurementKind.CLEARANCE:
        return None
    assert_never(kind)


def refresh_derived(measurement: Measurement) -> Measurement:
    """Recompute derived results from the measurement's own geometry.

    Identity, naming, visibility, grouping and style fields are preserved.
    """
    m = measurement
    if isinstance(m, LinearMeasurement):
        fresh = build_linear(m.points, unit=m.unit, precision=m.precision, metric=m.metric)
        derived = {
            "segments": fresh.segments,
            "total_distance": fresh.total_distance,
        }
    elif isinstance(m, AngularMeasurement):
        derived = {"angle": kernel.angle(m.start_point, m.vertex, m.end_point)}
    elif isinstance(m, AreaMeasurement):
        fresh = build_area(m.boundary, unit=m.unit, precision=m.precision)
        derived = {"area": fresh.area, "perimeter": fresh.perimeter, "centroid": fresh.centroid}
    elif isinstance(m, VolumeMeasurement):
        fresh = build_volume(m.bounding_box.min, m.bounding_box.max, unit=m.unit, precision=m.precision)
        derived = {
            "bounding_box": fresh.bounding_box,
            "volume": fresh.volume,
            "surface_area": fresh.surface_area,
            "centroid": fresh.centroid,
        }
    elif isinstance(m, RadiusMeasurement):
        derived = {"radius": _length(kernel.distance_3d(m.center, m.edge_point), m.unit)}
    elif isinstance(m, DiameterMeasurement):
        derived = {"diameter": _length(kernel.distance_3d(m.start_point, m.end_point), m.unit)}
    elif isinstance(m, PathMeasurement):
        fresh = build_path(m.waypoints, unit=m.unit, precision=m.precision)
        derived = {"segments": fresh.segments, "total_distance": fresh.total_distance}
    elif isinstance(m, ClearanceMeasurement):
        pair = m.closest_points
        distance_ft = kernel.distance_3d(pair.point1, pair.point2)
        check = m.compliance_check
        derived = {
            "distance": _length(distance_ft, m.unit),
            "compliance_check": _compliance(
                distance_ft,
                check.required_distance if check else None,
                check.code_reference if check else "",
            ),
        }
    else:
        assert_never(m)
    return m.model_copy(update=derived)


def primary_value(measurement: Measurement) -> float:
    """The headline scalar of a measurement, in its own unit (radians for angles)."""
    m = measurement
    if isinstance(m, (LinearMeasurement, PathMeasurement)):
        return m.total_distance
    if isinstance(m, AngularMeasurement):
        return m.angle
    if isinstance(m, AreaMeasurement):
        return m.area
    if isinstance(m, VolumeMeasurement):
        return m.volume
    if isinstance(m, RadiusMeasurement):
        return m.radius
    if isinstance(m, DiameterMeasurement):
        return m.diameter
    if isinstance(m, ClearanceMeasurement):
        return m.distance
    assert_never(m)


def format_measurement(measurement: Measurement) -> str:
    """Display string for a measurement's primary value in its own unit and precision."""
    m = measurement
    if isinstance(m, (LinearMeasurement, PathMeasurement)):
        return format_length(m.total_distance, m.unit, m.precision)
    if isinstance(m, AngularMeasurement):
        return format_angle(m.angle, m.unit, m.precision)
    if isinstance(m, AreaMeasurement):
        return format_area(m.area, m.unit, m.precision)
    if isinstance(m, VolumeMeasurement):
        return format_volume(m.volume, m.unit, m.precision)
    if isinstance(m, RadiusMeasurement):
        return format_length(m.radius, m.unit, m.precision)
    if isinstance(m, DiameterMeasurement):
        return format_length(m.diameter, m.unit, m.precision)
    if isinstance(m, ClearanceMeasurement):
        if math.isinf(m.distance):
            return "n/a"
        return format_length(m.distance, m.unit, m.precision)
    assert_never(m)


__all__ = [
    "MIN_POINTS",
    "build_angular",
    "build_area",
    "build_clearance",
    "build_diameter",
    "build_from_points",
    "build_linear",
    "build_path",
    "build_radius",
    "build_volume",
    "default_name",
    "format_measurement",
    "primary_value",
    "refresh_derived",
    "validate_points",
]
