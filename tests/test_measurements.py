from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from cadmeasure.exceptions import InsufficientPointsError
from cadmeasure.measurements import (
    build_angular,
    build_area,
    build_clearance,
    build_diameter,
    build_from_points,
    build_linear,
    build_path,
    build_radius,
    build_volume,
    format_measurement,
    primary_value,
    refresh_derived,
    validate_points,
)
from cadmeasure.schema import (
    AngularMeasurement,
    AreaUnit,
    ClearanceMeasurement,
    LengthUnit,
    LinearMeasurement,
    MEASUREMENT_ADAPTER,
    MeasurementKind,
    Point3D,
    VolumeUnit,
)


def P(x: float, y: float, z: float) -> Point3D:
    return Point3D.of(x, y, z)


def test_linear_horizontal_chain():
    m = build_linear([P(0, 0, 0), P(10, 3, 0), P(10, 0, 5)])
    assert m.total_distance == pytest.approx(15.0)
    assert len(m.segments) == 2
    assert m.chain_dimensions is True
    assert m.name == "Linear Measurement"
    assert m.style is not None and m.style.color == "#00ff00"


def test_linear_in_inches():
    m = build_linear([P(0, 0, 0), P(1, 0, 0)], unit=LengthUnit.INCHES)
    assert m.total_distance == pytest.approx(12.0)
    assert format_measurement(m) == '12.00"'


def test_linear_requires_two_points():
    with pytest.raises(ValidationError):
        LinearMeasurement(points=[P(0, 0, 0)])


def test_angular_right_angle():
    m = build_angular(P(1, 0, 0), P(0, 0, 0), P(0, 0, 1))
    assert m.angle == pytest.approx(math.pi / 2)
    assert m.precision == 1
    assert format_measurement(m) == "90.0°"


def test_angular_rejects_arm_on_vertex():
    with pytest.raises(ValidationError):
        AngularMeasurement(vertex=P(0, 0, 0), start_point=P(0, 0, 0), end_point=P(1, 0, 0))


def test_area_square():
    m = build_area([P(0, 0, 0), P(10, 0, 0), P(10, 0, 10), P(0, 0, 10)])
    assert m.area == pytest.approx(100.0)
    assert m.perimeter == pytest.approx(40.0)
    assert m.centroid == P(5, 0, 5)
    assert format_measurement(m) == "100.00 ft²"


def test_area_in_square_meters_pairs_perimeter_in_meters():
    m = build_area([P(0, 0, 0), P(10, 0, 0), P(10, 0, 10), P(0, 0, 10)], unit=AreaUnit.SQM)
    assert m.area == pytest.approx(9.290304)
    assert m.perimeter == pytest.approx(12.192)


def test_volume_from_diagonal_corners():
    m = build_volume(P(2, 3, 4), P(0, 0, 0))
    assert m.volume == pytest.approx(24.0)
    assert m.surface_area == pytest.approx(52.0)
    assert m.bounding_box.min == P(0, 0, 0)
    assert m.centroid == P(1, 1.5, 2)
    assert build_volume(P(0, 0, 0), P(1, 1, 1), unit=VolumeUnit.LITERS).volume == pytest.approx(28.316846592)


def test_radius_and_diameter():
    r = build_radius(P(0, 0, 0), P(3, 0, 4))
    assert r.radius == pytest.approx(5.0)
    d = build_diameter(P(-2, 0, 0), P(0, 0, 0), P(2, 0, 0))
    assert d.diameter == pytest.approx(4.0)
    assert primary_value(d) == pytest.approx(4.0)


def test_path_uses_3d_distance_and_directions():
    m = build_path([P(0, 0, 0), P(0, 3, 4), P(0, 3, 10)])
    assert m.total_distance == pytest.approx(11.0)
    assert m.segments[1].direction == P(0, 0, 1)


def test_clearance_with_compliance():
    m = build_clearance("duct", [P(0, 0, 0)], "beam", [P(3, 0, 4)], required_distance=4.0, code_reference="IMC 304")
    assert m.distance == pytest.approx(5.0)
    assert m.closest_points.point1 == P(0, 0, 0)
    assert m.closest_points.point2 == P(3, 0, 4)
    assert m.compliance_check is not None
    assert m.compliance_check.is_compliant is True
    assert m.compliance_check.code_reference == "IMC 304"


def test_clearance_requires_points_on_both_objects():
    with pytest.raises(InsufficientPointsError):
        build_clearance("a", [], "b", [P(0, 0, 0)])


def test_clearance_requires_distinct_objects():
    with pytest.raises(ValidationError):
        build_clearance("a", [P(0, 0, 0)], "a", [P(1, 0, 0)])


def test_validate_points_messages():
    assert validate_points(MeasurementKind.AREA, [P(0, 0, 0)]) == ["Area measurement requires at least 3 points"]
    errors = validate_points("angular", [P(0, 0, 0), P(0, 0, 0), P(1, 0, 0)])
    assert errors == ["Vertex and start point cannot be the same"]
    assert validate_points("linear", [P(0, 0, 0), P(1, 0, 0)]) == []


def test_build_from_points_below_minimum_is_none():
    assert build_from_points("diameter", [P(0, 0, 0), P(1, 0, 0)]) is None
    assert build_from_points("clearance", [P(0, 0, 0), P(1, 0, 0)]) is None
    assert isinstance(build_from_points("linear", [P(0, 0, 0), P(1, 0, 0)]), LinearMeasurement)


def test_refresh_derived_recomputes_after_edit():
    m = build_linear([P(0, 0, 0), P(1, 0, 0)])
    edited = m.model_copy(update={"points": [P(0, 0, 0), P(7, 0, 0)]})
    fresh = refresh_derived(edited)
    assert fresh.total_distance == pytest.approx(7.0)
    assert fresh.name == m.name


def test_union_dispatches_on_type():
    m = build_clearance("a", [P(0, 0, 0)], "b", [P(1, 0, 0)])
    data = m.model_dump(mode="json", by_alias=True)
    assert data["type"] == "clearance"
    assert "objectIds" in data
    again = MEASUREMENT_ADAPTER.validate_python(data)
    assert isinstance(again, ClearanceMeasurement)
    assert again.object_ids == ["a", "b"]
