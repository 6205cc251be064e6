"""Scripted capture sequences through the session state machine."""

from __future__ import annotations

import math

import pytest

from cadmeasure.exceptions import InsufficientPointsError, SessionStateError
from cadmeasure.schema import (
    AreaMeasurement,
    ClearanceMeasurement,
    LengthUnit,
    LinearMeasurement,
    Point3D,
    SnapPointType,
    VolumeMeasurement,
)
from cadmeasure.session import MeasurementSession, SessionState
from cadmeasure.snap import SnapIndex, SnapProvider
from cadmeasure.store import MeasurementStore


def P(x: float, y: float, z: float) -> Point3D:
    return Point3D.of(x, y, z)


def make_session(**kwargs) -> tuple[MeasurementSession, MeasurementStore]:
    store = MeasurementStore()
    return MeasurementSession(store, **kwargs), store


def test_linear_capture_and_finalize():
    session, store = make_session()
    session.select_tool("linear")
    assert session.state is SessionState.CAPTURING
    assert session.add_point(P(0, 0, 0))
    assert session.state is SessionState.CAPTURING
    assert session.preview is None
    assert session.add_point(P(10, 0, 0))
    assert session.state is SessionState.READY
    assert session.preview.total_distance == pytest.approx(10.0)

    measurement_id = session.finalize()

    assert session.state is SessionState.IDLE
    assert session.tool is None
    assert session.points == []
    stored = store.require(measurement_id)
    assert isinstance(stored, LinearMeasurement)
    assert stored.total_distance == pytest.approx(10.0)
    assert len(store) == 1
    assert session.transitions == [
        (SessionState.IDLE, SessionState.CAPTURING),
        (SessionState.CAPTURING, SessionState.READY),
        (SessionState.READY, SessionState.FINALIZED),
        (SessionState.FINALIZED, SessionState.IDLE),
    ]


def test_area_capture():
    session, store = make_session()
    session.select_tool("area")
    for point in [P(0, 0, 0), P(10, 0, 0), P(10, 0, 10)]:
        session.add_point(point)
    assert session.state is SessionState.READY
    session.add_point(P(0, 0, 10))
    preview = session.preview
    assert isinstance(preview, AreaMeasurement)
    assert preview.area == pytest.approx(100.0)
    assert preview.perimeter == pytest.approx(40.0)
    assert preview.centroid == P(5, 0, 5)
    session.finalize()
    assert store.total_area() == pytest.approx(100.0)


def test_invalid_points_are_rejected_without_state_change():
    session, _ = make_session()
    session.select_tool("linear")
    session.add_point(P(0, 0, 0))
    before = list(session.transitions)
    assert session.add_point(P(math.nan, 0, 0)) is False
    assert session.add_point((0, math.inf, 0)) is False
    assert session.points == [P(0, 0, 0)]
    assert session.state is SessionState.CAPTURING
    assert session.transitions == before


def test_points_ignored_while_idle():
    session, _ = make_session()
    assert session.add_point(P(0, 0, 0)) is False
    assert session.state is SessionState.IDLE


def test_remove_last_point_drops_back_to_capturing():
    session, _ = make_session()
    session.select_tool("angular")
    for point in [P(1, 0, 0), P(0, 0, 0), P(0, 0, 1)]:
        session.add_point(point)
    assert session.state is SessionState.READY
    assert session.preview.angle == pytest.approx(math.pi / 2)
    assert session.remove_last_point()
    assert session.state is SessionState.CAPTURING
    assert session.preview is None


def test_degenerate_geometry_stays_capturing():
    session, _ = make_session()
    session.select_tool("angular")
    for point in [P(0, 0, 0), P(0, 0, 0), P(1, 0, 0)]:
        session.add_point(point)
    assert session.state is SessionState.CAPTURING
    assert session.preview is None
    assert session.last_errors == ["Vertex and start point cannot be the same"]
    with pytest.raises(InsufficientPointsError):
        session.finalize()


def test_clear_points_keeps_tool():
    session, _ = make_session()
    session.select_tool("path")
    session.add_point(P(0, 0, 0))
    session.add_point(P(0, 0, 5))
    session.clear_points()
    assert session.tool.value == "path"
    assert session.points == []
    assert session.state is SessionState.CAPTURING


def test_cancel_discards_capture():
    session, store = make_session()
    session.select_tool("linear")
    session.add_point(P(0, 0, 0))
    session.add_point(P(1, 0, 0))
    session.cancel()
    assert session.state is SessionState.IDLE
    assert session.preview is None
    assert session.points == []
    assert len(store) == 0
    assert (SessionState.READY, SessionState.CANCELLED) in session.transitions


def test_switching_tool_cancels_previous_capture():
    session, store = make_session()
    session.select_tool("linear")
    session.add_point(P(0, 0, 0))
    session.add_point(P(1, 0, 0))
    session.select_tool("area")
    assert session.tool.value == "area"
    assert session.points == []
    assert session.state is SessionState.CAPTURING
    assert (SessionState.READY, SessionState.CANCELLED) in session.transitions
    assert len(store) == 0


def test_finalize_errors_leave_state_untouched():
    session, _ = make_session()
    with pytest.raises(SessionStateError):
        session.finalize()
    assert session.state is SessionState.IDLE

    session.select_tool("area")
    session.add_point(P(0, 0, 0))
    with pytest.raises(InsufficientPointsError):
        session.finalize()
    assert session.state is SessionState.CAPTURING
    assert session.points == [P(0, 0, 0)]


def test_volume_from_two_corners():
    session, store = make_session()
    session.select_tool("volume")
    session.add_point(P(0, 0, 0))
    session.add_point(P(2, 3, 4))
    measurement_id = session.finalize()
    stored = store.require(measurement_id)
    assert isinstance(stored, VolumeMeasurement)
    assert stored.volume == pytest.approx(24.0)


def test_points_snap_to_best_candidate():
    index = SnapIndex(tolerance=1.0)
    index.build([SnapProvider.from_min_max("wall", (0, 0, 0), (10, 3, 1))])
    session, _ = make_session(snap_index=index, snap_tolerance=1.0)
    session.select_tool("linear")
    session.add_point(P(0.2, 0.1, 0.1))
    assert session.points == [P(0, 0, 0)]
    assert session.active_snap_point is not None
    assert session.active_snap_point.type is SnapPointType.CORNER

    session.add_point(P(20, 0, 0))
    assert session.active_snap_point is None
    session.add_point(P(9.9, 0, 0), snap=False)
    assert session.points[-1] == P(9.9, 0, 0)


def test_snapping_disabled_through_store_settings():
    index = SnapIndex(tolerance=1.0)
    index.build([SnapProvider.from_min_max("wall", (0, 0, 0), (10, 3, 1))])
    session, store = make_session(snap_index=index)
    store.snap_enabled = False
    session.select_tool("linear")
    session.add_point(P(0.2, 0, 0))
    assert session.points == [P(0.2, 0, 0)]


def test_preview_uses_session_unit():
    session, _ = make_session(unit=LengthUnit.INCHES)
    session.select_tool("linear")
    session.add_point(P(0, 0, 0))
    session.add_point(P(2, 0, 0))
    assert session.preview.unit is LengthUnit.INCHES
    assert session.preview.total_distance == pytest.approx(24.0)


def test_clearance_from_two_objects():
    session, store = make_session()
    session.select_tool("clearance")
    assert session.add_point(P(0, 0, 0)) is False
    assert session.select_object("duct", [P(0, 0, 0)], required_distance=6.0)
    assert session.state is SessionState.CAPTURING
    assert session.select_object("duct", [P(1, 0, 0)]) is False
    assert session.select_object("beam", [P(3, 0, 4)])
    assert session.state is SessionState.READY
    measurement_id = session.finalize()
    stored = store.require(measurement_id)
    assert isinstance(stored, ClearanceMeasurement)
    assert stored.distance == pytest.approx(5.0)
    assert stored.object_ids == ["duct", "beam"]
    assert stored.compliance_check.is_compliant is False


def test_clearance_points_default_to_snap_candidates():
    index = SnapIndex()
    index.build([
        SnapProvider.from_min_max("a", (0, 0, 0), (1, 1, 1)),
        SnapProvider.from_min_max("b", (4, 0, 0), (5, 1, 1)),
    ])
    session, _ = make_session(snap_index=index)
    session.select_tool("clearance")
    assert session.select_object("a")
    assert session.select_object("b")
    assert session.preview.distance == pytest.approx(3.0)
    assert session.select_object("missing") is False


def test_select_none_cancels():
    session, _ = make_session()
    session.select_tool("radius")
    session.select_tool(None)
    assert session.state is SessionState.IDLE
    assert session.tool is None
