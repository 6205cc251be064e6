"""Measurement store CRUD, groups, bulk operations and aggregates."""

from __future__ import annotations

import math

import pytest

from cadmeasure.exceptions import GroupNotFoundError, MeasurementNotFoundError, ValidationError
from cadmeasure.measurements import build_area, build_linear, build_path, build_volume
from cadmeasure.schema import AreaMeasurement, AreaUnit, LengthUnit, LinearMeasurement, Point3D
from cadmeasure.settings import Settings
from cadmeasure.store import MeasurementStore


def P(x: float, y: float, z: float) -> Point3D:
    return Point3D.of(x, y, z)


def linear(length: float, **kwargs):
    return build_linear([P(0, 0, 0), P(length, 0, 0)], **kwargs)


SQUARE = [P(0, 0, 0), P(10, 0, 0), P(10, 0, 10), P(0, 0, 10)]


@pytest.fixture
def store() -> MeasurementStore:
    return MeasurementStore()


def test_add_assigns_id_and_timestamps(store):
    draft = linear(3)
    measurement_id = store.add(draft)
    stored = store.require(measurement_id)
    assert stored.id == measurement_id
    assert draft.id == ""
    assert stored.created_at is not None
    assert stored.created_at == stored.updated_at
    assert store.history.at(store.history.index).action == "Add linear measurement"


def test_ids_are_unique(store):
    ids = {store.add(linear(1)) for _ in range(20)}
    assert len(ids) == 20


def test_update_merges_and_recomputes(store):
    measurement_id = store.add(linear(3))
    created = store.require(measurement_id).created_at
    assert store.update(measurement_id, {"points": [P(0, 0, 0), P(8, 0, 0)]}, name="Hall")
    updated = store.require(measurement_id)
    assert updated.total_distance == pytest.approx(8.0)
    assert updated.name == "Hall"
    assert updated.created_at == created
    assert updated.updated_at >= created


def test_update_cannot_change_identity(store):
    measurement_id = store.add(linear(3))
    store.update(measurement_id, id="other", type="area")
    stored = store.require(measurement_id)
    assert stored.id == measurement_id
    assert stored.type == "linear"


def test_update_unknown_id_is_noop(store):
    assert store.update("nope", name="x") is False
    assert len(store.history) == 0


def test_invalid_update_raises_and_keeps_state(store):
    measurement_id = store.add(linear(3))
    size = len(store.history)
    with pytest.raises(ValidationError):
        store.update(measurement_id, points=[P(0, 0, 0)])
    assert store.require(measurement_id).total_distance == pytest.approx(3.0)
    assert len(store.history) == size


def test_add_recomputes_derived_values(store):
    measurement_id = store.add(LinearMeasurement(points=[P(0, 0, 0), P(10, 0, 0)], total_distance=99.0))
    stored = store.require(measurement_id)
    assert stored.total_distance == pytest.approx(10.0)
    assert len(stored.segments) == 1
    assert store.total_distance() == pytest.approx(10.0)


def test_add_recomputes_area_from_boundary(store):
    measurement_id = store.add(AreaMeasurement(boundary=SQUARE))
    assert store.require(measurement_id).area == pytest.approx(100.0)
    assert store.total_area() == pytest.approx(100.0)


@pytest.mark.parametrize(
    "changes",
    [
        {"points": [[math.nan, 0, 0], [10, 0, 0]]},
        {"points": [P(0, 0, 0), P(math.inf, 0, 0)]},
        {"metric": "3d", "points": [(0, -math.inf, 0), (1, 0, 0)]},
    ],
)
def test_update_rejects_non_finite_points(store, changes):
    measurement_id = store.add(linear(3))
    before = store.require(measurement_id)
    size = len(store.history)
    with pytest.raises(ValidationError):
        store.update(measurement_id, changes)
    assert store.require(measurement_id) == before
    assert len(store.history) == size


def test_update_rejects_non_finite_volume_corner(store):
    measurement_id = store.add(build_volume(P(0, 0, 0), P(2, 2, 2)))
    with pytest.raises(ValidationError):
        store.update(measurement_id, bounding_box={"min": [0, 0, 0], "max": [math.nan, 2, 2]})
    assert store.total_volume() == pytest.approx(8.0)


def test_locked_measurement_refuses_edits(store):
    measurement_id = store.add(linear(3))
    assert store.update(measurement_id, locked=True)
    size = len(store.history)
    assert store.update(measurement_id, points=[P(0, 0, 0), P(9, 0, 0)]) is False
    assert store.update(measurement_id, {"name": "Renamed", "locked": False}) is False
    assert store.require(measurement_id).total_distance == pytest.approx(3.0)
    assert len(store.history) == size


def test_locked_measurement_accepts_visibility_and_unlock(store):
    measurement_id = store.add(linear(3))
    store.update(measurement_id, locked=True)
    assert store.toggle_visibility(measurement_id)
    assert store.require(measurement_id).visible is False
    assert store.update(measurement_id, locked=False)
    assert store.update(measurement_id, name="Hall")
    assert store.require(measurement_id).name == "Hall"


def test_require_raises_for_unknown_id(store):
    with pytest.raises(MeasurementNotFoundError):
        store.require("missing")
    with pytest.raises(GroupNotFoundError):
        store.require_group("missing")


def test_delete_strips_group_membership(store):
    a = store.add(linear(1))
    b = store.add(linear(2))
    group_id = store.create_group("Level 1", [a, b])
    assert store.delete(a)
    assert store.require_group(group_id).measurements == [b]
    assert store.delete(a) is False


def test_duplicate(store):
    original = store.add(linear(4, name="Corridor"))
    copy_id = store.duplicate(original)
    assert copy_id is not None and copy_id != original
    copy = store.require(copy_id)
    assert copy.name == "Corridor (Copy)"
    assert copy.total_distance == pytest.approx(4.0)
    assert store.duplicate("missing") is None


def test_group_membership_tracks_group_id(store):
    a = store.add(linear(1))
    b = store.add(linear(2))
    first = store.create_group("A", [a, "unknown"])
    second = store.create_group("B")
    assert store.require_group(first).measurements == [a]
    assert store.require(a).group_id == first

    assert store.add_to_group(second, a)
    assert store.require(a).group_id == second
    assert store.require_group(first).measurements == []
    assert store.add_to_group(second, a) is False

    store.add_to_group(second, b)
    assert [m.id for m in store.by_group(second)] == [a, b]

    assert store.remove_from_group(second, a)
    assert store.require(a).group_id is None
    assert store.remove_from_group(second, a) is False


def test_idempotent_group_ops_record_no_history(store):
    a = store.add(linear(1))
    group_id = store.create_group("A", [a])
    size = len(store.history)
    store.add_to_group(group_id, a)
    store.remove_from_group(group_id, "missing")
    assert len(store.history) == size


def test_delete_group_orphans_members(store):
    a = store.add(linear(1))
    group_id = store.create_group("A", [a])
    assert store.delete_group(group_id)
    assert store.get_group(group_id) is None
    assert store.require(a).group_id is None
    assert len(store) == 1


def test_update_group(store):
    group_id = store.create_group("A")
    assert store.update_group(group_id, name="Renamed", color="#ff0000", measurements=["x"])
    group = store.require_group(group_id)
    assert group.name == "Renamed"
    assert group.color == "#ff0000"
    assert group.measurements == []
    assert store.update_group("missing", name="x") is False


def test_group_changes_are_undoable(store):
    a = store.add(linear(1))
    group_id = store.create_group("A", [a])
    store.undo()
    assert store.get_group(group_id) is None
    assert store.require(a).group_id is None


def test_bulk_visibility(store):
    ids = [store.add(linear(i + 1)) for i in range(3)]
    assert store.select_all() == ids
    assert store.hide_selected(ids[:2]) == 2
    assert [m.visible for m in store.all()] == [False, False, True]
    assert [m.id for m in store.visible()] == [ids[2]]
    store.show_selected(ids)
    assert all(m.visible for m in store.all())
    assert store.toggle_visibility(ids[0])
    assert store.require(ids[0]).visible is False


def test_toggle_all(store):
    ids = [store.add(linear(1)) for _ in range(2)]
    assert store.toggle_all() is False
    assert store.show_all is False
    assert store.visible() == []
    assert store.toggle_all() is True
    assert [m.id for m in store.visible()] == ids


def test_delete_selected(store):
    ids = [store.add(linear(1)) for _ in range(3)]
    assert store.delete_selected(ids[:2] + ["missing"]) == 2
    assert store.select_all() == ids[2:]


def test_queries(store):
    store.add(linear(1, name="North wall"))
    store.add(build_area(SQUARE, name="Lobby floor"))
    described = store.add(linear(2, name="Beam"))
    store.update(described, description="Clear span to NORTH column")
    assert len(store.by_type("linear")) == 2
    assert len(store.by_type("area")) == 1
    assert {m.name for m in store.search("north")} == {"North wall", "Beam"}
    assert [m.name for m in store.search("AREA")] == ["Lobby floor"]
    assert store.by_group("missing") == []


def test_aggregates_convert_each_measurement(store):
    store.add(linear(10))
    store.add(linear(12, unit=LengthUnit.INCHES))  # stored as 144 in
    store.add(build_path([P(0, 0, 0), P(0, 3, 4)]))
    store.add(build_area(SQUARE))
    store.add(build_area(SQUARE, unit=AreaUnit.SQM))
    store.add(build_volume(P(0, 0, 0), P(2, 2, 2)))
    assert store.total_distance() == pytest.approx(27.0)
    assert store.total_distance("inches") == pytest.approx(324.0)
    assert store.total_area() == pytest.approx(200.0)
    assert store.total_volume() == pytest.approx(8.0)


def test_settings_are_clamped(store):
    store.default_precision = 9
    assert store.default_precision == 6
    store.default_precision = -1
    assert store.default_precision == 0
    store.snap_tolerance = 10.0
    assert store.snap_tolerance == 5.0
    store.snap_tolerance = 0.0
    assert store.snap_tolerance == pytest.approx(0.1)
    store.global_opacity = 1.5
    assert store.global_opacity == 1.0


def test_from_settings():
    settings = Settings.model_validate({
        "units": {"default_unit": "meters", "default_precision": 3},
        "snap": {"enabled": False, "tolerance": 2.0},
        "history": {"max_history_size": 7},
    })
    store = MeasurementStore.from_settings(settings)
    assert store.default_unit is LengthUnit.METERS
    assert store.default_precision == 3
    assert store.snap_enabled is False
    assert store.snap_tolerance == pytest.approx(2.0)
    assert store.history.max_size == 7
