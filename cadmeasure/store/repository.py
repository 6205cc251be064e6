"""
Measurement Store

Repository of finalized measurements and groups with bounded snapshot
undo/redo, aggregates, export/import and file persistence of the durable
subset. One instance per document; pass it by reference to whatever owns the
capture session.

Operations on unknown ids are silent no-ops that return False/None; only
``require`` and ``require_group`` raise.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from cadmeasure.exceptions import GroupNotFoundError, MeasurementNotFoundError, ValidationError
from cadmeasure.geometry.contract import (
    DEFAULT_MAX_HISTORY,
    DEFAULT_PRECISION,
    DEFAULT_SNAP_TOLERANCE,
    MAX_PRECISION,
    MAX_SNAP_TOLERANCE,
    MIN_SNAP_TOLERANCE,
    clamp,
)
from cadmeasure.geometry.units import convert_unit
from cadmeasure.logging_config import get_logger
from cadmeasure.measurements import refresh_derived
from cadmeasure.schema import (
    AreaMeasurement,
    AreaUnit,
    LengthUnit,
    LinearMeasurement,
    Measurement,
    MeasurementGroup,
    MeasurementKind,
    PathMeasurement,
    VolumeMeasurement,
    VolumeUnit,
)
from cadmeasure.store.history import BASELINE_ACTION, History, HistorySnapshot
from cadmeasure.store.serialization import (
    StoreState,
    dump_state,
    export_measurements,
    load_state,
    parse_export,
)

logger = get_logger("store")

_IMMUTABLE_FIELDS = {"id", "created_at", "createdAt", "type"}
_GROUP_IMMUTABLE_FIELDS = {"id", "created_at", "createdAt", "measurements"}
# Fields a locked measurement still accepts.
_LOCK_EXEMPT_FIELDS = {"locked", "visible"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


def _reconcile(
    measurements: dict[str, Measurement], groups: dict[str, MeasurementGroup]
) -> tuple[dict[str, Measurement], dict[str, MeasurementGroup]]:
    """Refresh derived values and make ``group_id`` and group members agree.

    ``group_id`` wins: a dangling one is cleared, members whose measurement is
    missing or points elsewhere are dropped, and unlisted members are appended.
    """
    fixed: dict[str, Measurement] = {}
    for measurement_id, measurement in measurements.items():
        group_id = measurement.group_id if measurement.group_id in groups else None
        fixed[measurement_id] = refresh_derived(measurement).model_copy(update={"group_id": group_id})
    linked: dict[str, MeasurementGroup] = {}
    for group_id, group in groups.items():
        members = [m for m in dict.fromkeys(group.measurements) if m in fixed and fixed[m].group_id == group_id]
        members += [m for m, measurement in fixed.items() if measurement.group_id == group_id and m not in members]
        if members != group.measurements:
            group = group.model_copy(update={"measurements": members})
        linked[group_id] = group
    return fixed, linked


class MeasurementStore:
    def __init__(
        self,
        max_history_size: int = DEFAULT_MAX_HISTORY,
        default_unit: LengthUnit = LengthUnit.FEET,
        default_precision: int = DEFAULT_PRECISION,
    ) -> None:
        self._measurements: dict[str, Measurement] = {}
        self._groups: dict[str, MeasurementGroup] = {}
        self._history = History(max_history_size)
        self.default_unit = LengthUnit(default_unit)
        self._default_precision = int(clamp(default_precision, 0, MAX_PRECISION))
        self.snap_enabled = True
        self._snap_tolerance = DEFAULT_SNAP_TOLERANCE
        self.show_all = True
        self.show_snap_indicators = True
        self._global_opacity = 1.0

    @classmethod
    def from_settings(cls, settings) -> "MeasurementStore":
        """Build from a ``Settings`` instance."""
        store = cls(
            max_history_size=settings.history.max_history_size,
            default_unit=settings.units.default_unit,
            default_precision=settings.units.default_precision,
        )
        store.snap_enabled = settings.snap.enabled
        store.snap_tolerance = settings.snap.tolerance
        return store

    # ----- settings -----

    @property
    def default_precision(self) -> int:
        return self._default_precision

    @default_precision.setter
    def default_precision(self, value: int) -> None:
        self._default_precision = int(clamp(value, 0, MAX_PRECISION))

    @property
    def snap_tolerance(self) -> float:
        return self._snap_tolerance

    @snap_tolerance.setter
    def snap_tolerance(self, value: float) -> None:
        self._snap_tolerance = clamp(value, MIN_SNAP_TOLERANCE, MAX_SNAP_TOLERANCE)

    @property
    def global_opacity(self) -> float:
        return self._global_opacity

    @global_opacity.setter
    def global_opacity(self, value: float) -> None:
        self._global_opacity = clamp(value, 0.0, 1.0)

    # ----- history plumbing -----

    def _begin(self) -> None:
        if len(self._history) == 0:
            self._history.push(HistorySnapshot.capture(self._measurements, self._groups, BASELINE_ACTION))

    def _commit(self, action: str) -> None:
        self._history.push(HistorySnapshot.capture(self._measurements, self._groups, action))
        logger.debug("{} (history {}/{})", action, self._history.index + 1, len(self._history))

    def _restore(self, snapshot: HistorySnapshot) -> None:
        self._measurements, self._groups = snapshot.restore()

    @property
    def history(self) -> History:
        return self._history

    # ----- measurement CRUD -----

    def add(self, measurement: Measurement) -> str:
        """Store a copy of ``measurement`` under a fresh id and return the id.

        Derived values are recomputed from the measurement's geometry.
        """
        self._begin()
        now = _now()
        new_id = _new_id()
        group_id = measurement.group_id if measurement.group_id in self._groups else None
        stored = refresh_derived(measurement).model_copy(
            update={"id": new_id, "created_at": now, "updated_at": now, "group_id": group_id},
            deep=True,
        )
        self._measurements[new_id] = stored
        if group_id is not None:
            self._link(group_id, new_id)
        self._commit(f"Add {stored.type} measurement")
        return new_id

    def update(self, measurement_id: str, changes: Mapping[str, Any] | None = None, **fields: Any) -> bool:
        """Merge field changes into a measurement and recompute its derived values.

        A locked measurement only accepts changes to ``locked`` and ``visible``;
        any other change returns False.

        Raises:
            ValidationError: If the merged measurement is invalid; the store is
                left unchanged.
        """
        current = self._measurements.get(measurement_id)
        if current is None:
            logger.debug("Update ignored for unknown id {}", measurement_id)
            return False
        merged = {k: v for k, v in {**(changes or {}), **fields}.items() if k not in _IMMUTABLE_FIELDS}
        if current.locked and not merged.keys() <= _LOCK_EXEMPT_FIELDS:
            logger.debug("Update refused for locked measurement {}", measurement_id)
            return False
        try:
            candidate = type(current).model_validate({**current.model_dump(), **merged})
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid update for measurement {measurement_id}: {exc.error_count()} error(s)",
                {"id": measurement_id},
            ) from exc
        new_group = candidate.group_id if candidate.group_id in self._groups else None
        updated = refresh_derived(candidate).model_copy(
            update={"id": current.id, "created_at": current.created_at, "updated_at": _now(), "group_id": new_group}
        )

        self._begin()
        if current.group_id != new_group:
            self._unlink(current.group_id, measurement_id)
        self._measurements[measurement_id] = updated
        if new_group is not None:
            self._link(new_group, measurement_id)
        self._commit(f"Update {updated.type} measurement")
        return True

    def delete(self, measurement_id: str) -> bool:
        measurement = self._measurements.get(measurement_id)
        if measurement is None:
            return False
        self._begin()
        del self._measurements[measurement_id]
        for group_id in list(self._groups):
            self._unlink(group_id, measurement_id)
        self._commit(f"Delete {measurement.type} measurement")
        return True

    def duplicate(self, measurement_id: str) -> str | None:
        original = self._measurements.get(measurement_id)
        if original is None:
            return None
        return self.add(original.model_copy(update={"name": f"{original.name} (Copy)"}, deep=True))

    # ----- groups -----

    def _link(self, group_id: str, measurement_id: str) -> None:
        group = self._groups[group_id]
        if measurement_id not in group.measurements:
            self._groups[group_id] = group.model_copy(
                update={"measurements": [*group.measurements, measurement_id], "updated_at": _now()}
            )

    def _unlink(self, group_id: str | None, measurement_id: str) -> None:
        group = self._groups.get(group_id) if group_id else None
        if group is None or measurement_id not in group.measurements:
            return
        self._groups[group.id] = group.model_copy(
            update={
                "measurements": [m for m in group.measurements if m != measurement_id],
                "updated_at": _now(),
            }
        )

    def _set_group_id(self, measurement_id: str, group_id: str | None) -> None:
        measurement = self._measurements[measurement_id]
        if measurement.group_id != group_id:
            self._measurements[measurement_id] = measurement.model_copy(
                update={"group_id": group_id, "updated_at": _now()}
            )

    def create_group(
        self,
        name: str,
        measurement_ids: Iterable[str] = (),
        *,
        description: str | None = None,
        color: str = "#ffffff",
    ) -> str:
        """Create a group; unknown measurement ids are skipped."""
        self._begin()
        now = _now()
        group_id = _new_id()
        members = list(dict.fromkeys(m for m in measurement_ids if m in self._measurements))
        self._groups[group_id] = MeasurementGroup(
            id=group_id,
            name=name,
            description=description,
            color=color,
            measurements=[],
            created_at=now,
            updated_at=now,
        )
        for measurement_id in members:
            self._unlink(self._measurements[measurement_id].group_id, measurement_id)
            self._link(group_id, measurement_id)
            self._set_group_id(measurement_id, group_id)
        self._commit(f"Create group {name}")
        return group_id

    def update_group(self, group_id: str, changes: Mapping[str, Any] | None = None, **fields: Any) -> bool:
        group = self._groups.get(group_id)
        if group is None:
            return False
        merged = {k: v for k, v in {**(changes or {}), **fields}.items() if k not in _GROUP_IMMUTABLE_FIELDS}
        try:
            candidate = MeasurementGroup.model_validate({**group.model_dump(), **merged})
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid update for group {group_id}", {"id": group_id}) from exc
        self._begin()
        self._groups[group_id] = candidate.model_copy(update={"updated_at": _now()})
        self._commit(f"Update group {candidate.name}")
        return True

    def delete_group(self, group_id: str) -> bool:
        """Remove a group; its members stay in the store, ungrouped."""
        group = self._groups.get(group_id)
        if group is None:
            return False
        self._begin()
        del self._groups[group_id]
        for measurement_id in group.measurements:
            if measurement_id in self._measurements:
                self._set_group_id(measurement_id, None)
        self._commit(f"Delete group {group.name}")
        return True

    def add_to_group(self, group_id: str, measurement_id: str) -> bool:
        group = self._groups.get(group_id)
        measurement = self._measurements.get(measurement_id)
        if group is None or measurement is None or measurement_id in group.measurements:
            return False
        self._begin()
        self._unlink(measurement.group_id, measurement_id)
        self._link(group_id, measurement_id)
        self._set_group_id(measurement_id, group_id)
        self._commit(f"Add to group {group.name}")
        return True

    def remove_from_group(self, group_id: str, measurement_id: str) -> bool:
        group = self._groups.get(group_id)
        if group is None or measurement_id not in group.measurements:
            return False
        self._begin()
        self._unlink(group_id, measurement_id)
        if measurement_id in self._measurements and self._measurements[measurement_id].group_id == group_id:
            self._set_group_id(measurement_id, None)
        self._commit(f"Remove from group {group.name}")
        return True

    def get_group(self, group_id: str) -> MeasurementGroup | None:
        return self._groups.get(group_id)

    def require_group(self, group_id: str) -> MeasurementGroup:
        group = self._groups.get(group_id)
        if group is None:
            raise GroupNotFoundError(f"Group not found: {group_id}", {"id": group_id})
        return group

    def groups(self) -> List[MeasurementGroup]:
        return list(self._groups.values())

    # ----- bulk operations -----

    def select_all(self) -> list[str]:
        return list(self._measurements)

    def delete_selected(self, measurement_ids: Iterable[str]) -> int:
        return sum(1 for measurement_id in list(measurement_ids) if self.delete(measurement_id))

    def show_selected(self, measurement_ids: Iterable[str]) -> int:
        return sum(1 for measurement_id in list(measurement_ids) if self.update(measurement_id, visible=True))

    def hide_selected(self, measurement_ids: Iterable[str]) -> int:
        return sum(1 for measurement_id in list(measurement_ids) if self.update(measurement_id, visible=False))

    def toggle_visibility(self, measurement_id: str) -> bool:
        measurement = self._measurements.get(measurement_id)
        if measurement is None:
            return False
        return self.update(measurement_id, visible=not measurement.visible)

    def toggle_all(self) -> bool:
        """Flip ``show_all`` and set every measurement's visibility to match."""
        self.show_all = not self.show_all
        for measurement_id in list(self._measurements):
            self.update(measurement_id, visible=self.show_all)
        return self.show_all

    # ----- queries -----

    def get(self, measurement_id: str) -> Measurement | None:
        return self._measurements.get(measurement_id)

    def require(self, measurement_id: str) -> Measurement:
        measurement = self._measurements.get(measurement_id)
        if measurement is None:
            raise MeasurementNotFoundError(f"Measurement not found: {measurement_id}", {"id": measurement_id})
        return measurement

    def all(self) -> List[Measurement]:
        return list(self._measurements.values())

    def __len__(self) -> int:
        return len(self._measurements)

    def __contains__(self, measurement_id: object) -> bool:
        return measurement_id in self._measurements

    def by_type(self, kind: MeasurementKind | str) -> List[Measurement]:
        wanted = MeasurementKind(kind).value
        return [m for m in self._measurements.values() if m.type == wanted]

    def by_group(self, group_id: str) -> List[Measurement]:
        group = self._groups.get(group_id)
        if group is None:
            return []
        return [self._measurements[m] for m in group.measurements if m in self._measurements]

    def search(self, query: str) -> List[Measurement]:
        needle = query.lower()
        return [
            m for m in self._measurements.values()
            if needle in m.name.lower()
            or (m.description is not None and needle in m.description.lower())
            or needle in m.type
        ]

    def visible(self) -> List[Measurement]:
        if not self.show_all:
            return []
        return [m for m in self._measurements.values() if m.visible]

    # ----- undo / redo -----

    def undo(self) -> bool:
        snapshot = self._history.step_back()
        if snapshot is None:
            return False
        self._restore(snapshot)
        logger.debug("Undo to {!r}", snapshot.action)
        return True

    def redo(self) -> bool:
        snapshot = self._history.step_forward()
        if snapshot is None:
            return False
        self._restore(snapshot)
        logger.debug("Redo {!r}", snapshot.action)
        return True

    def can_undo(self) -> bool:
        return self._history.can_undo

    def can_redo(self) -> bool:
        return self._history.can_redo

    def clear_history(self) -> None:
        self._history.clear()

    # ----- aggregates -----

    def total_distance(self, unit: LengthUnit | str = LengthUnit.FEET) -> float:
        """Sum of linear and path totals, each converted from its own unit."""
        return sum(
            convert_unit(m.total_distance, m.unit, unit)
            for m in self._measurements.values()
            if isinstance(m, (LinearMeasurement, PathMeasurement))
        )

    def total_area(self, unit: AreaUnit | str = AreaUnit.SQFT) -> float:
        return sum(
            convert_unit(m.area, m.unit, unit)
            for m in self._measurements.values()
            if isinstance(m, AreaMeasurement)
        )

    def total_volume(self, unit: VolumeUnit | str = VolumeUnit.CUFT) -> float:
        return sum(
            convert_unit(m.volume, m.unit, unit)
            for m in self._measurements.values()
            if isinstance(m, VolumeMeasurement)
        )

    # ----- export / import -----

    def export(self, fmt: str = "json") -> str:
        return export_measurements(fmt, self._measurements, self._groups)

    def import_json(self, text: str | bytes) -> int:
        """Merge an exported document into the store; returns the number of measurements read.

        Imported measurements get fresh derived values, and group links are
        reconciled against the merged groups.

        Raises:
            MeasurementImportError: On malformed input; the store is unchanged.
        """
        document = parse_export(text)
        measurements, groups = _reconcile(
            {**self._measurements, **document.measurements},
            {**self._groups, **document.groups},
        )
        self._begin()
        self._measurements = measurements
        self._groups = groups
        self._commit("Import measurements")
        logger.info("Imported {} measurements and {} groups", len(document.measurements), len(document.groups))
        return len(document.measurements)

    # ----- persistence -----

    def state(self) -> StoreState:
        return StoreState(
            measurements=dict(self._measurements),
            groups=dict(self._groups),
            default_unit=self.default_unit,
            default_precision=self.default_precision,
            snap_enabled=self.snap_enabled,
            snap_tolerance=self.snap_tolerance,
            show_all=self.show_all,
            show_snap_indicators=self.show_snap_indicators,
            global_opacity=self.global_opacity,
        )

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_state(self.state()), encoding="utf-8")
        logger.info("Saved {} measurements to {}", len(self._measurements), path)

    @classmethod
    def load(cls, path: Path, max_history_size: int = DEFAULT_MAX_HISTORY) -> "MeasurementStore":
        """Read a file written by ``save``. History starts empty.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            MeasurementImportError: If the file content is invalid.
        """
        path = Path(path)
        state = load_state(path.read_text(encoding="utf-8"))
        store = cls(
            max_history_size=max_history_size,
            default_unit=state.default_unit,
            default_precision=state.default_precision,
        )
        store._measurements, store._groups = _reconcile(dict(state.measurements), dict(state.groups))
        store.snap_enabled = state.snap_enabled
        store.snap_tolerance = state.snap_tolerance
        store.show_all = state.show_all
        store.show_snap_indicators = state.show_snap_indicators
        store.global_opacity = state.global_opacity
        logger.info("Loaded {} measurements from {}", len(store._measurements), path)
        return store


__all__ = ["MeasurementStore"]
