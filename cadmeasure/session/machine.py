"""
Measurement Session

Point-capture state machine for one measurement tool at a time::

    IDLE -> CAPTURING <-> READY -> FINALIZED -> IDLE
    (any state) -> CANCELLED -> IDLE

Points go through the snap index (when attached and enabled) and every change
recomputes a live preview measurement. ``finalize`` commits the preview to the
store. FINALIZED and CANCELLED are transient: they are recorded in
``transitions`` and the session settles back in IDLE within the same call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

from cadmeasure.exceptions import InsufficientPointsError, SessionStateError
from cadmeasure.geometry.kernel import PointLike, is_valid_point, to_point
from cadmeasure.logging_config import get_logger
from cadmeasure.measurements import MIN_POINTS, build_clearance, build_from_points, default_name, validate_points
from cadmeasure.schema import LengthUnit, Measurement, MeasurementKind, Point3D, SnapPoint
from cadmeasure.snap.index import SnapIndex
from cadmeasure.store.repository import MeasurementStore

logger = get_logger("session")

CLEARANCE_OBJECTS = 2


class SessionState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    READY = "ready"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


@dataclass
class SelectedObject:
    element_id: str
    points: List[Point3D] = field(default_factory=list)


class MeasurementSession:
    def __init__(
        self,
        store: MeasurementStore,
        snap_index: SnapIndex | None = None,
        *,
        unit: LengthUnit | None = None,
        precision: int | None = None,
        snap_enabled: bool | None = None,
        snap_tolerance: float | None = None,
    ) -> None:
        self.store = store
        self.snap_index = snap_index
        self._unit = unit
        self._precision = precision
        self._snap_enabled = snap_enabled
        self._snap_tolerance = snap_tolerance

        self._state = SessionState.IDLE
        self._tool: MeasurementKind | None = None
        self._points: list[Point3D] = []
        self._objects: list[SelectedObject] = []
        self._preview: Measurement | None = None
        self._required_distance: float | None = None
        self._code_reference = ""
        self.active_snap_point: SnapPoint | None = None
        self.last_errors: list[str] = []
        self.transitions: list[tuple[SessionState, SessionState]] = []

    # ----- read-only views -----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def tool(self) -> MeasurementKind | None:
        return self._tool

    @property
    def points(self) -> list[Point3D]:
        return list(self._points)

    @property
    def selected_objects(self) -> list[str]:
        return [obj.element_id for obj in self._objects]

    @property
    def preview(self) -> Measurement | None:
        return self._preview

    @property
    def unit(self) -> LengthUnit:
        return self._unit if self._unit is not None else self.store.default_unit

    @property
    def precision(self) -> int:
        return self._precision if self._precision is not None else self.store.default_precision

    @property
    def snap_enabled(self) -> bool:
        return self._snap_enabled if self._snap_enabled is not None else self.store.snap_enabled

    @property
    def snap_tolerance(self) -> float:
        return self._snap_tolerance if self._snap_tolerance is not None else self.store.snap_tolerance

    # ----- transitions -----

    def _transition(self, new_state: SessionState) -> None:
        if new_state is self._state:
            return
        logger.debug("State {} -> {}", self._state.value, new_state.value)
        self.transitions.append((self._state, new_state))
        self._state = new_state

    def _reset(self) -> None:
        self._tool = None
        self._points = []
        self._objects = []
        self._preview = None
        self._required_distance = None
        self._code_reference = ""
        self.active_snap_point = None
        self.last_errors = []

    def _capturing(self) -> bool:
        return self._state in (SessionState.CAPTURING, SessionState.READY)

    def select_tool(self, kind: MeasurementKind | str | None) -> None:
        """Start capture with ``kind``; ``None`` cancels the active capture."""
        if kind is None:
            self.cancel()
            return
        kind = MeasurementKind(kind)
        if self._capturing() and self._tool is not kind:
            self.cancel()
        self._reset()
        self._tool = kind
        self._transition(SessionState.CAPTURING)

    def cancel(self) -> None:
        if self._state is SessionState.IDLE and self._tool is None:
            return
        self._transition(SessionState.CANCELLED)
        self._reset()
        self._transition(SessionState.IDLE)

    # ----- point capture -----

    def add_point(self, point: PointLike, snap: bool = True) -> bool:
        """Capture a point; returns False when it is rejected."""
        if not self._capturing() or self._tool is MeasurementKind.CLEARANCE:
            logger.debug("Point ignored in state {} with tool {}", self._state.value, self._tool)
            return False
        if not is_valid_point(point):
            logger.debug("Rejected invalid point {}", point)
            return False

        position = to_point(point)
        self.active_snap_point = None
        if snap and self.snap_enabled and self.snap_index is not None:
            hit = self.snap_index.find_best_snap_point(position, self.snap_tolerance)
            if hit is not None:
                position = hit.position
                self.active_snap_point = hit

        self._points.append(position)
        self._refresh()
        return True

    def remove_last_point(self) -> bool:
        if not self._capturing() or not self._points:
            return False
        self._points.pop()
        self.active_snap_point = None
        self._refresh()
        return True

    def clear_points(self) -> None:
        if not self._capturing():
            return
        self._points = []
        self._objects = []
        self.active_snap_point = None
        self._refresh()

    def select_object(
        self,
        element_id: str,
        points: Sequence[PointLike] | None = None,
        *,
        required_distance: float | None = None,
        code_reference: str | None = None,
    ) -> bool:
        """Pick one of the two objects of a clearance measurement.

        ``points`` sample the object's geometry; they default to the object's
        snap candidates in the attached index.
        """
        if self._tool is not MeasurementKind.CLEARANCE or not self._capturing():
            logger.debug("Object selection ignored for tool {}", self._tool)
            return False
        if len(self._objects) >= CLEARANCE_OBJECTS or element_id in self.selected_objects:
            return False
        if points is None:
            if self.snap_index is None:
                return False
            points = [p.position for p in self.snap_index.find_by_element(element_id)]
        samples = [to_point(p) for p in points if is_valid_point(p)]
        if not samples:
            logger.warning("Object {} has no usable points", element_id)
            return False

        if required_distance is not None:
            self._required_distance = required_distance
        if code_reference is not None:
            self._code_reference = code_reference
        self._objects.append(SelectedObject(element_id, samples))
        self._refresh()
        return True

    def _refresh(self) -> None:
        kind = self._tool
        if kind is None:
            return
        if kind is MeasurementKind.CLEARANCE:
            self.last_errors = []
            self._preview = None
            if len(self._objects) == CLEARANCE_OBJECTS:
                first, second = self._objects
                self._preview = build_clearance(
                    first.element_id,
                    first.points,
                    second.element_id,
                    second.points,
                    required_distance=self._required_distance,
                    code_reference=self._code_reference,
                    unit=self.unit,
                    precision=self.precision,
                )
        else:
            self.last_errors = validate_points(kind, self._points) if len(self._points) >= MIN_POINTS[kind] else []
            self._preview = build_from_points(kind, self._points, unit=self.unit, precision=self.precision)
        self._transition(SessionState.READY if self._preview is not None else SessionState.CAPTURING)

    # ----- commit -----

    def finalize(self) -> str:
        """Commit the preview to the store and return the new measurement id.

        Raises:
            SessionStateError: If no capture is in progress.
            InsufficientPointsError: If the capture has not produced a valid preview yet.
        """
        if self._state is SessionState.IDLE or self._tool is None:
            raise SessionStateError("No measurement in progress", {"state": self._state.value})
        if self._state is not SessionState.READY or self._preview is None:
            tool = self._tool
            if tool is MeasurementKind.CLEARANCE:
                message = "Clearance measurement requires two selected objects"
            else:
                message = f"{default_name(tool)} requires at least {MIN_POINTS[tool]} valid points"
            raise InsufficientPointsError(
                message,
                {"tool": tool.value, "points": str(len(self._points)), "errors": "; ".join(self.last_errors)},
            )
        measurement_id = self.store.add(self._preview)
        logger.debug("Finalized {} measurement {}", self._tool.value, measurement_id)
        self._transition(SessionState.FINALIZED)
        self._reset()
        self._transition(SessionState.IDLE)
        return measurement_id


__all__ = ["MeasurementSession", "SelectedObject", "SessionState"]
