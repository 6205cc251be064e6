"""
Snap Index

Precomputes snap candidates from the world-space bounds of scene elements and
resolves a query position to the single best candidate within a tolerance.

Candidate generation is bounding-box based: corners, centers, face centers,
edge midpoints, quadrants for round elements, an approximate intersection at
the center of every pairwise overlap, and an optional plan grid. Rebuild on
scene topology change only; the pairwise overlap pass is quadratic in the
number of providers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from itertools import combinations
from typing import Iterable, List, Literal, Sequence

import numpy as np

from cadmeasure.geometry.contract import (
    DEFAULT_GRID_EXTENT,
    DEFAULT_GRID_SPACING,
    MAX_GRID_STEPS,
    DEFAULT_SNAP_TOLERANCE,
    MAX_SNAP_TOLERANCE,
    MIN_SNAP_TOLERANCE,
    clamp,
)
from cadmeasure.geometry.kernel import PointLike, is_valid_point, to_point
from cadmeasure.logging_config import get_logger
from cadmeasure.schema import ORIGIN, Bounds, Point3D, SnapPoint, SnapPointType

logger = get_logger("snap")

# Fixed total order, high to low. Scores weight this at 0.6 so type dominates
# proximity and confidence.
SNAP_PRIORITIES: dict[SnapPointType, int] = {
    SnapPointType.ENDPOINT: 10,
    SnapPointType.CORNER: 9,
    SnapPointType.INTERSECTION: 8,
    SnapPointType.CENTER: 7,
    SnapPointType.PERPENDICULAR: 6,
    SnapPointType.TANGENT: 5,
    SnapPointType.MIDPOINT: 4,
    SnapPointType.EDGE: 3,
    SnapPointType.QUADRANT: 2,
    SnapPointType.GRID: 1,
}

PRIORITY_WEIGHT = 0.6
PROXIMITY_WEIGHT = 0.3
CONFIDENCE_WEIGHT = 0.1

CORNER_CONFIDENCE = 1.0
CENTER_CONFIDENCE = 0.9
FACE_CENTER_CONFIDENCE = 0.8
MIDPOINT_CONFIDENCE = 0.7
QUADRANT_CONFIDENCE = 0.6
INTERSECTION_CONFIDENCE = 0.5
GRID_CONFIDENCE = 0.3

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5

FACE_NAMES = ("Front", "Back", "Left", "Right", "Bottom", "Top")


@dataclass(frozen=True)
class SnapProvider:
    """External geometry reduced to what snapping needs: id, world bounds, round hint."""
    element_id: str
    bounds: Bounds
    kind: Literal["generic", "round"] = "generic"
    name: str | None = None

    @classmethod
    def from_min_max(
        cls,
        element_id: str,
        min_point: PointLike,
        max_point: PointLike,
        kind: Literal["generic", "round"] = "generic",
        name: str | None = None,
    ) -> "SnapProvider":
        return cls(element_id, Bounds(min=to_point(min_point), max=to_point(max_point)), kind, name)

    @property
    def label(self) -> str:
        return self.name or self.element_id


@dataclass
class SnapPreview:
    active: SnapPoint | None
    nearby: List[SnapPoint] = field(default_factory=list)


@dataclass
class SnapStatistics:
    total: int
    by_type: dict[str, int]
    by_confidence: dict[str, int]


def priority(snap_type: SnapPointType | str) -> int:
    """Priority of a snap type (higher is preferred); 0 for unknown types."""
    try:
        return SNAP_PRIORITIES[SnapPointType(snap_type)]
    except ValueError:
        return 0


def corner_points(bounds: Bounds) -> list[Point3D]:
    lo, hi = bounds.min, bounds.max
    return [
        Point3D(x=lo.x, y=lo.y, z=lo.z),
        Point3D(x=hi.x, y=lo.y, z=lo.z),
        Point3D(x=hi.x, y=hi.y, z=lo.z),
        Point3D(x=lo.x, y=hi.y, z=lo.z),
        Point3D(x=lo.x, y=lo.y, z=hi.z),
        Point3D(x=hi.x, y=lo.y, z=hi.z),
        Point3D(x=hi.x, y=hi.y, z=hi.z),
        Point3D(x=lo.x, y=hi.y, z=hi.z),
    ]


def box_center(bounds: Bounds) -> Point3D:
    lo, hi = bounds.min, bounds.max
    return Point3D(x=(lo.x + hi.x) / 2.0, y=(lo.y + hi.y) / 2.0, z=(lo.z + hi.z) / 2.0)


def face_centers(bounds: Bounds) -> list[Point3D]:
    """Centers of the six faces, in FACE_NAMES order."""
    lo, hi = bounds.min, bounds.max
    c = box_center(bounds)
    return [
        Point3D(x=c.x, y=c.y, z=lo.z),
        Point3D(x=c.x, y=c.y, z=hi.z),
        Point3D(x=lo.x, y=c.y, z=c.z),
        Point3D(x=hi.x, y=c.y, z=c.z),
        Point3D(x=c.x, y=lo.y, z=c.z),
        Point3D(x=c.x, y=hi.y, z=c.z),
    ]


def edge_midpoints(bounds: Bounds) -> list[Point3D]:
    """Midpoints of the twelve box edges: bottom four, top four, vertical four."""
    lo, hi = bounds.min, bounds.max
    mx, my, mz = (lo.x + hi.x) / 2.0, (lo.y + hi.y) / 2.0, (lo.z + hi.z) / 2.0
    return [
        Point3D(x=mx, y=lo.y, z=lo.z),
        Point3D(x=mx, y=lo.y, z=hi.z),
        Point3D(x=lo.x, y=lo.y, z=mz),
        Point3D(x=hi.x, y=lo.y, z=mz),
        Point3D(x=mx, y=hi.y, z=lo.z),
        Point3D(x=mx, y=hi.y, z=hi.z),
        Point3D(x=lo.x, y=hi.y, z=mz),
        Point3D(x=hi.x, y=hi.y, z=mz),
        Point3D(x=lo.x, y=my, z=lo.z),
        Point3D(x=hi.x, y=my, z=lo.z),
        Point3D(x=lo.x, y=my, z=hi.z),
        Point3D(x=hi.x, y=my, z=hi.z),
    ]


def quadrant_points(bounds: Bounds) -> list[Point3D]:
    """Four quadrant points on the horizontal mid-plane of a round element."""
    c = box_center(bounds)
    radius = min(
        abs(bounds.max.x - bounds.min.x) / 2.0,
        abs(bounds.max.z - bounds.min.z) / 2.0,
    )
    return [
        Point3D(x=c.x + radius, y=c.y, z=c.z),
        Point3D(x=c.x, y=c.y, z=c.z + radius),
        Point3D(x=c.x - radius, y=c.y, z=c.z),
        Point3D(x=c.x, y=c.y, z=c.z - radius),
    ]


def overlap_center(a: Bounds, b: Bounds) -> Point3D | None:
    """Center of the overlap of two boxes, or None when they do not touch.

    Approximation of a surface intersection, good enough as a snap hint.
    """
    lo = [max(getattr(a.min, axis), getattr(b.min, axis)) for axis in "xyz"]
    hi = [min(getattr(a.max, axis), getattr(b.max, axis)) for axis in "xyz"]
    if any(low > high for low, high in zip(lo, hi)):
        return None
    return Point3D(x=(lo[0] + hi[0]) / 2.0, y=(lo[1] + hi[1]) / 2.0, z=(lo[2] + hi[2]) / 2.0)


def grid_points(
    spacing: float = DEFAULT_GRID_SPACING,
    extent: float = DEFAULT_GRID_EXTENT,
    center: Point3D = ORIGIN,
) -> list[Point3D]:
    """Square grid on the x/z plane at ``center.y``, ``extent`` wide, inclusive of both edges."""
    if spacing <= 0.0 or extent < 0.0 or not math.isfinite(spacing) or not math.isfinite(extent):
        return []
    half = extent / 2.0
    steps = int(math.floor(extent / spacing + 1e-9))
    if steps > MAX_GRID_STEPS:
        logger.warning("Grid of {} steps per axis exceeds {}; skipping grid snap points", steps, MAX_GRID_STEPS)
        return []
    offsets = -half + spacing * np.arange(steps + 1)
    return [
        Point3D(x=center.x + float(i), y=center.y, z=center.z + float(j))
        for i in offsets
        for j in offsets
    ]


def provider_snap_points(provider: SnapProvider) -> list[SnapPoint]:
    """All bounding-box candidates for one provider (27, or 31 when round)."""
    bounds = provider.bounds
    label = provider.label
    element_id = provider.element_id
    center = box_center(bounds)
    points: list[SnapPoint] = []

    for index, corner in enumerate(corner_points(bounds)):
        normal = _unit(corner, center)
        points.append(SnapPoint(
            position=corner,
            type=SnapPointType.CORNER,
            confidence=CORNER_CONFIDENCE,
            element_id=element_id,
            description=f"Corner {index + 1} of {label}",
            normal=normal,
        ))

    points.append(SnapPoint(
        position=center,
        type=SnapPointType.CENTER,
        confidence=CENTER_CONFIDENCE,
        element_id=element_id,
        description=f"Center of {label}",
    ))

    for face_name, face_center in zip(FACE_NAMES, face_centers(bounds)):
        points.append(SnapPoint(
            position=face_center,
            type=SnapPointType.CENTER,
            confidence=FACE_CENTER_CONFIDENCE,
            element_id=element_id,
            description=f"{face_name} face center of {label}",
        ))

    for index, midpoint in enumerate(edge_midpoints(bounds)):
        points.append(SnapPoint(
            position=midpoint,
            type=SnapPointType.MIDPOINT,
            confidence=MIDPOINT_CONFIDENCE,
            element_id=element_id,
            description=f"Edge midpoint {index + 1} of {label}",
        ))

    if provider.kind == "round":
        for index, quadrant in enumerate(quadrant_points(bounds)):
            points.append(SnapPoint(
                position=quadrant,
                type=SnapPointType.QUADRANT,
                confidence=QUADRANT_CONFIDENCE,
                element_id=element_id,
                description=f"Quadrant {index + 1} of {label}",
            ))

    return points


def _unit(point: Point3D, origin: Point3D) -> Point3D | None:
    vec = np.array(point.as_tuple()) - np.array(origin.as_tuple())
    length = float(np.linalg.norm(vec))
    if length == 0.0:
        return None
    return Point3D(x=float(vec[0] / length), y=float(vec[1] / length), z=float(vec[2] / length))


class SnapIndex:
    """Candidate store with scored best-match queries."""

    def __init__(
        self,
        tolerance: float = DEFAULT_SNAP_TOLERANCE,
        *,
        enabled: bool = True,
        include_grid: bool = False,
        grid_spacing: float = DEFAULT_GRID_SPACING,
        grid_extent: float = DEFAULT_GRID_EXTENT,
        grid_center: Point3D = ORIGIN,
        intersection_confidence: float = INTERSECTION_CONFIDENCE,
    ) -> None:
        self._tolerance = clamp(tolerance, MIN_SNAP_TOLERANCE, MAX_SNAP_TOLERANCE)
        self._enabled = enabled
        self.include_grid = include_grid
        self.grid_spacing = grid_spacing
        self.grid_extent = grid_extent
        self.grid_center = grid_center
        self.intersection_confidence = clamp(intersection_confidence, 0.0, 1.0)
        self._points: list[SnapPoint] = []
        self._positions = np.empty((0, 3), dtype=np.float64)

    @classmethod
    def from_settings(cls, settings) -> "SnapIndex":
        """Build from a ``SnapSettings`` section."""
        return cls(
            settings.tolerance,
            enabled=settings.enabled,
            include_grid=settings.include_grid,
            grid_spacing=settings.grid_spacing,
            grid_extent=settings.grid_extent,
            intersection_confidence=settings.intersection_confidence,
        )

    # ----- configuration -----

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def set_tolerance(self, tolerance: float) -> None:
        self._tolerance = clamp(tolerance, MIN_SNAP_TOLERANCE, MAX_SNAP_TOLERANCE)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    # ----- building -----

    def build(self, providers: Sequence[SnapProvider], include_grid: bool | None = None) -> list[SnapPoint]:
        """Replace all candidates with those generated from ``providers``."""
        self._points = []
        if not self._enabled:
            self._reindex()
            return []

        for provider in providers:
            self._points.extend(provider_snap_points(provider))

        for first, second in combinations(providers, 2):
            hit = overlap_center(first.bounds, second.bounds)
            if hit is None:
                continue
            self._points.append(SnapPoint(
                position=hit,
                type=SnapPointType.INTERSECTION,
                confidence=self.intersection_confidence,
                description=f"Intersection of {first.label} and {second.label}",
            ))

        use_grid = self.include_grid if include_grid is None else include_grid
        if use_grid:
            for position in grid_points(self.grid_spacing, self.grid_extent, self.grid_center):
                self._points.append(SnapPoint(
                    position=position,
                    type=SnapPointType.GRID,
                    confidence=GRID_CONFIDENCE,
                    description=f"Grid point ({position.x:g}, {position.z:g})",
                ))

        self._reindex()
        logger.debug("Snap index built: {} candidates from {} providers", len(self._points), len(providers))
        return list(self._points)

    def add_snap_points(self, points: Iterable[SnapPoint]) -> None:
        """Append externally computed candidates (endpoints, perpendicular feet, ...)."""
        self._points.extend(p for p in points if is_valid_point(p.position))
        self._reindex()

    def clear(self) -> None:
        self._points = []
        self._reindex()

    def _reindex(self) -> None:
        # stable: equal priority/confidence keeps generation order
        self._points.sort(key=lambda p: (-priority(p.type), -p.confidence))
        if self._points:
            self._positions = np.array([p.position.as_tuple() for p in self._points], dtype=np.float64)
        else:
            self._positions = np.empty((0, 3), dtype=np.float64)

    @property
    def snap_points(self) -> list[SnapPoint]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    # ----- queries -----

    def _distances(self, position: PointLike) -> np.ndarray | None:
        if not self._points or not is_valid_point(position):
            return None
        query = np.array(to_point(position).as_tuple(), dtype=np.float64)
        return np.linalg.norm(self._positions - query, axis=1)

    def _resolve_tolerance(self, tolerance: float | None) -> float:
        return self._tolerance if tolerance is None else float(tolerance)

    def find_best_snap_point(self, position: PointLike, tolerance: float | None = None) -> SnapPoint | None:
        """Highest-scoring candidate within tolerance, or None.

        score = priority * 0.6 + (1 - distance / tolerance) * 0.3 + confidence * 0.1
        """
        if not self._enabled:
            return None
        tol = self._resolve_tolerance(tolerance)
        if not (tol > 0.0) or not math.isfinite(tol):
            return None
        dists = self._distances(position)
        if dists is None:
            return None
        within = np.flatnonzero(dists <= tol)
        if within.size == 0:
            return None
        priorities = np.array([priority(self._points[i].type) for i in within], dtype=np.float64)
        confidences = np.array([self._points[i].confidence for i in within], dtype=np.float64)
        scores = (
            priorities * PRIORITY_WEIGHT
            + (1.0 - dists[within] / tol) * PROXIMITY_WEIGHT
            + confidences * CONFIDENCE_WEIGHT
        )
        return self._points[int(within[int(np.argmax(scores))])]

    def find_snap_points_near(self, position: PointLike, tolerance: float | None = None) -> list[SnapPoint]:
        """All candidates within tolerance, in index order."""
        if not self._enabled:
            return []
        dists = self._distances(position)
        if dists is None:
            return []
        tol = self._resolve_tolerance(tolerance)
        return [self._points[int(i)] for i in np.flatnonzero(dists <= tol)]

    def find_by_type(self, snap_type: SnapPointType | str) -> list[SnapPoint]:
        wanted = SnapPointType(snap_type)
        return [p for p in self._points if p.type == wanted]

    def find_by_element(self, element_id: str) -> list[SnapPoint]:
        return [p for p in self._points if p.element_id == element_id]

    def snap_preview(self, position: PointLike, limit: int = 5) -> SnapPreview:
        """Best candidate plus up to ``limit`` nearby candidates for UI feedback."""
        return SnapPreview(
            active=self.find_best_snap_point(position),
            nearby=self.find_snap_points_near(position)[:limit],
        )

    def statistics(self) -> SnapStatistics:
        by_type: dict[str, int] = {}
        bands = {"high": 0, "medium": 0, "low": 0}
        for point in self._points:
            by_type[point.type.value] = by_type.get(point.type.value, 0) + 1
            if point.confidence >= HIGH_CONFIDENCE:
                bands["high"] += 1
            elif point.confidence >= MEDIUM_CONFIDENCE:
                bands["medium"] += 1
            else:
                bands["low"] += 1
        return SnapStatistics(total=len(self._points), by_type=by_type, by_confidence=bands)


__all__ = [
    "SNAP_PRIORITIES",
    "SnapIndex",
    "SnapPreview",
    "SnapProvider",
    "SnapStatistics",
    "box_center",
    "corner_points",
    "edge_midpoints",
    "face_centers",
    "grid_points",
    "overlap_center",
    "priority",
    "provider_snap_points",
    "quadrant_points",
]
