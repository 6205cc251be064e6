"""
Geometry Kernel

Pure, deterministic measurement primitives. No function here raises: when the
input is degenerate, insufficient or non-finite, the result falls back to a
well-defined default (0.0, the origin, ``None``) so that a live preview never
crashes on a momentarily invalid capture.

The plan view is the x/z plane (y is up). ``distance_horizontal`` is the
default metric for plan measurements; ``distance_3d`` is the true spatial
distance. They are not interchangeable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal, Sequence, Union

import numpy as np
from shapely.geometry import LineString, Polygon
from shapely.geometry import Point as ShapelyPoint

from cadmeasure.geometry.contract import EPSILON
from cadmeasure.logging_config import get_logger
from cadmeasure.schema import ORIGIN, Bounds, Point3D

logger = get_logger("geometry")

PointLike = Union[Point3D, Sequence[float]]
Metric = Literal["horizontal", "3d"]

_NAN3 = np.array([math.nan, math.nan, math.nan], dtype=np.float64)


@dataclass(frozen=True)
class Segment:
    start: Point3D
    end: Point3D
    distance: float


@dataclass(frozen=True)
class ChainResult:
    """Per-segment and cumulative distance along an ordered point list."""
    total: float = 0.0
    segments: list[Segment] = field(default_factory=list)


@dataclass(frozen=True)
class ClearanceResult:
    """Nearest pair between two point sets. ``distance`` is inf when a set is empty."""
    distance: float
    point_a: Point3D | None = None
    point_b: Point3D | None = None


def _xyz(point: PointLike) -> np.ndarray:
    if isinstance(point, Point3D):
        return np.array([point.x, point.y, point.z], dtype=np.float64)
    try:
        arr = np.asarray(point, dtype=np.float64)
    except (TypeError, ValueError):
        return _NAN3.copy()
    if arr.shape != (3,):
        return _NAN3.copy()
    return arr


def _point(arr: np.ndarray) -> Point3D:
    return Point3D(x=float(arr[0]), y=float(arr[1]), z=float(arr[2]))


def to_point(point: PointLike) -> Point3D:
    """Coerce a point-like value to Point3D (non-finite coordinates preserved)."""
    if isinstance(point, Point3D):
        return point
    return _point(_xyz(point))


def is_valid_point(point: PointLike) -> bool:
    """True when all three coordinates are finite numbers."""
    return bool(np.all(np.isfinite(_xyz(point))))


def _all_valid(points: Sequence[PointLike]) -> bool:
    return all(is_valid_point(p) for p in points)


def distance_3d(a: PointLike, b: PointLike) -> float:
    va, vb = _xyz(a), _xyz(b)
    if not (np.all(np.isfinite(va)) and np.all(np.isfinite(vb))):
        logger.debug("distance_3d received a non-finite point")
        return 0.0
    return float(np.linalg.norm(vb - va))


def distance_horizontal(a: PointLike, b: PointLike) -> float:
    """Plan-view distance on the x/z plane; the vertical axis is ignored."""
    va, vb = _xyz(a), _xyz(b)
    if not (np.all(np.isfinite(va)) and np.all(np.isfinite(vb))):
        logger.debug("distance_horizontal received a non-finite point")
        return 0.0
    return math.hypot(float(vb[0] - va[0]), float(vb[2] - va[2]))


def distance(a: PointLike, b: PointLike, metric: Metric = "horizontal") -> float:
    if metric == "3d":
        return distance_3d(a, b)
    return distance_horizontal(a, b)


def chain_distance(points: Sequence[PointLike], metric: Metric = "horizontal") -> ChainResult:
    """Cumulative distance over consecutive points; fewer than 2 points gives 0 and no segments."""
    if len(points) < 2 or not _all_valid(points):
        return ChainResult()
    segments: list[Segment] = []
    total = 0.0
    for start, end in zip(points[:-1], points[1:]):
        d = distance(start, end, metric)
        total += d
        segments.append(Segment(start=to_point(start), end=to_point(end), distance=d))
    return ChainResult(total=total, segments=segments)


def direction(start: PointLike, end: PointLike) -> Point3D:
    """Unit vector from start to end; the origin for a zero-length or invalid segment."""
    vector = _xyz(end) - _xyz(start)
    length = float(np.linalg.norm(vector))
    if not math.isfinite(length) or length < EPSILON:
        return ORIGIN
    return _point(vector / length)


def closest_point_on_segment(point: PointLike, start: PointLike, end: PointLike) -> Point3D:
    p, a, b = _xyz(point), _xyz(start), _xyz(end)
    if not (np.all(np.isfinite(p)) and np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        return ORIGIN
    line = b - a
    length_sq = float(line.dot(line))
    if length_sq < EPSILON * EPSILON:
        return _point(a)
    t = min(1.0, max(0.0, float((p - a).dot(line)) / length_sq))
    return _point(a + line * t)


def perpendicular_distance(point: PointLike, line_start: PointLike, line_end: PointLike) -> float:
    """3D distance from point to the nearest point of the segment."""
    if not _all_valid([point, line_start, line_end]):
        return 0.0
    return distance_3d(point, closest_point_on_segment(point, line_start, line_end))


def vector_angle(u: PointLike, v: PointLike) -> float:
    """Angle between two vectors in radians, 0 when either is zero-length."""
    a, b = _xyz(u), _xyz(v)
    na, nb = float(np.linalg.norm(a)), float(np.linalg.norm(b))
    if not (math.isfinite(na) and math.isfinite(nb)) or na < EPSILON or nb < EPSILON:
        return 0.0
    cos = float(a.dot(b)) / (na * nb)
    return math.acos(max(-1.0, min(1.0, cos)))


def angle(start: PointLike, vertex: PointLike, end: PointLike) -> float:
    """Angle at ``vertex`` in [0, pi]; symmetric in start/end, 0 for a zero-length arm."""
    v = _xyz(vertex)
    return vector_angle(_xyz(start) - v, _xyz(end) - v)


def signed_angle(start: PointLike, vertex: PointLike, end: PointLike, normal: PointLike) -> float:
    """Angle at ``vertex`` signed by the winding around ``normal``."""
    v = _xyz(vertex)
    v1, v2 = _xyz(start) - v, _xyz(end) - v
    unsigned = vector_angle(v1, v2)
    if unsigned == 0.0:
        return 0.0
    sign = float(np.sign(np.cross(v1, v2).dot(_xyz(normal))))
    return unsigned * sign


def polygon_area(points: Sequence[PointLike]) -> float:
    """Shoelace area of the x/z projection; needs at least 3 points."""
    if len(points) < 3 or not _all_valid(points):
        return 0.0
    coords = [(float(p[0]), float(p[2])) for p in (_xyz(q) for q in points)]
    return float(Polygon(coords).area)


def polygon_area_3d(points: Sequence[PointLike]) -> float:
    """Area of a near-planar polygon in any orientation (Newell's method)."""
    if len(points) < 3 or not _all_valid(points):
        return 0.0
    arr = np.array([_xyz(p) for p in points])
    nxt = np.roll(arr, -1, axis=0)
    normal = np.array([
        np.sum((arr[:, 1] - nxt[:, 1]) * (arr[:, 2] + nxt[:, 2])),
        np.sum((arr[:, 2] - nxt[:, 2]) * (arr[:, 0] + nxt[:, 0])),
        np.sum((arr[:, 0] - nxt[:, 0]) * (arr[:, 1] + nxt[:, 1])),
    ])
    return float(np.linalg.norm(normal)) / 2.0


def perimeter(points: Sequence[PointLike], closed: bool = True) -> float:
    """Sum of 3D edge lengths, including the closing edge when ``closed``."""
    if len(points) < 2 or not _all_valid(points):
        return 0.0
    arr = np.array([_xyz(p) for p in points])
    if closed:
        edges = np.roll(arr, -1, axis=0) - arr
    else:
        edges = arr[1:] - arr[:-1]
    return float(np.linalg.norm(edges, axis=1).sum())


def centroid(points: Sequence[PointLike]) -> Point3D:
    """Arithmetic mean of the vertices (not the area-weighted polygon centroid)."""
    if not points or not _all_valid(points):
        return ORIGIN
    return _point(np.mean(np.array([_xyz(p) for p in points]), axis=0))


def bounds_of(points: Sequence[PointLike]) -> Bounds | None:
    valid = [_xyz(p) for p in points if is_valid_point(p)]
    if not valid:
        return None
    arr = np.array(valid)
    return Bounds(min=_point(arr.min(axis=0)), max=_point(arr.max(axis=0)))


def _extents(min_point: PointLike, max_point: PointLike) -> np.ndarray | None:
    lo, hi = _xyz(min_point), _xyz(max_point)
    if not (np.all(np.isfinite(lo)) and np.all(np.isfinite(hi))):
        return None
    return np.abs(hi - lo)


def box_volume(min_point: PointLike, max_point: PointLike) -> float:
    """Product of the absolute per-axis extents."""
    dims = _extents(min_point, max_point)
    if dims is None:
        return 0.0
    return float(dims[0] * dims[1] * dims[2])


def box_surface_area(min_point: PointLike, max_point: PointLike) -> float:
    dims = _extents(min_point, max_point)
    if dims is None:
        return 0.0
    w, h, d = (float(v) for v in dims)
    return 2.0 * (w * h + w * d + h * d)


def box_centroid(min_point: PointLike, max_point: PointLike) -> Point3D:
    lo, hi = _xyz(min_point), _xyz(max_point)
    if not (np.all(np.isfinite(lo)) and np.all(np.isfinite(hi))):
        return ORIGIN
    return _point((lo + hi) / 2.0)


def convex_hull_volume(points: Sequence[PointLike]) -> float:
    """Bounding-box approximation of the hull volume; needs at least 4 points."""
    if len(points) < 4:
        return 0.0
    box = bounds_of(points)
    if box is None:
        return 0.0
    return box_volume(box.min, box.max)


def min_clearance(set_a: Sequence[PointLike], set_b: Sequence[PointLike]) -> ClearanceResult:
    """Brute-force nearest pair between two small point sets (3D distance).

    Non-finite points are ignored. Ties resolve to the first pair in input
    order. An empty set yields an infinite distance and no pair.
    """
    a = [to_point(p) for p in set_a if is_valid_point(p)]
    b = [to_point(p) for p in set_b if is_valid_point(p)]
    if not a or not b:
        return ClearanceResult(distance=math.inf)
    arr_a = np.array([p.as_tuple() for p in a])
    arr_b = np.array([p.as_tuple() for p in b])
    dists = np.linalg.norm(arr_a[:, None, :] - arr_b[None, :, :], axis=2)
    i, j = np.unravel_index(int(np.argmin(dists)), dists.shape)
    return ClearanceResult(distance=float(dists[i, j]), point_a=a[int(i)], point_b=b[int(j)])


def is_point_in_polygon(point: PointLike, polygon: Sequence[PointLike]) -> bool:
    """Strict containment test on the x/z plane."""
    if len(polygon) < 3 or not _all_valid(polygon) or not is_valid_point(point):
        return False
    p = _xyz(point)
    ring = [(float(q[0]), float(q[2])) for q in (_xyz(v) for v in polygon)]
    return bool(Polygon(ring).contains(ShapelyPoint(float(p[0]), float(p[2]))))


def line_intersection(
    line1_start: PointLike,
    line1_end: PointLike,
    line2_start: PointLike,
    line2_end: PointLike,
) -> Point3D | None:
    """Crossing point of two segments on the x/z plane, y averaged over all four ends.

    Returns None for parallel, collinear-overlapping or disjoint segments.
    """
    ends = [line1_start, line1_end, line2_start, line2_end]
    if not _all_valid(ends):
        return None
    a0, a1, b0, b1 = (_xyz(p) for p in ends)
    if np.linalg.norm((a1 - a0)[[0, 2]]) < EPSILON or np.linalg.norm((b1 - b0)[[0, 2]]) < EPSILON:
        return None
    hit = LineString([(a0[0], a0[2]), (a1[0], a1[2])]).intersection(
        LineString([(b0[0], b0[2]), (b1[0], b1[2])])
    )
    if hit.is_empty or hit.geom_type != "Point":
        return None
    y = float((a0[1] + a1[1] + b0[1] + b1[1]) / 4.0)
    return Point3D(x=float(hit.x), y=y, z=float(hit.y))


__all__ = [
    "ChainResult",
    "ClearanceResult",
    "Segment",
    "angle",
    "bounds_of",
    "box_centroid",
    "box_surface_area",
    "box_volume",
    "centroid",
    "chain_distance",
    "closest_point_on_segment",
    "convex_hull_volume",
    "direction",
    "distance",
    "distance_3d",
    "distance_horizontal",
    "is_point_in_polygon",
    "is_valid_point",
    "line_intersection",
    "min_clearance",
    "perimeter",
    "perpendicular_distance",
    "polygon_area",
    "polygon_area_3d",
    "signed_angle",
    "to_point",
    "vector_angle",
]
