"""Snap candidate generation and best-match resolution."""

from cadmeasure.snap.index import (
    SNAP_PRIORITIES,
    SnapIndex,
    SnapPreview,
    SnapProvider,
    SnapStatistics,
    priority,
    provider_snap_points,
)

__all__ = [
    "SNAP_PRIORITIES",
    "SnapIndex",
    "SnapPreview",
    "SnapProvider",
    "SnapStatistics",
    "priority",
    "provider_snap_points",
]
