from __future__ import annotations

"""
Geometry Contract

Single source of truth for numeric tolerances and defaults used by the kernel,
the snap index and the capture session. All modules should import from here
instead of hardcoding.
"""

# Lengths in feet unless noted

# Degenerate geometry
EPSILON = 1e-10  # zero-length arms, parallel lines, coincident points

# Snapping
DEFAULT_SNAP_TOLERANCE = 0.5  # ft
MIN_SNAP_TOLERANCE = 0.1  # ft
MAX_SNAP_TOLERANCE = 5.0  # ft
DEFAULT_GRID_SPACING = 1.0  # ft
DEFAULT_GRID_EXTENT = 50.0  # ft, full width of the square grid
MIN_GRID_SPACING = 0.01  # ft
MAX_GRID_STEPS = 200  # per axis

# Display
DEFAULT_PRECISION = 2
MAX_PRECISION = 6
FT_IN_ZERO_INCHES = 0.01  # in, below this a ft-in value prints whole feet

# History
DEFAULT_MAX_HISTORY = 50


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))
