"""cadmeasure: measurement and snapping kernel for 3D CAD scenes."""

from cadmeasure.exceptions import MeasureError
from cadmeasure.session import MeasurementSession, SessionState
from cadmeasure.snap import SnapIndex, SnapProvider
from cadmeasure.store import MeasurementStore

__version__ = "0.1.0"

__all__ = [
    "MeasureError",
    "MeasurementSession",
    "MeasurementStore",
    "SessionState",
    "SnapIndex",
    "SnapProvider",
    "__version__",
]
