"""Point-capture session state machine."""

from cadmeasure.session.machine import MeasurementSession, SelectedObject, SessionState

__all__ = ["MeasurementSession", "SelectedObject", "SessionState"]
