"""Custom exception hierarchy for cadmeasure."""

from __future__ import annotations


class MeasureError(Exception):
    """Base exception for all cadmeasure-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(MeasureError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(MeasureError):
    """Base class for validation errors."""
    pass


class InvalidPointError(ValidationError):
    """Raised when a point has non-finite coordinates."""
    pass


class InsufficientPointsError(ValidationError):
    """Raised when a capture does not have enough points for its tool."""
    pass


class SessionError(MeasureError):
    """Base class for capture session errors."""
    pass


class SessionStateError(SessionError):
    """Raised when a session operation is illegal in the current state."""
    pass


class StoreError(MeasureError):
    """Base class for measurement store errors."""
    pass


class NotFoundError(StoreError):
    """Raised when a measurement or group id is unknown."""
    pass


class MeasurementNotFoundError(NotFoundError):
    """Raised when a measurement id is unknown."""
    pass


class GroupNotFoundError(NotFoundError):
    """Raised when a group id is unknown."""
    pass


class HistoryBoundsError(StoreError):
    """Raised when a history snapshot is requested outside the recorded range."""
    pass


class SerializationError(MeasureError):
    """Base class for export/import errors."""
    pass


class MeasurementImportError(SerializationError):
    """Raised when imported measurement data is malformed."""
    pass


class UnsupportedFormatError(SerializationError):
    """Raised when an export or import format is not supported."""
    pass
