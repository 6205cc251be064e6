"""Measurement repository, undo/redo history and serialization."""

from cadmeasure.store.history import History, HistorySnapshot
from cadmeasure.store.repository import MeasurementStore
from cadmeasure.store.serialization import (
    CSV_HEADER,
    ExportDocument,
    StoreState,
    export_csv,
    export_json,
    parse_export,
)

__all__ = [
    "CSV_HEADER",
    "ExportDocument",
    "History",
    "HistorySnapshot",
    "MeasurementStore",
    "StoreState",
    "export_csv",
    "export_json",
    "parse_export",
]
