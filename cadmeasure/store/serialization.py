"""JSON / CSV export, JSON import and the durable store document.

The JSON export document is ``{measurements: {id: ...}, groups: {id: ...},
exportedAt, version}`` with camelCase field names and ISO-8601 dates.
"""

from __future__ import annotations

import csv
import io
import json
import math
from datetime import datetime, timezone
from typing import Iterable, Mapping, assert_never

from pydantic import Field, ValidationError, model_validator

from cadmeasure.exceptions import MeasurementImportError, UnsupportedFormatError
from cadmeasure.geometry.contract import DEFAULT_PRECISION, DEFAULT_SNAP_TOLERANCE
from cadmeasure.logging_config import get_logger
from cadmeasure.schema import (
    AngularMeasurement,
    AreaMeasurement,
    CamelModel,
    ClearanceMeasurement,
    DiameterMeasurement,
    LengthUnit,
    LinearMeasurement,
    Measurement,
    MeasurementGroup,
    PathMeasurement,
    RadiusMeasurement,
    VolumeMeasurement,
)

logger = get_logger("store")

FORMAT_VERSION = "1.0"
EXPORT_FORMATS = ("json", "csv")
CSV_HEADER = ["ID", "Type", "Name", "Value", "Unit", "Created", "Updated"]


class _KeyedMaps(CamelModel):
    measurements: dict[str, Measurement] = Field(default_factory=dict)
    groups: dict[str, MeasurementGroup] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _keys_match_ids(self):
        for key, measurement in self.measurements.items():
            if measurement.id and measurement.id != key:
                raise ValueError(f"measurement key {key!r} does not match id {measurement.id!r}")
        for key, group in self.groups.items():
            if group.id != key:
                raise ValueError(f"group key {key!r} does not match id {group.id!r}")
        return self


class ExportDocument(_KeyedMaps):
    exported_at: datetime | None = None
    version: str = FORMAT_VERSION


class StoreState(_KeyedMaps):
    """Durable subset of a store; session and history state are never included."""
    version: str = FORMAT_VERSION
    default_unit: LengthUnit = LengthUnit.FEET
    default_precision: int = Field(DEFAULT_PRECISION, ge=0, le=6)
    snap_enabled: bool = True
    snap_tolerance: float = Field(DEFAULT_SNAP_TOLERANCE, ge=0.1, le=5.0)
    show_all: bool = True
    show_snap_indicators: bool = True
    global_opacity: float = Field(1.0, ge=0.0, le=1.0)


def _iso(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.isoformat().replace("+00:00", "Z")


def format_number(value: float) -> str:
    """Shortest round-trip text for a float; integral values print without a fraction."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


def csv_value(measurement: Measurement) -> str:
    """Value column for one row. Radius, diameter, path and clearance export blank."""
    m = measurement
    if isinstance(m, LinearMeasurement):
        return format_number(m.total_distance)
    if isinstance(m, AngularMeasurement):
        return format_number(m.angle)
    if isinstance(m, AreaMeasurement):
        return format_number(m.area)
    if isinstance(m, VolumeMeasurement):
        return format_number(m.volume)
    if isinstance(m, (RadiusMeasurement, DiameterMeasurement, PathMeasurement, ClearanceMeasurement)):
        return ""
    assert_never(m)


def export_json(
    measurements: Mapping[str, Measurement],
    groups: Mapping[str, MeasurementGroup],
    exported_at: datetime | None = None,
) -> str:
    document = ExportDocument(
        measurements=dict(measurements),
        groups=dict(groups),
        exported_at=exported_at or datetime.now(timezone.utc),
    )
    return json.dumps(document.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)


def export_csv(measurements: Iterable[Measurement]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for m in measurements:
        writer.writerow([
            m.id,
            m.type,
            m.name,
            csv_value(m),
            m.unit.value,
            _iso(m.created_at),
            _iso(m.updated_at),
        ])
    return buffer.getvalue().rstrip("\n")


def export_measurements(
    fmt: str,
    measurements: Mapping[str, Measurement],
    groups: Mapping[str, MeasurementGroup],
) -> str:
    if fmt == "json":
        return export_json(measurements, groups)
    if fmt == "csv":
        return export_csv(measurements.values())
    raise UnsupportedFormatError(f"Unsupported export format: {fmt}", {"format": fmt})


def parse_export(text: str | bytes) -> ExportDocument:
    """Validate an exported JSON document.

    Raises:
        MeasurementImportError: If the text is not valid JSON or does not
            describe measurements and groups keyed by id.
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        logger.error("Measurement import failed: invalid JSON ({})", exc)
        raise MeasurementImportError(f"Invalid JSON: {exc}") from exc
    if not isinstance(payload, dict) or "measurements" not in payload or "groups" not in payload:
        logger.error("Measurement import failed: missing measurements/groups maps")
        raise MeasurementImportError("Import data must contain 'measurements' and 'groups' maps")
    try:
        document = ExportDocument.model_validate(payload)
    except ValidationError as exc:
        logger.error("Measurement import failed: {} validation error(s)", exc.error_count())
        raise MeasurementImportError(
            f"Invalid measurement data: {exc.error_count()} error(s)",
            {"errors": json.dumps(exc.errors(include_url=False, include_input=False), default=str)},
        ) from exc
    # ids may be omitted inside the map; the key is authoritative
    document.measurements = {
        key: m if m.id else m.model_copy(update={"id": key}) for key, m in document.measurements.items()
    }
    return document


def dump_state(state: StoreState) -> str:
    return json.dumps(state.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)


def load_state(text: str | bytes) -> StoreState:
    try:
        return StoreState.model_validate_json(text)
    except ValidationError as exc:
        logger.error("Store state is invalid: {} error(s)", exc.error_count())
        raise MeasurementImportError(
            f"Invalid store file: {exc.error_count()} error(s)",
            {"errors": json.dumps(exc.errors(include_url=False, include_input=False), default=str)},
        ) from exc


__all__ = [
    "CSV_HEADER",
    "EXPORT_FORMATS",
    "ExportDocument",
    "FORMAT_VERSION",
    "StoreState",
    "csv_value",
    "dump_state",
    "export_csv",
    "export_json",
    "export_measurements",
    "format_number",
    "load_state",
    "parse_export",
]
