"""Unit conversion, rounding and display formatting.

Every family converts linearly through one base unit: feet for length, square
feet for area, cubic feet for volume and radians for angles. The display
strings produced here (``12.50'``, ``3.20 ft²``, ``45.0°``) are a stable
contract consumed by renderers and export code.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Union

from cadmeasure.geometry.contract import DEFAULT_PRECISION, FT_IN_ZERO_INCHES
from cadmeasure.logging_config import get_logger
from cadmeasure.schema import AngularUnit, AreaUnit, LengthUnit, VolumeUnit

logger = get_logger("geometry")

UnitLike = Union[str, Enum]

# Above 2**52 a double has no fractional part left to round.
_EXACT_INTEGER_LIMIT = 2.0**52
_MAX_ROUNDING_DIGITS = 15

FEET_PER_UNIT: dict[str, float] = {
    LengthUnit.FEET.value: 1.0,
    LengthUnit.FT_IN.value: 1.0,
    LengthUnit.INCHES.value: 1.0 / 12.0,
    LengthUnit.METERS.value: 1.0 / 0.3048,
    LengthUnit.MILLIMETERS.value: 1.0 / 304.8,
    LengthUnit.CENTIMETERS.value: 1.0 / 30.48,
}

SQFT_PER_UNIT: dict[str, float] = {
    AreaUnit.SQFT.value: 1.0,
    AreaUnit.SQIN.value: 1.0 / 144.0,
    AreaUnit.SQM.value: 1.0 / 0.09290304,
    AreaUnit.SQCM.value: 1.0 / 929.0304,
}

CUFT_PER_UNIT: dict[str, float] = {
    VolumeUnit.CUFT.value: 1.0,
    VolumeUnit.CUIN.value: 1.0 / 1728.0,
    VolumeUnit.CUM.value: 1.0 / 0.028316846592,
    VolumeUnit.LITERS.value: 1.0 / 28.316846592,
}

RADIANS_PER_UNIT: dict[str, float] = {
    AngularUnit.RADIANS.value: 1.0,
    AngularUnit.DEGREES.value: math.pi / 180.0,
}

UNIT_FAMILIES: tuple[dict[str, float], ...] = (
    FEET_PER_UNIT,
    SQFT_PER_UNIT,
    CUFT_PER_UNIT,
    RADIANS_PER_UNIT,
)

_LENGTH_SUFFIX = {
    LengthUnit.FEET.value: "'",
    LengthUnit.INCHES.value: '"',
    LengthUnit.METERS.value: "m",
    LengthUnit.MILLIMETERS.value: "mm",
    LengthUnit.CENTIMETERS.value: "cm",
}

_AREA_SUFFIX = {
    AreaUnit.SQFT.value: " ft²",
    AreaUnit.SQIN.value: " in²",
    AreaUnit.SQM.value: " m²",
    AreaUnit.SQCM.value: " cm²",
}

_VOLUME_SUFFIX = {
    VolumeUnit.CUFT.value: " ft³",
    VolumeUnit.CUIN.value: " in³",
    VolumeUnit.CUM.value: " m³",
    VolumeUnit.LITERS.value: "L",
}


def unit_key(unit: UnitLike) -> str:
    """Return the plain string value of a unit enum or string."""
    if isinstance(unit, Enum):
        return str(unit.value)
    return str(unit)


def unit_family(unit: UnitLike) -> dict[str, float] | None:
    key = unit_key(unit)
    for family in UNIT_FAMILIES:
        if key in family:
            return family
    return None


def convert_unit(value: float, from_unit: UnitLike, to_unit: UnitLike) -> float:
    """Convert ``value`` between two units of the same family.

    Returns ``nan`` for non-finite input, unknown units or units from
    different families.
    """
    if not math.isfinite(value):
        logger.debug("convert_unit received non-finite value {}", value)
        return math.nan
    src, dst = unit_key(from_unit), unit_key(to_unit)
    if src == dst:
        return float(value)
    family = unit_family(src)
    if family is None or dst not in family:
        logger.debug("convert_unit cannot convert {} to {}", src, dst)
        return math.nan
    return float(value) * family[src] / family[dst]


def round_to_precision(value: float, precision: int) -> float:
    """Round half away from zero to ``precision`` decimal places.

    Values with no fractional digits left at that precision come back unchanged.
    """
    if not math.isfinite(value):
        logger.debug("round_to_precision received non-finite value {}", value)
        return math.nan
    factor = 10.0 ** min(max(0, int(precision)), _MAX_ROUNDING_DIGITS)
    scaled = abs(value) * factor
    if not scaled < _EXACT_INTEGER_LIMIT:
        return float(value)
    return math.copysign(math.floor(scaled + 0.5) / factor, value)


def snap_to_increment(value: float, increment: float) -> float:
    """Snap to the nearest multiple of ``increment`` (e.g. 1/16 inch)."""
    if not math.isfinite(value) or not math.isfinite(increment):
        logger.debug("snap_to_increment received non-finite input {} / {}", value, increment)
        return math.nan
    if increment <= 0.0:
        return float(value)
    steps = value / increment
    if not math.isfinite(steps):
        return float(value)
    return round_to_precision(steps, 0) * increment


def format_length(value: float, unit: UnitLike = LengthUnit.FEET, precision: int = DEFAULT_PRECISION) -> str:
    key = unit_key(unit)
    if key == LengthUnit.FT_IN.value and math.isfinite(value):
        feet = math.floor(value)
        inches = (value - feet) * 12.0
        if inches < FT_IN_ZERO_INCHES:
            return f"{feet}'"
        if round(inches, precision) >= 12.0:
            return f"{feet + 1}'"
        return f"{feet}'-{inches:.{precision}f}\""
    return f"{value:.{precision}f}{_LENGTH_SUFFIX.get(key, '')}"


def format_angle(value: float, unit: UnitLike = AngularUnit.DEGREES, precision: int = 1) -> str:
    """Format an angle given in radians."""
    key = unit_key(unit)
    if key == AngularUnit.DEGREES.value:
        return f"{math.degrees(value):.{precision}f}°"
    if key == AngularUnit.RADIANS.value:
        return f"{value:.{precision}f} rad"
    return f"{value:.{precision}f}"


def format_area(value: float, unit: UnitLike = AreaUnit.SQFT, precision: int = DEFAULT_PRECISION) -> str:
    return f"{value:.{precision}f}{_AREA_SUFFIX.get(unit_key(unit), '')}"


def format_volume(value: float, unit: UnitLike = VolumeUnit.CUFT, precision: int = DEFAULT_PRECISION) -> str:
    return f"{value:.{precision}f}{_VOLUME_SUFFIX.get(unit_key(unit), '')}"


__all__ = [
    "CUFT_PER_UNIT",
    "FEET_PER_UNIT",
    "RADIANS_PER_UNIT",
    "SQFT_PER_UNIT",
    "convert_unit",
    "format_angle",
    "format_area",
    "format_length",
    "format_volume",
    "round_to_precision",
    "snap_to_increment",
    "unit_family",
    "unit_key",
]
