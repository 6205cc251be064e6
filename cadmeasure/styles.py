"""Default dimension styles per measurement kind.

Values are consumed by external renderers; the kernel only stores them.
"""

from __future__ import annotations

from cadmeasure.schema import MeasurementKind, MeasurementStyle, Point3D

_TEXT_UP_5 = Point3D(x=0.0, y=5.0, z=0.0)
_TEXT_UP_10 = Point3D(x=0.0, y=10.0, z=0.0)

DEFAULT_STYLES: dict[MeasurementKind, MeasurementStyle] = {
    MeasurementKind.LINEAR: MeasurementStyle(
        color="#00ff00",
        arrow_size=8,
        extension_line_length=20,
        text_offset=_TEXT_UP_5,
        dimension_line_offset=10,
    ),
    MeasurementKind.ANGULAR: MeasurementStyle(
        color="#ffff00",
        arrow_size=6,
        extension_line_length=15,
        text_offset=_TEXT_UP_5,
        dimension_line_offset=8,
        show_extension_lines=False,
    ),
    MeasurementKind.AREA: MeasurementStyle(
        color="#0080ff",
        opacity=0.3,
        text_size=14,
        arrow_size=0,
        arrow_style="none",
        extension_line_length=0,
        text_offset=_TEXT_UP_10,
        dimension_line_offset=0,
        show_extension_lines=False,
        show_dimension_line=False,
        background_color="#0080ff",
    ),
    MeasurementKind.VOLUME: MeasurementStyle(
        color="#ff8000",
        opacity=0.2,
        text_size=14,
        arrow_size=0,
        arrow_style="none",
        extension_line_length=0,
        text_offset=_TEXT_UP_10,
        dimension_line_offset=0,
        show_extension_lines=False,
        show_dimension_line=False,
        background_color="#ff8000",
    ),
    MeasurementKind.RADIUS: MeasurementStyle(
        color="#ff0080",
        arrow_size=8,
        extension_line_length=10,
        text_offset=_TEXT_UP_5,
        dimension_line_offset=5,
        show_extension_lines=False,
    ),
    MeasurementKind.DIAMETER: MeasurementStyle(
        color="#8000ff",
        arrow_size=8,
        extension_line_length=10,
        text_offset=_TEXT_UP_5,
        dimension_line_offset=5,
        show_extension_lines=False,
    ),
    MeasurementKind.PATH: MeasurementStyle(
        color="#80ff00",
        thickness=3,
        arrow_size=6,
        arrow_style="circle",
        line_style="dashed",
        extension_line_length=0,
        text_offset=_TEXT_UP_5,
        dimension_line_offset=0,
        show_extension_lines=False,
    ),
    MeasurementKind.CLEARANCE: MeasurementStyle(
        color="#ff4000",
        arrow_size=8,
        line_style="dotted",
        extension_line_length=15,
        text_offset=_TEXT_UP_5,
        dimension_line_offset=8,
        background_color="#ff4000",
    ),
}


def default_style(kind: MeasurementKind | str) -> MeasurementStyle:
    """Return a fresh copy of the default style for ``kind``."""
    return DEFAULT_STYLES[MeasurementKind(kind)].model_copy(deep=True)
