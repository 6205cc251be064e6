"""Loguru sinks for cadmeasure, driven by the ``logging`` section of the settings.

Package modules log through ``get_logger(<component>)`` so every record carries
the component (``geometry``, ``snap``, ``session``, ``store``, ``cli``) that
emitted it.
"""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger

from cadmeasure.settings import LoggingSettings

DEFAULT_COMPONENT = "cadmeasure"

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[component]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


class JSONFormatter:
    """One JSON object per line with the component lifted to a top-level key."""

    def __call__(self, record: dict[str, Any]) -> str:
        extra = dict(record.get("extra") or {})
        log_data = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name,
            "component": extra.pop("component", DEFAULT_COMPONENT),
            "message": record["message"],
            "line": record.get("line", 0),
        }
        exception = record.get("exception")
        if exception is not None:
            log_data["exception"] = {
                "type": exception.type.__name__ if exception.type else None,
                "value": str(exception.value) if exception.value else None,
            }
        if extra:
            log_data["extra"] = extra

        # loguru treats the returned string as a format template
        return json.dumps(log_data, ensure_ascii=False, default=str).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(settings: LoggingSettings | None = None, *, level: str | None = None) -> None:
    """Replace loguru's sinks with the ones described by ``settings``.

    Args:
        settings: The ``logging`` section of ``Settings``; defaults apply when None.
        level: Overrides ``settings.level`` (e.g. from ``--log-level``).
    """
    settings = settings or LoggingSettings()
    if level is not None:
        settings = LoggingSettings.model_validate({**settings.model_dump(), "level": level})
    formatter: Any = JSONFormatter() if settings.json_format else TEXT_FORMAT

    logger.remove()
    logger.configure(extra={"component": DEFAULT_COMPONENT})
    logger.add(sys.stderr, format=formatter, level=settings.level, colorize=not settings.json_format)

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            format=formatter,
            level=settings.level,
            rotation=settings.rotation,
            retention=settings.retention,
            compression="zip",
        )


def get_logger(component: str) -> Any:
    return logger.bind(component=component)
