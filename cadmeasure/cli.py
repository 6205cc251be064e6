"""CLI for saved measurement stores."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError as PydanticValidationError

from cadmeasure.exceptions import MeasureError
from cadmeasure.logging_config import get_logger, setup_logging
from cadmeasure.measurements import format_measurement
from cadmeasure.settings import Settings, get_settings
from cadmeasure.store import MeasurementStore
from cadmeasure.store.serialization import EXPORT_FORMATS

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cadmeasure", description="Inspect and export saved measurement stores")
    parser.add_argument("--config", type=Path, help="YAML configuration file (default: CADMEASURE_CONFIG or config/default.yaml)")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    summary = sub.add_parser("summary", help="Print counts and totals for a store file")
    summary.add_argument("file", type=Path, help="Store file written by MeasurementStore.save")

    export = sub.add_parser("export", help="Export a store file as JSON or CSV")
    export.add_argument("file", type=Path, help="Store file written by MeasurementStore.save")
    export.add_argument("--format", choices=EXPORT_FORMATS, default="json", help="Export format (default: json)")
    export.add_argument("--output", type=Path, help="Write to this file instead of stdout")
    return parser


def summarize(store: MeasurementStore) -> dict:
    counts: dict[str, int] = {}
    for measurement in store.all():
        counts[measurement.type] = counts.get(measurement.type, 0) + 1
    return {
        "measurements": len(store),
        "groups": len(store.groups()),
        "by_type": counts,
        "total_distance_ft": store.total_distance(),
        "total_area_sqft": store.total_area(),
        "total_volume_cuft": store.total_volume(),
        "items": [
            {"id": m.id, "type": m.type, "name": m.name, "value": format_measurement(m)}
            for m in store.all()
        ],
    }


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.load(args.config) if args.config else get_settings()
        setup_logging(settings.logging, level=args.log_level)
    except MeasureError as exc:
        setup_logging()
        logger.error(exc.message)
        return 2
    except PydanticValidationError:
        setup_logging()
        logger.error(f"Unknown log level: {args.log_level}")
        return 2

    try:
        store = MeasurementStore.load(args.file, max_history_size=settings.history.max_history_size)
    except FileNotFoundError:
        logger.error(f"Store file not found: {args.file}")
        return 1
    except MeasureError as exc:
        logger.error(f"Could not read {args.file}: {exc.message}")
        return 1

    if args.command == "summary":
        sys.stdout.write(json.dumps(summarize(store), indent=2, ensure_ascii=False) + "\n")
        return 0

    text = store.export(args.format)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text + "\n", encoding="utf-8")
        logger.info(f"Exported {len(store)} measurements to {args.output}")
    else:
        sys.stdout.write(text + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
