from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from cadmeasure.exceptions import ConfigurationError
from cadmeasure.geometry.contract import MIN_GRID_SPACING
from cadmeasure.schema import LengthUnit

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

CONFIG_ENV = "CADMEASURE_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/default.yaml")


class UnitSettings(BaseModel):
    default_unit: LengthUnit = LengthUnit.FEET
    default_precision: int = Field(2, ge=0, le=6)


class SnapSettings(BaseModel):
    enabled: bool = True
    tolerance: float = Field(0.5, ge=0.1, le=5.0)
    include_grid: bool = False
    grid_spacing: float = Field(1.0, ge=MIN_GRID_SPACING)
    grid_extent: float = Field(50.0, ge=0.0)
    intersection_confidence: float = Field(0.5, ge=0.0, le=1.0)


class HistorySettings(BaseModel):
    max_history_size: int = Field(50, ge=1, le=10000)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    log_file: Path | None = None
    rotation: str = "10 MB"
    retention: str = "7 days"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> str:
        if value is None:
            return "INFO"
        level = str(value).strip().upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


class Settings(BaseModel):
    units: UnitSettings = Field(default_factory=UnitSettings)
    snap: SnapSettings = Field(default_factory=SnapSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from a YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                the CADMEASURE_CONFIG environment variable or defaults to
                config/default.yaml.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            ConfigurationError: If the file does not exist or is invalid.
        """
        config_path = path or Path(os.getenv(CONFIG_ENV, str(DEFAULT_CONFIG_PATH)))
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                {"path": str(config_path)},
            )
        with config_path.open("r", encoding="utf-8") as fp:
            try:
                payload = yaml.safe_load(fp) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}", {"path": str(config_path)}) from exc
        if not isinstance(payload, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}", {"path": str(config_path)})
        try:
            return cls(**payload)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}", {"path": str(config_path)}) from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    """Return cached settings; built-in defaults when no configuration file exists."""
    if path:
        return Settings.load(Path(path))
    env_path = os.getenv(CONFIG_ENV)
    if env_path or DEFAULT_CONFIG_PATH.exists():
        return Settings.load()
    return Settings()


__all__ = [
    "Settings",
    "UnitSettings",
    "SnapSettings",
    "HistorySettings",
    "LoggingSettings",
    "get_settings",
]
