from __future__ import annotations

from pathlib import Path

import pytest

from cadmeasure.exceptions import ConfigurationError
from cadmeasure.schema import LengthUnit
from cadmeasure.settings import CONFIG_ENV, Settings, get_settings

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


def test_defaults():
    settings = Settings()
    assert settings.units.default_unit is LengthUnit.FEET
    assert settings.units.default_precision == 2
    assert settings.snap.tolerance == pytest.approx(0.5)
    assert settings.snap.include_grid is False
    assert settings.history.max_history_size == 50
    assert settings.logging.level == "INFO"


def test_load_repository_default_config():
    settings = Settings.load(REPO_CONFIG)
    assert settings == Settings()


def test_load_custom_yaml(tmp_path):
    path = tmp_path / "cadmeasure.yaml"
    path.write_text(
        "units:\n  default_unit: ft-in\n  default_precision: 3\n"
        "snap:\n  tolerance: 1.5\n  include_grid: true\n"
        "logging:\n  level: debug\n",
        encoding="utf-8",
    )
    settings = Settings.load(path)
    assert settings.units.default_unit is LengthUnit.FT_IN
    assert settings.snap.include_grid is True
    assert settings.logging.level == "DEBUG"
    assert settings.history.max_history_size == 50


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        Settings.load(tmp_path / "nope.yaml")
    assert "not found" in exc_info.value.message


@pytest.mark.parametrize(
    "content",
    [
        "snap: [unclosed",
        "- just\n- a list\n",
        "snap:\n  tolerance: 99\n",
        "logging:\n  level: loud\n",
        "snap:\n  grid_spacing: 0.0001\n",
    ],
)
def test_invalid_config(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        Settings.load(path)


def test_env_var_selects_config(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("history:\n  max_history_size: 9\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV, str(path))
    get_settings.cache_clear()
    try:
        assert get_settings().history.max_history_size == 9
    finally:
        get_settings.cache_clear()


def test_get_settings_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    try:
        assert get_settings() == Settings()
    finally:
        get_settings.cache_clear()
