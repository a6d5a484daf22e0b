from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from stairwell_idle.core.settings import EngineSettings, default_settings, load_settings, merge_settings


def test_defaults() -> None:
    settings = EngineSettings()
    assert settings.fixed_tick_seconds == 1.0
    assert settings.deploy_minimum == 4
    assert default_settings()["max_offline_ticks"] == 28800


def test_merge_ignores_unknown_keys_and_non_dicts() -> None:
    merged = merge_settings({"deploy_minimum": 6, "window": "fullscreen"})
    assert merged["deploy_minimum"] == 6
    assert "window" not in merged
    assert merge_settings(None) == default_settings()


def test_merge_rejects_out_of_range_values() -> None:
    with pytest.raises(ValidationError):
        merge_settings({"event_log_max": 5000})


def test_load_settings_writes_normalized_file(tmp_path: Path) -> None:
    path = tmp_path / "config" / "settings.json"

    settings = load_settings(path)

    assert settings == EngineSettings()
    assert json.loads(path.read_text(encoding="utf-8")) == default_settings()


def test_load_settings_recovers_from_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{oops", encoding="utf-8")
    assert load_settings(path) == EngineSettings()

    path.write_text(json.dumps({"max_fast_dt": 0.05}), encoding="utf-8")
    assert load_settings(path).max_fast_dt == 0.05
