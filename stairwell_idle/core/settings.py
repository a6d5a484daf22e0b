from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EngineSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    fixed_tick_ms: float = Field(default=1000.0, gt=0)
    max_fast_dt: float = Field(default=0.1, gt=0, le=1.0)
    max_offline_ticks: int = Field(default=28800, ge=0)
    event_log_max: int = Field(default=50, ge=1, le=1000)
    deploy_minimum: int = Field(default=4, ge=1)
    max_concurrent_encounters: int = Field(default=5, ge=1)
    ambient_event_chance: float = Field(default=0.02, ge=0.0, le=1.0)
    base_seed: int = 1337

    @property
    def fixed_tick_seconds(self) -> float:
        return self.fixed_tick_ms / 1000.0

    def as_dict(self) -> dict[str, Any]:
        return json.loads(self.model_dump_json())


def merge_settings(payload: dict[str, Any] | None) -> dict[str, Any]:
    if not isinstance(payload, dict):
        payload = {}
    return EngineSettings.model_validate(payload).as_dict()


def default_settings() -> dict[str, Any]:
    return EngineSettings().as_dict()


def load_settings(settings_path: Path) -> EngineSettings:
    """Reads settings JSON over the defaults and writes the normalized file back."""
    payload: Any = {}
    if settings_path.exists():
        try:
            payload = json.loads(settings_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            payload = {}
    settings = EngineSettings.model_validate(merge_settings(payload))
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(settings.as_dict(), indent=2), encoding="utf-8")
    return settings
