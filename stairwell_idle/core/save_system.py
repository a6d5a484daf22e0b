from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from .encounters import (
    encounter_casualty_probability,
    encounter_duration_ms,
    encounter_reward,
    encounter_timeout_ms,
    required_units,
)
from .flashlight import apply_battery_upgrades
from .models import ROLES, SAVE_VERSION, GameState, SaveData
from .rng import seed_to_uint32
from .upgrades import UpgradeEffect, effect_level

DEFAULT_SEED = 1337
DEFAULT_SLOT_COUNT = 3

LEGACY_UPGRADE_IDS: dict[str, str] = {
    "advancedBattery": "advanced_battery",
    "autoRecharge": "auto_recharge",
    "tacticalModules": "tactical_modules",
    "crossTraining": "cross_training",
    "scpAnalysis": "scp_analysis",
    "containmentDrills": "containment_drills",
    "poolCapacity": "pool_capacity",
    "poolGeneration": "pool_generation",
}
LEGACY_HOSTILE_KINDS = {"087-1", "hostile", "entity"}
LEGACY_STATUSES = {"active", "blocked", "lost", "injured"}
LEGACY_ROOT_KEYS = {"scp087", "facility", "dClassInventory"}


class SaveFormatError(ValueError):
    pass


@dataclass(slots=True)
class SlotSummary:
    slot: int
    occupied: bool
    depth: float = 0.0
    exploration_energy: float = 0.0
    pool_count: float = 0.0
    tick_count: int = 0
    team_active: bool = False


def _coerce_dict(value: Any, default: dict[str, Any] | None = None) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {} if default is None else dict(default)


def _coerce_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _legacy_root(payload: dict[str, Any]) -> dict[str, Any]:
    wrapped = payload.get("state")
    if isinstance(wrapped, dict) and LEGACY_ROOT_KEYS & wrapped.keys():
        return wrapped
    return payload


def _legacy_flashlight(scp: dict[str, Any]) -> dict[str, Any]:
    flashlight = _coerce_dict(scp.get("flashlight"))
    if flashlight:
        return {
            "on": bool(flashlight.get("on", True)),
            "charge": max(0.0, _float(flashlight.get("charge"), 100.0)),
            "capacity": max(1.0, _float(flashlight.get("capacity"), 100.0)),
            "drain_per_second": max(0.0, _float(flashlight.get("drainPerSec"), 6.0)),
            "recharge_per_second": max(0.0, _float(flashlight.get("rechargePerSec"), 22.0)),
            "low_threshold": _float(flashlight.get("lowThreshold"), 20.0),
        }
    battery = max(0.0, _float(scp.get("flashlightBattery"), 100.0))
    return {"on": battery > 0, "charge": battery}


def _legacy_personnel(entry: Any, index: int) -> dict[str, Any]:
    raw = _coerce_dict(entry)
    role = raw.get("role") if raw.get("role") in ROLES else ROLES[index % len(ROLES)]
    status = raw.get("status") if raw.get("status") in LEGACY_STATUSES else "active"
    speed = _float(raw.get("speed", raw.get("speedFactor")), 1.0)
    return {
        "id": str(raw.get("id") or f"p{index + 1}"),
        "name": str(raw.get("name") or f"Operative {index + 1}"),
        "role": role,
        "depth": max(0.0, _float(raw.get("absoluteDepth", raw.get("depth")))),
        "level": max(1, _int(raw.get("level"), 1)),
        "experience": max(0.0, _float(raw.get("experience"))),
        "speed_factor": speed if speed > 0 else 1.0,
        "survival_rate": min(0.99, max(0.01, _float(raw.get("survivalRate"), 0.9))),
        "active": bool(raw.get("active", False)),
        "status": status,
        "blocked_by": raw.get("blockedBy"),
        "assigned_units": max(0.0, _float(raw.get("assignedDClass"))),
    }


def _legacy_encounter(entry: Any, index: int, now: float) -> dict[str, Any] | None:
    raw = _coerce_dict(entry)
    if not raw:
        return None
    kind_raw = raw.get("kind", raw.get("type"))
    kind = "hostile" if kind_raw in LEGACY_HOSTILE_KINDS else "anomaly"
    depth = max(0.0, _float(raw.get("absoluteDepth", raw.get("position"))))
    expires_at = max(0.0, _float(raw.get("expiresAt"), now + encounter_timeout_ms(kind)))
    in_progress = bool(raw.get("inProgress", False))
    needed = max(1, _int(raw.get("requiredDClass"), required_units(kind, depth)))
    started = raw.get("progressStarted")
    duration = _float(raw.get("duration"), 0.0)
    return {
        "id": str(raw.get("id") or f"enc_legacy_{index:03d}"),
        "kind": kind,
        "depth": depth,
        "reward": max(0.0, _float(raw.get("rewardPE"), encounter_reward(kind, depth))),
        "created_at": max(0.0, expires_at - encounter_timeout_ms(kind)),
        "expires_at": expires_at,
        "blocking": bool(raw.get("blocking", True)),
        "in_progress": in_progress,
        "progress_started_at": _float(started, now) if in_progress else None,
        "duration_ms": duration if duration > 0 else encounter_duration_ms(kind, depth),
        "casualty_probability": min(
            1.0, max(0.0, _float(raw.get("casualtyRate"), encounter_casualty_probability(kind, depth)))
        ),
        "required_units": needed,
        "committed_units": float(needed) if in_progress else 0.0,
    }


def _legacy_upgrades(raw: Any) -> dict[str, int]:
    levels: dict[str, int] = {}
    for legacy_id, value in _coerce_dict(raw).items():
        upgrade_id = LEGACY_UPGRADE_IDS.get(legacy_id)
        if upgrade_id is None:
            continue
        owned = value.get("owned", 0) if isinstance(value, dict) else value
        level = max(0, _int(owned))
        if level:
            levels[upgrade_id] = level
    return levels


def _migrate_v0_to_v1(payload: dict[str, Any]) -> dict[str, Any]:
    root = _legacy_root(payload)
    scp = _coerce_dict(root.get("scp087"))
    facility = _coerce_dict(root.get("facility"))
    inventory = _coerce_dict(root.get("dClassInventory"))
    seed = root.get("seed", DEFAULT_SEED)
    last_save = facility.get("lastSaveTime")
    now = max(0.0, _float(last_save))

    personnel = [_legacy_personnel(entry, index) for index, entry in enumerate(_coerce_list(scp.get("personnel")))]
    encounters: list[dict[str, Any]] = []
    for index, entry in enumerate(_coerce_list(scp.get("activeEncounters"))):
        encounter = _legacy_encounter(entry, index, now)
        if encounter is not None:
            encounters.append(encounter)
    state: dict[str, Any] = {
        "seed": seed,
        "time_ms": now,
        "rng_state": seed_to_uint32(seed),
        "encounter_seq": len(encounters),
        "resources": {
            "exploration_energy": max(0.0, _float(scp.get("paranoiaEnergy", scp.get("explorationEnergy")))),
            "containment_points": max(0.0, _float(facility.get("containmentPoints"))),
            "foundation_knowledge": max(0, _int(facility.get("foundationKnowledge"))),
        },
        "flashlight": _legacy_flashlight(scp),
        "personnel": personnel,
        "encounters": encounters,
        "team": {
            "team_active": bool(scp.get("teamActive", False)),
            "team_deployed": bool(scp.get("teamDeployed", scp.get("teamActive", False))),
        },
        "current_depth": max(0.0, _float(scp.get("currentDepth"))),
        "pool": {
            "count": max(0.0, _float(inventory.get("count"), 10.0)),
            "capacity": max(1.0, _float(inventory.get("capacity"), 50.0)),
            "generation_rate_per_minute": max(0.0, _float(inventory.get("generationRate"), 1.0)),
            "assigned": max(0.0, _float(inventory.get("assigned"))),
            "mortality_rate": min(0.99, max(0.01, _float(inventory.get("mortalityRate"), 0.5))),
            "total_casualties": max(0, _int(inventory.get("totalCasualties"))),
            "total_recruited": max(0, _int(inventory.get("totalRecruited"))),
        },
        "upgrades": _legacy_upgrades(scp.get("upgrades")),
        "last_save_time_ms": now if last_save is not None else None,
    }
    return {"save_version": 1, "state": state}


def _migrate_v1_to_v2(payload: dict[str, Any]) -> dict[str, Any]:
    state = _coerce_dict(payload.get("state"))
    team = _coerce_dict(state.get("team"))
    active = bool(team.get("team_active", False))
    deployed = bool(team.get("team_deployed", active))
    state["team"] = {"team_active": active and deployed}
    state.pop("current_depth", None)
    payload["state"] = state
    payload["save_version"] = 2
    return payload


MIGRATION_STEPS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
    1: _migrate_v1_to_v2,
}


def _fill_required(payload: dict[str, Any]) -> dict[str, Any]:
    state = _coerce_dict(payload.get("state"))
    state.setdefault("seed", DEFAULT_SEED)
    if not state.get("rng_state"):
        state["rng_state"] = seed_to_uint32(state["seed"])
    payload["state"] = state
    return payload


def migrate_save(payload: Any) -> dict[str, Any]:
    data = _coerce_dict(payload)
    version_raw = data.get("save_version")
    try:
        version = int(version_raw) if version_raw is not None else 0
    except (TypeError, ValueError):
        version = 0
    version = max(0, min(SAVE_VERSION, version))

    while version < SAVE_VERSION:
        step = MIGRATION_STEPS.get(version)
        if step is None:
            raise ValueError(f"No migration step defined from version {version}.")
        data = step(data)
        version = int(data.get("save_version", version + 1))
    data["save_version"] = SAVE_VERSION
    return _fill_required(data)


def snapshot_state(state: GameState) -> dict[str, Any]:
    return SaveData(save_version=SAVE_VERSION, state=state).model_dump(mode="json")


def restore_state(payload: Any) -> GameState:
    if not isinstance(payload, dict):
        raise SaveFormatError(f"Save payload must be an object, got {type(payload).__name__}.")
    legacy = payload.get("save_version") is None
    try:
        data = SaveData.model_validate(migrate_save(json.loads(json.dumps(payload))))
    except ValidationError as exc:
        raise SaveFormatError(f"Save payload failed validation: {exc.error_count()} error(s).") from exc
    if legacy:
        apply_battery_upgrades(
            data.state.flashlight,
            battery_level=effect_level(data.state, UpgradeEffect.BATTERY_EFFICIENCY),
            synergy_level=effect_level(data.state, UpgradeEffect.BEAM_SYNERGY),
            auto_recharge_level=effect_level(data.state, UpgradeEffect.AUTO_RECHARGE),
        )
    return data.state


class SlotStorage:
    def __init__(self, saves_dir: Path, slot_count: int = DEFAULT_SLOT_COUNT) -> None:
        self.saves_dir = saves_dir
        self.slot_ids = tuple(range(1, max(1, int(slot_count)) + 1))
        self.saves_dir.mkdir(parents=True, exist_ok=True)

    def _slot_path(self, slot: int) -> Path:
        return self.saves_dir / f"slot{slot}.json"

    def slot_exists(self, slot: int) -> bool:
        return self._slot_path(slot).exists()

    def save_slot(self, slot: int, state: GameState) -> Path:
        path = self._slot_path(slot)
        path.write_text(json.dumps(snapshot_state(state), indent=2), encoding="utf-8")
        return path

    def load_slot(self, slot: int) -> GameState | None:
        path = self._slot_path(slot)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise SaveFormatError(f"Slot {slot} is not valid JSON.") from exc
        return restore_state(payload)

    def delete_slot(self, slot: int) -> None:
        self._slot_path(slot).unlink(missing_ok=True)

    def list_slots(self) -> list[SlotSummary]:
        summaries: list[SlotSummary] = []
        for slot in self.slot_ids:
            try:
                state = self.load_slot(slot)
            except SaveFormatError:
                state = None
            if state is None:
                summaries.append(SlotSummary(slot=slot, occupied=False))
                continue
            summaries.append(
                SlotSummary(
                    slot=slot,
                    occupied=True,
                    depth=state.current_depth,
                    exploration_energy=state.resources.exploration_energy,
                    pool_count=state.pool.count,
                    tick_count=state.tick_count,
                    team_active=state.team.team_active,
                )
            )
        return summaries
