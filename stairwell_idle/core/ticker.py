from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from .casualties import evaluate_ambient_risk
from .deployment import validate_and_repair
from .encounters import cull_expired, roll_fast_spawn, roll_spawn, update_progress
from .events import EventSink
from .facility import accrue_resources, regenerate_pool
from .flashlight import auto_recharge, complete_timed_recharge, drain
from .models import GameState
from .narrative import compose
from .personnel import move_all
from .rng import DeterministicRNG
from .settings import EngineSettings

FAST_RECHARGE_SCALE = 0.7

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickReport:
    tick: int
    time_ms: float
    repairs: list[str] = field(default_factory=list)
    energy_gained: float = 0.0
    pool_regenerated: float = 0.0
    spawned: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    travelled: float = 0.0
    casualties: int = 0
    emergency_recall: bool = False


def _finish_timed_recharge(state: GameState, sink: EventSink) -> None:
    if complete_timed_recharge(state.flashlight, state.time_ms):
        sink.record("Flashlight recharge complete. Battery at full capacity.", "info", "flashlight.recharged")


def fixed_tick(state: GameState, rng: DeterministicRNG, sink: EventSink, settings: EngineSettings) -> TickReport:
    state.time_ms += settings.fixed_tick_ms
    state.tick_count += 1
    report = TickReport(tick=state.tick_count, time_ms=state.time_ms)

    report.repairs = validate_and_repair(state, sink)
    _finish_timed_recharge(state, sink)
    report.energy_gained = accrue_resources(state)
    report.pool_regenerated = regenerate_pool(state, settings.fixed_tick_seconds)

    spawned = roll_spawn(state, rng, sink, settings.max_concurrent_encounters)
    if spawned is not None:
        report.spawned.append(spawned.id)
    report.expired = [encounter.id for encounter in cull_expired(state, rng, sink)]

    progress = update_progress(state, rng, sink)
    report.completed = progress.completed
    report.casualties += progress.casualties

    report.travelled = move_all(state, settings.fixed_tick_seconds, sink)

    risk = evaluate_ambient_risk(state, rng, sink)
    if risk is not None:
        report.casualties += risk.lost
        report.emergency_recall = risk.emergency_recall

    if rng.chance(settings.ambient_event_chance):
        sink.record(compose("ambient", rng), "info", "ambient")
    return report


def fast_tick(state: GameState, dt: float, rng: DeterministicRNG, sink: EventSink, settings: EngineSettings) -> float:
    """Frame update. Returns the dt actually applied after capping.

    Frames fall inside the current fixed-tick window, so they read
    `state.time_ms` but never advance it; only `fixed_tick` moves the clock.
    """
    dt = min(max(0.0, dt), settings.max_fast_dt)
    if dt <= 0:
        return 0.0

    flashlight = state.flashlight
    if flashlight.on:
        if drain(flashlight, dt):
            sink.record("Flashlight battery depleted. Beam offline.", "warning", "flashlight.depleted")
    else:
        auto_recharge(flashlight, dt * FAST_RECHARGE_SCALE, state.upgrade_level("auto_recharge"))
    _finish_timed_recharge(state, sink)

    move_all(state, dt, sink)
    cull_expired(state, rng, sink)
    roll_fast_spawn(state, rng, sink, settings.max_concurrent_encounters)
    return dt


def offline_tick_count(last_save_ms: float | None, now_ms: float, tick_ms: float, cap: int) -> int:
    if last_save_ms is None or now_ms <= last_save_ms or tick_ms <= 0:
        return 0
    return min(math.floor((now_ms - last_save_ms) / tick_ms), cap)


def catch_up(
    state: GameState,
    now_ms: float,
    rng: DeterministicRNG,
    sink: EventSink,
    settings: EngineSettings,
) -> int:
    ticks = offline_tick_count(state.last_save_time_ms, now_ms, settings.fixed_tick_ms, settings.max_offline_ticks)
    for _ in range(ticks):
        fixed_tick(state, rng, sink, settings)
    state.last_save_time_ms = now_ms
    if ticks:
        hours = ticks * settings.fixed_tick_ms / 3_600_000.0
        sink.record(f"Facility systems ran unattended for {hours:.1f}h ({ticks} cycles).", "info", "offline")
        logger.info("Offline catch-up replayed %s fixed ticks.", ticks)
    return ticks
