from __future__ import annotations

import math
from dataclasses import dataclass

from .deployment import force_emergency_recall, format_units
from .events import EventSink
from .models import Encounter, GameState
from .narrative import casualty_line, compose
from .personnel import split_assignment
from .rng import DeterministicRNG

BASE_AMBIENT_RATE = 0.05
DEPTH_RISK_SCALE = 500.0
DEPTH_RISK_WEIGHT = 0.5
DEATH_ZONE_RATE = 0.15
DEATH_ZONES: tuple[tuple[float, float], ...] = ((500.0, 520.0), (1000.0, 1020.0), (1500.0, 1520.0))

MAX_CASUALTIES_PER_ROLL = 2
CASUALTY_SHARE = 0.3
EMERGENCY_ASSIGNED_THRESHOLD = 2.0
EMERGENCY_COUNT_THRESHOLD = 1.0


@dataclass(slots=True)
class CasualtyReport:
    requested: int = 0
    lost: int = 0
    replaced: float = 0.0
    emergency_recall: bool = False


def in_death_zone(depth: float) -> bool:
    return any(low <= depth < high for low, high in DEATH_ZONES)


def ambient_casualty_rate(depth: float, mortality_rate: float) -> float:
    if in_death_zone(depth):
        return DEATH_ZONE_RATE
    return BASE_AMBIENT_RATE * mortality_rate * (1.0 + (depth / DEPTH_RISK_SCALE) * DEPTH_RISK_WEIGHT)


def casualty_cap(assigned: float) -> int:
    return min(MAX_CASUALTIES_PER_ROLL, math.ceil(assigned * CASUALTY_SHARE))


def roll_casualty_count(rng: DeterministicRNG, assigned: float) -> int:
    cap = casualty_cap(assigned)
    if cap <= 0:
        return 0
    return max(1, math.ceil(rng.next_float() * cap))


def _settle_commitments(state: GameState, encounter: Encounter | None, lost: int) -> None:
    if encounter is not None:
        encounter.committed_units = max(0.0, encounter.committed_units - lost)
    overflow = state.encounter_committed_units() - state.pool.assigned
    if overflow <= 0:
        return
    for entry in reversed(state.encounters):
        if overflow <= 0:
            break
        if not entry.in_progress or entry.committed_units <= 0:
            continue
        taken = min(entry.committed_units, overflow)
        entry.committed_units -= taken
        overflow -= taken


def apply_casualties(
    state: GameState,
    requested: int,
    depth: float,
    rng: DeterministicRNG,
    sink: EventSink,
    encounter: Encounter | None = None,
) -> int:
    """Sole path that removes assigned units. Clamps to what is assigned and logs one line per loss."""
    lost = min(int(requested), math.floor(state.pool.assigned))
    if lost <= 0:
        return 0
    team_before = state.team_units()
    state.pool.assigned = max(0.0, state.pool.assigned - lost)
    state.pool.total_casualties += lost
    _settle_commitments(state, encounter, lost)
    if state.team.team_active and state.team_units() != team_before:
        split_assignment(state)
    for _ in range(lost):
        sink.record(casualty_line(rng, depth), "critical", "casualty")
    return lost


def replace_casualties(state: GameState, lost: int, rng: DeterministicRNG, sink: EventSink) -> float:
    moved = min(float(lost), state.pool.count)
    if moved <= 0:
        return 0.0
    state.pool.count -= moved
    state.pool.assigned += moved
    sink.record(compose("replacement", rng, count=format_units(moved)), "info", "replacement")
    return moved


def emergency_threshold_reached(state: GameState) -> bool:
    return (
        state.team.team_active
        and state.pool.assigned <= EMERGENCY_ASSIGNED_THRESHOLD
        and state.pool.count <= EMERGENCY_COUNT_THRESHOLD
    )


def process_casualties(
    state: GameState,
    requested: int,
    depth: float,
    rng: DeterministicRNG,
    sink: EventSink,
) -> CasualtyReport:
    report = CasualtyReport(requested=requested)
    report.lost = apply_casualties(state, requested, depth, rng, sink)
    if report.lost <= 0:
        return report
    report.replaced = replace_casualties(state, report.lost, rng, sink)
    if emergency_threshold_reached(state):
        force_emergency_recall(state, rng, sink)
        report.emergency_recall = True
    elif state.team.team_active:
        split_assignment(state)
    return report


def evaluate_ambient_risk(state: GameState, rng: DeterministicRNG, sink: EventSink) -> CasualtyReport | None:
    if not state.team.team_active or state.pool.assigned <= 0:
        return None
    depth = state.current_depth
    if not rng.chance(ambient_casualty_rate(depth, state.pool.mortality_rate)):
        return None
    requested = roll_casualty_count(rng, state.pool.assigned)
    return process_casualties(state, requested, depth, rng, sink)
