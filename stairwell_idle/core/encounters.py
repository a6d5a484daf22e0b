from __future__ import annotations

import math
from dataclasses import dataclass, field

from .casualties import apply_casualties
from .deployment import format_units
from .events import EventSink
from .models import Encounter, EncounterKind, GameState
from .narrative import compose, describe_encounter
from .personnel import detach_encounter
from .rng import DeterministicRNG

HOSTILE_BASE_REWARD = 150.0
HOSTILE_REWARD_STEP = 25.0
ANOMALY_BASE_REWARD = 40.0
ANOMALY_REWARD_STEP = 10.0

HOSTILE_BASE_DURATION_MS = 8000.0
HOSTILE_DURATION_STEP_MS = 1000.0
ANOMALY_BASE_DURATION_MS = 4000.0
ANOMALY_DURATION_STEP_MS = 500.0

HOSTILE_TIMEOUT_MS = 30000.0
ANOMALY_TIMEOUT_MS = 15000.0

DEPTH_BAND = 100.0
REWARD_DEPTH_SCALE = 1000.0

ESCALATION_CHANCE = 0.05
ESCALATION_WINDOW = (0.3, 0.9)
MIDFLIGHT_THRESHOLD = 0.5
MIDFLIGHT_CASUALTY_SCALE = 0.5

DEFAULT_MAX_CONCURRENT = 5
BASE_SPAWN_CHANCE = 0.08
SPAWN_DEPTH_SCALE = 1000.0
MILESTONE_INTERVAL = 500.0
MILESTONE_WINDOW = 50.0
MILESTONE_MULTIPLIER = 1.5
SPAWN_AHEAD_MIN = 40.0
SPAWN_AHEAD_MAX = 120.0
BASE_HOSTILE_SHARE = 0.2
MAX_HOSTILE_SHARE = 0.5

FAST_SPAWN_CHANCE = 0.025
FAST_SPAWN_STEP = 34.0
FAST_HOSTILE_SHARE = 0.2


@dataclass(slots=True)
class ProgressReport:
    completed: list[str] = field(default_factory=list)
    reward_granted: float = 0.0
    casualties: int = 0
    escalations: int = 0


def encounter_reward(kind: EncounterKind, depth: float) -> float:
    band = math.floor(depth / DEPTH_BAND)
    if kind == "hostile":
        return HOSTILE_BASE_REWARD + band * HOSTILE_REWARD_STEP
    return ANOMALY_BASE_REWARD + band * ANOMALY_REWARD_STEP


def encounter_duration_ms(kind: EncounterKind, depth: float) -> float:
    band = math.floor(depth / DEPTH_BAND)
    if kind == "hostile":
        return HOSTILE_BASE_DURATION_MS + band * HOSTILE_DURATION_STEP_MS
    return ANOMALY_BASE_DURATION_MS + band * ANOMALY_DURATION_STEP_MS


def encounter_casualty_probability(kind: EncounterKind, depth: float) -> float:
    if kind == "hostile":
        return min(0.6, 0.15 + depth / 2000.0)
    return min(0.3, 0.05 + depth / 4000.0)


def required_units(kind: EncounterKind, depth: float) -> int:
    if kind == "hostile":
        return max(2, math.floor(depth / 300.0) + 2)
    return max(1, math.floor(depth / 500.0) + 1)


def encounter_timeout_ms(kind: EncounterKind) -> float:
    return HOSTILE_TIMEOUT_MS if kind == "hostile" else ANOMALY_TIMEOUT_MS


def spawn(state: GameState, depth: float, kind: EncounterKind) -> Encounter:
    depth = max(0.0, depth)
    now = state.time_ms
    state.encounter_seq += 1
    encounter = Encounter(
        id=f"enc_{state.encounter_seq:05d}",
        kind=kind,
        depth=depth,
        reward=encounter_reward(kind, depth),
        created_at=now,
        expires_at=now + encounter_timeout_ms(kind),
        blocking=True,
        duration_ms=encounter_duration_ms(kind, depth),
        casualty_probability=encounter_casualty_probability(kind, depth),
        required_units=required_units(kind, depth),
    )
    state.encounters.append(encounter)
    return encounter


def hostile_share(depth: float) -> float:
    return min(MAX_HOSTILE_SHARE, BASE_HOSTILE_SHARE + depth / 5000.0)


def near_milestone(depth: float) -> bool:
    nearest = round(depth / MILESTONE_INTERVAL) * MILESTONE_INTERVAL
    return nearest > 0 and abs(depth - nearest) <= MILESTONE_WINDOW


def spawn_chance(depth: float) -> float:
    chance = BASE_SPAWN_CHANCE * (1.0 + depth / SPAWN_DEPTH_SCALE)
    if near_milestone(depth):
        chance *= MILESTONE_MULTIPLIER
    return min(1.0, chance)


def _announce(encounter: Encounter, sink: EventSink) -> None:
    severity = "warning" if encounter.kind == "hostile" else "info"
    sink.record(
        f"{describe_encounter(encounter.kind).capitalize()} detected at {encounter.depth:.0f}m.",
        severity,
        "encounter.spawned",
    )


def roll_spawn(
    state: GameState,
    rng: DeterministicRNG,
    sink: EventSink,
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
) -> Encounter | None:
    if not state.team.team_active or len(state.encounters) >= max_concurrent:
        return None
    depth = state.current_depth
    if not rng.chance(spawn_chance(depth)):
        return None
    kind: EncounterKind = "hostile" if rng.chance(hostile_share(depth)) else "anomaly"
    encounter = spawn(state, depth + rng.uniform(SPAWN_AHEAD_MIN, SPAWN_AHEAD_MAX), kind)
    _announce(encounter, sink)
    return encounter


def roll_fast_spawn(
    state: GameState,
    rng: DeterministicRNG,
    sink: EventSink,
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
) -> Encounter | None:
    if not state.flashlight.is_lit or len(state.encounters) >= max_concurrent:
        return None
    if not rng.chance(FAST_SPAWN_CHANCE):
        return None
    jitter = (rng.next_float() * 3.0 - 1.5) * FAST_SPAWN_STEP
    kind: EncounterKind = "hostile" if rng.chance(FAST_HOSTILE_SHARE) else "anomaly"
    encounter = spawn(state, state.current_depth + FAST_SPAWN_STEP + jitter, kind)
    _announce(encounter, sink)
    return encounter


def cull_expired(state: GameState, rng: DeterministicRNG, sink: EventSink) -> list[Encounter]:
    now = state.time_ms
    expired = [encounter for encounter in state.encounters if encounter.is_expired(now)]
    for encounter in expired:
        detach_encounter(state, encounter.id, sink)
        kind = "expired_hostile" if encounter.kind == "hostile" else "expired_anomaly"
        sink.record(compose(kind, rng, depth=int(encounter.depth)), "info", "encounter.expired")
    return expired


def start_interaction(state: GameState, encounter_id: str, sink: EventSink) -> bool:
    encounter = state.encounter_by_id(encounter_id)
    if encounter is None or encounter.in_progress:
        return False
    needed = encounter.required_units
    if state.pool.count < needed:
        sink.record(
            (
                f"Cannot engage {describe_encounter(encounter.kind)} at {encounter.depth:.0f}m: "
                f"{needed} D-Class units required, {format_units(state.pool.count)} available."
            ),
            "warning",
            "encounter.denied",
        )
        return False

    state.pool.count -= needed
    state.pool.assigned += needed
    encounter.committed_units = float(needed)
    encounter.progress_started_at = state.time_ms
    if encounter.duration_ms is None:
        encounter.duration_ms = encounter_duration_ms(encounter.kind, encounter.depth)
    encounter.in_progress = True
    sink.record(
        f"{needed} D-Class units committed to {describe_encounter(encounter.kind)} at {encounter.depth:.0f}m.",
        "info",
        "encounter.started",
    )
    return True


def _release_committed(state: GameState, encounter: Encounter) -> float:
    returned = min(encounter.committed_units, state.pool.assigned)
    state.pool.assigned -= returned
    state.pool.count += returned
    encounter.committed_units = 0.0
    return returned


def _complete(state: GameState, encounter: Encounter, rng: DeterministicRNG, sink: EventSink) -> tuple[float, int]:
    lost = 0
    if rng.chance(encounter.casualty_probability):
        lost = apply_casualties(state, 1, encounter.depth, rng, sink, encounter=encounter)
    reward = encounter.reward * (1.0 + encounter.depth / REWARD_DEPTH_SCALE)
    state.resources.exploration_energy += reward
    returned = _release_committed(state, encounter)

    held = [person for person in state.personnel if person.blocked_by == encounter.id]
    detach_encounter(state, encounter.id, sink)
    if lost and encounter.kind == "hostile":
        for person in held:
            person.injured = True
            person.status = person.unblocked_status
            sink.record(f"{person.name} injured during the engagement.", "warning", "personnel.injured")

    sink.record(
        (
            f"{describe_encounter(encounter.kind).capitalize()} at {encounter.depth:.0f}m resolved. "
            f"+{reward:.0f} exploration energy, {format_units(returned)} units returned."
        ),
        "info",
        "encounter.completed",
    )
    return reward, lost


def update_progress(state: GameState, rng: DeterministicRNG, sink: EventSink) -> ProgressReport:
    report = ProgressReport()
    now = state.time_ms
    low, high = ESCALATION_WINDOW
    for encounter in [entry for entry in state.encounters if entry.in_progress]:
        progress = encounter.progress(now)
        if progress >= 1.0:
            reward, lost = _complete(state, encounter, rng, sink)
            report.completed.append(encounter.id)
            report.reward_granted += reward
            report.casualties += lost
            continue
        if encounter.kind == "hostile" and low < progress < high and rng.chance(ESCALATION_CHANCE):
            sink.record(compose("escalation", rng, depth=int(encounter.depth)), "warning", "encounter.escalation")
            report.escalations += 1
        if progress > MIDFLIGHT_THRESHOLD and rng.chance(encounter.casualty_probability * MIDFLIGHT_CASUALTY_SCALE):
            report.casualties += apply_casualties(state, 1, encounter.depth, rng, sink, encounter=encounter)
    return report


def abort(state: GameState, encounter_id: str, sink: EventSink) -> bool:
    encounter = state.encounter_by_id(encounter_id)
    if encounter is None or not encounter.in_progress:
        return False
    returned = _release_committed(state, encounter)
    detach_encounter(state, encounter.id, sink)
    sink.record(
        f"Operation at {encounter.depth:.0f}m aborted. {format_units(returned)} D-Class units returned.",
        "warning",
        "encounter.aborted",
    )
    return True
