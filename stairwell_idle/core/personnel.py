from __future__ import annotations

from typing import Literal

from .events import EventSink
from .models import Encounter, GameState, Personnel, Role
from .narrative import describe_encounter
from .rng import DeterministicRNG
from .upgrades import movement_multiplier

UpgradeAttribute = Literal["level", "speed", "survival"]

BASE_SPEED = 5.0
DARK_SPEED_MULTIPLIER = 0.6
INJURED_SPEED_MULTIPLIER = 0.5
EXPERIENCE_RATE = 0.1
BLOCKING_WINDOW = 25.0

SURVIVAL_STEP = 0.05
SURVIVAL_CAP = 0.99
SPEED_STEP = 0.1
REPLACEMENT_COST = 100.0

ROLE_BASELINES: dict[Role, tuple[float, float]] = {
    "Scout": (1.2, 0.9),
    "Research": (0.8, 0.7),
    "Handler": (1.0, 0.95),
}

NAME_POOLS: dict[Role, tuple[str, ...]] = {
    "Scout": (
        "Operative Δ-7",
        "Operative Σ-2",
        "Pathfinder K. Vance",
        "Operative Λ-11",
        "Scout J. Okafor",
        "Operative Ψ-4",
    ),
    "Research": (
        "Tech A. Morse",
        "Dr. L. Halloran",
        "Tech R. Ibarra",
        "Dr. S. Kowalczyk",
        "Analyst P. Nguyen",
        "Tech E. Marsh",
    ),
    "Handler": (
        "Handler R-3",
        "Handler M-9",
        "Handler T. Reyes",
        "Handler V-1",
        "Warden C. Adeyemi",
        "Handler Q-6",
    ),
}


def experience_to_next_level(person: Personnel) -> float:
    return person.level * 100.0


def upgrade_cost(person: Personnel, attribute: UpgradeAttribute) -> float:
    if attribute == "level":
        return 50.0 + person.level * 25.0
    if attribute == "speed":
        return float(round(30 + person.speed_factor * 20))
    if attribute == "survival":
        return float(round(40 + person.survival_rate * 50))
    raise ValueError(f"Unknown personnel attribute '{attribute}'.")


def movement_speed(state: GameState) -> float:
    speed = BASE_SPEED * movement_multiplier(state)
    if not state.flashlight.is_lit:
        speed *= DARK_SPEED_MULTIPLIER
    return speed


def find_blocking_encounter(state: GameState, person: Personnel) -> Encounter | None:
    candidates = [
        encounter
        for encounter in state.encounters
        if encounter.blocking and not encounter.in_progress and abs(encounter.depth - person.depth) <= BLOCKING_WINDOW
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda encounter: (abs(encounter.depth - person.depth), encounter.id))


def _unblock(person: Personnel, sink: EventSink, announce: bool = True) -> None:
    if person.status == "blocked":
        person.status = person.unblocked_status
    person.blocked_by = None
    if announce:
        sink.record(f"Obstruction cleared. {person.name} resumes descent.", "info", "personnel.unblocked")


def release_orphaned_blocks(state: GameState, sink: EventSink) -> int:
    encounter_ids = {encounter.id for encounter in state.encounters}
    released = 0
    for person in state.personnel:
        if person.blocked_by is not None and person.blocked_by not in encounter_ids:
            _unblock(person, sink)
            released += 1
    return released


def detach_encounter(
    state: GameState, encounter_id: str, sink: EventSink, announce: bool = True
) -> Encounter | None:
    encounter = state.encounter_by_id(encounter_id)
    if encounter is None:
        return None
    for person in state.personnel:
        if person.blocked_by == encounter_id:
            _unblock(person, sink, announce)
    state.encounters = [entry for entry in state.encounters if entry.id != encounter_id]
    return encounter


def move_all(state: GameState, dt: float, sink: EventSink) -> float:
    if dt <= 0:
        return 0.0
    base_speed = movement_speed(state)
    travelled = 0.0
    for person in state.personnel:
        if not person.active or person.status == "lost":
            continue
        if person.is_blocked:
            if person.blocked_by is not None and state.encounter_by_id(person.blocked_by) is not None:
                continue
            _unblock(person, sink)

        blocker = find_blocking_encounter(state, person)
        if blocker is not None:
            person.status = "blocked"
            person.blocked_by = blocker.id
            sink.record(
                f"{person.name} halted by {describe_encounter(blocker.kind)} at {blocker.depth:.0f}m.",
                "warning",
                "personnel.blocked",
            )
            continue

        step = base_speed * person.speed_factor * dt
        if person.injured:
            step *= INJURED_SPEED_MULTIPLIER
        person.depth += step
        person.experience += step * EXPERIENCE_RATE
        travelled += step
    return travelled


def split_assignment(state: GameState) -> None:
    active = [person for person in state.personnel if person.active]
    share = state.team_units() / len(active) if active else 0.0
    for person in state.personnel:
        person.assigned_units = share if person.active else 0.0


def deactivate_all(state: GameState) -> None:
    for person in state.personnel:
        person.active = False
        person.assigned_units = 0.0
        if person.status == "blocked":
            person.status = "active"
        person.clear_injury()
        person.blocked_by = None


def upgrade_personnel(state: GameState, personnel_id: str, attribute: UpgradeAttribute) -> bool:
    person = state.personnel_by_id(personnel_id)
    if person is None or attribute not in ("level", "speed", "survival"):
        return False
    if attribute == "survival" and person.survival_rate >= SURVIVAL_CAP:
        return False
    cost = upgrade_cost(person, attribute)
    if state.resources.exploration_energy < cost:
        return False

    state.resources.exploration_energy -= cost
    if attribute == "level":
        person.level += 1
        person.experience = 0.0
    elif attribute == "speed":
        person.speed_factor = round(person.speed_factor + SPEED_STEP, 6)
    else:
        person.survival_rate = min(SURVIVAL_CAP, round(person.survival_rate + SURVIVAL_STEP, 6))
    return True


def _pick_replacement_name(rng: DeterministicRNG, role: Role, used_names: set[str]) -> str:
    pool = NAME_POOLS[role]
    available = [name for name in pool if name not in used_names]
    if available:
        return rng.choice(available)
    base = rng.choice(pool)
    suffix = 2
    candidate = f"{base} ({suffix})"
    while candidate in used_names:
        suffix += 1
        candidate = f"{base} ({suffix})"
    return candidate


def replace_personnel(state: GameState, personnel_id: str, rng: DeterministicRNG) -> bool:
    person = state.personnel_by_id(personnel_id)
    if person is None or state.resources.exploration_energy < REPLACEMENT_COST:
        return False

    state.resources.exploration_energy -= REPLACEMENT_COST
    entry_depth = state.current_depth if state.team.team_active else 0.0
    used_names = {entry.name for entry in state.personnel}
    speed, survival = ROLE_BASELINES[person.role]

    person.name = _pick_replacement_name(rng, person.role, used_names)
    person.level = 1
    person.experience = 0.0
    person.speed_factor = speed
    person.survival_rate = survival
    person.status = "active"
    person.injured = False
    person.blocked_by = None
    person.depth = entry_depth
    person.active = state.team.team_active
    split_assignment(state)
    return True
