from __future__ import annotations

import logging

from .events import EventSink
from .models import GameState
from .narrative import compose
from .personnel import deactivate_all, detach_encounter, split_assignment
from .rng import DeterministicRNG

DEFAULT_DEPLOY_MINIMUM = 4
FALLBACK_DURATION_MS = 5000.0
ASSIGNMENT_TOLERANCE = 1e-6

logger = logging.getLogger(__name__)


def format_units(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"


def _abandon_in_progress(state: GameState, sink: EventSink, announce: bool = True) -> int:
    abandoned = [encounter for encounter in state.encounters if encounter.in_progress]
    for encounter in abandoned:
        detach_encounter(state, encounter.id, sink, announce)
        if announce:
            sink.record(f"Operation at {encounter.depth:.0f}m abandoned during withdrawal.", "info", "encounter.abandoned")
    return len(abandoned)


def _return_assigned(state: GameState) -> float:
    returned = state.pool.assigned
    state.pool.count += returned
    state.pool.assigned = 0.0
    state.team.team_active = False
    deactivate_all(state)
    return returned


def deploy(state: GameState, sink: EventSink, minimum: int = DEFAULT_DEPLOY_MINIMUM) -> bool:
    if state.team.team_active:
        return False
    available = state.pool.count
    if available < minimum:
        shortfall = minimum - available
        sink.record(
            (
                f"Deployment denied: {minimum} D-Class units required, {format_units(available)} available "
                f"({format_units(shortfall)} short)."
            ),
            "warning",
            "deploy.denied",
        )
        return False
    roster = [person for person in state.personnel if person.can_deploy]
    if not roster:
        sink.record("Deployment denied: no operatives fit for duty. Replace lost personnel first.", "warning", "deploy.denied")
        return False

    state.pool.count -= minimum
    state.pool.assigned += minimum
    state.team.team_active = True
    for person in roster:
        person.active = True
    split_assignment(state)
    sink.record(f"Exploration team deployed into SCP-087 with {minimum} D-Class units.", "critical", "deploy")
    return True


def recall(state: GameState, sink: EventSink) -> bool:
    if not state.team.team_active and state.pool.assigned <= 0:
        return False
    _abandon_in_progress(state, sink)
    returned = _return_assigned(state)
    sink.record(f"Team recalled. {format_units(returned)} D-Class units returned to holding.", "warning", "recall")
    return True


def force_emergency_recall(state: GameState, rng: DeterministicRNG, sink: EventSink) -> float:
    for person in state.personnel:
        if person.active and rng.next_float() > person.survival_rate:
            person.status = "lost"
            person.blocked_by = None
            sink.record(f"{person.name} failed to report during evacuation. Listed as lost.", "critical", "personnel.lost")
    _abandon_in_progress(state, sink)
    returned = _return_assigned(state)
    sink.record(
        f"{compose('emergency', rng)} {format_units(returned)} D-Class units recovered.",
        "critical",
        "emergency",
    )
    logger.warning("Emergency recall at t=%.0fms; %s units recovered.", state.time_ms, format_units(returned))
    return returned


def _assignment_balanced(state: GameState) -> bool:
    active = [person for person in state.personnel if person.active]
    if any(person.assigned_units > 0 for person in state.personnel if not person.active):
        return False
    total = sum(person.assigned_units for person in active)
    if abs(total - state.team_units()) > ASSIGNMENT_TOLERANCE:
        return False
    shares = [person.assigned_units for person in active]
    return not shares or max(shares) - min(shares) <= ASSIGNMENT_TOLERANCE


def validate_and_repair(state: GameState, sink: EventSink) -> list[str]:
    fixes: list[str] = []
    pool = state.pool
    if pool.count < 0:
        pool.count = 0.0
        fixes.append("negative pool count reset")
    if pool.assigned < 0:
        pool.assigned = 0.0
        fixes.append("negative assignment reset")

    flashlight = state.flashlight
    if flashlight.charge > flashlight.capacity or flashlight.charge < 0:
        flashlight.charge = max(0.0, min(flashlight.capacity, flashlight.charge))
        fixes.append("flashlight charge clamped")
    if flashlight.charge <= 0 and flashlight.on:
        flashlight.on = False
        fixes.append("flashlight forced off at zero charge")

    for encounter in state.encounters:
        if encounter.in_progress and (encounter.progress_started_at is None or encounter.duration_ms is None):
            if encounter.progress_started_at is None:
                encounter.progress_started_at = state.time_ms
            if encounter.duration_ms is None:
                encounter.duration_ms = FALLBACK_DURATION_MS
            fixes.append(f"timing restored on {encounter.id}")

    encounter_ids = {encounter.id for encounter in state.encounters}
    for person in state.personnel:
        dangling = person.blocked_by is not None and person.blocked_by not in encounter_ids
        unreferenced = person.status == "blocked" and person.blocked_by is None
        if dangling or unreferenced:
            person.blocked_by = None
            person.status = person.unblocked_status
            fixes.append(f"obstruction reference cleared on {person.id}")

    if state.team.team_active and pool.assigned <= 0:
        state.team.team_active = False
        deactivate_all(state)
        fixes.append("team stood down with no assigned units")

    if not state.team.team_active:
        if any(person.active or person.assigned_units > 0 for person in state.personnel):
            deactivate_all(state)
            fixes.append("idle personnel deactivated")
        stray = state.team_units()
        if stray > 0:
            pool.count += stray
            pool.assigned -= stray
            fixes.append(f"{format_units(stray)} stray units returned")
    else:
        for person in state.personnel:
            if person.active and not person.can_deploy:
                person.active = False
                person.assigned_units = 0.0
                fixes.append(f"lost operative {person.id} deactivated")
        if not any(person.active for person in state.personnel):
            roster = [person for person in state.personnel if person.can_deploy]
            if roster:
                for person in roster:
                    person.active = True
                split_assignment(state)
                fixes.append("active team had no active personnel; roster reactivated")
            else:
                abandoned = _abandon_in_progress(state, sink, announce=False)
                _return_assigned(state)
                fixes.append("active team had no deployable personnel; team stood down")
                if abandoned:
                    fixes.append(f"{abandoned} in-progress operations abandoned")
        elif not _assignment_balanced(state):
            split_assignment(state)
            fixes.append("per-head assignment rebalanced")

    if fixes:
        sink.record(f"Integrity check corrected: {'; '.join(fixes)}.", "info", "integrity")
    return fixes
