from __future__ import annotations

import pytest

from stairwell_idle.core.casualties import (
    ambient_casualty_rate,
    apply_casualties,
    casualty_cap,
    evaluate_ambient_risk,
    in_death_zone,
    process_casualties,
    roll_casualty_count,
)
from stairwell_idle.core.deployment import deploy, validate_and_repair
from stairwell_idle.core.encounters import spawn, start_interaction
from stairwell_idle.core.personnel import split_assignment
from stairwell_idle.core.rng import DeterministicRNG


def _field_team(state, count: float, assigned: float, depth: float) -> None:
    state.team.team_active = True
    state.pool.count = count
    state.pool.assigned = assigned
    for person in state.personnel:
        person.active = True
        person.depth = depth
    split_assignment(state)


def test_death_zone_bands() -> None:
    assert in_death_zone(500)
    assert in_death_zone(519.9)
    assert in_death_zone(1010)
    assert in_death_zone(1500)
    assert not in_death_zone(499.9)
    assert not in_death_zone(520)
    assert not in_death_zone(2000)


def test_ambient_rate_formula_and_override() -> None:
    assert ambient_casualty_rate(0, 0.5) == pytest.approx(0.025)
    assert ambient_casualty_rate(250, 0.5) == pytest.approx(0.05 * 0.5 * 1.25)
    assert ambient_casualty_rate(510, 0.1) == 0.15
    assert ambient_casualty_rate(1015, 0.9) == 0.15


def test_casualty_count_caps() -> None:
    assert casualty_cap(0) == 0
    assert casualty_cap(2) == 1
    assert casualty_cap(10) == 2
    assert roll_casualty_count(DeterministicRNG.from_seed(1), 0) == 0


def test_casualty_count_never_exceeds_assigned(state, sink) -> None:
    for seed in range(40):
        rng = DeterministicRNG.from_seed(seed)
        assigned = float(seed % 4)
        state.pool.assigned = assigned
        requested = roll_casualty_count(rng, assigned)
        assert requested <= max(0, assigned)
        lost = apply_casualties(state, requested + 3, 100, rng, sink)
        assert lost <= assigned
        assert state.pool.assigned >= 0


def test_apply_casualties_logs_one_critical_event_per_loss(state, sink) -> None:
    state.pool.assigned = 1
    lost = apply_casualties(state, 5, 120, DeterministicRNG.from_seed(9), sink)

    assert lost == 1
    assert state.pool.assigned == 0
    assert state.pool.total_casualties == 1
    assert [(event[1], event[2]) for event in sink.events] == [("critical", "casualty")]


def test_death_zone_losses_trigger_emergency_recall(state, sink) -> None:
    _field_team(state, count=1, assigned=2, depth=510)

    report = process_casualties(state, 2, 510, DeterministicRNG.from_seed(5), sink)

    assert report.lost == 2
    assert report.replaced == 1
    assert report.emergency_recall is True
    assert state.pool.assigned == 0
    assert state.pool.count == 1
    assert state.pool.total_casualties == 2
    assert state.team.team_active is False
    assert state.team.team_deployed is False
    assert not any(person.active for person in state.personnel)
    emergency = sink.tagged("emergency")
    assert len(emergency) == 1
    assert emergency[0][1] == "critical"
    assert "EMERGENCY PROTOCOL" in emergency[0][0]
    assert len(sink.tagged("casualty")) == 2


def test_forced_ambient_roll_in_death_zone(state, sink, scripted_rng, check_invariants) -> None:
    _field_team(state, count=1, assigned=2, depth=510)

    report = evaluate_ambient_risk(state, scripted_rng(0.14), sink)

    assert report is not None
    assert report.lost == 1
    assert report.emergency_recall is True
    assert state.team.team_active is False
    check_invariants(state)


def test_replacement_refills_from_pool(state, sink) -> None:
    _field_team(state, count=10, assigned=10, depth=100)

    report = process_casualties(state, 2, 100, DeterministicRNG.from_seed(8), sink)

    assert report.lost == 2
    assert report.replaced == 2
    assert report.emergency_recall is False
    assert state.pool.assigned == 10
    assert state.pool.count == 8
    assert [event[1] for event in sink.tagged("replacement")] == ["info"]
    shares = {round(person.assigned_units, 6) for person in state.personnel}
    assert shares == {round(10 / 3, 6)}


def test_no_ambient_risk_while_idle(state, sink) -> None:
    rng = DeterministicRNG.from_seed(3)
    assert evaluate_ambient_risk(state, rng, sink) is None
    assert rng.calls == 0


def test_encounter_loss_from_team_units_rebalances_per_head(state, sink, scripted_rng) -> None:
    deploy(state, sink)
    encounter = spawn(state, 300, "hostile")
    start_interaction(state, encounter.id, sink)
    # commitment already drained by earlier overflow; the team holds all 7
    encounter.committed_units = 0.0
    split_assignment(state)
    assert validate_and_repair(state, sink) == []
    sink.events.clear()

    assert apply_casualties(state, 1, 300, scripted_rng(), sink, encounter=encounter) == 1

    assert state.team_units() == 6
    assert sum(person.assigned_units for person in state.personnel) == pytest.approx(6)
    assert validate_and_repair(state, sink) == []
    assert sink.tagged("integrity") == []
