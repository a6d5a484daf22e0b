from __future__ import annotations

import pytest

from stairwell_idle.core.encounters import (
    abort,
    cull_expired,
    roll_spawn,
    spawn,
    spawn_chance,
    start_interaction,
    update_progress,
)
from stairwell_idle.core.personnel import move_all
from stairwell_idle.core.rng import DeterministicRNG
from stairwell_idle.core.save_system import snapshot_state


def test_spawn_scales_with_depth_and_kind(state) -> None:
    state.time_ms = 5000
    hostile = spawn(state, 300, "hostile")
    anomaly = spawn(state, 250, "anomaly")

    assert hostile.id == "enc_00001"
    assert anomaly.id == "enc_00002"
    assert hostile.required_units == 3
    assert hostile.reward == 225
    assert hostile.duration_ms == 11000
    assert hostile.casualty_probability == pytest.approx(0.3)
    assert hostile.expires_at == 35000
    assert hostile.blocking is True

    assert anomaly.required_units == 1
    assert anomaly.reward == 60
    assert anomaly.duration_ms == 5000
    assert anomaly.expires_at == 20000
    assert anomaly.casualty_probability < hostile.casualty_probability


def test_start_interaction_rejects_short_pool_without_mutation(state, sink) -> None:
    encounter = spawn(state, 300, "hostile")
    state.pool.count = 2
    before = snapshot_state(state)

    assert start_interaction(state, encounter.id, sink) is False

    assert snapshot_state(state) == before
    assert len(sink.events) == 1
    assert sink.events[0][1] == "warning"
    assert sink.events[0][2] == "encounter.denied"


def test_start_interaction_commits_units(state, sink) -> None:
    state.time_ms = 1200
    encounter = spawn(state, 300, "hostile")

    assert start_interaction(state, encounter.id, sink) is True
    assert state.pool.count == 7
    assert state.pool.assigned == 3
    assert encounter.in_progress is True
    assert encounter.progress_started_at == 1200
    assert encounter.committed_units == 3

    assert start_interaction(state, encounter.id, sink) is False
    assert start_interaction(state, "enc_missing", sink) is False
    assert state.pool.count == 7


def test_cull_removes_expired_without_reward(state, sink) -> None:
    state.time_ms = 10000
    encounter = spawn(state, 80, "hostile")
    encounter.expires_at = state.time_ms - 1

    removed = cull_expired(state, DeterministicRNG.from_seed(1), sink)

    assert [entry.id for entry in removed] == [encounter.id]
    assert state.encounters == []
    assert len(sink.events) == 1
    assert sink.events[0][2] == "encounter.expired"
    assert state.resources.exploration_energy == 0


def test_expiry_boundary_counts_as_expired(state, sink) -> None:
    state.time_ms = 10000
    boundary = spawn(state, 80, "anomaly")
    boundary.expires_at = 10000
    alive = spawn(state, 90, "anomaly")
    alive.expires_at = 10001

    cull_expired(state, DeterministicRNG.from_seed(2), sink)

    assert [entry.id for entry in state.encounters] == [alive.id]


def test_cull_keeps_in_progress_and_unblocks_orphans(state, sink) -> None:
    state.team.team_active = True
    scout = state.personnel_by_id("p1")
    scout.active = True
    working = spawn(state, 200, "anomaly")
    start_interaction(state, working.id, sink)
    blocker = spawn(state, 10, "anomaly")
    scout.status = "blocked"
    scout.blocked_by = blocker.id

    state.time_ms = 60000
    cull_expired(state, DeterministicRNG.from_seed(3), sink)

    assert [entry.id for entry in state.encounters] == [working.id]
    assert scout.status == "active"
    assert scout.blocked_by is None


def test_abort_returns_units_once(state, sink) -> None:
    encounter = spawn(state, 300, "hostile")
    start_interaction(state, encounter.id, sink)

    assert abort(state, encounter.id, sink) is True
    assert abort(state, encounter.id, sink) is False

    assert state.pool.count == 10
    assert state.pool.assigned == 0
    assert state.encounters == []
    assert len(sink.tagged("encounter.aborted")) == 1


def test_abort_requires_in_progress(state, sink) -> None:
    encounter = spawn(state, 300, "hostile")
    assert abort(state, encounter.id, sink) is False
    assert state.encounters == [encounter]


def test_completion_grants_depth_scaled_reward(state, sink, scripted_rng) -> None:
    encounter = spawn(state, 100, "anomaly")
    start_interaction(state, encounter.id, sink)
    state.time_ms = encounter.progress_started_at + encounter.duration_ms

    report = update_progress(state, scripted_rng(), sink)

    assert report.completed == [encounter.id]
    assert state.resources.exploration_energy == pytest.approx(50 * 1.1)
    assert state.encounters == []
    assert state.pool.count == 10
    assert state.pool.assigned == 0
    assert len(sink.tagged("encounter.completed")) == 1


def test_completion_casualty_is_logged_critical(state, sink, scripted_rng) -> None:
    encounter = spawn(state, 100, "anomaly")
    start_interaction(state, encounter.id, sink)
    state.time_ms = encounter.progress_started_at + encounter.duration_ms

    report = update_progress(state, scripted_rng(0.0), sink)

    assert report.casualties == 1
    assert state.pool.total_casualties == 1
    assert state.pool.count == 9
    assert state.pool.assigned == 0
    assert [event[1] for event in sink.tagged("casualty")] == ["critical"]


def test_hostile_escalation_mid_flight(state, sink, scripted_rng) -> None:
    encounter = spawn(state, 300, "hostile")
    start_interaction(state, encounter.id, sink)
    state.time_ms = encounter.progress_started_at + encounter.duration_ms * 0.6

    report = update_progress(state, scripted_rng(0.0), sink)

    assert report.escalations == 1
    assert report.casualties == 0
    assert [event[1] for event in sink.tagged("encounter.escalation")] == ["warning"]
    assert encounter.in_progress is True


def test_mid_flight_loss_shrinks_commitment(state, sink, scripted_rng) -> None:
    encounter = spawn(state, 300, "hostile")
    start_interaction(state, encounter.id, sink)
    state.time_ms = encounter.progress_started_at + encounter.duration_ms * 0.6

    # escalation misses, mid-flight casualty hits
    report = update_progress(state, scripted_rng(0.99, 0.0), sink)

    assert report.escalations == 0
    assert report.casualties == 1
    assert encounter.committed_units == 2
    assert state.pool.assigned == 2
    assert state.pool.total_casualties == 1
    assert len(sink.tagged("casualty")) == 1

    state.time_ms = encounter.progress_started_at + encounter.duration_ms
    report = update_progress(state, scripted_rng(0.99), sink)

    assert report.completed == [encounter.id]
    assert report.casualties == 0
    assert state.pool.count == 9
    assert state.pool.assigned == 0
    assert "2 units returned" in sink.tagged("encounter.completed")[-1][0]


def test_no_casualty_roll_before_halfway(state, sink, scripted_rng) -> None:
    encounter = spawn(state, 300, "hostile")
    start_interaction(state, encounter.id, sink)

    state.time_ms = encounter.progress_started_at + encounter.duration_ms * 0.2
    early = scripted_rng(0.0)
    assert update_progress(state, early, sink).casualties == 0
    assert early.calls == 0

    state.time_ms = encounter.progress_started_at + encounter.duration_ms * 0.4
    rng = scripted_rng(0.99, 0.0)
    report = update_progress(state, rng, sink)

    assert rng.calls == 1
    assert report.casualties == 0
    assert encounter.committed_units == 3


def test_anomaly_never_escalates(state, sink, scripted_rng) -> None:
    encounter = spawn(state, 100, "anomaly")
    start_interaction(state, encounter.id, sink)
    state.time_ms = encounter.progress_started_at + encounter.duration_ms * 0.6

    rng = scripted_rng(0.99)
    report = update_progress(state, rng, sink)
    assert report.escalations == 0
    assert rng.calls == 1

    # the first draw goes to the casualty roll, not escalation
    report = update_progress(state, scripted_rng(0.0), sink)
    assert report.escalations == 0
    assert report.casualties == 1
    assert sink.tagged("encounter.escalation") == []


def test_hostile_loss_injures_held_personnel(state, sink, scripted_rng) -> None:
    state.team.team_active = True
    scout = state.personnel_by_id("p1")
    scout.active = True
    encounter = spawn(state, 20, "hostile")
    move_all(state, 1.0, sink)
    assert scout.blocked_by == encounter.id

    start_interaction(state, encounter.id, sink)
    state.time_ms = encounter.progress_started_at + encounter.duration_ms
    report = update_progress(state, scripted_rng(0.0), sink)

    assert report.casualties == 1
    assert scout.status == "injured"
    assert scout.injured is True
    assert scout.blocked_by is None
    assert len(sink.tagged("personnel.injured")) == 1

def test_spawn_roll_only_while_team_active(state, sink, scripted_rng) -> None:
    assert roll_spawn(state, scripted_rng(0.0), sink) is None

    state.team.team_active = True
    for person in state.personnel:
        person.active = True
    encounter = roll_spawn(state, scripted_rng(0.0, 0.99, 0.5), sink)

    assert encounter is not None
    assert encounter.kind == "anomaly"
    assert encounter.depth == pytest.approx(state.current_depth + 80)
    assert len(sink.tagged("encounter.spawned")) == 1


def test_spawn_roll_respects_concurrency_cap(state, sink, scripted_rng) -> None:
    state.team.team_active = True
    for person in state.personnel:
        person.active = True
    for depth in (400, 500, 600):
        spawn(state, depth, "anomaly")

    assert roll_spawn(state, scripted_rng(0.0), sink, max_concurrent=3) is None
    assert len(state.encounters) == 3


def test_spawn_chance_rises_near_milestones() -> None:
    assert spawn_chance(0) == pytest.approx(0.08)
    assert spawn_chance(300) == pytest.approx(0.08 * 1.3)
    assert spawn_chance(480) == pytest.approx(0.08 * 1.48 * 1.5)
