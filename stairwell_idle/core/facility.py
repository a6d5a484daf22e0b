from __future__ import annotations

import math
from typing import Literal

from .events import EventSink
from .models import GameState, PersonnelPool
from .upgrades import energy_yield_bonus

ThreatLevel = Literal["LOW", "MODERATE", "HIGH", "CRITICAL"]
PoolStatus = Literal["ok", "low", "critical"]

RECRUIT_BASE_COST = 50.0
RECRUIT_COST_PER_UNIT = 10.0
BULK_DISCOUNT = 0.8

DEPTH_ENERGY_RATE = 0.01
RESEARCH_LEVEL_BONUS = 0.25
KNOWLEDGE_YIELD_BONUS = 0.05
CONTAINMENT_CONVERSION = 0.01
CONTAINMENT_PER_KNOWLEDGE = 1000.0

LOW_POOL_THRESHOLD = 5.0


def recruit_cost(state: GameState, amount: int = 1) -> float:
    if amount < 1:
        raise ValueError("recruit_cost requires amount >= 1.")
    unit_cost = RECRUIT_BASE_COST + math.floor(state.pool.count) * RECRUIT_COST_PER_UNIT
    if amount == 1:
        return unit_cost
    return float(math.floor(unit_cost * amount * BULK_DISCOUNT))


def recruit(state: GameState, amount: int = 1) -> bool:
    if amount < 1:
        return False
    cost = recruit_cost(state, amount)
    if state.resources.containment_points < cost:
        return False
    if state.pool.count + amount > state.pool.capacity:
        return False
    state.resources.containment_points -= cost
    state.pool.count += amount
    state.pool.total_recruited += amount
    return True


def energy_yield_multiplier(state: GameState) -> float:
    research_levels = sum(
        person.level
        for person in state.personnel
        if person.active and person.role == "Research" and person.status != "lost"
    )
    return (
        1.0
        + RESEARCH_LEVEL_BONUS * research_levels
        + energy_yield_bonus(state)
        + KNOWLEDGE_YIELD_BONUS * state.resources.foundation_knowledge
    )


def accrue_resources(state: GameState) -> float:
    gained = 0.0
    if state.team.team_active:
        gained = (1.0 + state.current_depth * DEPTH_ENERGY_RATE) * energy_yield_multiplier(state)
        state.resources.exploration_energy += gained
    state.resources.containment_points += math.floor(state.resources.exploration_energy * CONTAINMENT_CONVERSION)
    return gained


def regenerate_pool(state: GameState, seconds: float = 1.0) -> float:
    pool = state.pool
    room = pool.capacity - pool.count
    if room <= 0 or seconds <= 0:
        return 0.0
    added = min(room, pool.generation_rate_per_minute / 60.0 * seconds)
    pool.count += added
    return added


def threat_level(mortality_rate: float) -> ThreatLevel:
    if mortality_rate >= 0.8:
        return "CRITICAL"
    if mortality_rate >= 0.6:
        return "HIGH"
    if mortality_rate >= 0.4:
        return "MODERATE"
    return "LOW"


def pool_status(pool: PersonnelPool) -> PoolStatus:
    if pool.count <= 0:
        return "critical"
    if pool.count < LOW_POOL_THRESHOLD:
        return "low"
    return "ok"


def knowledge_gain(state: GameState) -> int:
    return math.floor(state.resources.containment_points / CONTAINMENT_PER_KNOWLEDGE)


def reset_facility(state: GameState, sink: EventSink) -> GameState:
    """Fresh facility that keeps the clock, RNG stream and accumulated knowledge."""
    gained = knowledge_gain(state)
    fresh = GameState(
        seed=state.seed,
        time_ms=state.time_ms,
        tick_count=state.tick_count,
        rng_state=state.rng_state,
        rng_calls=state.rng_calls,
        encounter_seq=state.encounter_seq,
        last_save_time_ms=state.last_save_time_ms,
    )
    fresh.resources.foundation_knowledge = state.resources.foundation_knowledge + gained
    sink.record(
        f"Facility reset authorized. Foundation knowledge +{gained} (total {fresh.resources.foundation_knowledge}).",
        "critical",
        "facility.reset",
    )
    return fresh
