from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Mapping

from .flashlight import apply_battery_upgrades
from .models import GameState

Currency = Literal["energy", "containment"]

BASE_POOL_CAPACITY = 50.0
BASE_POOL_GENERATION = 1.0
BASE_MORTALITY = 0.5
MIN_MORTALITY = 0.1


class UpgradeEffect(str, Enum):
    BATTERY_EFFICIENCY = "battery_efficiency"
    AUTO_RECHARGE = "auto_recharge"
    BEAM_SYNERGY = "beam_synergy"
    MOVEMENT_BONUS = "movement_bonus"
    ENERGY_YIELD = "energy_yield"
    MORTALITY_REDUCTION = "mortality_reduction"
    POOL_CAPACITY = "pool_capacity"
    POOL_GENERATION = "pool_generation"


class UpgradeTier(str, Enum):
    EQUIPMENT = "equipment"
    PERSONNEL = "personnel"
    RESEARCH = "research"
    FACILITY = "facility"


TIER_COST_MULTIPLIER: dict[UpgradeTier, float] = {
    UpgradeTier.EQUIPMENT: 1.07,
    UpgradeTier.PERSONNEL: 1.15,
    UpgradeTier.RESEARCH: 1.20,
    UpgradeTier.FACILITY: 1.25,
}


@dataclass(frozen=True, slots=True)
class UnlockRequirement:
    upgrade_id: str
    level: int = 1

    def is_met(self, levels: Mapping[str, int]) -> bool:
        return int(levels.get(self.upgrade_id, 0)) >= self.level


@dataclass(frozen=True, slots=True)
class UpgradeDefinition:
    id: str
    name: str
    description: str
    effect: UpgradeEffect
    tier: UpgradeTier
    base_cost: float
    magnitude: float
    currency: Currency = "energy"
    max_level: int | None = None
    unlock: UnlockRequirement | None = None


UPGRADES: tuple[UpgradeDefinition, ...] = (
    UpgradeDefinition(
        "advanced_battery",
        "Advanced Battery",
        "+1% flashlight capacity and -1% drain per level.",
        UpgradeEffect.BATTERY_EFFICIENCY,
        UpgradeTier.EQUIPMENT,
        base_cost=50,
        magnitude=0.01,
        max_level=100,
    ),
    UpgradeDefinition(
        "auto_recharge",
        "Auto-Recharge Circuit",
        "Recharges the flashlight while it is switched off.",
        UpgradeEffect.AUTO_RECHARGE,
        UpgradeTier.EQUIPMENT,
        base_cost=200,
        magnitude=5.0,
        max_level=10,
        unlock=UnlockRequirement("advanced_battery", 1),
    ),
    UpgradeDefinition(
        "tactical_modules",
        "Tactical Beam Modules",
        "Battery synergy: larger cell and leaner draw per level.",
        UpgradeEffect.BEAM_SYNERGY,
        UpgradeTier.EQUIPMENT,
        base_cost=500,
        magnitude=0.05,
        max_level=10,
        unlock=UnlockRequirement("advanced_battery", 3),
    ),
    UpgradeDefinition(
        "cross_training",
        "Cross-Training",
        "+15% personnel movement per level.",
        UpgradeEffect.MOVEMENT_BONUS,
        UpgradeTier.PERSONNEL,
        base_cost=150,
        magnitude=0.15,
        max_level=20,
    ),
    UpgradeDefinition(
        "scp_analysis",
        "SCP-087 Analysis",
        "+20% exploration energy yield per level.",
        UpgradeEffect.ENERGY_YIELD,
        UpgradeTier.RESEARCH,
        base_cost=400,
        magnitude=0.20,
        max_level=15,
        unlock=UnlockRequirement("cross_training", 1),
    ),
    UpgradeDefinition(
        "containment_drills",
        "Containment Drills",
        "-5% personnel-pool mortality per level.",
        UpgradeEffect.MORTALITY_REDUCTION,
        UpgradeTier.FACILITY,
        base_cost=250,
        magnitude=0.05,
        currency="containment",
        max_level=8,
    ),
    UpgradeDefinition(
        "pool_capacity",
        "Expand Holding Capacity",
        "+50 personnel-pool capacity per level.",
        UpgradeEffect.POOL_CAPACITY,
        UpgradeTier.FACILITY,
        base_cost=500,
        magnitude=50.0,
        currency="containment",
    ),
    UpgradeDefinition(
        "pool_generation",
        "Auto-Recruitment",
        "+0.5 personnel-pool units per minute per level.",
        UpgradeEffect.POOL_GENERATION,
        UpgradeTier.FACILITY,
        base_cost=300,
        magnitude=0.5,
        currency="containment",
        unlock=UnlockRequirement("pool_capacity", 1),
    ),
)

UPGRADE_BY_ID = {definition.id: definition for definition in UPGRADES}


def effect_level(state: GameState, effect: UpgradeEffect) -> int:
    return sum(state.upgrade_level(definition.id) for definition in UPGRADES if definition.effect == effect)


def effect_bonus(state: GameState, effect: UpgradeEffect) -> float:
    return sum(
        state.upgrade_level(definition.id) * definition.magnitude for definition in UPGRADES if definition.effect == effect
    )


def next_level_cost(state: GameState, upgrade_id: str) -> float | None:
    definition = UPGRADE_BY_ID.get(upgrade_id)
    if definition is None:
        return None
    owned = state.upgrade_level(upgrade_id)
    if definition.max_level is not None and owned >= definition.max_level:
        return None
    return float(math.floor(definition.base_cost * TIER_COST_MULTIPLIER[definition.tier] ** owned))


def _balance(state: GameState, currency: Currency) -> float:
    if currency == "containment":
        return state.resources.containment_points
    return state.resources.exploration_energy


def can_purchase(state: GameState, upgrade_id: str) -> tuple[bool, str]:
    definition = UPGRADE_BY_ID.get(upgrade_id)
    if definition is None:
        return False, "Unknown upgrade."
    if definition.unlock is not None and not definition.unlock.is_met(state.upgrades):
        required = UPGRADE_BY_ID[definition.unlock.upgrade_id]
        return False, f"Needs {required.name} level {definition.unlock.level}."
    cost = next_level_cost(state, upgrade_id)
    if cost is None:
        return False, "Already maxed."
    if _balance(state, definition.currency) < cost:
        return False, f"Need {cost:.0f} {definition.currency}."
    return True, "Ready."


def purchase_upgrade(state: GameState, upgrade_id: str) -> bool:
    ok, _ = can_purchase(state, upgrade_id)
    if not ok:
        return False
    definition = UPGRADE_BY_ID[upgrade_id]
    cost = float(next_level_cost(state, upgrade_id) or 0.0)
    if definition.currency == "containment":
        state.resources.containment_points = max(0.0, state.resources.containment_points - cost)
    else:
        state.resources.exploration_energy = max(0.0, state.resources.exploration_energy - cost)
    state.upgrades[upgrade_id] = state.upgrade_level(upgrade_id) + 1
    apply_upgrade_effects(state)
    return True


def movement_multiplier(state: GameState) -> float:
    return 1.0 + effect_bonus(state, UpgradeEffect.MOVEMENT_BONUS)


def energy_yield_bonus(state: GameState) -> float:
    return effect_bonus(state, UpgradeEffect.ENERGY_YIELD)


def apply_upgrade_effects(state: GameState) -> None:
    apply_battery_upgrades(
        state.flashlight,
        battery_level=effect_level(state, UpgradeEffect.BATTERY_EFFICIENCY),
        synergy_level=effect_level(state, UpgradeEffect.BEAM_SYNERGY),
        auto_recharge_level=effect_level(state, UpgradeEffect.AUTO_RECHARGE),
    )
    pool = state.pool
    pool.capacity = BASE_POOL_CAPACITY + effect_bonus(state, UpgradeEffect.POOL_CAPACITY)
    pool.generation_rate_per_minute = BASE_POOL_GENERATION + effect_bonus(state, UpgradeEffect.POOL_GENERATION)
    pool.mortality_rate = max(MIN_MORTALITY, BASE_MORTALITY - effect_bonus(state, UpgradeEffect.MORTALITY_REDUCTION))
