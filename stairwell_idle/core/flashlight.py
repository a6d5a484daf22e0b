from __future__ import annotations

from .models import FlashlightState

BASE_CAPACITY = 100.0
BASE_DRAIN_PER_SECOND = 6.0
MIN_DRAIN_PER_SECOND = 0.5
BASE_AUTO_RECHARGE = 22.0
AUTO_RECHARGE_PER_LEVEL = 5.0
MANUAL_CHARGE_AMOUNT = 15.0
TIMED_RECHARGE_MS = 3000.0

BATTERY_CAPACITY_GROWTH = 1.01
BATTERY_DRAIN_DECAY = 0.99
SYNERGY_CAPACITY_STEP = 0.05
SYNERGY_DRAIN_DECAY = 0.97


def enforce_empty_cutoff(flashlight: FlashlightState) -> bool:
    flashlight.charge = max(0.0, min(flashlight.capacity, flashlight.charge))
    if flashlight.charge <= 0 and flashlight.on:
        flashlight.on = False
        return True
    return False


def toggle(flashlight: FlashlightState) -> bool:
    flashlight.on = not flashlight.on
    enforce_empty_cutoff(flashlight)
    return flashlight.on


def drain(flashlight: FlashlightState, dt: float) -> bool:
    """Returns True when this drain emptied the battery and forced the light off."""
    if not flashlight.on or dt <= 0:
        return False
    flashlight.charge = max(0.0, flashlight.charge - flashlight.drain_per_second * dt)
    return enforce_empty_cutoff(flashlight)


def auto_recharge_rate(level: int) -> float:
    if level <= 0:
        return 0.0
    return BASE_AUTO_RECHARGE + (level - 1) * AUTO_RECHARGE_PER_LEVEL


def auto_recharge(flashlight: FlashlightState, dt: float, owned_level: int) -> float:
    if flashlight.on or owned_level <= 0 or dt <= 0:
        return 0.0
    before = flashlight.charge
    flashlight.charge = min(flashlight.capacity, flashlight.charge + auto_recharge_rate(owned_level) * dt)
    return flashlight.charge - before


def manual_charge(flashlight: FlashlightState) -> float:
    before = flashlight.charge
    flashlight.charge = min(flashlight.capacity, flashlight.charge + MANUAL_CHARGE_AMOUNT)
    return flashlight.charge - before


def begin_timed_recharge(flashlight: FlashlightState, now: float) -> bool:
    if flashlight.recharge_ready_at is not None:
        return False
    flashlight.recharge_ready_at = now + TIMED_RECHARGE_MS
    return True


def complete_timed_recharge(flashlight: FlashlightState, now: float) -> bool:
    if flashlight.recharge_ready_at is None or now < flashlight.recharge_ready_at:
        return False
    flashlight.charge = flashlight.capacity
    flashlight.recharge_ready_at = None
    return True


def apply_battery_upgrades(
    flashlight: FlashlightState,
    battery_level: int,
    synergy_level: int = 0,
    auto_recharge_level: int = 0,
) -> None:
    capacity = BASE_CAPACITY * (BATTERY_CAPACITY_GROWTH**battery_level)
    drain_rate = BASE_DRAIN_PER_SECOND * (BATTERY_DRAIN_DECAY**battery_level)
    if battery_level > 0 and synergy_level > 0:
        capacity *= 1.0 + SYNERGY_CAPACITY_STEP * synergy_level
        drain_rate *= SYNERGY_DRAIN_DECAY**synergy_level
    flashlight.capacity = capacity
    flashlight.drain_per_second = max(MIN_DRAIN_PER_SECOND, drain_rate)
    flashlight.recharge_per_second = auto_recharge_rate(auto_recharge_level) or BASE_AUTO_RECHARGE
    enforce_empty_cutoff(flashlight)
