from __future__ import annotations

import pytest

from stairwell_idle.core.flashlight import (
    apply_battery_upgrades,
    auto_recharge,
    auto_recharge_rate,
    begin_timed_recharge,
    complete_timed_recharge,
    drain,
    manual_charge,
    toggle,
)
from stairwell_idle.core.models import FlashlightState


def test_drain_to_empty_forces_light_off() -> None:
    light = FlashlightState(capacity=100, charge=100, on=True, drain_per_second=6)

    forced_off = drain(light, 20)

    assert forced_off is True
    assert light.charge == 0
    assert light.on is False


def test_drain_is_noop_while_off() -> None:
    light = FlashlightState(on=False, charge=40)
    assert drain(light, 5) is False
    assert light.charge == 40


def test_toggle_cannot_turn_on_empty_light() -> None:
    light = FlashlightState(charge=0)
    assert light.on is False

    assert toggle(light) is False
    assert light.on is False

    light.charge = 10
    assert toggle(light) is True
    assert light.charge == 10


def test_auto_recharge_requires_upgrade_and_light_off() -> None:
    light = FlashlightState(on=False, charge=50)
    assert auto_recharge(light, 1.0, owned_level=0) == 0.0
    assert light.charge == 50

    gained = auto_recharge(light, 1.0, owned_level=2)
    assert auto_recharge_rate(2) == 27
    assert gained == pytest.approx(27)
    assert light.charge == pytest.approx(77)

    auto_recharge(light, 10.0, owned_level=2)
    assert light.charge == light.capacity

    light.on = True
    light.charge = 10
    assert auto_recharge(light, 1.0, owned_level=3) == 0.0


def test_manual_charge_is_flat_and_capped() -> None:
    light = FlashlightState(charge=50)
    assert manual_charge(light) == 15
    assert light.charge == 65

    light.charge = 90
    assert manual_charge(light) == pytest.approx(10)
    assert light.charge == light.capacity


def test_timed_recharge_rejects_second_request() -> None:
    light = FlashlightState(on=False, charge=0)

    assert begin_timed_recharge(light, now=1000) is True
    assert begin_timed_recharge(light, now=2000) is False
    assert light.recharge_ready_at == 4000

    assert complete_timed_recharge(light, now=3999) is False
    assert complete_timed_recharge(light, now=4000) is True
    assert light.charge == light.capacity
    assert light.recharge_pending is False


def test_battery_upgrades_scale_capacity_and_drain() -> None:
    light = FlashlightState()
    apply_battery_upgrades(light, battery_level=10)
    assert light.capacity == pytest.approx(100 * 1.01**10)
    assert light.drain_per_second == pytest.approx(6 * 0.99**10)

    apply_battery_upgrades(light, battery_level=500)
    assert light.drain_per_second == 0.5


def test_synergy_only_applies_with_battery_owned() -> None:
    light = FlashlightState()
    apply_battery_upgrades(light, battery_level=0, synergy_level=2)
    assert light.capacity == pytest.approx(100)

    apply_battery_upgrades(light, battery_level=1, synergy_level=2)
    assert light.capacity == pytest.approx(101 * 1.10)
    assert light.drain_per_second == pytest.approx(6 * 0.99 * 0.97**2)
