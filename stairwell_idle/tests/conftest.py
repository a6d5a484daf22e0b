from __future__ import annotations

import logging
from typing import Callable, Iterator

import pytest

from stairwell_idle.core.engine import create_initial_state
from stairwell_idle.core.models import GameState
from stairwell_idle.core.rng import DeterministicRNG


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, str | None]] = []

    def record(self, message: str, severity: str, source_tag: str | None = None) -> None:
        self.events.append((message, severity, source_tag))

    def tagged(self, source_tag: str) -> list[tuple[str, str, str | None]]:
        return [event for event in self.events if event[2] == source_tag]

    def with_severity(self, severity: str) -> list[tuple[str, str, str | None]]:
        return [event for event in self.events if event[1] == severity]

    def messages(self) -> list[str]:
        return [event[0] for event in self.events]


class ScriptedRNG(DeterministicRNG):
    """Replays queued floats, then keeps returning the fallback."""

    def __init__(self, values: list[float], fallback: float = 0.99) -> None:
        super().__init__(seed="scripted", state=1, calls=0)
        self.values = list(values)
        self.fallback = fallback

    def next_float(self) -> float:
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        return self.fallback


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def scripted_rng() -> Callable[..., ScriptedRNG]:
    def make(*values: float, fallback: float = 0.99) -> ScriptedRNG:
        return ScriptedRNG(list(values), fallback=fallback)

    return make


@pytest.fixture
def state() -> GameState:
    return create_initial_state(4242)


@pytest.fixture
def check_invariants() -> Callable[[GameState], None]:
    def check(state: GameState) -> None:
        light = state.flashlight
        assert 0 <= light.charge <= light.capacity
        if light.charge == 0:
            assert light.on is False
        assert state.pool.count >= 0
        assert state.pool.assigned >= 0
        assert state.team.team_active == state.team.team_deployed
        if not state.team.team_active:
            assert not any(person.active for person in state.personnel)
        encounter_ids = {encounter.id for encounter in state.encounters}
        for encounter in state.encounters:
            if encounter.in_progress:
                assert encounter.progress_started_at is not None
                assert encounter.duration_ms is not None
        for person in state.personnel:
            assert person.blocked_by is None or person.blocked_by in encounter_ids

    return check


@pytest.fixture
def restore_loggers() -> Iterator[None]:
    names = ("stairwell_idle", "stairwell_idle.gameplay")
    saved = {
        name: (list(logging.getLogger(name).handlers), logging.getLogger(name).propagate, logging.getLogger(name).level)
        for name in names
    }
    yield
    for name, (handlers, propagate, level) in saved.items():
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            if handler not in handlers:
                handler.close()
        target.handlers[:] = handlers
        target.propagate = propagate
        target.setLevel(level)
