from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from . import deployment, encounters, facility, flashlight, personnel, ticker, upgrades
from .events import EventLog, EventSink
from .facility import PoolStatus, ThreatLevel
from .models import GameState
from .personnel import UpgradeAttribute
from .rng import DeterministicRNG
from .save_system import restore_state, snapshot_state
from .settings import EngineSettings
from .ticker import TickReport

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


def create_initial_state(seed: int | str) -> GameState:
    rng = DeterministicRNG.from_seed(seed)
    return GameState(seed=seed, rng_state=rng.state, rng_calls=rng.calls)


class FacilityEngine:
    """Owns one GameState and exposes every player command and both tick cadences.

    All randomness is drawn from the RNG persisted in the state, so a snapshot
    taken between commands fully determines what happens next.
    """

    def __init__(
        self,
        state: GameState | None = None,
        settings: EngineSettings | None = None,
        sink: EventSink | None = None,
        wall_clock: Callable[[], float] | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.state = state if state is not None else create_initial_state(self.settings.base_seed)
        self.event_log: EventLog | None = None
        if sink is None:
            self.event_log = EventLog(max_entries=self.settings.event_log_max, clock=lambda: self.state.time_ms)
            sink = self.event_log
        elif isinstance(sink, EventLog):
            self.event_log = sink
        self.sink: EventSink = sink
        self.wall_clock = wall_clock or _wall_clock_ms

    @contextmanager
    def _state_rng(self) -> Iterator[DeterministicRNG]:
        rng = DeterministicRNG.resume(self.state)
        try:
            yield rng
        finally:
            rng.store(self.state)

    # Deployment

    def deploy(self) -> bool:
        return deployment.deploy(self.state, self.sink, self.settings.deploy_minimum)

    def recall(self) -> bool:
        return deployment.recall(self.state, self.sink)

    # Encounters

    def start_interaction(self, encounter_id: str) -> bool:
        return encounters.start_interaction(self.state, encounter_id, self.sink)

    def abort(self, encounter_id: str) -> bool:
        return encounters.abort(self.state, encounter_id, self.sink)

    # Personnel and facility purchases

    def upgrade_personnel(self, personnel_id: str, attribute: UpgradeAttribute) -> bool:
        return personnel.upgrade_personnel(self.state, personnel_id, attribute)

    def replace_personnel(self, personnel_id: str) -> bool:
        with self._state_rng() as rng:
            return personnel.replace_personnel(self.state, personnel_id, rng)

    def recruit(self, amount: int = 1) -> bool:
        return facility.recruit(self.state, amount)

    def purchase_upgrade(self, upgrade_id: str) -> bool:
        return upgrades.purchase_upgrade(self.state, upgrade_id)

    # Flashlight

    def toggle_flashlight(self) -> bool:
        return flashlight.toggle(self.state.flashlight)

    def manual_charge(self) -> float:
        return flashlight.manual_charge(self.state.flashlight)

    def begin_recharge(self) -> bool:
        return flashlight.begin_timed_recharge(self.state.flashlight, self.state.time_ms)

    # Cadences

    def fixed_tick(self) -> TickReport:
        with self._state_rng() as rng:
            return ticker.fixed_tick(self.state, rng, self.sink, self.settings)

    def fast_tick(self, dt: float) -> float:
        with self._state_rng() as rng:
            return ticker.fast_tick(self.state, dt, rng, self.sink, self.settings)

    def catch_up(self, now_ms: float | None = None) -> int:
        now = self.wall_clock() if now_ms is None else now_ms
        with self._state_rng() as rng:
            return ticker.catch_up(self.state, now, rng, self.sink, self.settings)

    def run(self, ticks: int, frames_per_tick: int = 0) -> list[TickReport]:
        reports: list[TickReport] = []
        frame_dt = self.settings.fixed_tick_seconds / frames_per_tick if frames_per_tick > 0 else 0.0
        for _ in range(max(0, ticks)):
            for _ in range(frames_per_tick):
                self.fast_tick(frame_dt)
            reports.append(self.fixed_tick())
        return reports

    # Persistence and prestige

    def snapshot(self) -> dict[str, Any]:
        self.state.last_save_time_ms = self.wall_clock()
        return snapshot_state(self.state)

    def restore(self, payload: Any) -> GameState:
        self.state = restore_state(payload)
        logger.info("Restored facility state at tick %s (seed=%s).", self.state.tick_count, self.state.seed)
        return self.state

    def reset_facility(self) -> int:
        gained = facility.knowledge_gain(self.state)
        self.state = facility.reset_facility(self.state, self.sink)
        logger.info("Facility reset; knowledge now %s.", self.state.resources.foundation_knowledge)
        return gained

    # Read-only views

    @property
    def current_depth(self) -> float:
        return self.state.current_depth

    def threat_level(self) -> ThreatLevel:
        return facility.threat_level(self.state.pool.mortality_rate)

    def pool_status(self) -> PoolStatus:
        return facility.pool_status(self.state.pool)
