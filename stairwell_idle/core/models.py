from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["Scout", "Research", "Handler"]
PersonnelStatus = Literal["active", "blocked", "lost", "injured"]
EncounterKind = Literal["anomaly", "hostile"]

SAVE_VERSION = 2

ROLES: tuple[Role, Role, Role] = ("Scout", "Research", "Handler")


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ResourcePools(StrictModel):
    exploration_energy: float = Field(default=0.0, ge=0)
    containment_points: float = Field(default=0.0, ge=0)
    foundation_knowledge: int = Field(default=0, ge=0)


class FlashlightState(StrictModel):
    on: bool = True
    charge: float = Field(default=100.0, ge=0)
    capacity: float = Field(default=100.0, gt=0)
    drain_per_second: float = Field(default=6.0, ge=0)
    recharge_per_second: float = Field(default=22.0, ge=0)
    low_threshold: float = 20.0
    recharge_ready_at: float | None = None

    @model_validator(mode="after")
    def enforce_charge_bounds(self) -> "FlashlightState":
        self.charge = min(self.charge, self.capacity)
        if self.charge <= 0:
            self.on = False
        return self

    @property
    def is_low(self) -> bool:
        return self.charge <= self.low_threshold

    @property
    def is_lit(self) -> bool:
        return self.on and self.charge > 0

    @property
    def recharge_pending(self) -> bool:
        return self.recharge_ready_at is not None


class Personnel(StrictModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: Role
    depth: float = Field(default=0.0, ge=0)
    level: int = Field(default=1, ge=1)
    experience: float = Field(default=0.0, ge=0)
    speed_factor: float = Field(default=1.0, gt=0)
    survival_rate: float = Field(default=0.9, gt=0, lt=1)
    active: bool = False
    status: PersonnelStatus = "active"
    blocked_by: str | None = None
    assigned_units: float = Field(default=0.0, ge=0)
    # Survives a block; `status` can only hold one of blocked/injured at a time.
    injured: bool = False

    @model_validator(mode="after")
    def sync_injury_flag(self) -> "Personnel":
        if self.status == "injured":
            self.injured = True
        return self

    @property
    def is_blocked(self) -> bool:
        return self.status == "blocked"

    @property
    def unblocked_status(self) -> PersonnelStatus:
        return "injured" if self.injured else "active"

    def clear_injury(self) -> None:
        self.injured = False
        if self.status == "injured":
            self.status = "active"

    @property
    def can_deploy(self) -> bool:
        return self.status != "lost"


class Encounter(StrictModel):
    id: str = Field(min_length=1)
    kind: EncounterKind
    depth: float = Field(ge=0)
    reward: float = Field(ge=0)
    created_at: float = Field(ge=0)
    expires_at: float = Field(ge=0)
    blocking: bool = True
    in_progress: bool = False
    progress_started_at: float | None = None
    duration_ms: float | None = Field(default=None, gt=0)
    casualty_probability: float = Field(default=0.0, ge=0, le=1)
    required_units: int = Field(default=1, ge=1)
    committed_units: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def validate_progress_timing(self) -> "Encounter":
        if self.in_progress and (self.progress_started_at is None or self.duration_ms is None):
            raise ValueError(f"Encounter '{self.id}' is in progress without a start time and duration.")
        return self

    def is_expired(self, now: float) -> bool:
        return not self.in_progress and self.expires_at <= now

    def progress(self, now: float) -> float:
        if not self.in_progress or self.progress_started_at is None or not self.duration_ms:
            return 0.0
        return max(0.0, (now - self.progress_started_at) / self.duration_ms)


class TeamState(StrictModel):
    team_active: bool = False

    @property
    def team_deployed(self) -> bool:
        return self.team_active


class PersonnelPool(StrictModel):
    count: float = Field(default=10.0, ge=0)
    capacity: float = Field(default=50.0, gt=0)
    generation_rate_per_minute: float = Field(default=1.0, ge=0)
    assigned: float = Field(default=0.0, ge=0)
    mortality_rate: float = Field(default=0.5, gt=0, lt=1)
    total_casualties: int = Field(default=0, ge=0)
    total_recruited: int = Field(default=0, ge=0)


def default_roster() -> list[Personnel]:
    return [
        Personnel(id="p1", name="Operative Δ-7", role="Scout", depth=0.0, speed_factor=1.2, survival_rate=0.9),
        Personnel(id="p2", name="Tech A. Morse", role="Research", depth=68.0, speed_factor=0.8, survival_rate=0.7),
        Personnel(id="p3", name="Handler R-3", role="Handler", depth=136.0, speed_factor=1.0, survival_rate=0.95),
    ]


class GameState(StrictModel):
    seed: int | str
    time_ms: float = Field(default=0.0, ge=0)
    tick_count: int = Field(default=0, ge=0)
    rng_state: int = Field(gt=0)
    rng_calls: int = Field(default=0, ge=0)
    encounter_seq: int = Field(default=0, ge=0)
    resources: ResourcePools = Field(default_factory=ResourcePools)
    flashlight: FlashlightState = Field(default_factory=FlashlightState)
    personnel: list[Personnel] = Field(default_factory=default_roster)
    encounters: list[Encounter] = Field(default_factory=list)
    team: TeamState = Field(default_factory=TeamState)
    pool: PersonnelPool = Field(default_factory=PersonnelPool)
    upgrades: dict[str, int] = Field(default_factory=dict)
    last_save_time_ms: float | None = None

    @model_validator(mode="after")
    def validate_references(self) -> "GameState":
        if not self.personnel:
            self.personnel = default_roster()
        encounter_ids = {encounter.id for encounter in self.encounters}
        for person in self.personnel:
            if person.blocked_by is not None and person.blocked_by not in encounter_ids:
                person.blocked_by = None
                if person.status == "blocked":
                    person.status = person.unblocked_status
        for upgrade_id, level in self.upgrades.items():
            if level < 0:
                raise ValueError(f"Upgrade level for '{upgrade_id}' cannot be negative.")
        return self

    @property
    def current_depth(self) -> float:
        moving = [person.depth for person in self.personnel if person.active and not person.is_blocked]
        if moving:
            return sum(moving) / len(moving)
        if self.personnel:
            return max(person.depth for person in self.personnel)
        return 0.0

    def personnel_by_id(self, personnel_id: str) -> Personnel | None:
        return next((person for person in self.personnel if person.id == personnel_id), None)

    def encounter_by_id(self, encounter_id: str) -> Encounter | None:
        return next((encounter for encounter in self.encounters if encounter.id == encounter_id), None)

    def encounter_committed_units(self) -> float:
        return sum(encounter.committed_units for encounter in self.encounters if encounter.in_progress)

    def team_units(self) -> float:
        return max(0.0, self.pool.assigned - self.encounter_committed_units())

    def upgrade_level(self, upgrade_id: str) -> int:
        return max(0, int(self.upgrades.get(upgrade_id, 0)))


class SaveData(StrictModel):
    save_version: int = Field(default=SAVE_VERSION, ge=1)
    state: GameState
