"""Deterministic stairwell descent simulation."""

from .casualties import CasualtyReport, process_casualties
from .engine import FacilityEngine, create_initial_state
from .events import EventLog, EventSink, LogEntry
from .models import Encounter, FlashlightState, GameState, Personnel, PersonnelPool, SaveData
from .save_system import SaveFormatError, SlotStorage, migrate_save, restore_state, snapshot_state
from .settings import EngineSettings, load_settings, merge_settings
from .ticker import TickReport
from .upgrades import UPGRADES, UpgradeDefinition, UpgradeEffect

__all__ = [
    "CasualtyReport",
    "Encounter",
    "EngineSettings",
    "EventLog",
    "EventSink",
    "FacilityEngine",
    "FlashlightState",
    "GameState",
    "LogEntry",
    "Personnel",
    "PersonnelPool",
    "SaveData",
    "SaveFormatError",
    "SlotStorage",
    "TickReport",
    "UPGRADES",
    "UpgradeDefinition",
    "UpgradeEffect",
    "create_initial_state",
    "load_settings",
    "merge_settings",
    "migrate_save",
    "process_casualties",
    "restore_state",
    "snapshot_state",
]
