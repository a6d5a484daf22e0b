from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from stairwell_idle.core.engine import FacilityEngine, create_initial_state
from stairwell_idle.core.events import EventLog
from stairwell_idle.core.facility import threat_level
from stairwell_idle.core.save_system import SlotStorage, snapshot_state
from stairwell_idle.core.settings import EngineSettings
from stairwell_idle.services.logger import configure_logging

app = typer.Typer(add_completion=False, help="Run the stairwell simulation headlessly for balancing and testing.")
console = Console()

FEED_SIZE = 500


def _normalize_seed(raw_seed: str) -> int | str:
    try:
        return int(raw_seed)
    except ValueError:
        return raw_seed


def _state_signature_payload(engine: FacilityEngine, feed: EventLog) -> dict[str, Any]:
    return {
        "snapshot": snapshot_state(engine.state),
        "events_recorded": feed.total_recorded,
        "timeline": [entry.to_dict() for entry in feed.entries],
    }


def _manage_flashlight(engine: FacilityEngine) -> None:
    light = engine.state.flashlight
    if not light.on and light.charge <= 0 and not light.recharge_pending:
        engine.begin_recharge()
    elif not light.on and light.charge > light.low_threshold:
        engine.toggle_flashlight()


def _engage_encounters(engine: FacilityEngine) -> None:
    for encounter in list(engine.state.encounters):
        if not encounter.in_progress and engine.state.pool.count >= encounter.required_units:
            engine.start_interaction(encounter.id)


@app.command()
def main(
    seed: str = typer.Option("1337", "--seed", help="Seed value (int or string)."),
    ticks: int = typer.Option(120, "--ticks", min=1, help="Number of fixed ticks to run."),
    frames_per_tick: int = typer.Option(10, "--frames-per-tick", min=0, help="Fast-tick frames between fixed ticks."),
    auto_deploy: bool = typer.Option(True, "--auto-deploy/--no-auto-deploy", help="Redeploy whenever the team is idle."),
    interact: bool = typer.Option(True, "--interact/--no-interact", help="Engage encounters when the pool allows."),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Write latest.log and gameplay.log here."),
    save_dir: Optional[Path] = typer.Option(None, "--save-dir", help="Write the final snapshot to slot 1 here."),
) -> None:
    if log_dir is not None:
        configure_logging(log_dir, console=False)

    settings = EngineSettings()
    feed = EventLog(max_entries=FEED_SIZE)
    engine = FacilityEngine(
        state=create_initial_state(_normalize_seed(seed)),
        settings=settings,
        sink=feed,
        wall_clock=lambda: 0.0,
    )
    feed.bind_clock(lambda: engine.state.time_ms)

    frame_dt = settings.fixed_tick_seconds / frames_per_tick if frames_per_tick else 0.0
    peak_depth = 0.0
    emergencies = 0
    for _ in range(ticks):
        if auto_deploy and not engine.state.team.team_active:
            engine.deploy()
        for _ in range(frames_per_tick):
            _manage_flashlight(engine)
            engine.fast_tick(frame_dt)
        if interact:
            _engage_encounters(engine)
        report = engine.fixed_tick()
        emergencies += int(report.emergency_recall)
        peak_depth = max(peak_depth, engine.current_depth)

    for entry in feed.entries:
        console.print(entry.format(), markup=False)

    state = engine.state
    summary = Table(title="Simulation Summary")
    summary.add_column("Field", style="cyan", no_wrap=True)
    summary.add_column("Value", style="white")
    summary.add_row("Seed", str(state.seed))
    summary.add_row("Ticks", str(state.tick_count))
    summary.add_row("Sim time", f"{state.time_ms / 1000.0:.1f}s")
    summary.add_row("Team", "ACTIVE" if state.team.team_active else "IDLE")
    summary.add_row("Depth", f"{engine.current_depth:.1f}m (peak {peak_depth:.1f}m)")
    summary.add_row("Exploration energy", f"{state.resources.exploration_energy:.1f}")
    summary.add_row("Containment points", f"{state.resources.containment_points:.0f}")
    summary.add_row(
        "D-Class pool",
        f"count={state.pool.count:.1f}, assigned={state.pool.assigned:.1f}, casualties={state.pool.total_casualties}",
    )
    summary.add_row("Threat", threat_level(state.pool.mortality_rate))
    summary.add_row("Flashlight", f"{'on' if state.flashlight.on else 'off'} {state.flashlight.charge:.1f}/{state.flashlight.capacity:.0f}")
    summary.add_row("Encounters", str(len(state.encounters)))
    summary.add_row("Emergency recalls", str(emergencies))
    summary.add_row("Events", str(feed.total_recorded))
    console.print()
    console.print(summary)

    if save_dir is not None:
        path = SlotStorage(save_dir).save_slot(1, state)
        console.print(f"Saved snapshot to {path}")

    payload = _state_signature_payload(engine, feed)
    signature = hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()[:16]
    console.print(f"\n[bold green]Deterministic signature:[/bold green] {signature}")


if __name__ == "__main__":
    app()
