from __future__ import annotations

from typing import Literal

from .rng import DeterministicRNG

NarrativeKind = Literal[
    "casualty",
    "replacement",
    "emergency",
    "expired_hostile",
    "expired_anomaly",
    "escalation",
    "ambient",
]

TEMPLATES: dict[str, tuple[str, ...]] = {
    "casualty": (
        "{designation} stopped responding at {depth}m. Tether slack.",
        "Audio feed from {designation} ends in static near {depth}m.",
        "{designation} reported footsteps below {depth}m, then nothing.",
        "Vitals for {designation} flatlined at {depth}m. Recovery not authorized.",
        "Camera lost {designation} on the landing at {depth}m.",
    ),
    "replacement": (
        "{count} reserve personnel sent down to fill the gaps.",
        "Reserve rotation: {count} units descend to hold the line.",
        "Command forwards {count} replacements into the stairwell.",
    ),
    "emergency": (
        "EMERGENCY PROTOCOL: reserves exhausted. All teams ordered topside.",
        "EMERGENCY PROTOCOL: casualty threshold breached. Stairwell evacuated.",
    ),
    "expired_hostile": (
        "SCP-087-1 signature at {depth}m withdrew into the dark.",
        "The face at {depth}m is gone. Contact window closed.",
    ),
    "expired_anomaly": (
        "Anomalous reading at {depth}m faded before collection.",
        "Residue at {depth}m dissipated. Sample lost.",
    ),
    "escalation": (
        "Crying intensifies around {depth}m. Investigators report pressure on the tether.",
        "SCP-087-1 manifestation at {depth}m is moving closer.",
        "Lights flicker at {depth}m. Investigation team requests permission to hold.",
    ),
    "ambient": (
        "Faint crying echoes from far below.",
        "The stairwell seems to extend further than yesterday's survey.",
        "A draft rises from the landing. It smells of wet concrete.",
        "Radio chatter drops to static for a moment, then returns.",
        "Someone counted one more step than the schematics allow.",
    ),
}


def compose(kind: NarrativeKind, rng: DeterministicRNG, **fields: object) -> str:
    templates = TEMPLATES.get(kind)
    if not templates:
        raise ValueError(f"No narrative templates for '{kind}'.")
    return rng.choice(templates).format(**fields)


def casualty_line(rng: DeterministicRNG, depth: float) -> str:
    designation = f"D-{rng.next_int(1000, 10000)}"
    nearby_depth = max(0, int(round(depth + rng.uniform(-15.0, 15.0))))
    return compose("casualty", rng, designation=designation, depth=nearby_depth)


def describe_encounter(kind: str) -> str:
    return "SCP-087-1 manifestation" if kind == "hostile" else "anomalous residue"
