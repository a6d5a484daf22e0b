from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")

ZERO_STATE_FALLBACK = 0x6D2B79F5


class RNGCarrier(Protocol):
    seed: int | str
    rng_state: int
    rng_calls: int


def seed_to_uint32(seed: int | str) -> int:
    text = str(seed).encode("utf-8")
    digest = hashlib.sha256(text).hexdigest()
    value = int(digest[:8], 16)
    return value if value != 0 else 0x9E3779B9


@dataclass(slots=True)
class DeterministicRNG:
    """xorshift32 stream. `state` and `calls` round-trip through saves unchanged."""

    seed: int | str
    state: int
    calls: int = 0

    @classmethod
    def from_seed(cls, seed: int | str) -> "DeterministicRNG":
        return cls(seed=seed, state=seed_to_uint32(seed), calls=0)

    @classmethod
    def resume(cls, carrier: RNGCarrier) -> "DeterministicRNG":
        return cls(seed=carrier.seed, state=carrier.rng_state, calls=carrier.rng_calls)

    def store(self, carrier: RNGCarrier) -> None:
        carrier.rng_state = self.state
        carrier.rng_calls = self.calls

    def _next_uint32(self) -> int:
        value = self.state & 0xFFFFFFFF
        value ^= (value << 13) & 0xFFFFFFFF
        value ^= (value >> 17) & 0xFFFFFFFF
        value ^= (value << 5) & 0xFFFFFFFF
        value &= 0xFFFFFFFF
        self.state = value or ZERO_STATE_FALLBACK
        self.calls += 1
        return self.state

    def next_float(self) -> float:
        return self._next_uint32() / 2**32

    def next_int(self, low: int, high: int) -> int:
        """Integer in [low, high)."""
        if high <= low:
            raise ValueError(f"next_int requires high ({high}) > low ({low}).")
        return low + int(self.next_float() * (high - low))

    def chance(self, probability: float) -> bool:
        return self.next_float() < probability

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.next_float()

    def choice(self, options: Sequence[T]) -> T:
        if not options:
            raise ValueError("choice requires at least one option.")
        return options[self.next_int(0, len(options))]
