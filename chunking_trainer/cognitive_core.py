from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum


class RecallPhase(str, Enum):
    BASELINE = "baseline"
    CHUNKED = "chunked"

    @property
    def uses_delimiters(self) -> bool:
        return self is RecallPhase.CHUNKED


@dataclass(frozen=True, slots=True)
class RoundRecord:
    """One completed present/recall cycle. Built once at submission."""

    round_number: int
    phase: RecallPhase
    uses_delimiters: bool
    target_sequence: str
    response: str
    correct_count: int
    accuracy: float
    errors_in_round: int
    presented_at_s: float = 0.0
    answered_at_s: float = 0.0
    response_time_s: float = 0.0

    @property
    def sequence_length(self) -> int:
        return len(self.target_sequence)

    @property
    def is_perfect(self) -> bool:
        return self.errors_in_round == 0 and self.sequence_length > 0


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: list[str]) -> str:
        return self._rng.choice(seq)

    def digit(self) -> str:
        return str(self._rng.randint(0, 9))
