from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .cognitive_core import RoundRecord

HISTORY_DISPLAY_LIMIT = 5


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Per-phase average accuracy for one session.

    Averages are ``None`` when the phase produced no rounds, so an untouched
    phase is never reported as 0%.
    """

    baseline_average_accuracy: float | None
    chunked_average_accuracy: float | None
    overall_average_accuracy: float | None
    timestamp: float
    baseline_rounds: int = 0
    chunked_rounds: int = 0
    session_id: int = 0

    @property
    def total_rounds(self) -> int:
        return self.baseline_rounds + self.chunked_rounds


def average_accuracy(rounds: Iterable[RoundRecord]) -> float | None:
    values = [r.accuracy for r in rounds]
    if not values:
        return None
    return sum(values) / len(values)


def summarize(rounds: Sequence[RoundRecord], *, timestamp: float, session_id: int = 0) -> SessionSummary:
    baseline = [r for r in rounds if not r.uses_delimiters]
    chunked = [r for r in rounds if r.uses_delimiters]
    return SessionSummary(
        baseline_average_accuracy=average_accuracy(baseline),
        chunked_average_accuracy=average_accuracy(chunked),
        overall_average_accuracy=average_accuracy(rounds),
        timestamp=float(timestamp),
        baseline_rounds=len(baseline),
        chunked_rounds=len(chunked),
        session_id=int(session_id),
    )


class SessionHistory:
    """In-memory list of finished sessions, most recent first.

    Everything recorded is kept; ``recent()`` is what the UI shows.
    """

    def __init__(self, *, display_limit: int = HISTORY_DISPLAY_LIMIT) -> None:
        if display_limit <= 0:
            raise ValueError("display_limit must be > 0")
        self._display_limit = int(display_limit)
        self._entries: list[SessionSummary] = []
        self._last_id = 0

    def __len__(self) -> int:
        return len(self._entries)

    def next_session_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def record(self, summary: SessionSummary) -> None:
        self._entries.insert(0, summary)

    def recent(self, limit: int | None = None) -> tuple[SessionSummary, ...]:
        n = self._display_limit if limit is None else max(0, int(limit))
        return tuple(self._entries[:n])

    def all(self) -> tuple[SessionSummary, ...]:
        return tuple(self._entries)

    def latest(self) -> SessionSummary | None:
        return self._entries[0] if self._entries else None


def format_percent(value: float | None) -> str:
    if value is None or math.isnan(value):
        return "—"
    # Half-up, so 0.125 -> 13% rather than banker's 12%.
    return f"{int(math.floor(value * 100.0 + 0.5))}%"
