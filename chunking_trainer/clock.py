from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class TimerKind(str, Enum):
    EXPOSURE = "exposure"
    ADVANCE = "advance"


@dataclass(frozen=True, slots=True)
class PendingTimer:
    kind: TimerKind
    due_at_s: float
    event: object


class TimerSlots:
    """Deadline table with at most one pending timer per kind.

    Nothing fires by itself: the owner polls ``pop_due`` against its clock,
    usually once per frame from ``update()``.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._slots: dict[TimerKind, PendingTimer] = {}

    def arm(self, kind: TimerKind, delay_s: float, event: object) -> PendingTimer:
        """Schedule ``event`` after ``delay_s``, replacing any stale timer of the same kind."""

        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        timer = PendingTimer(kind=kind, due_at_s=self._clock.now() + float(delay_s), event=event)
        self._slots[kind] = timer
        return timer

    def cancel(self, kind: TimerKind) -> bool:
        return self._slots.pop(kind, None) is not None

    def cancel_all(self) -> None:
        self._slots.clear()

    def pending(self, kind: TimerKind) -> PendingTimer | None:
        return self._slots.get(kind)

    def pending_kinds(self) -> tuple[TimerKind, ...]:
        return tuple(t.kind for t in sorted(self._slots.values(), key=lambda t: t.due_at_s))

    def remaining_s(self, kind: TimerKind) -> float | None:
        timer = self._slots.get(kind)
        if timer is None:
            return None
        return max(0.0, timer.due_at_s - self._clock.now())

    def pop_due(self) -> PendingTimer | None:
        """Remove and return the earliest timer whose deadline has passed."""

        now = self._clock.now()
        due = [t for t in self._slots.values() if t.due_at_s <= now]
        if not due:
            return None
        timer = min(due, key=lambda t: t.due_at_s)
        del self._slots[timer.kind]
        return timer
