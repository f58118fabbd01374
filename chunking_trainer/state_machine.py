"""Transition table for the digit span engine.

``dispatch`` is pure: it maps (state, event) to the next state plus a list of
effects for the engine to apply. It never touches the session, the timers or
the clock, so every transition can be checked without a running engine.
Pairs that are not in the table are ignored (``accepted=False``); those come
from ordinary UI races such as a double Enter or a stale timer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .clock import TimerKind
from .cognitive_core import RecallPhase
from .config import DigitSpanConfig


class EngineState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    AWAITING_RESPONSE = "awaiting_response"
    SCORING = "scoring"
    PHASE_TRANSITIONING = "phase_transitioning"
    FINISHED = "finished"


class EventKind(str, Enum):
    START = "start"
    EXPOSURE_ELAPSED = "exposure_elapsed"
    SUBMIT = "submit"
    ROUND_SCORED = "round_scored"
    NEXT_ROUND_DUE = "next_round_due"
    FINISH_DUE = "finish_due"
    SETTLE = "settle"
    ABORT = "abort"


class PhaseOutcome(str, Enum):
    CONTINUE = "continue"
    UNLOCK_CHUNKED = "unlock_chunked"
    END_SESSION = "end_session"


class EffectKind(str, Enum):
    BEGIN_SESSION = "begin_session"
    PRESENT_ROUND = "present_round"
    ARM_TIMER = "arm_timer"
    OPEN_RESPONSE = "open_response"
    SCORE_RESPONSE = "score_response"
    ENTER_CHUNKED = "enter_chunked"
    FINISH_SESSION = "finish_session"
    TEARDOWN = "teardown"


@dataclass(frozen=True, slots=True)
class Event:
    kind: EventKind
    raw: str = ""
    outcome: PhaseOutcome | None = None


@dataclass(frozen=True, slots=True)
class Effect:
    kind: EffectKind
    timer: TimerKind | None = None
    delay_s: float = 0.0
    fires: EventKind | None = None


@dataclass(frozen=True, slots=True)
class Transition:
    next_state: EngineState
    effects: tuple[Effect, ...] = ()
    accepted: bool = True


ACTIVE_STATES = frozenset(
    {
        EngineState.PRESENTING,
        EngineState.AWAITING_RESPONSE,
        EngineState.SCORING,
        EngineState.PHASE_TRANSITIONING,
        EngineState.FINISHED,
    }
)


def evaluate_phase_exit(phase: RecallPhase, errors_in_phase: int, error_limit: int) -> PhaseOutcome:
    # Threshold counts missed digits, not failed rounds: one long miss can end a phase.
    if errors_in_phase < error_limit:
        return PhaseOutcome.CONTINUE
    if phase is RecallPhase.BASELINE:
        return PhaseOutcome.UNLOCK_CHUNKED
    return PhaseOutcome.END_SESSION


def _arm(kind: TimerKind, delay_s: float, fires: EventKind) -> Effect:
    return Effect(kind=EffectKind.ARM_TIMER, timer=kind, delay_s=float(delay_s), fires=fires)


def _present(config: DigitSpanConfig) -> tuple[Effect, ...]:
    return (
        Effect(EffectKind.PRESENT_ROUND),
        _arm(TimerKind.EXPOSURE, config.exposure_s, EventKind.EXPOSURE_ELAPSED),
    )


def dispatch(state: EngineState, event: Event, config: DigitSpanConfig) -> Transition:
    kind = event.kind

    if kind is EventKind.ABORT:
        if state is EngineState.IDLE:
            return Transition(state, accepted=False)
        return Transition(EngineState.IDLE, (Effect(EffectKind.TEARDOWN),))

    if state is EngineState.IDLE and kind is EventKind.START:
        return Transition(EngineState.PRESENTING, (Effect(EffectKind.BEGIN_SESSION),) + _present(config))

    if state is EngineState.PRESENTING and kind is EventKind.EXPOSURE_ELAPSED:
        return Transition(EngineState.AWAITING_RESPONSE, (Effect(EffectKind.OPEN_RESPONSE),))

    if state is EngineState.AWAITING_RESPONSE and kind is EventKind.SUBMIT:
        return Transition(EngineState.SCORING, (Effect(EffectKind.SCORE_RESPONSE),))

    if state is EngineState.SCORING and kind is EventKind.ROUND_SCORED:
        if event.outcome is PhaseOutcome.UNLOCK_CHUNKED:
            return Transition(
                EngineState.PHASE_TRANSITIONING,
                (
                    Effect(EffectKind.ENTER_CHUNKED),
                    _arm(TimerKind.ADVANCE, config.advance_s, EventKind.NEXT_ROUND_DUE),
                ),
            )
        if event.outcome is PhaseOutcome.END_SESSION:
            return Transition(
                EngineState.SCORING,
                (_arm(TimerKind.ADVANCE, config.finish_s, EventKind.FINISH_DUE),),
            )
        if event.outcome is PhaseOutcome.CONTINUE:
            return Transition(
                EngineState.SCORING,
                (_arm(TimerKind.ADVANCE, config.advance_s, EventKind.NEXT_ROUND_DUE),),
            )
        return Transition(state, accepted=False)

    if kind is EventKind.NEXT_ROUND_DUE and state in (EngineState.SCORING, EngineState.PHASE_TRANSITIONING):
        return Transition(EngineState.PRESENTING, _present(config))

    if state is EngineState.SCORING and kind is EventKind.FINISH_DUE:
        return Transition(EngineState.FINISHED, (Effect(EffectKind.FINISH_SESSION),))

    if state is EngineState.FINISHED and kind is EventKind.SETTLE:
        return Transition(EngineState.IDLE, (Effect(EffectKind.TEARDOWN),))

    return Transition(state, accepted=False)
