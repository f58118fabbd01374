from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .clock import Clock, TimerKind, TimerSlots
from .cognitive_core import RecallPhase, RoundRecord, SeededRng
from .config import DigitSpanConfig
from .results import SessionHistory, SessionSummary, summarize
from .scoring import sanitize_response, score_response
from .sequence import DigitSequenceGenerator, format_with_delimiters
from .state_machine import (
    ACTIVE_STATES,
    Effect,
    EffectKind,
    EngineState,
    Event,
    EventKind,
    PhaseOutcome,
    dispatch,
    evaluate_phase_exit,
)

logger = logging.getLogger(__name__)

SETTINGS_NOTICE = "Chunking protocol settings (duration, delimiter style, scoring weights) are coming soon."


class Notice(str, Enum):
    """Which feedback line the UI should show."""

    READY = "ready"
    MEMORIZE = "memorize"
    RECALL = "recall"
    ROUND_SCORED = "round_scored"
    PHASE_UNLOCKED = "phase_unlocked"
    PHASE_COMPLETE = "phase_complete"
    SESSION_COMPLETE = "session_complete"
    ABORTED = "aborted"


@dataclass(slots=True)
class SessionState:
    """Mutable state of the active session. Owned by exactly one engine."""

    phase: RecallPhase = RecallPhase.BASELINE
    phase_round_count: int = 0
    errors_in_phase: int = 0
    current_sequence: str = ""
    awaiting_input: bool = False
    rounds: list[RoundRecord] = field(default_factory=list)
    in_progress: bool = True
    started_at_s: float = 0.0
    presented_at_s: float = 0.0
    response_opened_at_s: float | None = None

    @property
    def uses_delimiters(self) -> bool:
        return self.phase.uses_delimiters


@dataclass(frozen=True, slots=True)
class DigitSpanSnapshot:
    """View model for the UI (pure data)."""

    state: EngineState
    phase: RecallPhase | None
    round_number: int
    phase_round: int
    rounds_completed: int
    errors_in_phase: int
    error_limit: int
    sequence_length: int
    display_text: str | None
    accepting_input: bool
    input_locked: bool
    fullscreen_requested: bool
    notice: Notice
    last_round: RoundRecord | None
    exposure_remaining_s: float | None
    exposure_s: float
    live_scores: SessionSummary | None
    history: tuple[SessionSummary, ...]

    @property
    def in_session(self) -> bool:
        return self.state is not EngineState.IDLE


class DigitSpanEngine:
    """Baseline-then-chunked digit span protocol.

    - Deterministic: digit stream comes from an RNG seeded at construction.
    - Time is entirely via injected Clock; timers fire from ``update()``.
    - Calls made in the wrong state are ignored and return False.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: DigitSpanConfig | None = None,
        history: SessionHistory | None = None,
        wall_time: Callable[[], float] = time.time,
    ) -> None:
        self._config = config if config is not None else DigitSpanConfig()
        self._clock = clock
        self._seed = int(seed)
        self._wall_time = wall_time

        self._gen = DigitSequenceGenerator(SeededRng(self._seed))
        self._timers = TimerSlots(clock)
        self._history = (
            history if history is not None else SessionHistory(display_limit=self._config.history_display_limit)
        )

        self._state = EngineState.IDLE
        self._session: SessionState | None = None
        self._input_locked = False
        self._fullscreen_requested = False
        self._notice = Notice.READY
        self._last_round: RoundRecord | None = None
        self._last_summary: SessionSummary | None = None

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def config(self) -> DigitSpanConfig:
        return self._config

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def session(self) -> SessionState | None:
        return self._session

    @property
    def history(self) -> SessionHistory:
        return self._history

    @property
    def input_locked(self) -> bool:
        return self._input_locked

    @property
    def fullscreen_requested(self) -> bool:
        return self._fullscreen_requested

    @property
    def last_round(self) -> RoundRecord | None:
        return self._last_round

    @property
    def last_summary(self) -> SessionSummary | None:
        return self._last_summary

    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    def pending_timers(self) -> tuple[TimerKind, ...]:
        return self._timers.pending_kinds()

    def start(self) -> bool:
        return self._dispatch(Event(EventKind.START))

    def submit(self, raw: str | None) -> bool:
        """Submit a typed reconstruction. Returns True if it was scored."""

        return self._dispatch(Event(EventKind.SUBMIT, raw="" if raw is None else str(raw)))

    def abort(self) -> bool:
        return self._dispatch(Event(EventKind.ABORT))

    def open_settings(self) -> str:
        logger.info("Settings requested; protocol settings are not configurable yet")
        return SETTINGS_NOTICE

    def update(self) -> None:
        while True:
            timer = self._timers.pop_due()
            if timer is None:
                return
            assert isinstance(timer.event, Event)
            self._dispatch(timer.event)

    def snapshot(self) -> DigitSpanSnapshot:
        s = self._session
        showing = self._state in (EngineState.PRESENTING, EngineState.AWAITING_RESPONSE)

        display_text: str | None = None
        if s is not None and self._state is EngineState.PRESENTING:
            display_text = (
                format_with_delimiters(s.current_sequence, self._config.delimiter)
                if s.uses_delimiters
                else s.current_sequence
            )

        if s is not None:
            live_scores: SessionSummary | None = summarize(s.rounds, timestamp=self._wall_time())
        else:
            live_scores = self._last_summary

        return DigitSpanSnapshot(
            state=self._state,
            phase=None if s is None else s.phase,
            round_number=0 if s is None else len(s.rounds) + (1 if showing else 0),
            phase_round=0 if s is None else s.phase_round_count + (1 if showing else 0),
            rounds_completed=0 if s is None else len(s.rounds),
            errors_in_phase=0 if s is None else s.errors_in_phase,
            error_limit=self._config.error_limit,
            sequence_length=0 if s is None else len(s.current_sequence),
            display_text=display_text,
            accepting_input=s is not None and s.awaiting_input,
            input_locked=self._input_locked,
            fullscreen_requested=self._fullscreen_requested,
            notice=self._notice,
            last_round=self._last_round,
            exposure_remaining_s=self._timers.remaining_s(TimerKind.EXPOSURE),
            exposure_s=self._config.exposure_s,
            live_scores=live_scores,
            history=self._history.recent(),
        )

    def _dispatch(self, event: Event) -> bool:
        transition = dispatch(self._state, event, self._config)
        if not transition.accepted:
            logger.debug("Ignoring %s in state %s", event.kind.value, self._state.value)
            return False

        logger.debug("%s: %s -> %s", event.kind.value, self._state.value, transition.next_state.value)
        self._state = transition.next_state

        follow_ups: list[Event] = []
        for effect in transition.effects:
            follow_up = self._apply(effect, event)
            if follow_up is not None:
                follow_ups.append(follow_up)
        for follow_up in follow_ups:
            self._dispatch(follow_up)
        return True

    def _apply(self, effect: Effect, event: Event) -> Event | None:
        kind = effect.kind
        if kind is EffectKind.BEGIN_SESSION:
            self._begin_session()
        elif kind is EffectKind.PRESENT_ROUND:
            self._present_round()
        elif kind is EffectKind.ARM_TIMER:
            assert effect.timer is not None and effect.fires is not None
            self._timers.arm(effect.timer, effect.delay_s, Event(effect.fires))
        elif kind is EffectKind.OPEN_RESPONSE:
            self._open_response()
        elif kind is EffectKind.SCORE_RESPONSE:
            return self._score_response(event.raw)
        elif kind is EffectKind.ENTER_CHUNKED:
            self._enter_chunked()
        elif kind is EffectKind.FINISH_SESSION:
            return self._finish_session()
        elif kind is EffectKind.TEARDOWN:
            self._teardown(aborted=event.kind is EventKind.ABORT)
        return None

    def _begin_session(self) -> None:
        self._session = SessionState(started_at_s=self._clock.now())
        self._last_round = None
        self._last_summary = None
        self._fullscreen_requested = True
        self._input_locked = True
        logger.info("Digit span session started (seed=%d)", self._seed)

    def _present_round(self) -> None:
        s = self._session
        assert s is not None
        self._timers.cancel(TimerKind.EXPOSURE)
        length = self._config.sequence_length(s.phase_round_count)
        s.current_sequence = self._gen.next_sequence(length)
        s.awaiting_input = False
        s.presented_at_s = self._clock.now()
        s.response_opened_at_s = None
        self._input_locked = True
        self._notice = Notice.MEMORIZE

    def _open_response(self) -> None:
        s = self._session
        assert s is not None
        s.awaiting_input = True
        s.response_opened_at_s = self._clock.now()
        self._input_locked = False
        self._notice = Notice.RECALL

    def _score_response(self, raw: str) -> Event:
        s = self._session
        assert s is not None
        assert s.response_opened_at_s is not None

        response = sanitize_response(raw)
        result = score_response(s.current_sequence, response)
        answered_at_s = self._clock.now()

        record = RoundRecord(
            round_number=len(s.rounds) + 1,
            phase=s.phase,
            uses_delimiters=s.uses_delimiters,
            target_sequence=s.current_sequence,
            response=response,
            correct_count=result.correct_count,
            accuracy=result.accuracy,
            errors_in_round=result.errors,
            presented_at_s=s.presented_at_s,
            answered_at_s=answered_at_s,
            response_time_s=max(0.0, answered_at_s - s.response_opened_at_s),
        )
        s.rounds.append(record)
        s.phase_round_count += 1
        s.errors_in_phase += result.errors
        s.awaiting_input = False
        self._input_locked = True
        self._last_round = record

        outcome = evaluate_phase_exit(s.phase, s.errors_in_phase, self._config.error_limit)
        self._notice = {
            PhaseOutcome.CONTINUE: Notice.ROUND_SCORED,
            PhaseOutcome.UNLOCK_CHUNKED: Notice.PHASE_UNLOCKED,
            PhaseOutcome.END_SESSION: Notice.PHASE_COMPLETE,
        }[outcome]
        logger.debug(
            "Round %d (%s): %d/%d correct, errors in phase %d",
            record.round_number,
            record.phase.value,
            record.correct_count,
            record.sequence_length,
            s.errors_in_phase,
        )
        return Event(EventKind.ROUND_SCORED, outcome=outcome)

    def _enter_chunked(self) -> None:
        s = self._session
        assert s is not None
        s.phase = RecallPhase.CHUNKED
        s.errors_in_phase = 0
        s.phase_round_count = 0
        s.awaiting_input = False
        self._input_locked = True
        logger.info("Error limit reached in baseline after %d rounds; chunked recall unlocked", len(s.rounds))

    def _finish_session(self) -> Event:
        s = self._session
        assert s is not None
        self._timers.cancel_all()
        summary = summarize(
            s.rounds,
            timestamp=self._wall_time(),
            session_id=self._history.next_session_id(),
        )
        self._history.record(summary)
        self._last_summary = summary
        self._notice = Notice.SESSION_COMPLETE
        logger.info(
            "Digit span session %d finished: %d baseline / %d chunked rounds",
            summary.session_id,
            summary.baseline_rounds,
            summary.chunked_rounds,
        )
        return Event(EventKind.SETTLE)

    def _teardown(self, *, aborted: bool) -> None:
        # Timers first, so nothing can fire against a half-released session.
        self._timers.cancel_all()
        self._input_locked = False
        self._fullscreen_requested = False
        if self._session is not None:
            self._session.in_progress = False
            self._session.awaiting_input = False
        self._session = None
        if aborted:
            self._notice = Notice.ABORTED
            self._last_summary = None
            logger.info("Digit span session aborted")


def build_digit_span_engine(
    *,
    clock: Clock,
    seed: int,
    config: DigitSpanConfig | None = None,
    history: SessionHistory | None = None,
) -> DigitSpanEngine:
    return DigitSpanEngine(clock=clock, seed=seed, config=config, history=history)
