from __future__ import annotations

from dataclasses import dataclass

import pytest

from chunking_trainer.clock import TimerKind
from chunking_trainer.cognitive_core import RecallPhase, SeededRng
from chunking_trainer.config import DigitSpanConfig
from chunking_trainer.digit_span import SETTINGS_NOTICE, DigitSpanEngine, Notice, build_digit_span_engine
from chunking_trainer.results import SessionHistory
from chunking_trainer.sequence import DigitSequenceGenerator
from chunking_trainer.state_machine import EngineState


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _advance_to_response(clock: FakeClock, engine) -> None:
    clock.advance(3.05)
    engine.update()  # PRESENTING -> AWAITING_RESPONSE


def _advance_past_feedback(clock: FakeClock, engine) -> None:
    clock.advance(1.25)
    engine.update()  # SCORING/PHASE_TRANSITIONING -> PRESENTING (or -> IDLE on finish)


def _target(engine) -> str:
    assert engine.session is not None
    return engine.session.current_sequence


def _all_wrong(target: str) -> str:
    return "".join("1" if ch == "0" else "0" for ch in target)


def test_engine_digits_follow_seeded_stream() -> None:
    seed = 42
    clock = FakeClock()
    mirror = DigitSequenceGenerator(SeededRng(seed))
    expected = [mirror.next_sequence(5), mirror.next_sequence(6)]

    engine = build_digit_span_engine(clock=clock, seed=seed)
    engine.start()
    assert _target(engine) == expected[0]

    _advance_to_response(clock, engine)
    assert engine.submit(expected[0]) is True
    _advance_past_feedback(clock, engine)
    assert _target(engine) == expected[1]


def test_start_initializes_baseline_session_and_locks_input() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=1)
    assert engine.state is EngineState.IDLE
    assert engine.session is None
    assert engine.input_locked is False

    assert engine.start() is True
    s = engine.session
    assert s is not None
    assert engine.state is EngineState.PRESENTING
    assert s.phase is RecallPhase.BASELINE
    assert s.errors_in_phase == 0
    assert s.phase_round_count == 0
    assert s.rounds == []
    assert s.in_progress is True
    assert len(s.current_sequence) == 5
    assert engine.input_locked is True
    assert engine.fullscreen_requested is True
    assert engine.pending_timers() == (TimerKind.EXPOSURE,)


def test_start_while_in_progress_is_noop() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=1)
    engine.start()
    session = engine.session
    target = _target(engine)

    assert engine.start() is False
    assert engine.session is session
    assert _target(engine) == target


def test_exposure_window_then_response_window() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=3)
    engine.start()

    clock.advance(2.9)
    engine.update()
    assert engine.state is EngineState.PRESENTING
    assert engine.submit(_target(engine)) is False

    clock.advance(0.2)
    engine.update()
    assert engine.state is EngineState.AWAITING_RESPONSE
    assert engine.input_locked is False
    assert engine.session is not None and engine.session.awaiting_input is True
    assert engine.pending_timers() == ()

    # The response window has no timeout.
    clock.advance(600.0)
    engine.update()
    assert engine.state is EngineState.AWAITING_RESPONSE


def test_submit_records_round_and_schedules_advance() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=3)
    engine.start()
    _advance_to_response(clock, engine)
    target = _target(engine)

    clock.advance(0.75)
    assert engine.submit(target) is True
    s = engine.session
    assert s is not None
    assert engine.state is EngineState.SCORING
    assert len(s.rounds) == 1
    r = s.rounds[0]
    assert r.round_number == 1
    assert r.phase is RecallPhase.BASELINE
    assert r.uses_delimiters is False
    assert r.target_sequence == target
    assert r.response == target
    assert r.correct_count == 5
    assert r.accuracy == 1.0
    assert r.errors_in_round == 0
    assert r.response_time_s == pytest.approx(0.75)
    assert s.phase_round_count == 1
    assert s.awaiting_input is False
    assert engine.input_locked is True
    assert engine.pending_timers() == (TimerKind.ADVANCE,)
    assert engine.last_round is r

    clock.advance(1.1)
    engine.update()
    assert engine.state is EngineState.SCORING

    clock.advance(0.15)
    engine.update()
    assert engine.state is EngineState.PRESENTING
    assert len(_target(engine)) == 6


def test_duplicate_and_late_submissions_are_ignored() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=8)
    engine.start()
    _advance_to_response(clock, engine)

    assert engine.submit(_target(engine)) is True
    assert engine.submit(_target(engine)) is False
    assert engine.session is not None and len(engine.session.rounds) == 1


def test_malformed_submission_is_sanitized_and_penalized() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=8)
    engine.start()
    _advance_to_response(clock, engine)
    target = _target(engine)

    noisy = f"{target[:2]}-x {target[2:]}"
    assert engine.submit(noisy) is True
    r = engine.last_round
    assert r is not None
    assert r.response == target
    assert r.correct_count == 5


def test_empty_submission_scores_all_incorrect() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=8)
    engine.start()
    _advance_to_response(clock, engine)

    assert engine.submit("") is True
    r = engine.last_round
    assert r is not None
    assert r.response == ""
    assert r.correct_count == 0
    assert r.errors_in_round == 5


def test_none_submission_is_treated_as_empty() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=8)
    engine.start()
    _advance_to_response(clock, engine)
    assert engine.submit(None) is True
    assert engine.last_round is not None and engine.last_round.accuracy == 0.0


def test_errors_accumulate_across_rounds_until_threshold() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=11)
    engine.start()

    for expected_errors in (1, 2):
        _advance_to_response(clock, engine)
        target = _target(engine)
        engine.submit(_all_wrong(target[:1]) + target[1:])
        assert engine.session is not None
        assert engine.session.errors_in_phase == expected_errors
        assert engine.session.phase is RecallPhase.BASELINE
        assert engine.state is EngineState.SCORING
        _advance_past_feedback(clock, engine)

    _advance_to_response(clock, engine)
    target = _target(engine)
    engine.submit(_all_wrong(target[:1]) + target[1:])
    s = engine.session
    assert s is not None
    assert engine.state is EngineState.PHASE_TRANSITIONING
    assert s.phase is RecallPhase.CHUNKED
    assert s.errors_in_phase == 0
    assert s.phase_round_count == 0


def test_chunked_phase_restarts_length_ramp_and_uses_delimiters() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=13)
    engine.start()

    for expected_len in (5, 6, 7):
        assert len(_target(engine)) == expected_len
        _advance_to_response(clock, engine)
        engine.submit(_target(engine))
        _advance_past_feedback(clock, engine)

    _advance_to_response(clock, engine)
    engine.submit(_all_wrong(_target(engine)))
    assert engine.state is EngineState.PHASE_TRANSITIONING
    _advance_past_feedback(clock, engine)

    assert engine.state is EngineState.PRESENTING
    assert len(_target(engine)) == 5
    snap = engine.snapshot()
    assert snap.phase is RecallPhase.CHUNKED
    assert snap.display_text is not None and " • " in snap.display_text
    assert snap.display_text.replace(" • ", "") == _target(engine)

    _advance_to_response(clock, engine)
    engine.submit(_target(engine))
    r = engine.last_round
    assert r is not None
    assert r.uses_delimiters is True
    assert r.phase is RecallPhase.CHUNKED
    assert r.round_number == 5


def test_abort_releases_everything_and_is_idempotent() -> None:
    clock = FakeClock()
    history = SessionHistory()
    engine = build_digit_span_engine(clock=clock, seed=21, history=history)
    engine.start()
    _advance_to_response(clock, engine)

    assert engine.abort() is True
    assert engine.state is EngineState.IDLE
    assert engine.session is None
    assert engine.input_locked is False
    assert engine.fullscreen_requested is False
    assert engine.pending_timers() == ()
    assert len(history) == 0
    assert engine.snapshot().notice is Notice.ABORTED

    assert engine.abort() is False
    assert engine.state is EngineState.IDLE


def test_abort_during_feedback_pause_cancels_advance_timer() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=21)
    engine.start()
    _advance_to_response(clock, engine)
    engine.submit(_target(engine))
    assert engine.pending_timers() == (TimerKind.ADVANCE,)

    engine.abort()
    clock.advance(10.0)
    engine.update()
    assert engine.state is EngineState.IDLE
    assert engine.session is None


def test_open_settings_acknowledges_without_state_change() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=2)
    assert engine.open_settings() == SETTINGS_NOTICE
    assert engine.state is EngineState.IDLE

    engine.start()
    engine.open_settings()
    assert engine.state is EngineState.PRESENTING


def test_snapshot_exposes_progress_and_countdown() -> None:
    clock = FakeClock()
    engine = build_digit_span_engine(clock=clock, seed=5)

    idle = engine.snapshot()
    assert idle.state is EngineState.IDLE
    assert idle.phase is None
    assert idle.notice is Notice.READY
    assert idle.live_scores is None
    assert idle.history == ()
    assert idle.in_session is False

    engine.start()
    clock.advance(1.0)
    snap = engine.snapshot()
    assert snap.in_session
    assert snap.round_number == 1
    assert snap.phase_round == 1
    assert snap.rounds_completed == 0
    assert snap.sequence_length == 5
    assert snap.display_text == _target(engine)
    assert snap.accepting_input is False
    assert snap.input_locked is True
    assert snap.notice is Notice.MEMORIZE
    assert snap.exposure_remaining_s == pytest.approx(2.0)
    assert snap.error_limit == 3

    _advance_to_response(clock, engine)
    snap = engine.snapshot()
    assert snap.display_text is None
    assert snap.accepting_input is True
    assert snap.notice is Notice.RECALL
    assert snap.exposure_remaining_s is None

    engine.submit(_target(engine))
    snap = engine.snapshot()
    assert snap.notice is Notice.ROUND_SCORED
    assert snap.rounds_completed == 1
    assert snap.round_number == 1
    assert snap.live_scores is not None
    assert snap.live_scores.baseline_average_accuracy == 1.0
    assert snap.live_scores.chunked_average_accuracy is None


def test_custom_config_is_honored() -> None:
    clock = FakeClock()
    config = DigitSpanConfig(error_limit=1, exposure_s=1.0, advance_s=0.5, min_length=3, max_length=4)
    engine = DigitSpanEngine(clock=clock, seed=9, config=config)
    engine.start()
    assert len(_target(engine)) == 3

    clock.advance(1.0)
    engine.update()
    assert engine.state is EngineState.AWAITING_RESPONSE

    target = _target(engine)
    engine.submit(target[:-1] + ("1" if target[-1] == "0" else "0"))
    assert engine.state is EngineState.PHASE_TRANSITIONING
