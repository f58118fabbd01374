"""Text for the digit span screen, built from an engine snapshot.

No pygame here so the wording can be checked headlessly.
"""

from __future__ import annotations

import time

from .cognitive_core import RecallPhase
from .digit_span import DigitSpanSnapshot, Notice
from .results import SessionSummary, format_percent
from .sequence import format_with_delimiters
from .state_machine import EngineState


def phase_label(phase: RecallPhase | None) -> str:
    if phase is RecallPhase.CHUNKED:
        return "Chunked Recall · Delimiters"
    return "Baseline Recall · No Delimiters"


def progress_text(snap: DigitSpanSnapshot) -> str:
    if not snap.in_session:
        return "Awaiting launch"
    return f"Round {snap.phase_round} · Errors {snap.errors_in_phase}/{snap.error_limit}"


def stage_text(snap: DigitSpanSnapshot) -> str:
    """Large centre text: the digits, a recall prompt, or a status line."""

    if snap.display_text is not None:
        return snap.display_text
    if snap.state is EngineState.AWAITING_RESPONSE:
        return "Re-enter the sequence."
    if snap.state is EngineState.PHASE_TRANSITIONING:
        return "Chunked recall begins now."
    if snap.state is EngineState.SCORING and snap.last_round is not None:
        r = snap.last_round
        target = format_with_delimiters(r.target_sequence) if r.uses_delimiters else r.target_sequence
        return f"Target: {target}"
    if snap.notice is Notice.SESSION_COMPLETE:
        return "Session complete. Compare baseline and chunking-aided performance below."
    if snap.notice is Notice.ABORTED:
        return "Session aborted. Press Enter to restart."
    return "Press Enter to present the first sequence."


def feedback_text(snap: DigitSpanSnapshot) -> str:
    notice = snap.notice
    if notice is Notice.MEMORIZE:
        remaining = max(snap.error_limit - snap.errors_in_phase, 0)
        markers = " with chunk markers" if snap.phase is RecallPhase.CHUNKED else ""
        return f"Memorize {snap.sequence_length} digits{markers}. Errors remaining: {remaining}."
    if notice is Notice.RECALL:
        return "Accuracy is per digit. Partial recall still counts."
    if notice is Notice.ROUND_SCORED and snap.last_round is not None:
        r = snap.last_round
        return f"Score: {format_percent(r.accuracy)} accuracy ({r.correct_count}/{r.sequence_length})."
    if notice is Notice.PHASE_UNLOCKED:
        return "Baseline threshold hit. Delimiter-assisted digits start momentarily."
    if notice is Notice.PHASE_COMPLETE:
        return "Chunked phase complete. Preparing summary..."
    if notice is Notice.SESSION_COMPLETE:
        return "Launch again to collect another data point."
    if notice is Notice.ABORTED:
        return "Baseline vs chunking scores reset with the next session."
    secs = f"{snap.exposure_s:g}"
    return f"Each sequence appears for {secs} seconds. Three errors unlock chunked recall."


def phase_rule_text(snap: DigitSpanSnapshot) -> str:
    if not snap.in_session:
        return ""
    if snap.phase is RecallPhase.CHUNKED:
        return "Three errors end the chunked phase and finalize the session."
    return "Three errors unlock chunked digits. Perfect streaks continue indefinitely."


def scoreboard(scores: SessionSummary | None) -> list[tuple[str, str]]:
    if scores is None:
        return [("Baseline Avg", "—"), ("Chunked Avg", "—"), ("Overall Avg", "—")]
    return [
        ("Baseline Avg", format_percent(scores.baseline_average_accuracy)),
        ("Chunked Avg", format_percent(scores.chunked_average_accuracy)),
        ("Overall Avg", format_percent(scores.overall_average_accuracy)),
    ]


def history_line(summary: SessionSummary) -> str:
    clock = time.strftime("%H:%M", time.localtime(summary.timestamp))
    return (
        f"{clock}  Baseline: {format_percent(summary.baseline_average_accuracy)} · "
        f"Chunked: {format_percent(summary.chunked_average_accuracy)} · "
        f"Overall: {format_percent(summary.overall_average_accuracy)}"
    )
