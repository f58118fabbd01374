from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ScoreResult:
    correct_count: int
    accuracy: float
    errors: int


def sanitize_response(raw: str) -> str:
    # ASCII digits only; targets are generated from 0-9.
    return "".join(ch for ch in str(raw) if "0" <= ch <= "9")


def score_response(target: str, response: str) -> ScoreResult:
    """Positional per-digit score.

    Missing trailing positions never match and extra trailing characters are
    ignored. An empty target scores 0 rather than dividing by zero.
    """

    n = len(target)
    correct = sum(1 for i in range(min(n, len(response))) if response[i] == target[i])
    accuracy = 0.0 if n == 0 else correct / n
    return ScoreResult(correct_count=correct, accuracy=float(accuracy), errors=max(0, n - correct))
