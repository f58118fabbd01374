from __future__ import annotations

from dataclasses import dataclass

from .results import HISTORY_DISPLAY_LIMIT
from .sequence import DEFAULT_DELIMITER


@dataclass(frozen=True, slots=True)
class DigitSpanConfig:
    error_limit: int = 3
    exposure_s: float = 3.0
    advance_s: float = 1.2
    finish_s: float = 0.9
    min_length: int = 5
    max_length: int = 12
    delimiter: str = DEFAULT_DELIMITER
    history_display_limit: int = HISTORY_DISPLAY_LIMIT

    def __post_init__(self) -> None:
        if self.error_limit <= 0:
            raise ValueError("error_limit must be > 0")
        if self.exposure_s <= 0.0:
            raise ValueError("exposure_s must be > 0")
        if self.advance_s < 0.0:
            raise ValueError("advance_s must be >= 0")
        if self.finish_s < 0.0:
            raise ValueError("finish_s must be >= 0")
        if self.min_length <= 0:
            raise ValueError("min_length must be > 0")
        if self.max_length < self.min_length:
            raise ValueError("max_length must be >= min_length")
        if any("0" <= ch <= "9" for ch in self.delimiter):
            raise ValueError("delimiter must not contain digits")
        if self.history_display_limit <= 0:
            raise ValueError("history_display_limit must be > 0")

    def sequence_length(self, phase_round_count: int) -> int:
        """Length of the next round: one digit longer per round in the phase, capped."""

        return min(self.min_length + max(0, int(phase_round_count)), self.max_length)
