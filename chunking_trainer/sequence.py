from __future__ import annotations

from .cognitive_core import SeededRng

DEFAULT_DELIMITER = " • "


def generate_sequence(rng: SeededRng, length: int) -> str:
    """Return ``length`` independent uniform digits (repeats allowed)."""

    if int(length) != length or length <= 0:
        raise ValueError("length must be a positive integer")
    return "".join(rng.digit() for _ in range(int(length)))


def group_sequence(sequence: str) -> list[str]:
    """Split left to right into groups of 3; the last 1-4 digits stay together."""

    groups: list[str] = []
    index = 0
    while index < len(sequence):
        remaining = len(sequence) - index
        size = 3 if remaining > 4 else remaining
        groups.append(sequence[index : index + size])
        index += size
    return groups


def format_with_delimiters(sequence: str, delimiter: str = DEFAULT_DELIMITER) -> str:
    if not sequence:
        return ""
    return delimiter.join(group_sequence(sequence))


def strip_delimiters(text: str) -> str:
    return "".join(ch for ch in text if "0" <= ch <= "9")


class DigitSequenceGenerator:
    def __init__(self, rng: SeededRng) -> None:
        self._rng = rng
        self._count = 0

    @property
    def generated(self) -> int:
        return self._count

    def next_sequence(self, length: int) -> str:
        seq = generate_sequence(self._rng, length)
        self._count += 1
        return seq
