"""Shared helpers for adjustment rule implementations."""
from __future__ import annotations

from statistics import mean
from typing import Iterable, Sequence

from ..models import as_number


def format_values(values: Iterable[float]) -> str:
    """Render readings as ``"110, 108 mg/dL"``."""

    rendered = ", ".join(str(as_number(value)) for value in values)
    return f"{rendered} mg/dL" if rendered else "no values"


def format_days(days: Iterable[int]) -> str:
    return ", ".join(str(day) for day in days)


def mean_of(values: Sequence[float]) -> float | None:
    return float(mean(values)) if values else None


def below(pairs: Sequence[tuple[int, float]], threshold: float) -> list[tuple[int, float]]:
    return [(day, value) for day, value in pairs if value < threshold]


def at_or_above(pairs: Sequence[tuple[int, float]], threshold: float) -> list[tuple[int, float]]:
    return [(day, value) for day, value in pairs if value >= threshold]


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def overridden_hyperglycemia(
    pairs: Sequence[tuple[int, float]],
    target: float,
    days_required: int,
) -> tuple[bool, str]:
    """Report persistent elevation that a same-period hypoglycemia outranks.

    Returns the flag and a sentence to append to the reduction's
    justification (empty when the elevation is not persistent).
    """

    elevated = at_or_above(pairs, target)
    if len(elevated) < days_required:
        return False, ""
    return True, (
        f" Conflicting pattern: glucose was also at or above {target:g} mg/dL on "
        f"{plural(len(elevated), 'day')} ({format_values(value for _, value in elevated)}); "
        "that hyperglycemia is overridden for safety and must be reassessed once hypoglycemia is corrected."
    )
