"""Run the adjustment rules over the trailing window and reconcile them."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from . import adjustments  # noqa: F401  (registers rules on import)
from .models import (
    PERIOD_ORDER,
    AdjustmentContext,
    AdjustmentDirection,
    AdjustmentWindow,
    GlucoseReading,
    InsulinAdjustmentAnalysis,
    PeriodAdjustmentResult,
)
from .registry import RuleRegistry
from .registry import registry as default_registry

logger = logging.getLogger(__name__)

# Highest priority first.
DIRECTION_PRIORITY: tuple[AdjustmentDirection, ...] = (
    AdjustmentDirection.REDUCE,
    AdjustmentDirection.REQUEST_DATA,
    AdjustmentDirection.EVALUATE,
    AdjustmentDirection.INCREASE,
    AdjustmentDirection.MAINTAIN,
)

SUSPENSION_NOTE = "Increase suspended: hypoglycemia elsewhere in the regimen must be corrected first."


def resolve_safety_conflicts(
    results: Sequence[PeriodAdjustmentResult],
) -> tuple[list[PeriodAdjustmentResult], Optional[str]]:
    """Demote every increase to maintain while any reduction is pending.

    Demoted results keep their original direction and are flagged as
    suspended so the decision stays auditable.
    """

    reductions = [result for result in results if result.direction is AdjustmentDirection.REDUCE]
    if not reductions:
        return list(results), None

    resolved: list[PeriodAdjustmentResult] = []
    suspended: list[PeriodAdjustmentResult] = []
    for result in results:
        if result.direction is AdjustmentDirection.INCREASE:
            result = replace(
                result,
                direction=AdjustmentDirection.MAINTAIN,
                suspended=True,
                original_direction=AdjustmentDirection.INCREASE,
                justification=f"{result.justification} {SUSPENSION_NOTE}",
            )
            suspended.append(result)
        resolved.append(result)

    if not suspended:
        return resolved, None

    logger.info("Suspended %d increase(s) due to %d reduction(s)", len(suspended), len(reductions))
    reduced = ", ".join(result.period.label.lower() for result in reductions)
    held = ", ".join(result.insulin.label for result in suspended)
    note = (
        f"Conflicting signals: hypoglycemia ({reduced}) requires a reduction while other periods "
        f"call for an increase. Increases of {held} are suspended until hypoglycemia is resolved."
    )
    return resolved, note


def same_period_conflicts(results: Sequence[PeriodAdjustmentResult]) -> Optional[str]:
    """Note periods where a reduction overrode persistent hyperglycemia."""

    overridden = [result for result in results if result.hyperglycemia_overridden]
    if not overridden:
        return None
    periods = ", ".join(result.period.label.lower() for result in overridden)
    return (
        f"Conflicting signals within the same period ({periods}): hypoglycemia and persistent "
        "hyperglycemia coexist. The reduction takes precedence; reassess the hyperglycemia once "
        "hypoglycemia is corrected."
    )


def overall_direction(results: Sequence[PeriodAdjustmentResult]) -> AdjustmentDirection:
    present = {result.direction for result in results}
    for direction in DIRECTION_PRIORITY:
        if direction in present:
            return direction
    return AdjustmentDirection.MAINTAIN


def summarize_adjustments(
    results: Sequence[PeriodAdjustmentResult],
    conflict_note: Optional[str] = None,
) -> str:
    """Compose a ranked summary: reductions, approved increases, data requests, evaluations."""

    def lines_for(direction: AdjustmentDirection, verb: str) -> list[str]:
        return [
            f"{verb} {result.insulin.label} ({result.period.label.lower()})."
            for result in results
            if result.direction is direction
        ]

    sections: list[str] = []
    sections += lines_for(AdjustmentDirection.REDUCE, "Reduce")
    sections += lines_for(AdjustmentDirection.INCREASE, "Increase")
    sections += [
        f"Request more data: {result.period.label.lower()}."
        for result in results
        if result.direction is AdjustmentDirection.REQUEST_DATA
    ]
    sections += [
        f"Evaluate {result.period.label.lower()} pattern before adjusting {result.insulin.label}."
        for result in results
        if result.direction is AdjustmentDirection.EVALUATE
    ]

    if not sections:
        return "Maintain current insulin regimen: no persistent pattern requiring adjustment."
    if conflict_note:
        sections.append(conflict_note)
    return " ".join(sections)


def analyze_insulin_adjustments(
    readings: Sequence[GlucoseReading],
    *,
    context: AdjustmentContext | None = None,
    registry: RuleRegistry | None = None,
) -> Optional[InsulinAdjustmentAnalysis]:
    """Evaluate the window; ``None`` when no period has any value."""

    window = AdjustmentWindow(readings=tuple(readings))
    if not any(reading.has_values() for reading in window.readings):
        return None

    active_registry = registry if registry is not None else default_registry
    raw = active_registry.evaluate_all(window, context or AdjustmentContext())
    if not raw:
        return None

    order = {period: index for index, period in enumerate(PERIOD_ORDER)}
    ordered = sorted(raw, key=lambda result: order[result.period])
    results, suspension_note = resolve_safety_conflicts(ordered)
    notes = [note for note in (same_period_conflicts(results), suspension_note) if note]
    conflict_note = " ".join(notes) if notes else None

    direction = overall_direction(results)
    logger.debug("Evaluated %d adjustment rules, overall=%s", len(results), direction.value)
    return InsulinAdjustmentAnalysis(
        results=tuple(results),
        overall_direction=direction,
        summary=summarize_adjustments(results, conflict_note),
        conflict_note=conflict_note,
    )
