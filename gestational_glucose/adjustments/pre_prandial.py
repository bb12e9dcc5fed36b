"""Pre-meal readings reflect the basal insulin given earlier that day."""
from __future__ import annotations

from ..adjustment_base import AdjustmentRule
from ..models import (
    AdjustmentContext,
    AdjustmentDirection,
    AdjustmentWindow,
    InsulinComponent,
    Period,
    PeriodAdjustmentResult,
)
from ..registry import register_rule
from ..thresholds import HYPOGLYCEMIA_THRESHOLD, PATTERN_DAYS_REQUIRED, PRE_PRANDIAL_TARGET
from .utils import at_or_above, below, format_values, overridden_hyperglycemia, plural


class PrePrandialRule(AdjustmentRule):
    """Shared logic; concrete rules bind a period to its basal dose."""

    id = "pre_prandial"

    def evaluate(
        self,
        window: AdjustmentWindow,
        context: AdjustmentContext,
    ) -> PeriodAdjustmentResult | None:
        readings = window.values(self.period)
        if not readings:
            return None

        hypo_threshold = float(self.resolved_threshold(context, "hypoglycemia_threshold", HYPOGLYCEMIA_THRESHOLD))
        target = float(self.resolved_threshold(context, "pre_prandial_target", PRE_PRANDIAL_TARGET))
        days_required = max(1, int(self.resolved_threshold(context, "pattern_days_required", PATTERN_DAYS_REQUIRED)))

        observed = [value for _, value in readings]
        analyzed = len(readings)
        label = self.period.label.lower()

        lows = below(readings, hypo_threshold)
        if lows:
            overridden, note = overridden_hyperglycemia(readings, target, days_required)
            return self.result(
                context,
                AdjustmentDirection.REDUCE,
                f"Hypoglycemia {label} on {plural(len(lows), 'day')} "
                f"({format_values(value for _, value in lows)}). Reduce {self.insulin.label} by 10-20%.{note}",
                days_with_problem=len(lows),
                days_analyzed=analyzed,
                observed=observed,
                reference_value=min(value for _, value in lows),
                hyperglycemia_overridden=overridden,
            )

        elevated = at_or_above(readings, target)
        if len(elevated) >= days_required:
            return self.result(
                context,
                AdjustmentDirection.INCREASE,
                f"{self.period.label} glucose at or above {target:g} mg/dL on "
                f"{plural(len(elevated), 'day')} ({format_values(value for _, value in elevated)}): "
                f"{self.insulin.label} is insufficient. Increase it by 10-20%.",
                days_with_problem=len(elevated),
                days_analyzed=analyzed,
                observed=observed,
            )

        return self.result(
            context,
            AdjustmentDirection.MAINTAIN,
            f"{self.period.label} glucose at or above {target:g} mg/dL on {len(elevated)} of "
            f"{plural(analyzed, 'day')}; no persistent pattern.",
            days_with_problem=len(elevated),
            days_analyzed=analyzed,
            observed=observed,
        )


@register_rule
class PreLunchRule(PrePrandialRule):
    id = "pre_lunch"
    period = Period.PRE_LUNCH
    insulin = InsulinComponent.MORNING_NPH
    description = "Pre-lunch glucose attributed to morning NPH"


@register_rule
class PreDinnerRule(PrePrandialRule):
    id = "pre_dinner"
    period = Period.PRE_DINNER
    insulin = InsulinComponent.LUNCH_NPH
    description = "Pre-dinner glucose attributed to lunch NPH"
