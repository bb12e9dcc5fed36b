"""Evaluate 3am readings against bedtime NPH."""
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
from ..thresholds import HYPOGLYCEMIA_THRESHOLD, NOCTURNAL_TARGET, PATTERN_DAYS_REQUIRED
from .utils import at_or_above, below, format_values, overridden_hyperglycemia, plural


@register_rule
class NocturnalRule(AdjustmentRule):
    id = "nocturnal"
    period = Period.NOCTURNAL_3H
    insulin = InsulinComponent.BEDTIME_NPH
    description = "Nocturnal hypoglycemia or persistent nocturnal hyperglycemia"
    version = "1.0.0"

    def evaluate(
        self,
        window: AdjustmentWindow,
        context: AdjustmentContext,
    ) -> PeriodAdjustmentResult | None:
        nocturnal = window.values(self.period)
        if not nocturnal:
            return None

        hypo_threshold = float(self.resolved_threshold(context, "hypoglycemia_threshold", HYPOGLYCEMIA_THRESHOLD))
        target = float(self.resolved_threshold(context, "nocturnal_target", NOCTURNAL_TARGET))
        days_required = max(1, int(self.resolved_threshold(context, "pattern_days_required", PATTERN_DAYS_REQUIRED)))

        observed = [value for _, value in nocturnal]
        analyzed = len(nocturnal)

        lows = below(nocturnal, hypo_threshold)
        if lows:
            overridden, note = overridden_hyperglycemia(nocturnal, target, days_required)
            return self.result(
                context,
                AdjustmentDirection.REDUCE,
                f"Nocturnal hypoglycemia on {plural(len(lows), 'night')} "
                f"({format_values(value for _, value in lows)}). Reduce {self.insulin.label} by 10-20%.{note}",
                days_with_problem=len(lows),
                days_analyzed=analyzed,
                observed=observed,
                reference_value=min(value for _, value in lows),
                hyperglycemia_overridden=overridden,
            )

        elevated = at_or_above(nocturnal, target)
        if len(elevated) >= days_required:
            return self.result(
                context,
                AdjustmentDirection.INCREASE,
                f"Persistent nocturnal hyperglycemia on {plural(len(elevated), 'night')} "
                f"({format_values(value for _, value in elevated)}) without hypoglycemia. "
                f"Increase {self.insulin.label} by 10-20%.",
                days_with_problem=len(elevated),
                days_analyzed=analyzed,
                observed=observed,
            )

        return self.result(
            context,
            AdjustmentDirection.MAINTAIN,
            f"Nocturnal glucose at or above {target:g} mg/dL on {len(elevated)} of "
            f"{plural(analyzed, 'night')}; no persistent pattern.",
            days_with_problem=len(elevated),
            days_analyzed=analyzed,
            observed=observed,
        )
