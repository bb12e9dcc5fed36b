"""Attribute fasting hyperglycemia using same-day 3am readings.

Nocturnal hypoglycemia followed by a high fasting value on the same day is a
Somogyi rebound and always reduces bedtime NPH. Persistent fasting elevation
with normal or high 3am values is a dawn phenomenon and increases it.
"""
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
from ..thresholds import (
    FASTING_TARGET,
    HYPOGLYCEMIA_THRESHOLD,
    PATTERN_DAYS_REQUIRED,
    SOMOGYI_DAYS_REQUIRED,
)
from .utils import (
    at_or_above,
    below,
    format_days,
    format_values,
    mean_of,
    overridden_hyperglycemia,
    plural,
)


@register_rule
class FastingNocturnalRule(AdjustmentRule):
    id = "fasting_nocturnal"
    period = Period.FASTING
    insulin = InsulinComponent.BEDTIME_NPH
    description = "Fasting glucose vs same-day 3am glucose: Somogyi rebound or dawn phenomenon"
    version = "1.1.0"

    def evaluate(
        self,
        window: AdjustmentWindow,
        context: AdjustmentContext,
    ) -> PeriodAdjustmentResult | None:
        fasting = window.values(Period.FASTING)
        if not fasting:
            return None

        hypo_threshold = float(self.resolved_threshold(context, "hypoglycemia_threshold", HYPOGLYCEMIA_THRESHOLD))
        target = float(self.resolved_threshold(context, "fasting_target", FASTING_TARGET))
        days_required = max(1, int(self.resolved_threshold(context, "pattern_days_required", PATTERN_DAYS_REQUIRED)))
        somogyi_required = max(1, int(self.resolved_threshold(context, "somogyi_days_required", SOMOGYI_DAYS_REQUIRED)))

        observed = [value for _, value in fasting]
        analyzed = len(fasting)

        lows = below(fasting, hypo_threshold)
        if lows:
            overridden, note = overridden_hyperglycemia(fasting, target, days_required)
            return self.result(
                context,
                AdjustmentDirection.REDUCE,
                f"Fasting hypoglycemia on {plural(len(lows), 'day')} "
                f"({format_values(value for _, value in lows)}). "
                f"Reduce {self.insulin.label} by 10-20% and review the bedtime snack.{note}",
                days_with_problem=len(lows),
                days_analyzed=analyzed,
                observed=observed,
                reference_value=min(value for _, value in lows),
                hyperglycemia_overridden=overridden,
            )

        paired = window.paired(Period.FASTING, Period.NOCTURNAL_3H)
        somogyi = [
            (day, fasting_value, nocturnal)
            for day, fasting_value, nocturnal in paired
            if fasting_value >= target and nocturnal < hypo_threshold
        ]
        if len(somogyi) >= somogyi_required:
            nocturnal_lows = [nocturnal for _, _, nocturnal in somogyi]
            return self.result(
                context,
                AdjustmentDirection.REDUCE,
                "Somogyi effect: nocturnal hypoglycemia "
                f"({format_values(nocturnal_lows)}) followed by fasting hyperglycemia on the same day "
                f"(day {format_days(day for day, _, _ in somogyi)}). "
                f"Reduce {self.insulin.label} by 10-20%; do not increase it.",
                days_with_problem=len(somogyi),
                days_analyzed=len(paired),
                observed=observed,
                reference_value=min(nocturnal_lows),
            )

        elevated = at_or_above(fasting, target)
        if len(elevated) < days_required:
            return self.result(
                context,
                AdjustmentDirection.MAINTAIN,
                f"Fasting at or above {target:g} mg/dL on {len(elevated)} of {plural(analyzed, 'day')}; "
                f"no persistent pattern (requires {days_required}).",
                days_with_problem=len(elevated),
                days_analyzed=analyzed,
                observed=observed,
            )

        elevated_days = {day for day, _ in elevated}
        dawn = [
            (day, fasting_value, nocturnal)
            for day, fasting_value, nocturnal in paired
            if day in elevated_days and nocturnal >= hypo_threshold
        ]
        elevated_values = format_values(value for _, value in elevated)

        if len(dawn) >= days_required:
            nocturnal_values = [nocturnal for _, _, nocturnal in dawn]
            return self.result(
                context,
                AdjustmentDirection.INCREASE,
                f"Dawn phenomenon: fasting hyperglycemia ({elevated_values}) with normal or elevated "
                f"nocturnal glucose ({format_values(nocturnal_values)}) on {plural(len(dawn), 'day')}. "
                f"Increase {self.insulin.label} by 10-20%.",
                days_with_problem=len(dawn),
                days_analyzed=len(paired),
                observed=observed,
                reference_value=mean_of(nocturnal_values),
            )

        if not dawn:
            justification = (
                f"Persistent fasting hyperglycemia on {plural(len(elevated), 'day')} ({elevated_values}); "
                "nocturnal (3am) data absent for these days, so a Somogyi rebound could not be excluded. "
                f"Increase {self.insulin.label} by 10-20% and record 3am glucose to confirm."
            )
        else:
            justification = (
                f"Persistent fasting hyperglycemia on {plural(len(elevated), 'day')} ({elevated_values}) "
                f"without nocturnal hypoglycemia; only {plural(len(dawn), 'paired night')} available, "
                "so a dawn phenomenon is not yet confirmed. "
                f"Increase {self.insulin.label} by 10-20% and keep recording 3am glucose."
            )
        return self.result(
            context,
            AdjustmentDirection.INCREASE,
            justification,
            days_with_problem=len(elevated),
            days_analyzed=analyzed,
            observed=observed,
        )
