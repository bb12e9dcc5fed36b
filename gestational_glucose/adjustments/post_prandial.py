"""Attribute 1h post-meal hyperglycemia by the pre-to-post excursion.

For each elevated post-meal reading with a same-day pre-meal value the
excursion is ``post - pre``. A large excursion points at the meal's rapid
insulin; a small one on top of an already high pre-meal value points at the
basal dose covering the pre-meal period.
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
    EXCURSION_DELTA_THRESHOLD,
    HYPOGLYCEMIA_THRESHOLD,
    PATTERN_DAYS_REQUIRED,
    POST_PRANDIAL_1H_TARGET,
)
from .utils import at_or_above, below, format_values, mean_of, overridden_hyperglycemia, plural


class PostPrandialRule(AdjustmentRule):
    """Shared delta logic; concrete rules bind the meal's periods and doses."""

    id = "post_prandial"
    pre_period: Period
    basal: InsulinComponent
    meal: str = "meal"

    def evaluate(
        self,
        window: AdjustmentWindow,
        context: AdjustmentContext,
    ) -> PeriodAdjustmentResult | None:
        readings = window.values(self.period)
        if not readings:
            return None

        hypo_threshold = float(self.resolved_threshold(context, "hypoglycemia_threshold", HYPOGLYCEMIA_THRESHOLD))
        target = float(self.resolved_threshold(context, "post_prandial_target", POST_PRANDIAL_1H_TARGET))
        delta_threshold = float(self.resolved_threshold(context, "excursion_delta", EXCURSION_DELTA_THRESHOLD))
        days_required = max(1, int(self.resolved_threshold(context, "pattern_days_required", PATTERN_DAYS_REQUIRED)))

        observed = [value for _, value in readings]
        analyzed = len(readings)

        lows = below(readings, hypo_threshold)
        if lows:
            overridden, note = overridden_hyperglycemia(readings, target, days_required)
            return self.result(
                context,
                AdjustmentDirection.REDUCE,
                f"Hypoglycemia 1h after {self.meal} on {plural(len(lows), 'day')} "
                f"({format_values(value for _, value in lows)}). Reduce {self.insulin.label} by 10-20%.{note}",
                days_with_problem=len(lows),
                days_analyzed=analyzed,
                observed=observed,
                reference_value=min(value for _, value in lows),
                hyperglycemia_overridden=overridden,
            )

        elevated = at_or_above(readings, target)
        if len(elevated) < days_required:
            return self.result(
                context,
                AdjustmentDirection.MAINTAIN,
                f"1h post-{self.meal} glucose at or above {target:g} mg/dL on {len(elevated)} of "
                f"{plural(analyzed, 'day')}; no persistent pattern.",
                days_with_problem=len(elevated),
                days_analyzed=analyzed,
                observed=observed,
            )

        pre_by_day = dict(window.values(self.pre_period))
        pairs = [(day, pre_by_day[day], post) for day, post in elevated if day in pre_by_day]
        elevated_values = format_values(value for _, value in elevated)
        pre_label = self.pre_period.label

        if not pairs:
            return self.result(
                context,
                AdjustmentDirection.REQUEST_DATA,
                f"1h post-{self.meal} glucose above target on {plural(len(elevated), 'day')} "
                f"({elevated_values}) but no {pre_label} reading on those days; the excursion cannot be "
                f"computed. Record {pre_label} glucose before adjusting insulin.",
                days_with_problem=len(elevated),
                days_analyzed=0,
                observed=observed,
            )

        excursions = [(day, pre, post) for day, pre, post in pairs if post - pre >= delta_threshold]
        flat = [(day, pre, post) for day, pre, post in pairs if post - pre < delta_threshold]

        if len(excursions) >= days_required:
            deltas = [post - pre for _, pre, post in excursions]
            return self.result(
                context,
                AdjustmentDirection.INCREASE,
                f"Glycemic excursion >= {delta_threshold:g} mg/dL after {self.meal} on "
                f"{plural(len(excursions), 'day')} (mean delta {mean_of(deltas):.0f} mg/dL from "
                f"{pre_label}): increase {self.insulin.label} by 10-20%.",
                days_with_problem=len(excursions),
                days_analyzed=len(pairs),
                observed=observed,
                reference_value=mean_of(deltas),
            )

        if len(flat) >= days_required:
            deltas = [post - pre for _, pre, post in flat]
            pre_values = [pre for _, pre, _ in flat]
            return self.result(
                context,
                AdjustmentDirection.INCREASE,
                f"1h post-{self.meal} glucose above target on {plural(len(flat), 'day')} with an adequate "
                f"excursion (mean delta {mean_of(deltas):.0f} mg/dL < {delta_threshold:g}); "
                f"{pre_label} was already elevated ({format_values(pre_values)}). The problem lies in "
                f"{self.basal.label}, not in the rapid-acting insulin: increase {self.basal.label} by 10-20%.",
                days_with_problem=len(flat),
                days_analyzed=len(pairs),
                observed=observed,
                insulin=self.basal,
                reference_value=mean_of(deltas),
            )

        if len(pairs) < days_required:
            return self.result(
                context,
                AdjustmentDirection.REQUEST_DATA,
                f"1h post-{self.meal} glucose above target on {plural(len(elevated), 'day')} "
                f"({elevated_values}) but only {plural(len(pairs), 'day')} with a matching {pre_label} "
                f"reading (requires {days_required}). Record {pre_label} glucose to attribute the cause.",
                days_with_problem=len(elevated),
                days_analyzed=len(pairs),
                observed=observed,
            )

        return self.result(
            context,
            AdjustmentDirection.EVALUATE,
            f"Mixed pattern after {self.meal}: {plural(len(excursions), 'day')} with excursion >= "
            f"{delta_threshold:g} mg/dL and {plural(len(flat), 'day')} with elevated {pre_label} values. "
            "Review meal composition and timing before changing doses.",
            days_with_problem=len(elevated),
            days_analyzed=len(pairs),
            observed=observed,
        )


@register_rule
class PostBreakfastRule(PostPrandialRule):
    id = "post_breakfast"
    period = Period.POST_BREAKFAST_1H
    pre_period = Period.FASTING
    insulin = InsulinComponent.BREAKFAST_RAPID
    basal = InsulinComponent.BEDTIME_NPH
    meal = "breakfast"
    description = "1h post-breakfast excursion vs fasting"


@register_rule
class PostLunchRule(PostPrandialRule):
    id = "post_lunch"
    period = Period.POST_LUNCH_1H
    pre_period = Period.PRE_LUNCH
    insulin = InsulinComponent.LUNCH_RAPID
    basal = InsulinComponent.MORNING_NPH
    meal = "lunch"
    description = "1h post-lunch excursion vs pre-lunch"


@register_rule
class PostDinnerRule(PostPrandialRule):
    id = "post_dinner"
    period = Period.POST_DINNER_1H
    pre_period = Period.PRE_DINNER
    insulin = InsulinComponent.DINNER_RAPID
    basal = InsulinComponent.LUNCH_NPH
    meal = "dinner"
    description = "1h post-dinner excursion vs pre-dinner"
