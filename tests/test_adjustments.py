from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from gestational_glucose.insulin_adjustment import (
    analyze_insulin_adjustments,
    overall_direction,
    resolve_safety_conflicts,
)
from gestational_glucose.models import (
    AdjustmentContext,
    AdjustmentDirection,
    GlucoseReading,
    InsulinComponent,
    InsulinRegimen,
    InsulinType,
    Period,
    PeriodAdjustmentResult,
)
from gestational_glucose.registry import RuleRegistry


def _readings(**series: list) -> list[GlucoseReading]:
    days = max(len(values) for values in series.values())
    readings = []
    for index in range(days):
        slots = {
            name: values[index] if index < len(values) else None
            for name, values in series.items()
        }
        readings.append(GlucoseReading(**slots))
    return readings


def _by_period(readings, **kwargs) -> dict[Period, PeriodAdjustmentResult]:
    analysis = analyze_insulin_adjustments(readings, **kwargs)
    assert analysis is not None
    return {result.period: result for result in analysis.results}


def test_somogyi_takes_precedence_over_dawn_pattern():
    readings = _readings(
        fasting=[110, 110, 112, 108],
        nocturnal_3h=[55, 110, 105, 108],
    )

    fasting = _by_period(readings)[Period.FASTING]

    assert fasting.direction is AdjustmentDirection.REDUCE
    assert fasting.insulin is InsulinComponent.BEDTIME_NPH
    assert fasting.justification.startswith("Somogyi effect")
    assert fasting.reference_value == 55.0


def test_somogyi_requires_same_day_pairing():
    # Nocturnal low falls on a day without a fasting value.
    readings = _readings(
        fasting=[None, 110, 112, 108],
        nocturnal_3h=[55, None, None, None],
    )

    results = _by_period(readings)

    assert results[Period.FASTING].direction is not AdjustmentDirection.INCREASE
    assert results[Period.FASTING].suspended is True
    assert results[Period.FASTING].original_direction is AdjustmentDirection.INCREASE
    assert results[Period.NOCTURNAL_3H].direction is AdjustmentDirection.REDUCE


def test_dawn_phenomenon_increases_bedtime_nph():
    readings = _readings(fasting=[110, 108, 112], nocturnal_3h=[90, 95, 92])

    fasting = _by_period(readings)[Period.FASTING]

    assert fasting.direction is AdjustmentDirection.INCREASE
    assert fasting.insulin is InsulinComponent.BEDTIME_NPH
    assert fasting.justification.startswith("Dawn phenomenon")
    assert fasting.days_with_problem == 3


def test_fasting_without_nocturnal_data_increases_with_note():
    readings = _readings(fasting=[110, 108, 112])

    analysis = analyze_insulin_adjustments(readings)

    assert analysis is not None
    assert len(analysis.results) == 1
    fasting = analysis.results[0]
    assert fasting.direction is AdjustmentDirection.INCREASE
    assert fasting.insulin.value == "NPH_NOTURNA"
    assert "nocturnal (3am) data absent" in fasting.justification
    assert analysis.overall_direction is AdjustmentDirection.INCREASE


def test_isolated_high_is_not_a_pattern():
    readings = _readings(fasting=[110, 90, 88])

    fasting = _by_period(readings)[Period.FASTING]

    assert fasting.direction is AdjustmentDirection.MAINTAIN
    assert fasting.days_with_problem == 1


def test_large_excursion_increases_rapid_insulin():
    readings = _readings(pre_lunch=[95, 95, 95], post_lunch_1h=[170, 170, 170])

    results = _by_period(readings)

    post = results[Period.POST_LUNCH_1H]
    assert post.direction is AdjustmentDirection.INCREASE
    assert post.insulin is InsulinComponent.LUNCH_RAPID
    assert post.reference_value == 75.0
    assert results[Period.PRE_LUNCH].direction is AdjustmentDirection.MAINTAIN


def test_small_excursion_on_high_baseline_increases_preceding_basal():
    readings = _readings(pre_lunch=[130, 130, 130], post_lunch_1h=[160, 160, 160])

    post = _by_period(readings)[Period.POST_LUNCH_1H]

    assert post.direction is AdjustmentDirection.INCREASE
    assert post.insulin is InsulinComponent.MORNING_NPH
    assert post.reference_value == 30.0
    assert "not in the rapid-acting insulin" in post.justification


def test_missing_pre_meal_values_request_data():
    readings = _readings(post_dinner_1h=[170, 175, 180])

    post = _by_period(readings)[Period.POST_DINNER_1H]

    assert post.direction is AdjustmentDirection.REQUEST_DATA
    assert post.insulin is InsulinComponent.DINNER_RAPID
    assert "Pre-dinner" in post.justification


def test_too_few_pairs_request_data():
    readings = _readings(pre_dinner=[95], post_dinner_1h=[170, 175, 180])

    post = _by_period(readings)[Period.POST_DINNER_1H]

    assert post.direction is AdjustmentDirection.REQUEST_DATA
    assert post.days_analyzed == 1


def test_mixed_excursions_ask_for_evaluation():
    readings = _readings(
        fasting=[80, 80, 130, 130],
        post_breakfast_1h=[170, 170, 150, 150],
    )

    post = _by_period(readings)[Period.POST_BREAKFAST_1H]

    assert post.direction is AdjustmentDirection.EVALUATE
    assert post.days_analyzed == 4


def test_excursion_of_exactly_the_delta_blames_rapid_insulin():
    readings = _readings(pre_lunch=[100, 100, 100], post_lunch_1h=[140, 140, 140])

    post = _by_period(readings)[Period.POST_LUNCH_1H]

    assert post.direction is AdjustmentDirection.INCREASE
    assert post.insulin is InsulinComponent.LUNCH_RAPID
    assert post.reference_value == 40.0


def test_hypoglycemia_with_persistent_elevation_in_same_period_notes_conflict():
    analysis = analyze_insulin_adjustments(_readings(fasting=[60, 110, 112, 115]))

    assert analysis is not None
    fasting = analysis.results[0]
    assert fasting.direction is AdjustmentDirection.REDUCE
    assert fasting.hyperglycemia_overridden is True
    assert "overridden for safety" in fasting.justification
    assert "110, 112, 115 mg/dL" in fasting.justification
    assert analysis.conflict_note is not None
    assert "(fasting)" in analysis.conflict_note
    assert analysis.conflict_note in analysis.summary


def test_isolated_hypoglycemia_has_no_conflict_note():
    analysis = analyze_insulin_adjustments(_readings(nocturnal_3h=[60, 105, 90]))

    nocturnal = analysis.results[0]
    assert nocturnal.direction is AdjustmentDirection.REDUCE
    assert nocturnal.hyperglycemia_overridden is False
    assert analysis.conflict_note is None


def test_empty_registry_runs_no_rules():
    readings = _readings(fasting=[110, 108, 112])

    assert analyze_insulin_adjustments(readings, registry=RuleRegistry()) is None


def test_post_meal_hypoglycemia_reduces_rapid_insulin():
    readings = _readings(post_breakfast_1h=[65, 120, 125])

    post = _by_period(readings)[Period.POST_BREAKFAST_1H]

    assert post.direction is AdjustmentDirection.REDUCE
    assert post.insulin.value == "RAPIDA_CAFE"


def test_pre_dinner_elevation_blames_lunch_nph():
    readings = _readings(pre_dinner=[120, 118, 125])

    pre = _by_period(readings)[Period.PRE_DINNER]

    assert pre.direction is AdjustmentDirection.INCREASE
    assert pre.insulin.value == "NPH_ALMOCO"


def test_reduction_suspends_every_increase():
    readings = _readings(fasting=[110, 108, 112], pre_dinner=[60, 90, 95])

    analysis = analyze_insulin_adjustments(readings)

    assert analysis is not None
    directions = {result.direction for result in analysis.results}
    assert AdjustmentDirection.REDUCE in directions
    assert AdjustmentDirection.INCREASE not in directions

    fasting = analysis.results[0]
    assert fasting.period is Period.FASTING
    assert fasting.direction is AdjustmentDirection.MAINTAIN
    assert fasting.suspended is True
    assert fasting.original_direction is AdjustmentDirection.INCREASE
    assert analysis.conflict_note is not None
    assert analysis.overall_direction is AdjustmentDirection.REDUCE
    assert analysis.summary.startswith("Reduce lunch NPH")
    assert fasting in analysis.recommended


def test_all_in_target_maintains_regimen():
    readings = _readings(
        fasting=[85, 88, 90],
        post_breakfast_1h=[120, 125, 130],
        pre_lunch=[90, 92, 88],
        nocturnal_3h=[85, 90, 88],
    )

    analysis = analyze_insulin_adjustments(readings)

    assert analysis is not None
    assert analysis.overall_direction is AdjustmentDirection.MAINTAIN
    assert analysis.recommended == ()
    assert "Maintain" in analysis.summary
    assert analysis.conflict_note is None


def test_no_values_returns_none():
    assert analyze_insulin_adjustments([]) is None
    assert analyze_insulin_adjustments([GlucoseReading(), GlucoseReading(fasting=0)]) is None


def test_results_follow_period_order():
    readings = _readings(
        nocturnal_3h=[90, 92, 95],
        post_dinner_1h=[120, 125, 130],
        fasting=[85, 88, 90],
        pre_lunch=[90, 92, 88],
    )

    analysis = analyze_insulin_adjustments(readings)

    assert [result.period for result in analysis.results] == [
        Period.FASTING,
        Period.PRE_LUNCH,
        Period.POST_DINNER_1H,
        Period.NOCTURNAL_3H,
    ]


def test_rule_specific_threshold_override():
    readings = _readings(pre_lunch=[95, 95, 95], post_lunch_1h=[170, 170, 170])
    context = AdjustmentContext(rule_settings={"post_lunch": {"excursion_delta": 80}})

    post = _by_period(readings, context=context)[Period.POST_LUNCH_1H]

    assert post.insulin is InsulinComponent.MORNING_NPH


def test_current_dose_is_reported_for_blamed_component():
    readings = _readings(fasting=[110, 108, 112], pre_lunch=[95, 95, 95], post_lunch_1h=[170, 170, 170])
    regimens = (
        InsulinRegimen(insulin_type=InsulinType.NPH, morning_ui=10, bedtime_ui=6),
        InsulinRegimen(insulin_type=InsulinType.LISPRO, lunch_ui=4),
    )
    context = AdjustmentContext(insulin_regimens=regimens)

    results = _by_period(readings, context=context)

    assert results[Period.FASTING].current_dose == 6
    assert results[Period.PRE_LUNCH].current_dose == 10
    assert results[Period.POST_LUNCH_1H].current_dose == 4


def test_overall_direction_priority():
    def result(direction: AdjustmentDirection) -> PeriodAdjustmentResult:
        return PeriodAdjustmentResult(
            period=Period.FASTING,
            insulin=InsulinComponent.BEDTIME_NPH,
            direction=direction,
            justification="",
            days_with_problem=0,
            days_analyzed=0,
        )

    assert overall_direction([]) is AdjustmentDirection.MAINTAIN
    assert overall_direction(
        [result(AdjustmentDirection.INCREASE), result(AdjustmentDirection.REQUEST_DATA)]
    ) is AdjustmentDirection.REQUEST_DATA
    assert overall_direction(
        [result(AdjustmentDirection.INCREASE), result(AdjustmentDirection.EVALUATE)]
    ) is AdjustmentDirection.EVALUATE
    assert overall_direction(
        [result(AdjustmentDirection.REQUEST_DATA), result(AdjustmentDirection.REDUCE)]
    ) is AdjustmentDirection.REDUCE

    resolved, note = resolve_safety_conflicts([result(AdjustmentDirection.INCREASE)])
    assert note is None
    assert resolved[0].direction is AdjustmentDirection.INCREASE
