from __future__ import annotations

from datetime import date, timedelta

import json
import re
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from gestational_glucose.engine import ClinicalEngine, classify_urgency, generate_clinical_analysis
from gestational_glucose.models import (
    AdjustmentDirection,
    DiabetesType,
    GlucoseReading,
    InsulinRegimen,
    InsulinType,
    PatientEvaluation,
    Period,
    UrgencyLevel,
)
from gestational_glucose.serialization import analysis_to_dict


def _day(offset: int, **slots) -> GlucoseReading:
    return GlucoseReading(measurement_date=(date(2025, 3, 1) + timedelta(days=offset)).isoformat(), **slots)


def _in_target_days(count: int, start: int = 0) -> list[GlucoseReading]:
    return [
        _day(
            start + offset,
            fasting=85,
            post_breakfast_1h=125,
            pre_lunch=90,
            post_lunch_1h=130,
            pre_dinner=92,
            post_dinner_1h=128,
            nocturnal_3h=88,
        )
        for offset in range(count)
    ]


def _evaluation(readings, **overrides) -> PatientEvaluation:
    fields = {
        "patient_name": "Test Patient",
        "gestational_weeks": 28,
        "gestational_days": 3,
        "weight": 70.0,
        "glucose_readings": readings,
    }
    fields.update(overrides)
    return PatientEvaluation(**fields)


def test_weight_missing_only_nulls_dose_calculation():
    analysis = generate_clinical_analysis(_evaluation(_in_target_days(7), weight=None))

    assert analysis.insulin_calculation is None
    assert analysis.insulin_dose_per_kg is None
    assert analysis.total_readings == 49
    assert analysis.percent_in_target == 100
    assert analysis.seven_day_analysis is not None
    assert analysis.urgency_level is UrgencyLevel.INFO
    assert "weight" not in analysis.technical_summary.split(".")[0]


def test_low_time_in_target_is_critical_without_alerts():
    readings = [_day(offset, fasting=90) for offset in range(9)]
    readings += [_day(9 + offset, fasting=100) for offset in range(11)]

    analysis = generate_clinical_analysis(_evaluation(readings))

    assert analysis.critical_alerts == ()
    assert analysis.percent_in_target == 45
    assert analysis.urgency_level is UrgencyLevel.CRITICAL


def test_classify_urgency_bands():
    assert classify_urgency([], 49) is UrgencyLevel.CRITICAL
    assert classify_urgency([], 50) is UrgencyLevel.WARNING
    assert classify_urgency([], 69) is UrgencyLevel.WARNING
    assert classify_urgency([], 70) is UrgencyLevel.INFO
    assert classify_urgency([], None) is UrgencyLevel.WARNING


def test_identical_input_gives_identical_output():
    readings = _in_target_days(5) + [_day(5, fasting=110, nocturnal_3h=55), _day(6, fasting=112)]
    evaluation = _evaluation(readings, uses_insulin=True)

    first = json.dumps(analysis_to_dict(generate_clinical_analysis(evaluation)))
    second = json.dumps(analysis_to_dict(generate_clinical_analysis(evaluation)))

    assert first == second


def test_not_on_insulin_has_no_adjustments():
    analysis = generate_clinical_analysis(_evaluation(_in_target_days(7)))

    assert analysis.insulin_adjustments is None
    assert "non-pharmacologic" in analysis.insulin_recommendation


def test_on_insulin_all_in_target_maintains():
    regimens = (InsulinRegimen(insulin_type=InsulinType.NPH, morning_ui=10, bedtime_ui=6),)
    analysis = generate_clinical_analysis(
        _evaluation(_in_target_days(7), uses_insulin=True, insulin_regimens=regimens)
    )

    adjustments = analysis.insulin_adjustments
    assert adjustments is not None
    assert adjustments.overall_direction is AdjustmentDirection.MAINTAIN
    assert adjustments.recommended == ()
    assert "Maintain" in analysis.insulin_recommendation
    assert analysis.current_insulin_dose == 16
    assert analysis.insulin_dose_per_kg == 0.23


def test_adjustments_use_the_window_not_stale_history():
    stale = [_day(offset, fasting=130, nocturnal_3h=120) for offset in range(3)]
    readings = stale + _in_target_days(7, start=3)

    analysis = generate_clinical_analysis(_evaluation(readings, uses_insulin=True))

    assert analysis.insulin_adjustments.overall_direction is AdjustmentDirection.MAINTAIN
    fasting_stats = next(entry for entry in analysis.analysis_by_period if entry.period is Period.FASTING)
    assert fasting_stats.total == 10
    assert analysis.date_range == (date(2025, 3, 4), date(2025, 3, 10))
    assert "7 most recent of 10" in analysis.chronology_warning


def test_somogyi_case_is_critical_and_reduces():
    readings = _in_target_days(4) + [
        _day(4, fasting=110, nocturnal_3h=55),
        _day(5, fasting=112, nocturnal_3h=95),
        _day(6, fasting=108, nocturnal_3h=98),
    ]

    analysis = generate_clinical_analysis(_evaluation(readings, uses_insulin=True))

    assert analysis.urgency_level is UrgencyLevel.CRITICAL
    assert analysis.insulin_adjustments.overall_direction is AdjustmentDirection.REDUCE
    assert analysis.insulin_recommendation.startswith("INSULIN ADJUSTMENT")
    assert analysis.recommended_actions[0].startswith("URGENT: hypoglycemia")
    assert "Reassess in 14 days" in " ".join(analysis.recommended_actions)


def test_untreated_gdm_above_target_recommends_insulin():
    readings = [_day(offset, fasting=105, post_breakfast_1h=150) for offset in range(7)]

    analysis = generate_clinical_analysis(_evaluation(readings, gestational_weeks=33))

    assert analysis.percent_above_target == 100
    assert analysis.insulin_recommendation.startswith("INSULIN THERAPY INDICATED (SBD-R1, SBD-R2)")
    assert "35 UI/day" in analysis.insulin_recommendation
    assert "breakfast 6 UI" in analysis.insulin_recommendation
    assert "Intensify fetal surveillance (FEBRASGO-F8, WHO-W8)" in analysis.recommended_actions
    assert "SBD-R1" in [rule.id for rule in analysis.triggered_rules]


def test_pregestational_diabetes_gets_aspirin_action():
    analysis = generate_clinical_analysis(
        _evaluation(_in_target_days(7), gestational_weeks=20, diabetes_type=DiabetesType.TYPE_1)
    )

    assert any("aspirin" in action for action in analysis.recommended_actions)
    assert "type 1 diabetes mellitus" in analysis.technical_summary


def _cited_ids(analysis) -> set[str]:
    text = " ".join((analysis.insulin_recommendation, *analysis.recommended_actions))
    return set(re.findall(r"\b(?:SBD-R|FEBRASGO-F|WHO-W)\d+\b", text))


def test_cited_rules_are_always_triggered_rules():
    readings = _in_target_days(4) + [
        _day(4, fasting=110, nocturnal_3h=55),
        _day(5, fasting=112, nocturnal_3h=95),
        _day(6, fasting=108, nocturnal_3h=98),
    ]

    for diabetes_type in DiabetesType:
        for weeks in (20, 31, 33):
            analysis = generate_clinical_analysis(
                _evaluation(readings, uses_insulin=True, diabetes_type=diabetes_type, gestational_weeks=weeks)
            )
            triggered = {rule.id for rule in analysis.triggered_rules}
            assert _cited_ids(analysis) <= triggered


def test_type_1_adjustment_cites_only_applicable_rules():
    readings = _in_target_days(4) + [
        _day(4, fasting=110, nocturnal_3h=55),
        _day(5, fasting=112, nocturnal_3h=95),
        _day(6, fasting=108, nocturnal_3h=98),
    ]

    analysis = generate_clinical_analysis(
        _evaluation(readings, uses_insulin=True, diabetes_type=DiabetesType.TYPE_1, gestational_weeks=33)
    )

    assert analysis.insulin_recommendation.startswith("INSULIN ADJUSTMENT (SBD-R11):")
    assert "Intensify fetal surveillance (WHO-W8)" in analysis.recommended_actions
    assert "SBD-R4" not in _cited_ids(analysis)
    assert "FEBRASGO-F8" not in _cited_ids(analysis)


def test_fetal_surveillance_starts_at_32_weeks():
    analysis = generate_clinical_analysis(_evaluation(_in_target_days(7), gestational_weeks=31))

    assert not any("fetal surveillance" in action for action in analysis.recommended_actions)


def test_seven_day_analysis_needs_a_full_window():
    analysis = generate_clinical_analysis(_evaluation(_in_target_days(6)))

    assert analysis.seven_day_analysis is None
    assert analysis.total_days_analyzed == 6


def test_empty_history_has_undetermined_control():
    analysis = generate_clinical_analysis(_evaluation([], uses_insulin=True))

    assert analysis.total_readings == 0
    assert analysis.insulin_adjustments is None
    assert analysis.urgency_level is UrgencyLevel.WARNING
    assert analysis.chronology_warning.startswith("No glucose data")


def test_malformed_readings_raise_type_error():
    with pytest.raises(TypeError):
        generate_clinical_analysis(_evaluation("not a list"))

    with pytest.raises(TypeError):
        generate_clinical_analysis(_evaluation(iter(_in_target_days(3))))


def test_engine_options_are_validated():
    with pytest.raises(ValueError):
        ClinicalEngine(window_days=0)

    engine = ClinicalEngine(window_days=3)
    analysis = engine.analyze(_evaluation(_in_target_days(5)))
    assert analysis.date_range == (date(2025, 3, 3), date(2025, 3, 5))
    assert analysis.seven_day_analysis.total_readings == 21
