from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

import gestational_glucose.adjustments  # noqa: F401 - ensure registration side-effects
from gestational_glucose.adjustment_base import AdjustmentRule, current_component_dose
from gestational_glucose.insulin_adjustment import analyze_insulin_adjustments
from gestational_glucose.models import (
    AdjustmentContext,
    AdjustmentDirection,
    AdjustmentWindow,
    GlucoseReading,
    InsulinComponent,
    InsulinRegimen,
    InsulinType,
    Period,
)
from gestational_glucose.registry import RuleRegistry, registry


class _AlwaysEvaluate(AdjustmentRule):
    id = "always_evaluate"
    period = Period.PRE_LUNCH
    insulin = InsulinComponent.MORNING_NPH

    def evaluate(self, window: AdjustmentWindow, context: AdjustmentContext):
        if not window.values(self.period):
            return None
        return self.result(
            context,
            AdjustmentDirection.EVALUATE,
            "test",
            days_with_problem=0,
            days_analyzed=len(window.values(self.period)),
        )


def test_default_registry_contains_every_period_rule():
    rule_ids = {rule_id for rule_id, _ in registry.items()}

    assert rule_ids == {
        "fasting_nocturnal",
        "nocturnal",
        "pre_lunch",
        "pre_dinner",
        "post_breakfast",
        "post_lunch",
        "post_dinner",
    }
    assert {rule.period for rule in registry.values()} == set(Period)


def test_duplicate_registration_raises():
    local = RuleRegistry()
    local.register(_AlwaysEvaluate)

    with pytest.raises(ValueError):
        local.register(_AlwaysEvaluate)


def test_rule_without_id_is_rejected():
    with pytest.raises(ValueError):

        class _Anonymous(AdjustmentRule):  # noqa: F841
            def evaluate(self, window, context):  # pragma: no cover - never instantiated
                return None


def test_custom_registry_is_used_by_analyzer():
    local = RuleRegistry()
    local.register(_AlwaysEvaluate)
    readings = [GlucoseReading(pre_lunch=90), GlucoseReading(fasting=150)]

    analysis = analyze_insulin_adjustments(readings, registry=local)

    assert analysis is not None
    assert [result.rule_id for result in analysis.results] == ["always_evaluate"]
    assert analysis.overall_direction is AdjustmentDirection.EVALUATE


def test_evaluate_all_respects_predicate():
    window = AdjustmentWindow(readings=(GlucoseReading(fasting=90, pre_lunch=90),))

    results = registry.evaluate_all(
        window,
        AdjustmentContext(),
        predicate=lambda rule: rule.period is Period.PRE_LUNCH,
    )

    assert [result.rule_id for result in results] == ["pre_lunch"]


def test_clear_empties_registry():
    local = RuleRegistry()
    local.register(_AlwaysEvaluate)
    local.clear()

    assert len(local) == 0


def test_current_component_dose_prefers_bedtime_then_dinner():
    with_bedtime = [InsulinRegimen(insulin_type=InsulinType.NPH, dinner_ui=4, bedtime_ui=8)]
    dinner_only = [InsulinRegimen(insulin_type=InsulinType.NPH, dinner_ui=4)]
    prandial_only = [InsulinRegimen(insulin_type=InsulinType.ASPART, dinner_ui=5)]

    assert current_component_dose(with_bedtime, InsulinComponent.BEDTIME_NPH) == 8
    assert current_component_dose(dinner_only, InsulinComponent.BEDTIME_NPH) == 4
    assert current_component_dose(prandial_only, InsulinComponent.BEDTIME_NPH) is None
    assert current_component_dose(prandial_only, InsulinComponent.DINNER_RAPID) == 5
