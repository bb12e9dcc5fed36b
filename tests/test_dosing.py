from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from gestational_glucose.dosing import calculate_insulin_dose, current_total_dose, dose_per_kg
from gestational_glucose.models import InsulinRegimen, InsulinType


def test_starting_dose_for_70_kg():
    calculation = calculate_insulin_dose(70)

    assert calculation is not None
    assert calculation.initial_total_dose == 35
    assert calculation.basal_dose == 18
    assert calculation.bolus_dose == 17
    assert calculation.morning_nph == 12
    assert calculation.bedtime_nph == 6
    assert (calculation.breakfast_rapid, calculation.lunch_rapid, calculation.dinner_rapid) == (6, 6, 6)


def test_missing_or_invalid_weight_returns_none():
    assert calculate_insulin_dose(None) is None
    assert calculate_insulin_dose(0) is None
    assert calculate_insulin_dose(-60) is None


def test_current_dose_and_dose_per_kg():
    regimens = [
        InsulinRegimen(insulin_type=InsulinType.NPH, morning_ui=20, bedtime_ui=10),
        InsulinRegimen(insulin_type=InsulinType.LISPRO, morning_ui=4, lunch_ui=5, dinner_ui=6),
    ]

    total = current_total_dose(regimens)

    assert total == 45
    assert dose_per_kg(total, 90) == 0.5
    assert dose_per_kg(total, None) is None
    assert current_total_dose([]) == 0
