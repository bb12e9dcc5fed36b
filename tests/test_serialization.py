from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import json

from gestational_glucose.engine import generate_clinical_analysis
from gestational_glucose.models import GlucoseReading, InsulinRegimen, InsulinType, PatientEvaluation
from gestational_glucose.serialization import analysis_to_dict


def _evaluation(**overrides) -> PatientEvaluation:
    readings = [
        GlucoseReading(
            measurement_date=f"2025-04-{day:02d}",
            fasting=110 if day > 4 else 88,
            nocturnal_3h=55 if day == 5 else 90,
            pre_lunch=92,
        )
        for day in range(1, 8)
    ]
    fields = {
        "patient_name": "Serialized",
        "gestational_weeks": 32,
        "weight": 64.5,
        "uses_insulin": True,
        "insulin_regimens": (InsulinRegimen(insulin_type=InsulinType.NPH, morning_ui=8, bedtime_ui=4),),
        "glucose_readings": readings,
    }
    fields.update(overrides)
    return PatientEvaluation(**fields)


def test_analysis_to_dict_uses_camel_case_keys_and_is_json_ready():
    payload = analysis_to_dict(generate_clinical_analysis(_evaluation()))

    json.dumps(payload)
    for key in (
        "sevenDayAnalysis",
        "insulinAdjustments",
        "triggeredRules",
        "urgencyLevel",
        "chronologyWarning",
        "dateRange",
        "insulinCalculation",
        "criticalAlerts",
    ):
        assert key in payload
    assert payload["urgencyLevel"] == "critical"
    assert payload["dateRange"] == {"start": "2025-04-01", "end": "2025-04-07"}
    assert payload["weight"] == 64.5
    assert payload["currentInsulinDose"] == 12


def test_adjustment_entries_carry_audit_fields():
    payload = analysis_to_dict(generate_clinical_analysis(_evaluation()))

    adjustments = payload["insulinAdjustments"]
    assert adjustments["overallDirection"] == "decrease"
    fasting = adjustments["results"][0]
    assert fasting["periodKey"] == "fasting"
    assert fasting["insulin"] == "NPH_NOTURNA"
    assert fasting["direction"] == "decrease"
    assert fasting["currentDose"] == 4
    assert set(fasting) >= {
        "suspended",
        "originalDirection",
        "hyperglycemiaOverridden",
        "observedValues",
        "referenceValue",
    }


def test_nullable_sections_serialize_as_none():
    payload = analysis_to_dict(
        generate_clinical_analysis(_evaluation(weight=None, uses_insulin=False, glucose_readings=[]))
    )

    assert payload["insulinCalculation"] is None
    assert payload["insulinAdjustments"] is None
    assert payload["sevenDayAnalysis"] is None
    assert payload["dateRange"] is None
    assert payload["chronologyWarning"] == "No glucose data available for analysis."
