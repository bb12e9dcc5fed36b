from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from datetime import date

from gestational_glucose.alerts import detect_critical_alerts
from gestational_glucose.models import AlertType, GlucoseReading, Period


def test_detects_hypo_and_severe_hyper_across_history():
    readings = [
        GlucoseReading(fasting=90, post_lunch_1h=201, measurement_date="2025-01-01"),
        GlucoseReading(fasting=92),
        GlucoseReading(nocturnal_3h=69, pre_dinner=200, measurement_date=date(2025, 1, 3)),
    ]

    alerts = detect_critical_alerts(readings)

    assert [(alert.type, alert.value, alert.period, alert.day) for alert in alerts] == [
        (AlertType.SEVERE_HYPERGLYCEMIA, 201, Period.POST_LUNCH_1H, 1),
        (AlertType.HYPOGLYCEMIA, 69, Period.NOCTURNAL_3H, 3),
    ]
    assert alerts[0].measurement_date == "2025-01-01"
    assert alerts[1].measurement_date == "2025-01-03"


def test_boundaries_are_not_alerts():
    readings = [GlucoseReading(fasting=70, post_breakfast_1h=200)]

    assert detect_critical_alerts(readings) == []


def test_implausible_values_are_ignored():
    readings = [GlucoseReading(fasting=0, pre_lunch=-10, post_dinner_1h=900)]

    assert detect_critical_alerts(readings) == []
