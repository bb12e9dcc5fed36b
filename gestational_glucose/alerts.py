"""Detect hypoglycemia and severe hyperglycemia across the reading history."""
from __future__ import annotations

from typing import Sequence

from .models import PERIOD_ORDER, AlertType, CriticalAlert, GlucoseReading, as_number
from .thresholds import HYPOGLYCEMIA_THRESHOLD, SEVERE_HYPERGLYCEMIA_THRESHOLD


def detect_critical_alerts(readings: Sequence[GlucoseReading]) -> list[CriticalAlert]:
    """Return one alert per critical value; ``day`` is the 1-based record index."""

    alerts: list[CriticalAlert] = []
    for day, reading in enumerate(readings, start=1):
        measurement_date = reading.measurement_date
        if measurement_date is not None and not isinstance(measurement_date, str):
            measurement_date = measurement_date.isoformat()
        for period in PERIOD_ORDER:
            value = reading.value(period)
            if value is None:
                continue
            if value < HYPOGLYCEMIA_THRESHOLD:
                alert_type = AlertType.HYPOGLYCEMIA
            elif value > SEVERE_HYPERGLYCEMIA_THRESHOLD:
                alert_type = AlertType.SEVERE_HYPERGLYCEMIA
            else:
                continue
            alerts.append(
                CriticalAlert(
                    type=alert_type,
                    value=as_number(value),
                    period=period,
                    day=day,
                    measurement_date=measurement_date,
                )
            )
    return alerts
