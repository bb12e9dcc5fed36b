"""Render engine results as JSON-ready camelCase mappings."""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from .models import (
    ClinicalAnalysis,
    ClinicalRule,
    CriticalAlert,
    InsulinAdjustmentAnalysis,
    InsulinDoseCalculation,
    InsulinRegimen,
    PeriodAdjustmentResult,
    PeriodStats,
    TrendAnalysis,
    as_number,
)


def _number(value: Optional[float]) -> Optional[int | float]:
    return None if value is None else as_number(value)


def _date_range(value: Optional[tuple[date, date]]) -> Optional[dict[str, str]]:
    if value is None:
        return None
    start, end = value
    return {"start": start.isoformat(), "end": end.isoformat()}


def period_stats_to_dict(stats: PeriodStats) -> dict[str, Any]:
    return {
        "period": stats.period.label,
        "periodKey": stats.period.value,
        "total": stats.total,
        "aboveTarget": stats.above_target,
        "belowTarget": stats.below_target,
        "inTarget": stats.in_target,
        "percentAbove": stats.percent_above,
        "average": stats.average,
        "minValue": stats.min_value,
        "maxValue": stats.max_value,
        "targetMax": as_number(stats.target_max),
        "values": list(stats.values),
    }


def alert_to_dict(alert: CriticalAlert) -> dict[str, Any]:
    return {
        "type": alert.type.value,
        "value": alert.value,
        "period": alert.period.label,
        "periodKey": alert.period.value,
        "day": alert.day,
        "measurementDate": alert.measurement_date,
    }


def regimen_to_dict(regimen: InsulinRegimen) -> dict[str, Any]:
    return {
        "type": regimen.insulin_type.value,
        "morningUI": _number(regimen.morning_ui),
        "lunchUI": _number(regimen.lunch_ui),
        "dinnerUI": _number(regimen.dinner_ui),
        "bedtimeUI": _number(regimen.bedtime_ui),
    }


def adjustment_to_dict(result: PeriodAdjustmentResult) -> dict[str, Any]:
    return {
        "period": result.period.label,
        "periodKey": result.period.value,
        "insulin": result.insulin.value,
        "insulinLabel": result.insulin.label,
        "direction": result.direction.value,
        "justification": result.justification,
        "daysWithProblem": result.days_with_problem,
        "daysAnalyzed": result.days_analyzed,
        "observedValues": list(result.observed_values),
        "referenceValue": _number(result.reference_value),
        "currentDose": _number(result.current_dose),
        "suspended": result.suspended,
        "originalDirection": result.original_direction.value if result.original_direction else None,
        "hyperglycemiaOverridden": result.hyperglycemia_overridden,
        "ruleId": result.rule_id,
    }


def adjustments_to_dict(analysis: Optional[InsulinAdjustmentAnalysis]) -> Optional[dict[str, Any]]:
    if analysis is None:
        return None
    return {
        "results": [adjustment_to_dict(result) for result in analysis.results],
        "recommendedAdjustments": [adjustment_to_dict(result) for result in analysis.recommended],
        "overallDirection": analysis.overall_direction.value,
        "summary": analysis.summary,
        "conflictNote": analysis.conflict_note,
    }


def dose_calculation_to_dict(calculation: Optional[InsulinDoseCalculation]) -> Optional[dict[str, Any]]:
    if calculation is None:
        return None
    return {
        "initialTotalDose": calculation.initial_total_dose,
        "basalDose": calculation.basal_dose,
        "bolusDose": calculation.bolus_dose,
        "distribution": {
            "morningNph": calculation.morning_nph,
            "bedtimeNph": calculation.bedtime_nph,
            "breakfastRapid": calculation.breakfast_rapid,
            "lunchRapid": calculation.lunch_rapid,
            "dinnerRapid": calculation.dinner_rapid,
        },
    }


def trend_to_dict(trend: Optional[TrendAnalysis]) -> Optional[dict[str, Any]]:
    if trend is None:
        return None
    return {
        "totalReadings": trend.total_readings,
        "percentInTarget": trend.percent_in_target,
        "percentAboveTarget": trend.percent_above_target,
        "averageGlucose": trend.average_glucose,
        "analysisByPeriod": [period_stats_to_dict(stats) for stats in trend.analysis_by_period],
        "criticalAlerts": [alert_to_dict(alert) for alert in trend.critical_alerts],
        "trend": trend.trend.value,
        "trendDescription": trend.trend_description,
        "dailyAverages": [
            {"day": entry.day, "average": entry.average, "inTarget": entry.in_target, "total": entry.total}
            for entry in trend.daily_averages
        ],
        "periodComparison": [
            {
                "period": entry.period.label,
                "periodKey": entry.period.value,
                "overall": entry.overall,
                "recent": entry.recent,
                "change": entry.change.value,
            }
            for entry in trend.period_comparison
        ],
        "overallPercentInTarget": trend.overall_percent_in_target,
        "overallAverageGlucose": trend.overall_average_glucose,
        "percentInTargetChange": trend.percent_in_target_change,
        "averageGlucoseChange": trend.average_glucose_change,
    }


def rule_to_dict(rule: ClinicalRule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "title": rule.title,
        "classification": rule.classification,
        "description": rule.description,
        "source": rule.source,
        "category": rule.category.value,
    }


def analysis_to_dict(analysis: ClinicalAnalysis) -> dict[str, Any]:
    """Serialize a ``ClinicalAnalysis``; key order is fixed."""

    return {
        "patientName": analysis.patient_name,
        "gestationalAge": analysis.gestational_age,
        "weight": _number(analysis.weight),
        "diabetesType": analysis.diabetes_type.value,
        "totalReadings": analysis.total_readings,
        "totalDaysAnalyzed": analysis.total_days_analyzed,
        "percentInTarget": analysis.percent_in_target,
        "percentAboveTarget": analysis.percent_above_target,
        "averageGlucose": analysis.average_glucose,
        "usesInsulin": analysis.uses_insulin,
        "currentInsulinRegimens": [regimen_to_dict(regimen) for regimen in analysis.current_insulin_regimens],
        "currentInsulinDose": as_number(analysis.current_insulin_dose),
        "insulinDosePerKg": analysis.insulin_dose_per_kg,
        "analysisByPeriod": [period_stats_to_dict(stats) for stats in analysis.analysis_by_period],
        "criticalAlerts": [alert_to_dict(alert) for alert in analysis.critical_alerts],
        "sevenDayAnalysis": trend_to_dict(analysis.seven_day_analysis),
        "insulinCalculation": dose_calculation_to_dict(analysis.insulin_calculation),
        "insulinAdjustments": adjustments_to_dict(analysis.insulin_adjustments),
        "triggeredRules": [rule_to_dict(rule) for rule in analysis.triggered_rules],
        "urgencyLevel": analysis.urgency_level.value,
        "technicalSummary": analysis.technical_summary,
        "recommendedActions": list(analysis.recommended_actions),
        "insulinRecommendation": analysis.insulin_recommendation,
        "guidelineSources": list(analysis.guideline_sources),
        "chronologyWarning": analysis.chronology_warning,
        "dateRange": _date_range(analysis.date_range),
    }
