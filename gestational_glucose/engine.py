"""Compose the per-component analyses into one clinical result."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Collection, Mapping, Optional, Sequence

from .alerts import detect_critical_alerts
from .chronology import resolve_window
from .dosing import calculate_insulin_dose, current_total_dose, dose_per_kg
from .guidelines import GUIDELINE_SOURCES, TriggerContext, determine_triggered_rules
from .insulin_adjustment import analyze_insulin_adjustments
from .models import (
    AdjustmentContext,
    AdjustmentDirection,
    AlertType,
    ClinicalAnalysis,
    CriticalAlert,
    DiabetesType,
    InsulinAdjustmentAnalysis,
    InsulinDoseCalculation,
    PatientEvaluation,
    PeriodStats,
    TargetKind,
    UrgencyLevel,
)
from .periods import PooledStats, analyze_by_period, summarize_periods
from .registry import RuleRegistry
from .thresholds import (
    ASPIRIN_WEEKS,
    CRITICAL_IN_TARGET_PERCENT,
    DEFAULT_MAX_GAP_DAYS,
    DEFAULT_WINDOW_DAYS,
    FETAL_SURVEILLANCE_WEEKS,
    HIGH_INSULIN_DOSE_PER_KG,
    HIGH_POSTPRANDIAL_PERCENT_ABOVE,
    PHARMACOLOGIC_THERAPY_PERCENT_ABOVE,
    TREND_DEVIATION_THRESHOLD,
    WARNING_IN_TARGET_PERCENT,
    WEEKLY_REVIEW_WEEKS,
)
from .trend import compare_windows

logger = logging.getLogger(__name__)

# Periods with more readings above target than this are called out in the summary.
SUMMARY_PERIOD_PERCENT_ABOVE = 30


def classify_urgency(alerts: Sequence[CriticalAlert], percent_in_target: Optional[int]) -> UrgencyLevel:
    """Critical on any alert or under 50% in target; warning under 70%.

    ``None`` means there were no readings to measure; that is a warning, not 0% in target.
    """

    if alerts:
        return UrgencyLevel.CRITICAL
    if percent_in_target is None:
        return UrgencyLevel.WARNING
    if percent_in_target < CRITICAL_IN_TARGET_PERCENT:
        return UrgencyLevel.CRITICAL
    if percent_in_target < WARNING_IN_TARGET_PERCENT:
        return UrgencyLevel.WARNING
    return UrgencyLevel.INFO


def _format_number(value: float) -> str:
    return f"{value:g}"


def _cite(triggered: Collection[str], *rule_ids: str) -> str:
    """Render ``" (SBD-R1, SBD-R2)"`` for the ids that were triggered, else an empty string."""

    cited = [rule_id for rule_id in rule_ids if rule_id in triggered]
    return f" ({', '.join(cited)})" if cited else ""


class ClinicalEngine:
    """Runs the full analysis for one patient evaluation at a time."""

    def __init__(
        self,
        *,
        window_days: int = DEFAULT_WINDOW_DAYS,
        max_gap_days: int = DEFAULT_MAX_GAP_DAYS,
        trend_threshold: float = TREND_DEVIATION_THRESHOLD,
        registry: RuleRegistry | None = None,
        thresholds: Mapping[str, Any] | None = None,
        rule_settings: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        if window_days <= 0:
            raise ValueError("window_days must be positive")
        if max_gap_days < 0:
            raise ValueError("max_gap_days must be >= 0")
        self._window_days = window_days
        self._max_gap_days = max_gap_days
        self._trend_threshold = trend_threshold
        self._registry = registry
        self._thresholds = dict(thresholds or {})
        self._rule_settings = {key: dict(value) for key, value in (rule_settings or {}).items()}

    def analyze(self, evaluation: PatientEvaluation, *, now: Optional[date] = None) -> ClinicalAnalysis:
        readings = evaluation.glucose_readings
        if not isinstance(readings, (list, tuple)):
            raise TypeError(
                f"glucose_readings must be a list or tuple, got {type(readings).__name__}"
            )
        regimens = evaluation.insulin_regimens
        if not isinstance(regimens, (list, tuple)):
            raise TypeError(
                f"insulin_regimens must be a list or tuple, got {type(regimens).__name__}"
            )

        history = tuple(readings)
        chronology = resolve_window(history, self._window_days, self._max_gap_days, now=now)

        overall_stats = analyze_by_period(history)
        totals = summarize_periods(overall_stats)
        alerts = detect_critical_alerts(history)

        seven_day = compare_windows(
            history,
            chronology.readings,
            threshold=self._trend_threshold,
            window_days=self._window_days,
            overall_stats=overall_stats,
        )
        adjustments = self._build_adjustments(evaluation, chronology.readings)
        calculation = calculate_insulin_dose(evaluation.weight)
        total_dose = current_total_dose(regimens)
        per_kg = dose_per_kg(total_dose, evaluation.weight)

        triggered = determine_triggered_rules(
            TriggerContext(
                percent_above_target=totals.percent_above_target,
                uses_insulin=evaluation.uses_insulin,
                gestational_weeks=evaluation.gestational_weeks,
                diabetes_type=evaluation.diabetes_type,
                abdominal_circumference_percentile=evaluation.abdominal_circumference_percentile,
                insulin_dose_per_kg=per_kg,
            )
        )
        urgency = classify_urgency(
            alerts, totals.percent_in_target if totals.total_readings else None
        )

        cited = frozenset(rule.id for rule in triggered)
        recommendation, therapy_actions = self._insulin_recommendation(
            evaluation, totals, overall_stats, calculation, adjustments, per_kg, cited
        )
        actions = (
            self._alert_actions(alerts, cited)
            + therapy_actions
            + self._pregnancy_actions(evaluation, cited)
        )

        logger.info(
            "Analyzed %d records (%d in window): urgency=%s, alerts=%d, rules=%d",
            len(history),
            len(chronology.readings),
            urgency.value,
            len(alerts),
            len(triggered),
        )
        return ClinicalAnalysis(
            patient_name=evaluation.patient_name,
            gestational_age=evaluation.gestational_age,
            weight=evaluation.weight,
            diabetes_type=evaluation.diabetes_type,
            total_readings=totals.total_readings,
            total_days_analyzed=len(history),
            percent_in_target=totals.percent_in_target,
            percent_above_target=totals.percent_above_target,
            average_glucose=totals.average_glucose,
            uses_insulin=evaluation.uses_insulin,
            current_insulin_regimens=tuple(regimens),
            current_insulin_dose=total_dose,
            insulin_dose_per_kg=per_kg,
            analysis_by_period=tuple(overall_stats),
            critical_alerts=tuple(alerts),
            seven_day_analysis=seven_day,
            insulin_calculation=calculation,
            insulin_adjustments=adjustments,
            triggered_rules=tuple(triggered),
            urgency_level=urgency,
            technical_summary=self._technical_summary(
                evaluation, totals, overall_stats, total_dose, per_kg, adjustments, len(chronology.readings)
            ),
            recommended_actions=tuple(actions),
            insulin_recommendation=recommendation,
            guideline_sources=GUIDELINE_SOURCES,
            chronology_warning=chronology.warning,
            date_range=chronology.date_range,
        )

    def _build_adjustments(
        self,
        evaluation: PatientEvaluation,
        window: Sequence,
    ) -> Optional[InsulinAdjustmentAnalysis]:
        if not evaluation.uses_insulin:
            return None
        context = AdjustmentContext(
            thresholds=self._thresholds,
            rule_settings=self._rule_settings,
            insulin_regimens=tuple(evaluation.insulin_regimens),
        )
        return analyze_insulin_adjustments(window, context=context, registry=self._registry)

    def _technical_summary(
        self,
        evaluation: PatientEvaluation,
        totals: PooledStats,
        stats: Sequence[PeriodStats],
        total_dose: float,
        per_kg: Optional[float],
        adjustments: Optional[InsulinAdjustmentAnalysis],
        window_size: int,
    ) -> str:
        parts = [f"Patient {evaluation.patient_name}, {evaluation.gestational_age} of gestational age"]
        if evaluation.weight and evaluation.weight > 0:
            parts[0] += f", weight {_format_number(evaluation.weight)} kg"
        parts[0] += "."
        parts.append(f"Diagnosis: {evaluation.diabetes_type.label}.")
        parts.append(
            f"Analysis of {len(evaluation.glucose_readings)} days with {totals.total_readings} glucose readings."
        )
        parts.append(f"In target: {totals.percent_in_target}%.")
        parts.append(f"Above target: {totals.percent_above_target}%.")
        parts.append(f"Mean glucose: {totals.average_glucose} mg/dL.")

        if evaluation.uses_insulin:
            dose_text = f"total dose {_format_number(total_dose)} UI/day"
            if per_kg is not None:
                dose_text += f", {per_kg:.2f} UI/kg/day"
            parts.append(f"On insulin therapy ({dose_text}).")
        else:
            parts.append("No current insulin therapy.")

        for entry in stats:
            if entry.percent_above > SUMMARY_PERIOD_PERCENT_ABOVE:
                parts.append(
                    f"{entry.period.label}: {entry.percent_above}% above target "
                    f"(mean {entry.average} mg/dL, target < {_format_number(entry.target_max)} mg/dL)."
                )

        if adjustments is not None:
            parts.append(f"Insulin adjustment analysis (last {window_size} records): {adjustments.summary}")
        return " ".join(parts)

    def _insulin_recommendation(
        self,
        evaluation: PatientEvaluation,
        totals: PooledStats,
        stats: Sequence[PeriodStats],
        calculation: Optional[InsulinDoseCalculation],
        adjustments: Optional[InsulinAdjustmentAnalysis],
        per_kg: Optional[float],
        cited: Collection[str] = frozenset(),
    ) -> tuple[str, list[str]]:
        """Return the recommendation text and its actions.

        Guideline ids are cited only when they appear among the triggered rules.
        """

        percent_above = totals.percent_above_target

        if not evaluation.uses_insulin and percent_above >= PHARMACOLOGIC_THERAPY_PERCENT_ABOVE:
            text = (
                f"INSULIN THERAPY INDICATED{_cite(cited, 'SBD-R1', 'SBD-R2')}: "
                f"{percent_above}% of readings above target after non-pharmacologic therapy. "
            )
            if calculation is not None:
                text += (
                    f"Suggested starting dose: {calculation.initial_total_dose} UI/day "
                    f"(0.5 UI/kg x {_format_number(evaluation.weight)} kg){_cite(cited, 'SBD-R4')}. "
                    f"Split: NPH {calculation.morning_nph} UI morning + {calculation.bedtime_nph} UI at bedtime"
                    f"{_cite(cited, 'SBD-R5')}. "
                )
                high_post_prandial = any(
                    entry.period.target_kind is TargetKind.POST_PRANDIAL_1H
                    and entry.percent_above >= HIGH_POSTPRANDIAL_PERCENT_ABOVE
                    for entry in stats
                )
                if high_post_prandial:
                    text += (
                        f"Add rapid-acting insulin before meals{_cite(cited, 'SBD-R6')}: "
                        f"breakfast {calculation.breakfast_rapid} UI, lunch {calculation.lunch_rapid} UI, "
                        f"dinner {calculation.dinner_rapid} UI. "
                    )
            else:
                text += (
                    f"Starting dose: 0.5 UI/kg/day{_cite(cited, 'SBD-R4')}; "
                    "weight not provided for the calculation. "
                )
            text += (
                "Metformin as an alternative if insulin is not feasible"
                f"{_cite(cited, 'SBD-R7', 'WHO-W7')}. "
                f"WARNING: glibenclamide is CONTRAINDICATED{_cite(cited, 'SBD-R9')}."
            )
            return text, [
                f"Start insulin therapy at the calculated dose{_cite(cited, 'SBD-R2', 'SBD-R4')}",
                f"Teach injection technique and glucose self-monitoring{_cite(cited, 'WHO-W5')}",
                "Reassess in 7-14 days for dose adjustment",
            ]

        if evaluation.uses_insulin:
            if adjustments is None:
                return (
                    "Insufficient recent glucose data to assess the insulin regimen. Maintain current doses "
                    "and resume complete glucose monitoring.",
                    [f"Record all seven daily glucose measurements before the next review{_cite(cited, 'WHO-W5')}"],
                )
            if adjustments.overall_direction is AdjustmentDirection.MAINTAIN:
                return (
                    f"{adjustments.summary} Adequate glycemic control.",
                    ["Maintain glucose monitoring and current management"],
                )
            text = f"INSULIN ADJUSTMENT{_cite(cited, 'SBD-R4', 'SBD-R11')}: {adjustments.summary}"
            if (
                per_kg is not None
                and per_kg > HIGH_INSULIN_DOSE_PER_KG
                and percent_above >= PHARMACOLOGIC_THERAPY_PERCENT_ABOVE
                and evaluation.diabetes_type is DiabetesType.GESTATIONAL
            ):
                text += (
                    " Current dose above 2 UI/kg/day without adequate control: consider adding metformin"
                    f"{_cite(cited, 'SBD-R8')}."
                )
            if evaluation.gestational_weeks >= WEEKLY_REVIEW_WEEKS:
                review = "Reassess in 7 days (weekly adjustments after 30 weeks, SBD)"
            else:
                review = "Reassess in 14 days (fortnightly adjustments up to 30 weeks, SBD)"
            return text, [review]

        return (
            "Maintain non-pharmacologic therapy (diet and physical activity). Adequate glycemic control"
            f"{_cite(cited, 'FEBRASGO-F5')}.",
            [
                "Maintain nutritional counselling",
                "Maintain regular physical activity",
                f"Continue glucose self-monitoring{_cite(cited, 'WHO-W5')}",
            ],
        )

    @staticmethod
    def _alert_actions(alerts: Sequence[CriticalAlert], cited: Collection[str] = frozenset()) -> list[str]:
        actions: list[str] = []
        if any(alert.type is AlertType.HYPOGLYCEMIA for alert in alerts):
            actions += [
                "URGENT: hypoglycemia detected. Review insulin doses and eating pattern immediately"
                f"{_cite(cited, 'SBD-R4')}",
                "Consider a 10-20% reduction of the insulin dose for the related period",
                "Educate the patient on hypoglycemia symptoms and treatment",
            ]
        if any(alert.type is AlertType.SEVERE_HYPERGLYCEMIA for alert in alerts):
            actions += [
                "URGENT: severe hyperglycemia (>200 mg/dL). Immediate action required",
                "Review insulin doses for a 20-30% increase once hypoglycemia is excluded",
                "Consider hospital admission if it persists",
            ]
        return actions

    @staticmethod
    def _pregnancy_actions(evaluation: PatientEvaluation, cited: Collection[str] = frozenset()) -> list[str]:
        actions: list[str] = []
        if evaluation.gestational_weeks >= FETAL_SURVEILLANCE_WEEKS:
            actions.append(f"Intensify fetal surveillance{_cite(cited, 'FEBRASGO-F8', 'WHO-W8')}")
        first, last = ASPIRIN_WEEKS
        if (
            evaluation.diabetes_type in (DiabetesType.TYPE_1, DiabetesType.TYPE_2)
            and first <= evaluation.gestational_weeks <= last
        ):
            actions.append(
                f"Start aspirin 75-100 mg/day for pre-eclampsia prevention{_cite(cited, 'SBD-R17')}"
            )
        return actions


def generate_clinical_analysis(
    evaluation: PatientEvaluation,
    *,
    now: Optional[date] = None,
    **engine_options: Any,
) -> ClinicalAnalysis:
    """Analyze one evaluation with a throwaway engine."""

    return ClinicalEngine(**engine_options).analyze(evaluation, now=now)
