"""Core data models for the gestational glucose clinical engine."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from .thresholds import (
    FASTING_TARGET,
    MAX_PLAUSIBLE_GLUCOSE,
    NOCTURNAL_TARGET,
    POST_PRANDIAL_1H_TARGET,
    PRE_PRANDIAL_TARGET,
)


class TargetKind(str, Enum):
    """Measurement-timing category that selects a glycemic target."""

    FASTING = "fasting"
    PRE_PRANDIAL = "pre_prandial"
    NOCTURNAL = "nocturnal"
    POST_PRANDIAL_1H = "post_prandial_1h"


class Period(str, Enum):
    """The seven capillary measurement slots of a monitoring day."""

    FASTING = "fasting"
    POST_BREAKFAST_1H = "post_breakfast_1h"
    PRE_LUNCH = "pre_lunch"
    POST_LUNCH_1H = "post_lunch_1h"
    PRE_DINNER = "pre_dinner"
    POST_DINNER_1H = "post_dinner_1h"
    NOCTURNAL_3H = "nocturnal_3h"

    @property
    def label(self) -> str:
        return PERIOD_LABELS[self]

    @property
    def target_kind(self) -> TargetKind:
        return PERIOD_TARGET_KINDS[self]

    @property
    def target_max(self) -> float:
        return TARGETS[self.target_kind]


PERIOD_ORDER: tuple[Period, ...] = tuple(Period)

PERIOD_LABELS: Mapping[Period, str] = {
    Period.FASTING: "Fasting",
    Period.POST_BREAKFAST_1H: "1h post-breakfast",
    Period.PRE_LUNCH: "Pre-lunch",
    Period.POST_LUNCH_1H: "1h post-lunch",
    Period.PRE_DINNER: "Pre-dinner",
    Period.POST_DINNER_1H: "1h post-dinner",
    Period.NOCTURNAL_3H: "Nocturnal (3am)",
}

PERIOD_TARGET_KINDS: Mapping[Period, TargetKind] = {
    Period.FASTING: TargetKind.FASTING,
    Period.POST_BREAKFAST_1H: TargetKind.POST_PRANDIAL_1H,
    Period.PRE_LUNCH: TargetKind.PRE_PRANDIAL,
    Period.POST_LUNCH_1H: TargetKind.POST_PRANDIAL_1H,
    Period.PRE_DINNER: TargetKind.PRE_PRANDIAL,
    Period.POST_DINNER_1H: TargetKind.POST_PRANDIAL_1H,
    Period.NOCTURNAL_3H: TargetKind.NOCTURNAL,
}

TARGETS: Mapping[TargetKind, float] = {
    TargetKind.FASTING: FASTING_TARGET,
    TargetKind.PRE_PRANDIAL: PRE_PRANDIAL_TARGET,
    TargetKind.NOCTURNAL: NOCTURNAL_TARGET,
    TargetKind.POST_PRANDIAL_1H: POST_PRANDIAL_1H_TARGET,
}


class DoseSlot(str, Enum):
    MORNING = "morning"
    LUNCH = "lunch"
    DINNER = "dinner"
    BEDTIME = "bedtime"


class InsulinKind(str, Enum):
    BASAL = "basal"
    PRANDIAL = "prandial"


class InsulinType(str, Enum):
    NPH = "NPH"
    REGULAR = "Regular"
    LISPRO = "Lispro"
    ASPART = "Asparte"
    GLULISINE = "Glulisina"
    GLARGINE = "Glargina"
    DETEMIR = "Detemir"
    DEGLUDEC = "Degludeca"

    @property
    def kind(self) -> InsulinKind:
        if self in _BASAL_INSULINS:
            return InsulinKind.BASAL
        return InsulinKind.PRANDIAL


_BASAL_INSULINS = frozenset(
    {InsulinType.NPH, InsulinType.GLARGINE, InsulinType.DETEMIR, InsulinType.DEGLUDEC}
)


class InsulinComponent(str, Enum):
    """Insulin dose an adjustment can be attributed to."""

    MORNING_NPH = "NPH_MANHA"
    LUNCH_NPH = "NPH_ALMOCO"
    BEDTIME_NPH = "NPH_NOTURNA"
    BREAKFAST_RAPID = "RAPIDA_CAFE"
    LUNCH_RAPID = "RAPIDA_ALMOCO"
    DINNER_RAPID = "RAPIDA_JANTAR"

    @property
    def label(self) -> str:
        return COMPONENT_LABELS[self]

    @property
    def kind(self) -> InsulinKind:
        return COMPONENT_DOSING[self][0]

    @property
    def slots(self) -> tuple[DoseSlot, ...]:
        return COMPONENT_DOSING[self][1]


COMPONENT_LABELS: Mapping[InsulinComponent, str] = {
    InsulinComponent.MORNING_NPH: "morning NPH",
    InsulinComponent.LUNCH_NPH: "lunch NPH",
    InsulinComponent.BEDTIME_NPH: "bedtime NPH",
    InsulinComponent.BREAKFAST_RAPID: "breakfast rapid-acting insulin",
    InsulinComponent.LUNCH_RAPID: "lunch rapid-acting insulin",
    InsulinComponent.DINNER_RAPID: "dinner rapid-acting insulin",
}

# Slots are tried in order; bedtime NPH is sometimes given with dinner.
COMPONENT_DOSING: Mapping[InsulinComponent, tuple[InsulinKind, tuple[DoseSlot, ...]]] = {
    InsulinComponent.MORNING_NPH: (InsulinKind.BASAL, (DoseSlot.MORNING,)),
    InsulinComponent.LUNCH_NPH: (InsulinKind.BASAL, (DoseSlot.LUNCH,)),
    InsulinComponent.BEDTIME_NPH: (InsulinKind.BASAL, (DoseSlot.BEDTIME, DoseSlot.DINNER)),
    InsulinComponent.BREAKFAST_RAPID: (InsulinKind.PRANDIAL, (DoseSlot.MORNING,)),
    InsulinComponent.LUNCH_RAPID: (InsulinKind.PRANDIAL, (DoseSlot.LUNCH,)),
    InsulinComponent.DINNER_RAPID: (InsulinKind.PRANDIAL, (DoseSlot.DINNER,)),
}


class AdjustmentDirection(str, Enum):
    INCREASE = "increase"
    REDUCE = "decrease"
    MAINTAIN = "maintain"
    REQUEST_DATA = "request-data"
    EVALUATE = "evaluate"


class DiabetesType(str, Enum):
    GESTATIONAL = "DMG"
    TYPE_1 = "DM1"
    TYPE_2 = "DM2"

    @property
    def label(self) -> str:
        return {
            DiabetesType.GESTATIONAL: "gestational diabetes mellitus",
            DiabetesType.TYPE_1: "type 1 diabetes mellitus",
            DiabetesType.TYPE_2: "type 2 diabetes mellitus",
        }[self]


class DietAdherence(str, Enum):
    GOOD = "good"
    REGULAR = "regular"
    POOR = "poor"


class AlertType(str, Enum):
    HYPOGLYCEMIA = "hypoglycemia"
    SEVERE_HYPERGLYCEMIA = "severe_hyperglycemia"


class UrgencyLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Trend(str, Enum):
    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"


class PeriodChange(str, Enum):
    BETTER = "better"
    WORSE = "worse"
    SAME = "same"


class RuleCategory(str, Enum):
    """Applicability of a guideline rule by diabetes classification."""

    GESTATIONAL = "DMG"
    TYPE_1 = "DM1"
    TYPE_2 = "DM2"
    UNIVERSAL = "ALL"


def plausible_glucose(value: Any) -> Optional[float]:
    """Return ``value`` as float when it is a usable reading, else ``None``."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number <= 0 or number > MAX_PLAUSIBLE_GLUCOSE:
        return None
    return number


def as_number(value: float) -> int | float:
    """Collapse integral floats to ``int`` for stable output."""

    return int(value) if float(value).is_integer() else float(value)


@dataclass(frozen=True)
class GlucoseReading:
    """One monitoring day: up to seven slots plus an optional date."""

    fasting: Optional[float] = None
    post_breakfast_1h: Optional[float] = None
    pre_lunch: Optional[float] = None
    post_lunch_1h: Optional[float] = None
    pre_dinner: Optional[float] = None
    post_dinner_1h: Optional[float] = None
    nocturnal_3h: Optional[float] = None
    measurement_date: Optional[str | date] = None

    def value(self, period: Period) -> Optional[float]:
        return plausible_glucose(getattr(self, period.value))

    def values(self) -> dict[Period, float]:
        present: dict[Period, float] = {}
        for period in PERIOD_ORDER:
            value = self.value(period)
            if value is not None:
                present[period] = value
        return present

    def has_values(self) -> bool:
        return any(self.value(period) is not None for period in PERIOD_ORDER)


@dataclass(frozen=True)
class InsulinRegimen:
    insulin_type: InsulinType
    morning_ui: Optional[float] = None
    lunch_ui: Optional[float] = None
    dinner_ui: Optional[float] = None
    bedtime_ui: Optional[float] = None

    def dose_at(self, slot: DoseSlot) -> float:
        dose = getattr(self, f"{slot.value}_ui")
        return float(dose) if dose else 0.0

    @property
    def total_dose(self) -> float:
        return sum(self.dose_at(slot) for slot in DoseSlot)


@dataclass(frozen=True)
class PatientEvaluation:
    patient_name: str
    gestational_weeks: int
    gestational_days: int = 0
    diabetes_type: DiabetesType = DiabetesType.GESTATIONAL
    weight: Optional[float] = None
    uses_insulin: bool = False
    insulin_regimens: Sequence[InsulinRegimen] = field(default_factory=tuple)
    diet_adherence: Optional[DietAdherence] = None
    glucose_readings: Sequence[GlucoseReading] = field(default_factory=tuple)
    abdominal_circumference_percentile: Optional[float] = None

    @property
    def gestational_age(self) -> str:
        return f"{self.gestational_weeks} weeks and {self.gestational_days} days"


@dataclass(frozen=True)
class PeriodStats:
    """Per-period statistics against the period target."""

    period: Period
    total: int
    above_target: int
    below_target: int
    in_target: int
    percent_above: int
    average: int
    min_value: int | float
    max_value: int | float
    target_max: float
    values: tuple[int | float, ...]


@dataclass(frozen=True)
class CriticalAlert:
    type: AlertType
    value: int | float
    period: Period
    day: int
    measurement_date: Optional[str] = None


@dataclass(frozen=True)
class DataGap:
    start: date
    end: date
    days: int


@dataclass(frozen=True)
class ChronologyResult:
    """Trailing analysis window plus data-quality information."""

    readings: tuple[GlucoseReading, ...]
    dates_reliable: bool
    gaps: tuple[DataGap, ...] = ()
    warning: Optional[str] = None
    date_range: Optional[tuple[date, date]] = None
    total_records: int = 0
    dated_records: int = 0
    truncated: bool = False


@dataclass(frozen=True)
class PeriodAdjustmentResult:
    period: Period
    insulin: InsulinComponent
    direction: AdjustmentDirection
    justification: str
    days_with_problem: int
    days_analyzed: int
    observed_values: tuple[int | float, ...] = ()
    reference_value: Optional[float] = None
    current_dose: Optional[float] = None
    suspended: bool = False
    original_direction: Optional[AdjustmentDirection] = None
    hyperglycemia_overridden: bool = False
    rule_id: str = ""


@dataclass(frozen=True)
class InsulinAdjustmentAnalysis:
    results: tuple[PeriodAdjustmentResult, ...]
    overall_direction: AdjustmentDirection
    summary: str
    conflict_note: Optional[str] = None

    @property
    def recommended(self) -> tuple[PeriodAdjustmentResult, ...]:
        """Results that call for action or record a suspended increase."""

        return tuple(
            result
            for result in self.results
            if result.suspended or result.direction is not AdjustmentDirection.MAINTAIN
        )


@dataclass(frozen=True)
class InsulinDoseCalculation:
    initial_total_dose: int
    basal_dose: int
    bolus_dose: int
    morning_nph: int
    bedtime_nph: int
    breakfast_rapid: int
    lunch_rapid: int
    dinner_rapid: int


@dataclass(frozen=True)
class DailyAverage:
    day: int
    average: int
    in_target: int
    total: int


@dataclass(frozen=True)
class PeriodComparison:
    period: Period
    overall: int
    recent: int
    change: PeriodChange


@dataclass(frozen=True)
class TrendAnalysis:
    """Trailing-window metrics compared against the full history."""

    total_readings: int
    percent_in_target: int
    percent_above_target: int
    average_glucose: int
    analysis_by_period: tuple[PeriodStats, ...]
    critical_alerts: tuple[CriticalAlert, ...]
    trend: Trend
    trend_description: str
    daily_averages: tuple[DailyAverage, ...]
    period_comparison: tuple[PeriodComparison, ...]
    overall_percent_in_target: int
    overall_average_glucose: int
    percent_in_target_change: int
    average_glucose_change: int


@dataclass(frozen=True)
class ClinicalRule:
    """Static guideline recommendation."""

    id: str
    title: str
    classification: str
    description: str
    source: str
    category: RuleCategory

    def applies_to(self, diabetes_type: DiabetesType) -> bool:
        if self.category is RuleCategory.UNIVERSAL:
            return True
        return self.category.value == diabetes_type.value


@dataclass(frozen=True)
class ClinicalAnalysis:
    """Single engine output for one evaluation."""

    patient_name: str
    gestational_age: str
    weight: Optional[float]
    diabetes_type: DiabetesType
    total_readings: int
    total_days_analyzed: int
    percent_in_target: int
    percent_above_target: int
    average_glucose: int
    uses_insulin: bool
    current_insulin_regimens: tuple[InsulinRegimen, ...]
    current_insulin_dose: float
    insulin_dose_per_kg: Optional[float]
    analysis_by_period: tuple[PeriodStats, ...]
    critical_alerts: tuple[CriticalAlert, ...]
    seven_day_analysis: Optional[TrendAnalysis]
    insulin_calculation: Optional[InsulinDoseCalculation]
    insulin_adjustments: Optional[InsulinAdjustmentAnalysis]
    triggered_rules: tuple[ClinicalRule, ...]
    urgency_level: UrgencyLevel
    technical_summary: str
    recommended_actions: tuple[str, ...]
    insulin_recommendation: str
    guideline_sources: tuple[str, ...]
    chronology_warning: Optional[str] = None
    date_range: Optional[tuple[date, date]] = None


@dataclass(frozen=True)
class AdjustmentContext:
    """Auxiliary context passed to each adjustment rule."""

    thresholds: Mapping[str, Any] = field(default_factory=dict)
    rule_settings: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    insulin_regimens: Sequence[InsulinRegimen] = field(default_factory=tuple)

    def rule_threshold(self, rule_id: str, key: str, default: Any) -> Any:
        """Return rule-specific override, falling back to global thresholds"""

        rule_specific = self.rule_settings.get(rule_id, {})
        if key in rule_specific:
            return rule_specific[key]
        return self.thresholds.get(key, default)


@dataclass(frozen=True)
class AdjustmentWindow:
    """Trailing-window readings with memoised per-period lookups."""

    readings: Sequence[GlucoseReading]
    values_cache: dict[Period, tuple[tuple[int, float], ...]] = field(
        default_factory=dict,
        repr=False,
    )

    @property
    def days(self) -> int:
        return len(self.readings)

    def values(self, period: Period) -> tuple[tuple[int, float], ...]:
        """Return ``(day, value)`` pairs for a period, days numbered from 1."""

        cached = self.values_cache.get(period)
        if cached is not None:
            return cached
        pairs: list[tuple[int, float]] = []
        for day, reading in enumerate(self.readings, start=1):
            value = reading.value(period)
            if value is not None:
                pairs.append((day, value))
        cached = tuple(pairs)
        self.values_cache[period] = cached
        return cached

    def paired(self, first: Period, second: Period) -> list[tuple[int, float, float]]:
        """Return days on which both periods carry a value."""

        second_by_day = dict(self.values(second))
        return [
            (day, value, second_by_day[day])
            for day, value in self.values(first)
            if day in second_by_day
        ]
