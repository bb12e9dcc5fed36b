"""Guideline catalog (SBD 2025, FEBRASGO 2019, WHO 2025) and trigger table."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional

from .models import ClinicalRule, DiabetesType, RuleCategory
from .thresholds import (
    DELIVERY_PLANNING_WEEKS,
    FETAL_AC_PERCENTILE,
    FETAL_AC_WEEKS,
    FETAL_SURVEILLANCE_WEEKS,
    HIGH_INSULIN_DOSE_PER_KG,
    HIGH_POSTPRANDIAL_PERCENT_ABOVE,
    PHARMACOLOGIC_THERAPY_PERCENT_ABOVE,
)

SBD_SOURCE = "SBD 2025"
FEBRASGO_SOURCE = "FEBRASGO 2019"
WHO_SOURCE = "WHO 2025"

GUIDELINE_SOURCES: tuple[str, ...] = (
    f"{SBD_SOURCE} (R1-R17)",
    f"{FEBRASGO_SOURCE} (F1-F10)",
    f"{WHO_SOURCE} (W1-W12)",
)

_SBD_2025: dict[str, dict[str, str]] = {
    "R1": {
        "title": "Starting pharmacologic therapy in GDM",
        "classification": "Class IIb, Level C",
        "description": "Pharmacologic therapy MAY BE CONSIDERED in women with GDM when two or more glucose "
        "measurements, assessed after 7 to 14 days of non-pharmacologic therapy, are above target. "
        "Alternative: 30% to 50% of measurements above target within one week.",
        "category": "DMG",
    },
    "R2": {
        "title": "Insulin as first choice in GDM",
        "classification": "Class I, Level A",
        "description": "Insulin IS RECOMMENDED as the first-choice pharmacologic therapy for glycemic control "
        "in women with GDM.",
        "category": "DMG",
    },
    "R3": {
        "title": "Fetal growth criterion for insulin",
        "classification": "Class IIb, Level B",
        "description": "Starting insulin on the fetal growth criterion, regardless of glucose values, MAY BE "
        "CONSIDERED when fetal abdominal circumference is >= 75th percentile on ultrasound performed "
        "between 29 and 33 weeks of gestation.",
        "category": "DMG",
    },
    "R4": {
        "title": "Initial insulin dose in GDM",
        "classification": "Class IIb, Level C",
        "description": "Insulin therapy for pregnant women with GDM MAY BE CONSIDERED at an initial total "
        "dose of 0.5 UI/kg/day, with individualized adjustments based on daily glucose monitoring "
        "every 1-2 weeks.",
        "category": "DMG",
    },
    "R5": {
        "title": "Approved insulin types",
        "classification": "Class IIa, Level C",
        "description": "Human NPH/Regular insulins and insulin analogues approved for pregnancy SHOULD BE "
        "CONSIDERED. Category A (ANVISA): Aspart, Fast-Aspart, Detemir, Degludec. Category B: Regular, "
        "NPH, Lispro. Category C: Glargine, Glulisine (use with caution).",
        "category": "ALL",
    },
    "R6": {
        "title": "Rapid-acting analogues for post-prandial control",
        "classification": "Class IIa, Level B",
        "description": "Rapid or ultra-rapid insulin analogues approved for pregnancy SHOULD BE CONSIDERED "
        "in GDM with difficult control of post-prandial glycemic excursions.",
        "category": "DMG",
    },
    "R7": {
        "title": "Metformin as an alternative in GDM",
        "classification": "Class I, Level B",
        "description": "Metformin IS RECOMMENDED in women with GDM without adequate glycemic control on "
        "non-pharmacologic measures, as an alternative when insulin cannot be used. Contraindicated "
        "with fetuses below the 50th percentile or with IUGR.",
        "category": "DMG",
    },
    "R8": {
        "title": "Metformin plus insulin in GDM",
        "classification": "Class IIa, Level B",
        "description": "Adding metformin to insulin SHOULD BE CONSIDERED in pregnant women with GDM who "
        "need high insulin doses (>2 UI/kg/day) without adequate glycemic control or with excessive "
        "maternal or fetal weight gain.",
        "category": "DMG",
    },
    "R9": {
        "title": "Glibenclamide contraindicated",
        "classification": "Class III, Level A",
        "description": "Glibenclamide IS NOT RECOMMENDED in pregnant women with GDM because of increased "
        "risk of macrosomia and neonatal hypoglycemia. ABSOLUTE CONTRAINDICATION.",
        "category": "DMG",
    },
    "R10": {
        "title": "T2DM: stop oral antidiabetic agents",
        "classification": "Class I, Level C",
        "description": "Pregnant women with T2DM SHOULD stop non-insulin treatment before or soon after "
        "conception, provided immediate replacement by insulin therapy is assured.",
        "category": "DM2",
    },
    "R11": {
        "title": "Intensive regimens in T1DM/T2DM",
        "classification": "Class I, Level B",
        "description": "Intensive insulin regimens with multiple daily injections (MDI) or continuous "
        "subcutaneous infusion (CSII) ARE RECOMMENDED for glycemic control in pregnant women with T1DM "
        "and T2DM.",
        "category": "ALL",
    },
    "R12": {
        "title": "T1DM: post-partum insulin reduction",
        "classification": "Class I, Level C",
        "description": "In the first hours after delivery in women with T1DM it IS RECOMMENDED to reduce "
        "the pre-pregnancy or first-trimester insulin dose by 50%, or the late-pregnancy dose by 70%. "
        "Further adjustments are needed throughout the puerperium.",
        "category": "DM1",
    },
    "R13": {
        "title": "Insulin adjustment with corticosteroids",
        "classification": "Class I, Level C",
        "description": "Increasing the insulin dose and intensifying glucose monitoring for up to 72 hours "
        "after the last corticosteroid dose IS RECOMMENDED when corticosteroids are given for fetal "
        "lung maturation.",
        "category": "ALL",
    },
    "R14": {
        "title": "T1DM: rapid analogues for post-prandial control",
        "classification": "Class I, Level B",
        "description": "Rapid (Lispro, Aspart) or ultra-rapid (Fast-Aspart) insulin analogues ARE "
        "RECOMMENDED for post-prandial control in pregnant women with T1DM, given their lower risk "
        "of hypoglycemia.",
        "category": "DM1",
    },
    "R15": {
        "title": "Keep long-acting analogues",
        "classification": "Class IIa, Level A",
        "description": "Keeping long-acting insulin analogues SHOULD BE CONSIDERED in women with T1DM and "
        "T2DM who used them before pregnancy. Detemir and Degludec are Category A. Glargine is "
        "Category C (use with caution).",
        "category": "ALL",
    },
    "R16": {
        "title": "T2DM: metformin plus insulin",
        "classification": "Class IIa, Level B",
        "description": "Metformin combined with insulin SHOULD BE CONSIDERED in pregnant women with T2DM, "
        "especially with excessive gestational weight gain or large-for-gestational-age fetuses.",
        "category": "DM2",
    },
    "R17": {
        "title": "Aspirin for pre-eclampsia prevention",
        "classification": "Class I, Level A",
        "description": "Aspirin 75 to 100 mg/day IS RECOMMENDED for pregnant women with pre-gestational "
        "T1DM or T2DM, started between 12 and 28 weeks (preferably before 16 weeks) and kept until "
        "delivery.",
        "category": "ALL",
    },
}

_FEBRASGO_2019: dict[str, dict[str, str]] = {
    "F1": {
        "title": "Universal GDM screening",
        "classification": "Recommendation A",
        "description": "Universal GDM screening IS RECOMMENDED for all pregnant women. Fasting glucose "
        "should be requested at the first prenatal visit, preferably before 20 weeks.",
        "category": "DMG",
    },
    "F2": {
        "title": "Diagnosis of pre-existing diabetes",
        "classification": "Recommendation A",
        "description": "Fasting glucose >= 126 mg/dL or HbA1c >= 6.5% at the first visit indicates "
        "pre-existing diabetes (T1DM or T2DM), not GDM. Confirm with a second measurement when "
        "asymptomatic.",
        "category": "ALL",
    },
    "F3": {
        "title": "GDM diagnostic criterion: fasting",
        "classification": "Recommendation A",
        "description": "Fasting glucose between 92 and 125 mg/dL at the first prenatal visit is "
        "diagnostic of GDM. An OGTT is not needed to confirm.",
        "category": "DMG",
    },
    "F4": {
        "title": "75g OGTT at 24-28 weeks",
        "classification": "Recommendation A",
        "description": "Pregnant women with fasting glucose < 92 mg/dL should take a 75g OGTT at 24-28 "
        "weeks. GDM criteria: fasting >= 92, 1h >= 180, 2h >= 153 mg/dL. One abnormal value is "
        "sufficient.",
        "category": "DMG",
    },
    "F5": {
        "title": "Glycemic targets in GDM",
        "classification": "Recommendation B",
        "description": "Glycemic targets in GDM: fasting 65-95 mg/dL, 1h post-prandial < 140 mg/dL, 2h "
        "post-prandial < 120 mg/dL. Capillary glucose monitoring 4-7 times a day.",
        "category": "DMG",
    },
    "F6": {
        "title": "Initial nutritional therapy",
        "classification": "Recommendation A",
        "description": "Nutritional therapy is first-line treatment in GDM. It should be individualized at "
        "30-35 kcal/kg of ideal weight, with carbohydrates at 40-45% of total energy, favoring a low "
        "glycemic index.",
        "category": "DMG",
    },
    "F7": {
        "title": "Physical activity in pregnancy",
        "classification": "Recommendation B",
        "description": "Regular physical activity (30 min/day, 5 days/week) IS RECOMMENDED for pregnant "
        "women with GDM without obstetric contraindications. Walking and low-impact exercise are "
        "preferred.",
        "category": "DMG",
    },
    "F8": {
        "title": "Fetal surveillance in GDM",
        "classification": "Recommendation B",
        "description": "Fetal surveillance should include monthly growth ultrasound, a fetal biophysical "
        "profile from 32 weeks in GDM on insulin, and weekly cardiotocography from 36 weeks.",
        "category": "DMG",
    },
    "F9": {
        "title": "Timing of delivery in GDM",
        "classification": "Recommendation B",
        "description": "Well-controlled GDM without complications: await spontaneous labor up to 40 weeks. "
        "GDM on insulin or poorly controlled: induction at 38-39 weeks. Macrosomia > 4500 g: discuss "
        "cesarean delivery.",
        "category": "DMG",
    },
    "F10": {
        "title": "Post-partum reclassification",
        "classification": "Recommendation A",
        "description": "All women with GDM should take a 75g OGTT 6-12 weeks after delivery for "
        "reclassification, followed by annual T2DM screening.",
        "category": "DMG",
    },
}

_WHO_2025: dict[str, dict[str, str]] = {
    "W1": {
        "title": "Screening for hyperglycemia",
        "classification": "Strong recommendation",
        "description": "Screening all pregnant women for hyperglycemia IS RECOMMENDED. In high-prevalence "
        "settings screen at the first prenatal visit and repeat at 24-28 weeks if normal.",
        "category": "ALL",
    },
    "W2": {
        "title": "WHO diagnostic criteria",
        "classification": "Strong recommendation",
        "description": "GDM criteria (75g OGTT): fasting >= 92 mg/dL, 1h >= 180 mg/dL, 2h >= 153 mg/dL. "
        "Diabetes in pregnancy: fasting >= 126 mg/dL or 2h >= 200 mg/dL.",
        "category": "ALL",
    },
    "W3": {
        "title": "Nutritional management",
        "classification": "Strong recommendation",
        "description": "Individualized nutritional counselling IS RECOMMENDED for all pregnant women with "
        "hyperglycemia. The diet should be culturally appropriate and favor low glycemic index "
        "carbohydrates.",
        "category": "ALL",
    },
    "W4": {
        "title": "Physical activity",
        "classification": "Conditional recommendation",
        "description": "Regular physical activity SHOULD BE CONSIDERED for pregnant women with "
        "hyperglycemia without contraindications: at least 150 min/week of moderate-intensity "
        "exercise.",
        "category": "ALL",
    },
    "W5": {
        "title": "Self-monitoring of blood glucose",
        "classification": "Strong recommendation",
        "description": "Capillary glucose self-monitoring IS RECOMMENDED for pregnant women with diabetes "
        "on insulin. Minimum frequency: fasting and 1-2h post-prandial at the main meals.",
        "category": "ALL",
    },
    "W6": {
        "title": "Insulin as preferred treatment",
        "classification": "Strong recommendation",
        "description": "Insulin IS RECOMMENDED as first-line pharmacologic treatment for hyperglycemia in "
        "pregnancy when glycemic targets are not met with non-pharmacologic measures.",
        "category": "ALL",
    },
    "W7": {
        "title": "Metformin as an alternative",
        "classification": "Conditional recommendation",
        "description": "Metformin MAY BE CONSIDERED as an alternative to insulin in GDM when insulin is "
        "unavailable, refused by the patient, or difficult to access or administer.",
        "category": "DMG",
    },
    "W8": {
        "title": "Fetal surveillance",
        "classification": "Conditional recommendation",
        "description": "Intensified fetal surveillance SHOULD BE CONSIDERED for pregnant women with poorly "
        "controlled diabetes or complications, including growth ultrasound and fetal well-being "
        "assessment.",
        "category": "ALL",
    },
    "W9": {
        "title": "Timing of delivery",
        "classification": "Conditional recommendation",
        "description": "Induction of labor between 38 and 40 weeks SHOULD BE CONSIDERED for pregnant women "
        "with diabetes on insulin. Elective cesarean is not indicated for diabetes alone.",
        "category": "ALL",
    },
    "W10": {
        "title": "Post-partum care",
        "classification": "Strong recommendation",
        "description": "Post-partum screening (75g OGTT at 6-12 weeks) IS RECOMMENDED for women who had "
        "GDM, with counselling on future T2DM risk and prevention.",
        "category": "DMG",
    },
    "W11": {
        "title": "Breastfeeding",
        "classification": "Strong recommendation",
        "description": "Exclusive breastfeeding IS RECOMMENDED for infants of mothers with diabetes. It "
        "may help maternal glycemic control and reduce the risk of childhood obesity.",
        "category": "ALL",
    },
    "W12": {
        "title": "Neonatal care",
        "classification": "Strong recommendation",
        "description": "Newborns of mothers with diabetes should be monitored for neonatal hypoglycemia "
        "in the first 24-48h of life. Early feeding is recommended.",
        "category": "ALL",
    },
}


def _build_catalog(prefix: str, source: str, entries: Mapping[str, Mapping[str, str]]) -> Mapping[str, ClinicalRule]:
    return MappingProxyType(
        {
            key: ClinicalRule(
                id=f"{prefix}-{key}",
                title=entry["title"],
                classification=entry["classification"],
                description=entry["description"],
                source=source,
                category=RuleCategory(entry["category"]),
            )
            for key, entry in entries.items()
        }
    )


SBD_2025_RULES = _build_catalog("SBD", SBD_SOURCE, _SBD_2025)
FEBRASGO_2019_RULES = _build_catalog("FEBRASGO", FEBRASGO_SOURCE, _FEBRASGO_2019)
WHO_2025_RULES = _build_catalog("WHO", WHO_SOURCE, _WHO_2025)

# Per-source catalogs are keyed by the short key ("R1"); the combined map by public id ("SBD-R1").
_RULES_BY_KEY: Mapping[str, ClinicalRule] = MappingProxyType(
    {**SBD_2025_RULES, **FEBRASGO_2019_RULES, **WHO_2025_RULES}
)
CLINICAL_RULES: Mapping[str, ClinicalRule] = MappingProxyType(
    {rule.id: rule for rule in _RULES_BY_KEY.values()}
)


@dataclass(frozen=True)
class TriggerContext:
    """Inputs the trigger predicates are evaluated against."""

    percent_above_target: float
    uses_insulin: bool
    gestational_weeks: int
    diabetes_type: DiabetesType = DiabetesType.GESTATIONAL
    abdominal_circumference_percentile: Optional[float] = None
    insulin_dose_per_kg: Optional[float] = None

    @property
    def needs_pharmacologic_therapy(self) -> bool:
        return self.percent_above_target >= PHARMACOLOGIC_THERAPY_PERCENT_ABOVE

    @property
    def is_gestational(self) -> bool:
        return self.diabetes_type is DiabetesType.GESTATIONAL

    @property
    def large_fetal_abdomen(self) -> bool:
        percentile = self.abdominal_circumference_percentile
        return percentile is not None and percentile >= FETAL_AC_PERCENTILE


Predicate = Callable[[TriggerContext], bool]


def _untreated_gdm_above_target(ctx: TriggerContext) -> bool:
    return ctx.is_gestational and not ctx.uses_insulin and ctx.needs_pharmacologic_therapy


def _fetal_growth_criterion(ctx: TriggerContext) -> bool:
    first, last = FETAL_AC_WEEKS
    return (
        ctx.is_gestational
        and not ctx.uses_insulin
        and ctx.large_fetal_abdomen
        and first <= ctx.gestational_weeks <= last
    )


def _high_dose_gdm(ctx: TriggerContext) -> bool:
    dose = ctx.insulin_dose_per_kg
    return (
        ctx.is_gestational
        and ctx.uses_insulin
        and dose is not None
        and dose > HIGH_INSULIN_DOSE_PER_KG
        and ctx.needs_pharmacologic_therapy
    )


# (predicate, rule keys) evaluated in order; output keeps first-seen order.
TRIGGER_TABLE: tuple[tuple[Predicate, tuple[str, ...]], ...] = (
    (_untreated_gdm_above_target, ("R1", "R2", "F6", "W6")),
    (_fetal_growth_criterion, ("R3",)),
    (_untreated_gdm_above_target, ("R7", "W7")),
    (_high_dose_gdm, ("R8",)),
    (_untreated_gdm_above_target, ("R9",)),
    (lambda ctx: ctx.diabetes_type is DiabetesType.TYPE_2, ("R10", "R11", "R16", "R17")),
    (lambda ctx: ctx.diabetes_type is DiabetesType.TYPE_1, ("R11", "R14", "R15", "R17")),
    (lambda ctx: ctx.uses_insulin or ctx.needs_pharmacologic_therapy, ("R4", "R5")),
    (
        lambda ctx: ctx.uses_insulin and ctx.percent_above_target >= HIGH_POSTPRANDIAL_PERCENT_ABOVE,
        ("R6",),
    ),
    (lambda ctx: True, ("F5",)),
    (lambda ctx: ctx.gestational_weeks >= FETAL_SURVEILLANCE_WEEKS, ("F8", "W8")),
    (lambda ctx: ctx.gestational_weeks >= DELIVERY_PLANNING_WEEKS, ("F9", "W9")),
    (lambda ctx: True, ("W5",)),
)


def determine_triggered_rules(
    ctx: TriggerContext,
    table: Iterable[tuple[Predicate, Iterable[str]]] = TRIGGER_TABLE,
) -> list[ClinicalRule]:
    """Return the rules whose predicates hold, deduplicated in first-seen order.

    Rules restricted to another diabetes type are dropped.
    """

    seen: set[str] = set()
    triggered: list[ClinicalRule] = []
    for predicate, keys in table:
        if not predicate(ctx):
            continue
        for key in keys:
            rule = _RULES_BY_KEY[key]
            if rule.id in seen or not rule.applies_to(ctx.diabetes_type):
                continue
            seen.add(rule.id)
            triggered.append(rule)
    return triggered


def rules_by_source(rules: Iterable[ClinicalRule]) -> dict[str, list[ClinicalRule]]:
    """Group rules by guideline source, preserving order within each source."""

    grouped: dict[str, list[ClinicalRule]] = {}
    for rule in rules:
        grouped.setdefault(rule.source, []).append(rule)
    return grouped


__all__ = [
    "CLINICAL_RULES",
    "FEBRASGO_2019_RULES",
    "GUIDELINE_SOURCES",
    "SBD_2025_RULES",
    "TRIGGER_TABLE",
    "TriggerContext",
    "WHO_2025_RULES",
    "determine_triggered_rules",
    "rules_by_source",
]
