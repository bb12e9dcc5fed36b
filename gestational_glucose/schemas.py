"""
Wire-format models for patient evaluations.

Accepts camelCase keys plus the legacy Portuguese slot and dose names, and
normalises free-text enum values before they reach the engine.
"""
from __future__ import annotations

import unicodedata
from typing import Any, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .models import (
    DiabetesType,
    DietAdherence,
    GlucoseReading,
    InsulinRegimen,
    InsulinType,
    PatientEvaluation,
)


def _normalize_token(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return "".join(char for char in stripped.lower() if char.isalnum())


_INSULIN_TYPE_NAMES: Mapping[str, InsulinType] = {
    "nph": InsulinType.NPH,
    "regular": InsulinType.REGULAR,
    "lispro": InsulinType.LISPRO,
    "aspart": InsulinType.ASPART,
    "asparte": InsulinType.ASPART,
    "fastaspart": InsulinType.ASPART,
    "fastasparte": InsulinType.ASPART,
    "glulisine": InsulinType.GLULISINE,
    "glulisina": InsulinType.GLULISINE,
    "glargine": InsulinType.GLARGINE,
    "glargina": InsulinType.GLARGINE,
    "detemir": InsulinType.DETEMIR,
    "degludec": InsulinType.DEGLUDEC,
    "degludeca": InsulinType.DEGLUDEC,
}

_DIABETES_TYPE_NAMES: Mapping[str, DiabetesType] = {
    "dmg": DiabetesType.GESTATIONAL,
    "gdm": DiabetesType.GESTATIONAL,
    "gestational": DiabetesType.GESTATIONAL,
    "gestacional": DiabetesType.GESTATIONAL,
    "dm1": DiabetesType.TYPE_1,
    "t1dm": DiabetesType.TYPE_1,
    "type1": DiabetesType.TYPE_1,
    "tipo1": DiabetesType.TYPE_1,
    "dm2": DiabetesType.TYPE_2,
    "t2dm": DiabetesType.TYPE_2,
    "type2": DiabetesType.TYPE_2,
    "tipo2": DiabetesType.TYPE_2,
}

_DIET_ADHERENCE_NAMES: Mapping[str, DietAdherence] = {
    "good": DietAdherence.GOOD,
    "boa": DietAdherence.GOOD,
    "regular": DietAdherence.REGULAR,
    "fair": DietAdherence.REGULAR,
    "poor": DietAdherence.POOR,
    "ruim": DietAdherence.POOR,
}


def _lookup(value: Any, names: Mapping[str, Any], kind: str) -> Any:
    if not isinstance(value, str):
        return value
    token = _normalize_token(value)
    if token not in names:
        raise ValueError(f"Unknown {kind}: {value!r}")
    return names[token]


class GlucoseReadingPayload(BaseModel):
    """
    One monitoring day as sent by the client.
    """
    model_config = ConfigDict(extra="ignore")

    fasting: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("fasting", "jejum"), description="Fasting glucose (mg/dL)"
    )
    postBreakfast1h: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("postBreakfast1h", "posCafe1h"),
        description="1h post-breakfast glucose (mg/dL)",
    )
    preLunch: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("preLunch", "preAlmoco"), description="Pre-lunch glucose (mg/dL)"
    )
    postLunch1h: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("postLunch1h", "posAlmoco1h"),
        description="1h post-lunch glucose (mg/dL)",
    )
    preDinner: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("preDinner", "preJantar"), description="Pre-dinner glucose (mg/dL)"
    )
    postDinner1h: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("postDinner1h", "posJantar1h"),
        description="1h post-dinner glucose (mg/dL)",
    )
    nocturnal3h: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("nocturnal3h", "madrugada", "madrugada3h"),
        description="3am glucose (mg/dL)",
    )
    measurementDate: Optional[str] = Field(default=None, description="Measurement date (ISO 8601)")

    @field_validator("measurementDate", mode="before")
    @classmethod
    def _stringify_date(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return str(value)

    def to_domain(self) -> GlucoseReading:
        return GlucoseReading(
            fasting=self.fasting,
            post_breakfast_1h=self.postBreakfast1h,
            pre_lunch=self.preLunch,
            post_lunch_1h=self.postLunch1h,
            pre_dinner=self.preDinner,
            post_dinner_1h=self.postDinner1h,
            nocturnal_3h=self.nocturnal3h,
            measurement_date=self.measurementDate,
        )


class InsulinRegimenPayload(BaseModel):
    """
    One insulin prescription with per-mealtime doses in UI.
    """
    model_config = ConfigDict(extra="ignore")

    type: InsulinType = Field(validation_alias=AliasChoices("type", "insulinType"), description="Insulin type")
    morningUI: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("morningUI", "doseManhaUI"), description="Morning dose"
    )
    lunchUI: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("lunchUI", "doseAlmocoUI"), description="Lunch dose"
    )
    dinnerUI: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("dinnerUI", "doseJantarUI"), description="Dinner dose"
    )
    bedtimeUI: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("bedtimeUI", "doseDormirUI"), description="Bedtime dose"
    )

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return _lookup(value, _INSULIN_TYPE_NAMES, "insulin type")

    def to_domain(self) -> InsulinRegimen:
        return InsulinRegimen(
            insulin_type=self.type,
            morning_ui=self.morningUI,
            lunch_ui=self.lunchUI,
            dinner_ui=self.dinnerUI,
            bedtime_ui=self.bedtimeUI,
        )


class EvaluationPayload(BaseModel):
    """
    Patient evaluation request body.
    """
    model_config = ConfigDict(extra="ignore")

    patientName: str = Field(min_length=1, description="Patient name")
    diabetesType: DiabetesType = Field(default=DiabetesType.GESTATIONAL, description="DMG, DM1 or DM2")
    weight: Optional[float] = Field(default=None, gt=0, description="Weight in kg")
    gestationalWeeks: int = Field(ge=0, le=42, description="Completed gestational weeks")
    gestationalDays: int = Field(default=0, ge=0, le=6, description="Additional gestational days")
    usesInsulin: bool = Field(default=False, description="Currently on insulin therapy")
    insulinRegimens: List[InsulinRegimenPayload] = Field(default_factory=list, description="Insulin regimens")
    dietAdherence: Optional[DietAdherence] = Field(default=None, description="Diet adherence")
    glucoseReadings: List[GlucoseReadingPayload] = Field(description="Daily glucose records, oldest first")
    abdominalCircumferencePercentile: Optional[float] = Field(
        default=None, ge=0, le=100, description="Fetal abdominal circumference percentile"
    )

    @field_validator("diabetesType", mode="before")
    @classmethod
    def _normalize_diabetes_type(cls, value: Any) -> Any:
        if value is None:
            return DiabetesType.GESTATIONAL
        return _lookup(value, _DIABETES_TYPE_NAMES, "diabetes type")

    @field_validator("dietAdherence", mode="before")
    @classmethod
    def _normalize_diet_adherence(cls, value: Any) -> Any:
        return _lookup(value, _DIET_ADHERENCE_NAMES, "diet adherence")

    @field_validator("insulinRegimens", mode="before")
    @classmethod
    def _default_regimens(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_domain(self) -> PatientEvaluation:
        return PatientEvaluation(
            patient_name=self.patientName,
            gestational_weeks=self.gestationalWeeks,
            gestational_days=self.gestationalDays,
            diabetes_type=self.diabetesType,
            weight=self.weight,
            uses_insulin=self.usesInsulin,
            insulin_regimens=tuple(regimen.to_domain() for regimen in self.insulinRegimens),
            diet_adherence=self.dietAdherence,
            glucose_readings=tuple(reading.to_domain() for reading in self.glucoseReadings),
            abdominal_circumference_percentile=self.abdominalCircumferencePercentile,
        )


def parse_evaluation(data: Mapping[str, Any]) -> PatientEvaluation:
    """Validate a JSON-like mapping; raises ``pydantic.ValidationError`` when malformed."""

    return EvaluationPayload.model_validate(data).to_domain()
