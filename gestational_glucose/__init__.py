"""Clinical engine for capillary glucose monitoring in pregnancy."""

from .adjustment_base import AdjustmentRule
from .engine import ClinicalEngine, generate_clinical_analysis
from .models import (
    AdjustmentContext,
    AdjustmentDirection,
    ClinicalAnalysis,
    DiabetesType,
    GlucoseReading,
    InsulinComponent,
    InsulinRegimen,
    InsulinType,
    PatientEvaluation,
    Period,
    PeriodAdjustmentResult,
    UrgencyLevel,
)
from .registry import register_rule, registry
from .schemas import parse_evaluation
from .serialization import analysis_to_dict

__all__ = [
    "AdjustmentContext",
    "AdjustmentDirection",
    "AdjustmentRule",
    "ClinicalAnalysis",
    "ClinicalEngine",
    "DiabetesType",
    "GlucoseReading",
    "InsulinComponent",
    "InsulinRegimen",
    "InsulinType",
    "PatientEvaluation",
    "Period",
    "PeriodAdjustmentResult",
    "UrgencyLevel",
    "analysis_to_dict",
    "generate_clinical_analysis",
    "parse_evaluation",
    "register_rule",
    "registry",
]
