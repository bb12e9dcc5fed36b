"""Fixed clinical constants for glucose monitoring in pregnancy (mg/dL)."""
from __future__ import annotations

from typing import Final

# Targets are exclusive upper bounds: a value equal to the target is above it.
FASTING_TARGET: Final[float] = 95.0
PRE_PRANDIAL_TARGET: Final[float] = 100.0
NOCTURNAL_TARGET: Final[float] = 100.0
POST_PRANDIAL_1H_TARGET: Final[float] = 140.0

# Single hypoglycemia floor used by alerts, period stats and Somogyi detection.
HYPOGLYCEMIA_THRESHOLD: Final[float] = 70.0
SEVERE_HYPERGLYCEMIA_THRESHOLD: Final[float] = 200.0

# Readings outside (0, MAX_PLAUSIBLE_GLUCOSE] are ignored.
MAX_PLAUSIBLE_GLUCOSE: Final[float] = 600.0

# Insulin adjustment patterns
EXCURSION_DELTA_THRESHOLD: Final[float] = 40.0
PATTERN_DAYS_REQUIRED: Final[int] = 3
SOMOGYI_DAYS_REQUIRED: Final[int] = 1

# Windowing and trend
DEFAULT_WINDOW_DAYS: Final[int] = 7
DEFAULT_MAX_GAP_DAYS: Final[int] = 2
MIN_DATED_FRACTION: Final[float] = 0.8
TREND_DEVIATION_THRESHOLD: Final[float] = 8.0
PERIOD_CHANGE_THRESHOLD: Final[float] = 5.0

# Urgency (percent of readings in target)
CRITICAL_IN_TARGET_PERCENT: Final[int] = 50
WARNING_IN_TARGET_PERCENT: Final[int] = 70

# Guideline triggers
PHARMACOLOGIC_THERAPY_PERCENT_ABOVE: Final[int] = 30
HIGH_POSTPRANDIAL_PERCENT_ABOVE: Final[int] = 50
HIGH_INSULIN_DOSE_PER_KG: Final[float] = 2.0
FETAL_AC_PERCENTILE: Final[float] = 75.0
FETAL_AC_WEEKS: Final[tuple[int, int]] = (29, 33)
FETAL_SURVEILLANCE_WEEKS: Final[int] = 32
DELIVERY_PLANNING_WEEKS: Final[int] = 36
WEEKLY_REVIEW_WEEKS: Final[int] = 30
ASPIRIN_WEEKS: Final[tuple[int, int]] = (12, 28)

# Starting dose (UI/kg/day) and its split
INITIAL_DOSE_PER_KG: Final[float] = 0.5
BASAL_FRACTION: Final[float] = 0.5
