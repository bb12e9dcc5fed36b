"""Weight-based starting insulin dose and current-dose helpers."""
from __future__ import annotations

from typing import Optional, Sequence

from .models import InsulinDoseCalculation, InsulinRegimen
from .periods import round_half_up
from .thresholds import BASAL_FRACTION, INITIAL_DOSE_PER_KG

# NPH split of the basal half and rapid split of the bolus half.
MORNING_NPH_SHARE = 0.67
BEDTIME_NPH_SHARE = 0.33
RAPID_SHARES = (0.33, 0.33, 0.34)


def calculate_insulin_dose(weight: Optional[float]) -> Optional[InsulinDoseCalculation]:
    """Return the 0.5 UI/kg/day starting regimen, or ``None`` without a usable weight."""

    if weight is None or isinstance(weight, bool) or weight <= 0:
        return None

    total = round_half_up(weight * INITIAL_DOSE_PER_KG)
    basal = round_half_up(total * BASAL_FRACTION)
    bolus = total - basal
    breakfast, lunch, dinner = (round_half_up(bolus * share) for share in RAPID_SHARES)
    return InsulinDoseCalculation(
        initial_total_dose=total,
        basal_dose=basal,
        bolus_dose=bolus,
        morning_nph=round_half_up(basal * MORNING_NPH_SHARE),
        bedtime_nph=round_half_up(basal * BEDTIME_NPH_SHARE),
        breakfast_rapid=breakfast,
        lunch_rapid=lunch,
        dinner_rapid=dinner,
    )


def current_total_dose(regimens: Sequence[InsulinRegimen]) -> float:
    return float(sum(regimen.total_dose for regimen in regimens))


def dose_per_kg(total_dose: float, weight: Optional[float]) -> Optional[float]:
    if weight is None or weight <= 0:
        return None
    return round(total_dose / weight, 2)
