"""Per-period glucose statistics against pregnancy targets."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .models import PERIOD_ORDER, GlucoseReading, Period, PeriodStats, as_number
from .thresholds import HYPOGLYCEMIA_THRESHOLD


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""

    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def classify_value(value: float, period: Period) -> str:
    """Return ``"below"``, ``"above"`` or ``"in_target"`` for one reading.

    Targets are exclusive: a value equal to the target counts as above.
    """

    if value < HYPOGLYCEMIA_THRESHOLD:
        return "below"
    if value >= period.target_max:
        return "above"
    return "in_target"


def readings_frame(readings: Sequence[GlucoseReading]) -> pd.DataFrame:
    """Return a day-by-period frame of plausible values (NaN when absent)."""

    columns = [period.value for period in PERIOD_ORDER]
    rows = [
        [reading.value(period) for period in PERIOD_ORDER]
        for reading in readings
    ]
    return pd.DataFrame(rows, columns=columns, dtype=float)


def compute_period_stats(period: Period, values: np.ndarray) -> PeriodStats:
    """Aggregate one period's values; ``values`` must be non-empty."""

    target = period.target_max
    above = int((values >= target).sum())
    below = int((values < HYPOGLYCEMIA_THRESHOLD).sum())
    total = int(values.size)
    return PeriodStats(
        period=period,
        total=total,
        above_target=above,
        below_target=below,
        in_target=total - above - below,
        percent_above=percent(above, total),
        average=round_half_up(float(np.mean(values))),
        min_value=as_number(float(np.min(values))),
        max_value=as_number(float(np.max(values))),
        target_max=target,
        values=tuple(as_number(float(value)) for value in values),
    )


def analyze_by_period(readings: Sequence[GlucoseReading]) -> list[PeriodStats]:
    """Compute statistics for every period that has at least one value."""

    frame = readings_frame(readings)
    results: list[PeriodStats] = []
    for period in PERIOD_ORDER:
        values = frame[period.value].dropna().to_numpy(dtype=float)
        if values.size == 0:
            continue
        results.append(compute_period_stats(period, values))
    return results


@dataclass(frozen=True)
class PooledStats:
    """Totals pooled across periods."""

    total_readings: int
    in_target: int
    above_target: int
    below_target: int
    percent_in_target: int
    percent_above_target: int
    average_glucose: int


def summarize_periods(stats: Iterable[PeriodStats]) -> PooledStats:
    total = in_target = above = below = 0
    value_sum = 0.0
    for entry in stats:
        total += entry.total
        in_target += entry.in_target
        above += entry.above_target
        below += entry.below_target
        value_sum += float(sum(entry.values))
    return PooledStats(
        total_readings=total,
        in_target=in_target,
        above_target=above,
        below_target=below,
        percent_in_target=percent(in_target, total),
        percent_above_target=percent(above, total),
        average_glucose=round_half_up(value_sum / total) if total else 0,
    )
