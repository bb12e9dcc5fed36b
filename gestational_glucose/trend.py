"""Compare the trailing window against the full reading history."""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .alerts import detect_critical_alerts
from .models import (
    PERIOD_ORDER,
    DailyAverage,
    GlucoseReading,
    PeriodChange,
    PeriodComparison,
    PeriodStats,
    Trend,
    TrendAnalysis,
)
from .periods import analyze_by_period, readings_frame, round_half_up, summarize_periods
from .thresholds import (
    DEFAULT_WINDOW_DAYS,
    HYPOGLYCEMIA_THRESHOLD,
    PERIOD_CHANGE_THRESHOLD,
    TREND_DEVIATION_THRESHOLD,
)

MIN_DAYS_FOR_TREND = 3


def daily_averages(readings: Sequence[GlucoseReading]) -> list[DailyAverage]:
    """Mean and in-target count per day; days without values are skipped."""

    frame = readings_frame(readings)
    if frame.empty:
        return []
    targets = np.array([period.target_max for period in PERIOD_ORDER])
    values = frame.to_numpy(dtype=float)
    present = ~np.isnan(values)
    in_target = present & (np.nan_to_num(values) >= HYPOGLYCEMIA_THRESHOLD) & (np.nan_to_num(values) < targets)

    averages: list[DailyAverage] = []
    for index in range(values.shape[0]):
        total = int(present[index].sum())
        if total == 0:
            continue
        averages.append(
            DailyAverage(
                day=index + 1,
                average=round_half_up(float(values[index][present[index]].mean())),
                in_target=int(in_target[index].sum()),
                total=total,
            )
        )
    return averages


def compare_periods(
    overall: Sequence[PeriodStats],
    recent: Sequence[PeriodStats],
    threshold: float = PERIOD_CHANGE_THRESHOLD,
) -> list[PeriodComparison]:
    overall_by_period = {entry.period: entry for entry in overall}
    comparisons: list[PeriodComparison] = []
    for entry in recent:
        baseline = overall_by_period.get(entry.period)
        if baseline is None:
            continue
        diff = entry.average - baseline.average
        if diff < -threshold:
            change = PeriodChange.BETTER
        elif diff > threshold:
            change = PeriodChange.WORSE
        else:
            change = PeriodChange.SAME
        comparisons.append(
            PeriodComparison(period=entry.period, overall=baseline.average, recent=entry.average, change=change)
        )
    return comparisons


def classify_trend(
    averages: Sequence[DailyAverage],
    threshold: float = TREND_DEVIATION_THRESHOLD,
) -> tuple[Trend, str]:
    """Split daily means into halves and compare them."""

    if len(averages) < MIN_DAYS_FOR_TREND:
        return Trend.STABLE, "Insufficient data for a detailed trend analysis."

    middle = len(averages) // 2
    first = float(np.mean([entry.average for entry in averages[:middle]]))
    second = float(np.mean([entry.average for entry in averages[middle:]]))
    diff = second - first

    if diff < -threshold:
        return Trend.IMPROVING, (
            "Improving trend: mean glucose falling over the most recent days "
            f"(from {round_half_up(first)} to {round_half_up(second)} mg/dL)."
        )
    if diff > threshold:
        return Trend.WORSENING, (
            "Worsening trend: mean glucose rising over the most recent days "
            f"(from {round_half_up(first)} to {round_half_up(second)} mg/dL). Requires attention."
        )
    return Trend.STABLE, (
        f"Stable pattern: mean glucose roughly constant over the last {len(averages)} days "
        f"(variation of {round_half_up(abs(diff))} mg/dL)."
    )


def compare_windows(
    history: Sequence[GlucoseReading],
    window: Sequence[GlucoseReading],
    *,
    threshold: float = TREND_DEVIATION_THRESHOLD,
    period_threshold: float = PERIOD_CHANGE_THRESHOLD,
    window_days: int = DEFAULT_WINDOW_DAYS,
    overall_stats: Optional[Sequence[PeriodStats]] = None,
) -> Optional[TrendAnalysis]:
    """Return the window analysis, or ``None`` when history is shorter than ``window_days``."""

    if len(history) < window_days or not window:
        return None

    overall = list(overall_stats) if overall_stats is not None else analyze_by_period(history)
    recent = analyze_by_period(window)
    overall_totals = summarize_periods(overall)
    recent_totals = summarize_periods(recent)

    averages = daily_averages(window)
    comparisons = compare_periods(overall, recent, period_threshold)
    trend, description = classify_trend(averages, threshold)

    worse = [entry.period.label for entry in comparisons if entry.change is PeriodChange.WORSE]
    better = [entry.period.label for entry in comparisons if entry.change is PeriodChange.BETTER]
    if len(worse) > len(better):
        description += f" Periods recently worse: {', '.join(worse)}."
    elif len(better) > len(worse):
        description += f" Periods recently better: {', '.join(better)}."

    return TrendAnalysis(
        total_readings=recent_totals.total_readings,
        percent_in_target=recent_totals.percent_in_target,
        percent_above_target=recent_totals.percent_above_target,
        average_glucose=recent_totals.average_glucose,
        analysis_by_period=tuple(recent),
        critical_alerts=tuple(detect_critical_alerts(window)),
        trend=trend,
        trend_description=description,
        daily_averages=tuple(averages),
        period_comparison=tuple(comparisons),
        overall_percent_in_target=overall_totals.percent_in_target,
        overall_average_glucose=overall_totals.average_glucose,
        percent_in_target_change=recent_totals.percent_in_target - overall_totals.percent_in_target,
        average_glucose_change=recent_totals.average_glucose - overall_totals.average_glucose,
    )
