"""Select the trailing analysis window from a patient's reading history."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Sequence

import pandas as pd

from .models import ChronologyResult, DataGap, GlucoseReading
from .thresholds import DEFAULT_MAX_GAP_DAYS, DEFAULT_WINDOW_DAYS, MIN_DATED_FRACTION

logger = logging.getLogger(__name__)


def parse_measurement_date(value: Any) -> Optional[date]:
    """Parse a measurement date, returning ``None`` when it is unusable."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        parsed = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def detect_gaps(dates: Sequence[date], max_gap_days: int) -> list[DataGap]:
    """Return consecutive date pairs further apart than ``max_gap_days``."""

    gaps: list[DataGap] = []
    for previous, current in zip(dates, dates[1:]):
        span = (current - previous).days
        if span > max_gap_days:
            gaps.append(DataGap(start=previous, end=current, days=span))
    return gaps


def resolve_window(
    readings: Sequence[GlucoseReading],
    window_days: int = DEFAULT_WINDOW_DAYS,
    max_gap_days: int = DEFAULT_MAX_GAP_DAYS,
    *,
    now: Optional[date] = None,
) -> ChronologyResult:
    """Return the most recent ``window_days`` readings in date order.

    Gaps are reported for information only; they never remove readings from
    the window. When fewer than 80% of rows carry a parseable date the window
    falls back to the last records in input order.
    """

    if window_days <= 0:
        raise ValueError("window_days must be positive")

    total = len(readings)
    if total == 0:
        return ChronologyResult(
            readings=(),
            dates_reliable=False,
            warning="No glucose data available for analysis.",
        )

    parsed = [parse_measurement_date(reading.measurement_date) for reading in readings]
    dated = sum(value is not None for value in parsed)
    truncated = total > window_days

    if dated / total < MIN_DATED_FRACTION:
        window = tuple(readings[-window_days:])
        warning = (
            f"Measurement dates missing or unreadable for {total - dated} of {total} records; "
            f"chronological order could not be verified, so the last {len(window)} records "
            "as entered were analyzed."
        )
        logger.debug("Positional window of %d records (%d/%d dated)", len(window), dated, total)
        return ChronologyResult(
            readings=window,
            dates_reliable=False,
            warning=warning,
            total_records=total,
            dated_records=dated,
            truncated=truncated,
        )

    # Stable sort keeps input order for equal dates; undated rows go last.
    order = sorted(
        range(total),
        key=lambda idx: (parsed[idx] is None, parsed[idx] or date.min),
    )
    ordered_dates = [parsed[idx] for idx in order if parsed[idx] is not None]
    gaps = detect_gaps(ordered_dates, max_gap_days)

    window_indices = order[-window_days:]
    window = tuple(readings[idx] for idx in window_indices)
    window_dates = [parsed[idx] for idx in window_indices if parsed[idx] is not None]
    date_range = (min(window_dates), max(window_dates)) if window_dates else None

    notes: list[str] = []
    if truncated:
        notes.append(
            f"Analysis restricted to the {len(window)} most recent of {total} records"
            + (f" ({date_range[0].isoformat()} to {date_range[1].isoformat()})." if date_range else ".")
        )
    if gaps:
        described = ", ".join(
            f"{gap.start.isoformat()} to {gap.end.isoformat()} ({gap.days} days)" for gap in gaps
        )
        notes.append(
            f"Gaps in monitoring longer than {max_gap_days} days detected: {described}. "
            "All available readings were kept."
        )
    if dated < total:
        notes.append(f"Records without a readable date ({total - dated}) were placed last.")
    if now is not None and ordered_dates:
        age = (now - ordered_dates[-1]).days
        if age > max_gap_days:
            notes.append(f"Most recent reading is {age} days old.")

    logger.debug(
        "Resolved window of %d/%d records, %d gaps, range=%s",
        len(window),
        total,
        len(gaps),
        date_range,
    )
    return ChronologyResult(
        readings=window,
        dates_reliable=True,
        gaps=tuple(gaps),
        warning=" ".join(notes) if notes else None,
        date_range=date_range,
        total_records=total,
        dated_records=dated,
        truncated=truncated,
    )
