"""
metric_engine/periods.py

Calendar period construction. All boundaries are UTC and inclusive, so a
period ends one microsecond before the next one starts.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.normalization.transforms import ensure_utc
from metric_engine.models import Period, PeriodType

ONE_MICROSECOND = timedelta(microseconds=1)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

ALL_TIME_START = datetime.min.replace(tzinfo=timezone.utc)
ALL_TIME_END = datetime.max.replace(tzinfo=timezone.utc)


def day_label(moment: datetime) -> str:
    return f"{MONTH_NAMES[moment.month - 1][:3]} {moment.day}, {moment.year}"


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _add_months(moment: datetime, months: int) -> datetime:
    index = moment.month - 1 + months
    return moment.replace(year=moment.year + index // 12, month=index % 12 + 1, day=1)


def create_period(period_type: PeriodType, reference: datetime | None = None) -> Period:
    """
    Build the calendar period of *period_type* containing *reference*.

    Weeks start on Monday. ``custom`` has no calendar unit and falls back to
    the reference month.
    """

    moment = ensure_utc(reference) if reference is not None else datetime.now(timezone.utc)
    day_start = _start_of_day(moment)

    if period_type == PeriodType.DAY:
        return Period(PeriodType.DAY, day_start, day_start + timedelta(days=1) - ONE_MICROSECOND, day_label(moment))
    if period_type == PeriodType.WEEK:
        start = day_start - timedelta(days=day_start.weekday())
        end = start + timedelta(days=7) - ONE_MICROSECOND
        return Period(PeriodType.WEEK, start, end, f"Week of {day_label(start)}")
    if period_type in (PeriodType.MONTH, PeriodType.CUSTOM):
        start = day_start.replace(day=1)
        end = _add_months(start, 1) - ONE_MICROSECOND
        return Period(PeriodType.MONTH, start, end, f"{MONTH_NAMES[moment.month - 1]} {moment.year}")
    if period_type == PeriodType.QUARTER:
        quarter = (moment.month - 1) // 3
        start = day_start.replace(month=quarter * 3 + 1, day=1)
        end = _add_months(start, 3) - ONE_MICROSECOND
        return Period(PeriodType.QUARTER, start, end, f"Q{quarter + 1} {moment.year}")
    if period_type == PeriodType.YEAR:
        start = day_start.replace(month=1, day=1)
        end = start.replace(year=start.year + 1) - ONE_MICROSECOND
        return Period(PeriodType.YEAR, start, end, str(moment.year))
    if period_type == PeriodType.ALL:
        return Period(PeriodType.ALL, ALL_TIME_START, ALL_TIME_END, "All time")
    raise ValueError(f"Unsupported period type: {period_type!r}")


def create_custom_period(start: datetime, end: datetime, label: str | None = None) -> Period:
    start_utc = ensure_utc(start)
    end_utc = ensure_utc(end)
    if end_utc < start_utc:
        raise ValueError("Custom period end must not be before its start.")
    return Period(
        PeriodType.CUSTOM,
        start_utc,
        end_utc,
        label or f"{day_label(start_utc)} - {day_label(end_utc)}",
    )


def get_previous_period(period: Period) -> Period:
    """
    Return the period immediately before *period*, of the same type.

    A custom period is shifted back by its own length. ``all`` has no
    predecessor and raises ``ValueError``.
    """

    if period.type == PeriodType.ALL:
        raise ValueError("The 'all' period has no previous period.")
    if period.type == PeriodType.CUSTOM:
        end = period.start - ONE_MICROSECOND
        return create_custom_period(end - (period.end - period.start), end)
    return create_period(period.type, period.start - ONE_MICROSECOND)


def recent_periods(period_type: PeriodType, count: int, reference: datetime | None = None) -> list[Period]:
    """
    The *count* most recent contiguous periods ending with the one containing
    *reference*, oldest first.
    """

    if count <= 0:
        return []
    periods = [create_period(period_type, reference)]
    while len(periods) < count:
        periods.append(get_previous_period(periods[-1]))
    periods.reverse()
    return periods
