"""
tests/test_periods.py

Calendar period construction and navigation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import utc
from metric_engine.models import PeriodType
from metric_engine.periods import create_custom_period, create_period, get_previous_period, recent_periods

END_OF_JANUARY = datetime(2024, 1, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


class TestCreatePeriod:
    def test_month(self) -> None:
        period = create_period(PeriodType.MONTH, utc(2024, 1, 15, 13))

        assert period.type == PeriodType.MONTH
        assert period.start == utc(2024, 1, 1)
        assert period.end == END_OF_JANUARY
        assert period.label == "January 2024"

    @pytest.mark.parametrize(
        ("period_type", "reference", "start", "label"),
        [
            (PeriodType.DAY, utc(2024, 1, 15, 9), utc(2024, 1, 15), "Jan 15, 2024"),
            (PeriodType.WEEK, utc(2024, 1, 17), utc(2024, 1, 15), "Week of Jan 15, 2024"),
            (PeriodType.QUARTER, utc(2024, 5, 20), utc(2024, 4, 1), "Q2 2024"),
            (PeriodType.YEAR, utc(2024, 7, 4), utc(2024, 1, 1), "2024"),
        ],
    )
    def test_calendar_units(self, period_type, reference, start, label) -> None:
        period = create_period(period_type, reference)
        assert period.start == start
        assert period.label == label
        assert period.contains(reference)

    def test_quarter_end(self) -> None:
        period = create_period(PeriodType.QUARTER, utc(2024, 5, 20))
        assert period.end == datetime(2024, 6, 30, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_all_time(self) -> None:
        period = create_period(PeriodType.ALL)
        assert period.label == "All time"
        assert period.contains(utc(1900, 1, 1))
        assert period.contains(utc(2999, 1, 1))

    def test_custom_type_falls_back_to_month(self) -> None:
        period = create_period(PeriodType.CUSTOM, utc(2024, 1, 15))
        assert period.type == PeriodType.MONTH
        assert period.label == "January 2024"

    def test_naive_reference_is_utc(self) -> None:
        assert create_period(PeriodType.DAY, datetime(2024, 1, 15, 23)).start == utc(2024, 1, 15)

    def test_defaults_to_now(self) -> None:
        assert create_period(PeriodType.DAY).contains(datetime.now(timezone.utc))


class TestPreviousPeriod:
    def test_month_rolls_over_year(self) -> None:
        previous = get_previous_period(create_period(PeriodType.MONTH, utc(2024, 1, 15)))

        assert previous.label == "December 2023"
        assert previous.start == utc(2023, 12, 1)
        assert previous.end == datetime(2023, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    @pytest.mark.parametrize("period_type", [PeriodType.DAY, PeriodType.WEEK, PeriodType.MONTH, PeriodType.QUARTER, PeriodType.YEAR])
    def test_periods_are_contiguous(self, period_type) -> None:
        current = create_period(period_type, utc(2024, 3, 1))
        previous = get_previous_period(current)

        assert previous.type == period_type
        assert previous.end + timedelta(microseconds=1) == current.start

    def test_quarter_rolls_over_year(self) -> None:
        assert get_previous_period(create_period(PeriodType.QUARTER, utc(2024, 2, 1))).label == "Q4 2023"

    def test_all_has_no_previous(self) -> None:
        with pytest.raises(ValueError):
            get_previous_period(create_period(PeriodType.ALL))

    def test_custom_shifts_back_by_its_length(self) -> None:
        period = create_custom_period(utc(2024, 1, 1), utc(2024, 1, 31))
        previous = get_previous_period(period)

        assert period.label == "Jan 1, 2024 - Jan 31, 2024"
        assert previous.type == PeriodType.CUSTOM
        assert previous.end == period.start - timedelta(microseconds=1)
        assert previous.end - previous.start == period.end - period.start


def test_custom_period_rejects_reversed_bounds() -> None:
    with pytest.raises(ValueError):
        create_custom_period(utc(2024, 2, 1), utc(2024, 1, 1))


def test_recent_periods_oldest_first() -> None:
    periods = recent_periods(PeriodType.MONTH, 3, utc(2024, 3, 10))
    assert [period.label for period in periods] == ["January 2024", "February 2024", "March 2024"]
    assert recent_periods(PeriodType.MONTH, 0) == []
