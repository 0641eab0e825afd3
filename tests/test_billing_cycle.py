"""Tests for billing cycle and week boundaries."""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.utils.billing_cycle import (
    cycle_anchor,
    cycle_bounds_utc,
    get_billing_cycle_dates,
    get_billing_cycle_hours,
    get_last_week_dates,
    get_previous_billing_cycle_dates,
    get_weekly_dates,
    get_weekly_hours,
)


class TestMonthlyCycle:
    def test_reference_before_start_day_uses_previous_month(self):
        cycle = get_billing_cycle_dates(15, date(2024, 3, 10))
        assert cycle == {"start": date(2024, 2, 15), "end": date(2024, 3, 14)}

    def test_reference_after_start_day_uses_current_month(self):
        cycle = get_billing_cycle_dates(15, date(2024, 3, 20))
        assert cycle == {"start": date(2024, 3, 15), "end": date(2024, 4, 14)}

    def test_reference_on_start_day_starts_new_cycle(self):
        cycle = get_billing_cycle_dates(15, date(2024, 3, 15))
        assert cycle["start"] == date(2024, 3, 15)

    def test_start_day_one_is_calendar_month(self):
        cycle = get_billing_cycle_dates(1, date(2023, 2, 14))
        assert cycle == {"start": date(2023, 2, 1), "end": date(2023, 2, 28)}

    def test_crosses_year_boundary(self):
        cycle = get_billing_cycle_dates(15, date(2024, 1, 10))
        assert cycle == {"start": date(2023, 12, 15), "end": date(2024, 1, 14)}

    def test_accepts_datetime_reference(self):
        cycle = get_billing_cycle_dates(15, datetime(2024, 3, 20, 23, 59, tzinfo=timezone.utc))
        assert cycle["start"] == date(2024, 3, 15)

    @pytest.mark.parametrize("start_day", [0, 32, -1])
    def test_rejects_out_of_range_start_day(self, start_day):
        with pytest.raises(ValueError):
            get_billing_cycle_dates(start_day, date(2024, 3, 20))

    def test_previous_cycle(self):
        cycle = get_previous_billing_cycle_dates(15, date(2024, 3, 20))
        assert cycle == {"start": date(2024, 2, 15), "end": date(2024, 3, 14)}


class TestShortMonthClamping:
    """Start days past a month's length anchor on that month's last day."""

    @pytest.mark.parametrize(
        "start_day, year, month, expected",
        [
            (31, 2024, 2, date(2024, 2, 29)),
            (31, 2023, 2, date(2023, 2, 28)),
            (30, 2024, 2, date(2024, 2, 29)),
            (31, 2024, 4, date(2024, 4, 30)),
            (31, 2024, 5, date(2024, 5, 31)),
            (29, 2023, 2, date(2023, 2, 28)),
        ],
    )
    def test_anchor(self, start_day, year, month, expected):
        assert cycle_anchor(start_day, year, month) == expected

    @pytest.mark.parametrize(
        "reference, expected_start, expected_end",
        [
            (date(2024, 2, 10), date(2024, 1, 31), date(2024, 2, 28)),
            (date(2024, 2, 29), date(2024, 2, 29), date(2024, 3, 30)),
            (date(2024, 3, 30), date(2024, 2, 29), date(2024, 3, 30)),
            (date(2024, 3, 31), date(2024, 3, 31), date(2024, 4, 29)),
            (date(2024, 4, 30), date(2024, 4, 30), date(2024, 5, 30)),
        ],
    )
    def test_start_day_31(self, reference, expected_start, expected_end):
        cycle = get_billing_cycle_dates(31, reference)
        assert cycle == {"start": expected_start, "end": expected_end}

    @pytest.mark.parametrize("start_day", [1, 15, 28, 29, 30, 31])
    def test_cycles_are_contiguous_and_cover_every_day(self, start_day):
        day = date(2023, 1, 1)
        while day <= date(2025, 1, 31):
            cycle = get_billing_cycle_dates(start_day, day)
            assert cycle["start"] <= day <= cycle["end"]

            following = get_billing_cycle_dates(start_day, cycle["end"] + timedelta(days=1))
            assert following["start"] == cycle["end"] + timedelta(days=1)
            day += timedelta(days=1)


class TestWeeks:
    @pytest.mark.parametrize(
        "reference",
        [date(2024, 3, 18), date(2024, 3, 20), date(2024, 3, 24)],
        ids=["monday", "wednesday", "sunday"],
    )
    def test_current_week_is_monday_to_sunday(self, reference):
        assert get_weekly_dates(reference) == {"start": date(2024, 3, 18), "end": date(2024, 3, 24)}

    def test_last_week_is_shifted_seven_days(self):
        assert get_last_week_dates(date(2024, 3, 24)) == {"start": date(2024, 3, 11), "end": date(2024, 3, 17)}

    def test_week_spanning_months(self):
        assert get_weekly_dates(date(2024, 3, 1)) == {"start": date(2024, 2, 26), "end": date(2024, 3, 3)}


class TestAllocatedHours:
    def test_monthly_hours(self):
        assert get_billing_cycle_hours(40) == pytest.approx(173.2)

    def test_weekly_hours_identity(self):
        assert get_weekly_hours(12.5) == 12.5

    def test_missing_hours_are_zero(self):
        assert get_billing_cycle_hours(None) == 0
        assert get_weekly_hours(None) == 0


def test_cycle_bounds_utc_cover_whole_days():
    start, end = cycle_bounds_utc(date(2024, 3, 15), date(2024, 4, 14))
    assert start == datetime(2024, 3, 15, tzinfo=timezone.utc)
    assert end == datetime(2024, 4, 14, 23, 59, 59, 999999, tzinfo=timezone.utc)
