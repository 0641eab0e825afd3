"""Tests for buffer, lead time strategies and progressive PLT."""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.config import Settings
from app.utils.time_calculations import (
    CycleType,
    LeadTimeStrategy,
    PLTConfig,
    calculate_billed_hours,
    calculate_full_plt,
    calculate_progressive_plt,
    days_elapsed,
    determine_cycle_type,
    validate_plt_config,
)

MARCH_START = date(2024, 3, 1)
MARCH_END = date(2024, 3, 31)

PERCENTAGE_PLT = PLTConfig(project_lead_percentage=0.25, hours_per_day=2, use_percentage=True, enabled=True)
FIXED_PLT = PLTConfig(project_lead_percentage=0.25, hours_per_day=2, use_percentage=False, enabled=True)
DISABLED_PLT = PLTConfig(enabled=False)


class TestBilledHours:
    def test_monthly_fixed_per_day_with_buffer(self):
        # 600 * 1.1 = 660 min, 40h/8 = 5 days * 4.33 = 21.65 days * 2h = 2598 min
        hours = calculate_billed_hours(
            600, MARCH_START, MARCH_END, 40, LeadTimeStrategy.FIXED_PER_DAY, "monthly", True
        )
        assert hours == pytest.approx(54.3)

    def test_weekly_fixed_per_day(self):
        hours = calculate_billed_hours(
            0, MARCH_START, MARCH_END, 40, LeadTimeStrategy.FIXED_PER_DAY, "weekly", True
        )
        assert hours == pytest.approx(10.0)

    def test_no_lead_time(self):
        assert calculate_billed_hours(600, MARCH_START, MARCH_END, 40, LeadTimeStrategy.NONE) == pytest.approx(11.0)

    def test_no_buffer_passes_minutes_through(self):
        hours = calculate_billed_hours(
            600, MARCH_START, MARCH_END, 40, LeadTimeStrategy.NONE, "monthly", include_buffer=False
        )
        assert hours == pytest.approx(10.0)

    def test_strategy_accepts_string_value(self):
        assert calculate_billed_hours(60, MARCH_START, MARCH_END, 40, "none", "monthly", False) == pytest.approx(1.0)

    def test_proportional_without_work_bills_nothing(self):
        assert calculate_billed_hours(0, MARCH_START, MARCH_END, 40, LeadTimeStrategy.PROPORTIONAL) == 0

    def test_proportional_with_work_matches_fixed(self):
        proportional = calculate_billed_hours(30, MARCH_START, MARCH_END, 40, LeadTimeStrategy.PROPORTIONAL)
        fixed = calculate_billed_hours(30, MARCH_START, MARCH_END, 40, LeadTimeStrategy.FIXED_PER_DAY)
        assert proportional == pytest.approx(fixed)

    @pytest.mark.parametrize("weekly_hours", [0, None, -5])
    @pytest.mark.parametrize("strategy", list(LeadTimeStrategy))
    def test_zero_allocation_contributes_no_lead_time(self, weekly_hours, strategy):
        hours = calculate_billed_hours(
            120, MARCH_START, MARCH_END, weekly_hours, strategy, "monthly", False,
            True, date(2024, 3, 11), PERCENTAGE_PLT,
        )
        assert hours == pytest.approx(2.0)

    @pytest.mark.parametrize("minutes", [0, 1, 59, 600, 10_000])
    @pytest.mark.parametrize("strategy", list(LeadTimeStrategy))
    def test_buffer_never_lowers_hours(self, minutes, strategy):
        args = (minutes, MARCH_START, MARCH_END, 40, strategy, "monthly")
        extra = (True, date(2024, 3, 11), PERCENTAGE_PLT)
        with_buffer = calculate_billed_hours(*args, True, *extra)
        without_buffer = calculate_billed_hours(*args, False, *extra)
        if minutes == 0:
            assert with_buffer == without_buffer
        else:
            assert with_buffer > without_buffer

    def test_never_negative(self):
        assert calculate_billed_hours(-30, MARCH_START, MARCH_END, 0, LeadTimeStrategy.NONE) == 0


class TestProgressiveStrategy:
    def test_progressive_uses_elapsed_days(self):
        hours = calculate_billed_hours(
            0, MARCH_START, MARCH_END, 40, LeadTimeStrategy.PROGRESSIVE, "monthly", True,
            True, date(2024, 3, 11), PERCENTAGE_PLT,
        )
        # 10 days * (40 * 0.25 / 7)
        assert hours == pytest.approx(10 * 40 * 0.25 / 7)

    @pytest.mark.parametrize(
        "use_progressive, plt_config, reference",
        [
            (True, DISABLED_PLT, date(2024, 3, 11)),
            (False, PERCENTAGE_PLT, date(2024, 3, 11)),
            (True, None, date(2024, 3, 11)),
            (True, PERCENTAGE_PLT, None),
        ],
        ids=["config-disabled", "flag-off", "no-config", "no-reference"],
    )
    def test_falls_back_to_full_lead_time(self, use_progressive, plt_config, reference):
        hours = calculate_billed_hours(
            0, MARCH_START, MARCH_END, 40, LeadTimeStrategy.PROGRESSIVE, "monthly", True,
            use_progressive, reference, plt_config,
        )
        assert hours == pytest.approx(43.3)


class TestCycleType:
    @pytest.mark.parametrize(
        "reference, expected",
        [
            (date(2024, 2, 29), CycleType.FUTURE),
            (date(2024, 3, 1), CycleType.CURRENT),
            (date(2024, 3, 15), CycleType.CURRENT),
            (date(2024, 3, 31), CycleType.CURRENT),
            (date(2024, 4, 1), CycleType.PAST),
        ],
    )
    def test_date_boundaries(self, reference, expected):
        assert determine_cycle_type(MARCH_START, MARCH_END, reference) == expected

    def test_last_day_is_current_until_midnight(self):
        late = datetime(2024, 3, 31, 23, 59, 59, tzinfo=timezone.utc)
        assert determine_cycle_type(MARCH_START, MARCH_END, late) == CycleType.CURRENT
        assert determine_cycle_type(MARCH_START, MARCH_END, late + timedelta(seconds=1)) == CycleType.PAST

    def test_datetime_bounds(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        end = datetime(2024, 3, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)
        assert determine_cycle_type(start, end, start - timedelta(microseconds=1)) == CycleType.FUTURE
        assert determine_cycle_type(start, end, start) == CycleType.CURRENT
        assert determine_cycle_type(start, end, end) == CycleType.CURRENT
        assert determine_cycle_type(start, end, end + timedelta(microseconds=1)) == CycleType.PAST

    def test_exactly_one_classification_for_every_day(self):
        day = date(2024, 1, 1)
        while day <= date(2024, 6, 30):
            status = determine_cycle_type(MARCH_START, MARCH_END, day)
            if day < MARCH_START:
                assert status == CycleType.FUTURE
            elif day > MARCH_END:
                assert status == CycleType.PAST
            else:
                assert status == CycleType.CURRENT
            day += timedelta(days=1)


class TestProgressivePLT:
    def test_percentage_mode(self):
        hours = calculate_progressive_plt(MARCH_START, MARCH_END, 40, PERCENTAGE_PLT, date(2024, 3, 11))
        assert hours == pytest.approx(10 * 40 * 0.25 / 7)

    def test_fixed_hours_mode(self):
        hours = calculate_progressive_plt(MARCH_START, MARCH_END, 40, FIXED_PLT, date(2024, 3, 11))
        assert hours == pytest.approx(20.0)

    def test_first_day_accrues_nothing(self):
        assert calculate_progressive_plt(MARCH_START, MARCH_END, 40, PERCENTAGE_PLT, MARCH_START) == 0

    def test_future_cycle_accrues_nothing(self):
        assert calculate_progressive_plt(MARCH_START, MARCH_END, 40, PERCENTAGE_PLT, date(2024, 2, 1)) == 0

    @pytest.mark.parametrize("cycle_type, expected", [("monthly", 43.3), ("weekly", 10.0)])
    def test_past_cycle_gets_full_lead_time(self, cycle_type, expected):
        hours = calculate_progressive_plt(MARCH_START, MARCH_END, 40, PERCENTAGE_PLT, date(2024, 5, 1), cycle_type)
        assert hours == pytest.approx(expected)

    def test_disabled_config(self):
        assert calculate_progressive_plt(MARCH_START, MARCH_END, 40, DISABLED_PLT, date(2024, 3, 11)) == 0

    @pytest.mark.parametrize("weekly_hours", [0, None, -1])
    def test_no_allocation(self, weekly_hours):
        assert calculate_progressive_plt(MARCH_START, MARCH_END, weekly_hours, PERCENTAGE_PLT, date(2024, 3, 11)) == 0

    @pytest.mark.parametrize("plt_config", [PERCENTAGE_PLT, FIXED_PLT])
    def test_non_decreasing_through_the_cycle(self, plt_config):
        previous = 0.0
        day = MARCH_START
        while day <= MARCH_END:
            hours = calculate_progressive_plt(MARCH_START, MARCH_END, 40, plt_config, day)
            assert hours >= previous
            previous = hours
            day += timedelta(days=1)

    def test_fixed_hours_fall_back_to_full_lead_time_once_the_cycle_ends(self):
        last_day = calculate_progressive_plt(MARCH_START, MARCH_END, 40, FIXED_PLT, MARCH_END)
        after_end = calculate_progressive_plt(MARCH_START, MARCH_END, 40, FIXED_PLT, MARCH_END + timedelta(days=1))

        assert last_day == pytest.approx(60.0)
        assert after_end == pytest.approx(43.3)

    def test_days_elapsed_floors_partial_days(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert days_elapsed(start, datetime(2024, 3, 3, 23, 0, tzinfo=timezone.utc)) == 2
        assert days_elapsed(start, datetime(2024, 2, 28, tzinfo=timezone.utc)) == 0


class TestPLTConfig:
    def test_full_plt(self):
        assert calculate_full_plt(40, "monthly") == pytest.approx(43.3)
        assert calculate_full_plt(20, "weekly") == pytest.approx(5.0)
        assert calculate_full_plt(0) == 0

    @pytest.mark.parametrize(
        "config, valid",
        [
            (PLTConfig(), True),
            (PLTConfig(project_lead_percentage=1.0), True),
            (PLTConfig(project_lead_percentage=1.5), False),
            (PLTConfig(project_lead_percentage=-0.1), False),
            (PLTConfig(hours_per_day=0), False),
            (PLTConfig(hours_per_day=25), False),
        ],
    )
    def test_validate(self, config, valid):
        assert validate_plt_config(config) is valid

    def test_settings_snapshot(self):
        settings = Settings(
            _env_file=None,
            plt_default_percentage=30,
            plt_default_hours_per_day=3,
            plt_use_percentage=False,
            plt_progressive_enabled=False,
        )
        plt_config = settings.plt_config()
        assert plt_config.project_lead_percentage == pytest.approx(0.3)
        assert plt_config.hours_per_day == 3
        assert plt_config.use_percentage is False
        assert plt_config.enabled is False
