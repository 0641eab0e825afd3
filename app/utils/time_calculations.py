from app.utils.billing_cycle import WEEKS_PER_MONTH
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional, Union
from enum import Enum

BUFFER_MULTIPLIER = 1.1  # untracked work: Slack, QA, handovers
LEAD_TIME_HOURS_PER_DAY = 2
HOURS_PER_WORK_DAY = 8
DAYS_PER_WEEK = 7

DateLike = Union[date, datetime]


class LeadTimeStrategy(str, Enum):
    NONE = "none"
    FIXED_PER_DAY = "fixed_per_day"
    PROPORTIONAL = "proportional"
    PROGRESSIVE = "progressive"


class CycleType(str, Enum):
    CURRENT = "current"
    PAST = "past"
    FUTURE = "future"


@dataclass(frozen=True)
class PLTConfig:
    """Progressive project lead time settings."""

    project_lead_percentage: float = 0.25  # fraction of weekly allocated hours
    hours_per_day: float = 2.0
    use_percentage: bool = True
    enabled: bool = True


DEFAULT_PLT_CONFIG = PLTConfig()


def validate_plt_config(config: PLTConfig) -> bool:
    return (
        0 <= config.project_lead_percentage <= 1
        and 0 < config.hours_per_day <= 24
    )


def _cycle_multiplier(cycle_type: str) -> float:
    return 1 if cycle_type == "weekly" else WEEKS_PER_MONTH


def _align(value: DateLike, reference: DateLike, end_of_day: bool = False) -> DateLike:
    """Make ``value`` comparable with ``reference`` (date vs datetime)."""
    if isinstance(reference, datetime) and not isinstance(value, datetime):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=reference.tzinfo)
    if not isinstance(reference, datetime) and isinstance(value, datetime):
        return value.date()
    if isinstance(reference, datetime) and isinstance(value, datetime):
        # Naive and aware datetimes cannot be compared; treat naive as the reference's zone
        if value.tzinfo is None and reference.tzinfo is not None:
            return value.replace(tzinfo=reference.tzinfo)
        if value.tzinfo is not None and reference.tzinfo is None:
            return value.replace(tzinfo=None)
    return value


def determine_cycle_type(cycle_start: DateLike, cycle_end: DateLike, reference_date: DateLike) -> CycleType:
    """Classify a cycle as future, past or current relative to ``reference_date``.

    A calendar-day ``cycle_end`` covers the whole of that day.
    """
    start = _align(cycle_start, reference_date)
    end = _align(cycle_end, reference_date, end_of_day=True)

    if reference_date < start:
        return CycleType.FUTURE
    if reference_date > end:
        return CycleType.PAST
    return CycleType.CURRENT


def days_elapsed(cycle_start: DateLike, reference_date: DateLike) -> int:
    """Whole days from ``cycle_start`` to ``reference_date``, never negative."""
    start = _align(cycle_start, reference_date)
    # timedelta.days floors, matching Math.floor on a millisecond difference
    return max(0, (reference_date - start).days)


def calculate_full_plt(weekly_allocated_hours: float, cycle_type: str = "monthly") -> float:
    """Lead time hours for a whole cycle: 2h per allocated working day."""
    if not weekly_allocated_hours or weekly_allocated_hours <= 0:
        return 0.0

    allocated_days_per_week = weekly_allocated_hours / HOURS_PER_WORK_DAY
    allocated_days_in_cycle = allocated_days_per_week * _cycle_multiplier(cycle_type)
    return allocated_days_in_cycle * LEAD_TIME_HOURS_PER_DAY


def allocated_days_in_cycle(weekly_allocated_hours: float, cycle_type: str = "monthly") -> float:
    return ((weekly_allocated_hours or 0) / HOURS_PER_WORK_DAY) * _cycle_multiplier(cycle_type)


def calculate_progressive_plt(
    cycle_start: DateLike,
    cycle_end: DateLike,
    weekly_allocated_hours: float,
    plt_config: PLTConfig,
    reference_date: DateLike,
    cycle_type: str = "monthly",
) -> float:
    """
    Lead time hours accrued so far in a cycle.

    Future cycles accrue nothing, past cycles get the full-cycle figure and
    the current cycle grows linearly with the days elapsed since its start.
    """
    if plt_config is None or not plt_config.enabled:
        return 0.0
    if not weekly_allocated_hours or weekly_allocated_hours <= 0:
        return 0.0

    status = determine_cycle_type(cycle_start, cycle_end, reference_date)

    if status == CycleType.FUTURE:
        return 0.0
    if status == CycleType.PAST:
        return calculate_full_plt(weekly_allocated_hours, cycle_type)

    if plt_config.use_percentage:
        daily_rate = weekly_allocated_hours * plt_config.project_lead_percentage / DAYS_PER_WEEK
    else:
        daily_rate = plt_config.hours_per_day

    return days_elapsed(cycle_start, reference_date) * daily_rate


def calculate_billed_hours(
    total_duration_minutes: float,
    billing_cycle_start_date: DateLike,
    billing_cycle_end_date: DateLike,
    weekly_allocated_hours: float = 0,
    lead_time_strategy: LeadTimeStrategy = LeadTimeStrategy.FIXED_PER_DAY,
    cycle_type: str = "monthly",
    include_buffer: bool = True,
    use_progressive: bool = False,
    reference_date: Optional[DateLike] = None,
    plt_config: Optional[PLTConfig] = None,
) -> float:
    """
    Billable hours for a period.

    Raw minutes are multiplied by the buffer (when ``include_buffer``) and
    lead time minutes from the selected strategy are added on top.

    ``PROGRESSIVE`` only accrues progressively when ``use_progressive`` is
    set, ``plt_config`` is enabled and a ``reference_date`` is given; any
    other combination bills the full-cycle lead time instead.
    """
    minutes = max(0, total_duration_minutes or 0)
    weekly_hours = weekly_allocated_hours or 0

    buffered_minutes = minutes * BUFFER_MULTIPLIER if include_buffer else minutes

    strategy = LeadTimeStrategy(lead_time_strategy)
    lead_time_minutes = 0.0

    if strategy == LeadTimeStrategy.FIXED_PER_DAY:
        lead_time_minutes = calculate_full_plt(weekly_hours, cycle_type) * 60
    elif strategy == LeadTimeStrategy.PROPORTIONAL:
        # No work logged, no lead time
        if minutes > 0:
            lead_time_minutes = calculate_full_plt(weekly_hours, cycle_type) * 60
    elif strategy == LeadTimeStrategy.PROGRESSIVE:
        if use_progressive and plt_config is not None and plt_config.enabled and reference_date is not None:
            lead_time_minutes = calculate_progressive_plt(
                billing_cycle_start_date,
                billing_cycle_end_date,
                weekly_hours,
                plt_config,
                reference_date,
                cycle_type,
            ) * 60
        else:
            lead_time_minutes = calculate_full_plt(weekly_hours, cycle_type) * 60

    return (buffered_minutes + lead_time_minutes) / 60
