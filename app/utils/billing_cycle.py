from dateutil.relativedelta import relativedelta
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Tuple, Union
from calendar import monthrange

WEEKS_PER_MONTH = 4.33

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def cycle_anchor(start_day: int, year: int, month: int) -> date:
    """
    Day a cycle starts on in the given month.

    When the month is shorter than ``start_day`` the anchor is clamped to the
    month's last day (start day 31 anchors on Feb 29 in 2024, Apr 30, ...).
    """
    last_day = monthrange(year, month)[1]
    return date(year, month, min(start_day, last_day))


def get_billing_cycle_dates(start_day: int, reference_date: DateLike = None) -> Dict[str, date]:
    """
    Billing cycle containing ``reference_date`` for a client whose cycle
    starts on ``start_day`` (1-31) of each month.

    If the reference day falls before this month's anchor the cycle began in
    the previous month. The cycle ends the day before the next anchor, so
    consecutive cycles never overlap and never leave a gap.
    """
    if not 1 <= start_day <= 31:
        raise ValueError(f"start_day must be between 1 and 31, got {start_day}")

    today = _as_date(reference_date) if reference_date is not None else date.today()

    cycle_start = cycle_anchor(start_day, today.year, today.month)
    if today < cycle_start:
        previous = today.replace(day=1) - relativedelta(months=1)
        cycle_start = cycle_anchor(start_day, previous.year, previous.month)

    following = cycle_start.replace(day=1) + relativedelta(months=1)
    cycle_end = cycle_anchor(start_day, following.year, following.month) - timedelta(days=1)

    return {"start": cycle_start, "end": cycle_end}


def get_previous_billing_cycle_dates(start_day: int, reference_date: DateLike = None) -> Dict[str, date]:
    """Cycle immediately before the one containing ``reference_date``."""
    current = get_billing_cycle_dates(start_day, reference_date)
    return get_billing_cycle_dates(start_day, current["start"] - timedelta(days=1))


def get_weekly_dates(reference_date: DateLike = None) -> Dict[str, date]:
    """Monday to Sunday week containing ``reference_date``."""
    today = _as_date(reference_date) if reference_date is not None else date.today()
    # weekday(): Monday=0 ... Sunday=6
    week_start = today - timedelta(days=today.weekday())
    return {"start": week_start, "end": week_start + timedelta(days=6)}


def get_last_week_dates(reference_date: DateLike = None) -> Dict[str, date]:
    """Monday to Sunday week before the one containing ``reference_date``."""
    this_week = get_weekly_dates(reference_date)
    return {
        "start": this_week["start"] - timedelta(days=7),
        "end": this_week["end"] - timedelta(days=7),
    }


def get_billing_cycle_hours(weekly_hours: float) -> float:
    """Allocated hours for an average month."""
    return (weekly_hours or 0) * WEEKS_PER_MONTH


def get_weekly_hours(weekly_hours: float) -> float:
    return weekly_hours or 0


def cycle_bounds_utc(start: DateLike, end: DateLike) -> Tuple[datetime, datetime]:
    """Expand calendar days to 00:00:00.000000 .. 23:59:59.999999 UTC."""
    return (
        datetime.combine(_as_date(start), time.min, tzinfo=timezone.utc),
        datetime.combine(_as_date(end), time.max, tzinfo=timezone.utc),
    )
