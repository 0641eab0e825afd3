from datetime import datetime, timedelta, timezone
from typing import Optional, Union

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def get_utc_now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)

def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC."""
    if dt.tzinfo is None:  # if it's naive, assume it's UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def to_utc_iso(dt: datetime) -> str:
    """Canonical ISO-8601 UTC form used to compare start times: 2024-03-10T09:30:00.000Z"""
    utc_dt = to_utc(dt)
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_dt.microsecond // 1000:03d}Z"

def parse_utc_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(value))

def epoch_millis_to_utc(millis: Union[int, str]) -> datetime:
    """Convert epoch milliseconds (int or numeric string) to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=int(millis))

def to_epoch_millis(dt: datetime) -> int:
    return (to_utc(dt) - EPOCH) // timedelta(milliseconds=1)

def format_utc_iso(dt: Optional[datetime]) -> Optional[str]:
    """Format for API responses; None passes through."""
    if dt is None:
        return None
    return to_utc_iso(dt)

def to_naive_utc(dt: datetime) -> datetime:
    """UTC datetime without tzinfo, the form stored in DateTime columns."""
    return to_utc(dt).replace(tzinfo=None)
