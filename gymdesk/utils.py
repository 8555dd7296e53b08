import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo
from gymdesk.config import GYM_TIMEZONE
from gymdesk.errors import ValidationError

YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

def normalize_email(email: str) -> str:
    """Normalize email by stripping spaces and lowercasing."""
    return email.strip().lower()

def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def gym_timezone() -> ZoneInfo:
    return ZoneInfo(GYM_TIMEZONE)

def to_local(moment: datetime, tz) -> datetime:
    """Stored (naive UTC) timestamp -> naive wall-clock time in tz."""
    return moment.replace(tzinfo=timezone.utc).astimezone(tz).replace(tzinfo=None)

def to_utc(local: datetime, tz) -> datetime:
    """Naive wall-clock time in tz -> naive UTC, comparable with stored timestamps."""
    return local.replace(tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)

def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)

def local_date_bounds(from_date: date, to_date: date, tz):
    """UTC [start, end) covering local calendar days from_date..to_date inclusive."""
    start = datetime.combine(from_date, time.min)
    end = datetime.combine(to_date, time.min) + timedelta(days=1)
    return to_utc(start, tz), to_utc(end, tz)

def days_ago(moment: datetime, days: int, tz) -> datetime:
    """UTC instant of the local midnight `days` calendar days before the local day of `moment`."""
    return to_utc(start_of_day(to_local(moment, tz)) - timedelta(days=days), tz)

def parse_ymd(value: str):
    """Parse YYYY-MM-DD into a date. Returns None when malformed."""
    if not value or not YMD_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None

def parse_date_range(start: str, end: str):
    if not start or not end:
        raise ValidationError('Parameters "from" and "to" are required (YYYY-MM-DD)')
    from_date = parse_ymd(start)
    to_date = parse_ymd(end)
    if from_date is None or to_date is None:
        raise ValidationError("Invalid date format, use YYYY-MM-DD")
    return from_date, to_date

def variation_pct(previous, current) -> float:
    """Percentage change from previous to current. prev=50, curr=75 -> 50.0"""
    if not previous and not current:
        return 0.0
    if not previous:
        return 100.0
    return round(float((current - previous) / previous * 100), 2)
