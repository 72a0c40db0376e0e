"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months (Jan 31 + 1 -> Feb 28/29)"""
    return from_date + relativedelta(months=months)


def months_between(start: date, end: date) -> int:
    """Calendar-month difference, ignoring the day of month"""
    return (end.year - start.year) * 12 + (end.month - start.month)


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_from_now(days: int, now: datetime | None = None) -> datetime:
    """Deadline ``days`` whole days after ``now`` (UTC)"""
    return (now or utcnow()) + timedelta(days=days)
