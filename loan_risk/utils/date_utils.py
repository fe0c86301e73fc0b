"""Date manipulation utilities"""

from datetime import date, datetime, timezone

DAYS_PER_MONTH = 30


def months_between(start: date, end: date) -> float:
    """Elapsed months from start to end, counting 30-day months"""
    return (end - start).days / DAYS_PER_MONTH


def month_label(day: date) -> str:
    """Calendar month of a date as YYYY-MM"""
    return f"{day.year:04d}-{day.month:02d}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
