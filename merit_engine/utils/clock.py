"""
Time helpers.

Timestamps are stored as naive UTC (datetime.utcnow). Streak and calendar
cap logic works on local calendar dates in the configured timezone.
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.utcnow()


def as_naive_utc(moment: datetime) -> datetime:
    """Normalize an aware datetime to the naive-UTC storage form."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(moment: datetime, tz_name: str) -> datetime:
    """Naive-UTC (or aware) datetime -> aware datetime in tz_name."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))


def local_date(moment: datetime, tz_name: str) -> date:
    """Calendar date of `moment` in tz_name."""
    return to_local(moment, tz_name).date()


def local_day_start_utc(day: date, tz_name: str) -> datetime:
    """Local midnight of `day`, as naive UTC."""
    local_midnight = datetime.combine(day, time.min, tzinfo=ZoneInfo(tz_name))
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


ROLLING_WEEK = timedelta(days=7)
