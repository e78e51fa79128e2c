from datetime import datetime, date, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _zone(tz_name: str | None) -> ZoneInfo | None:
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def today_for_tz(tz_name: str | None, now: datetime | None = None) -> date:
    """Return the calendar day in `tz_name` (UTC when unknown) for `now` (naive UTC)."""
    moment = (now or utcnow()).replace(tzinfo=timezone.utc)
    zone = _zone(tz_name)
    if zone is None:
        return moment.date()
    return moment.astimezone(zone).date()


def start_of_day(d: date, tz_name: str | None = None) -> datetime:
    """Return local midnight of `d` as a naive UTC datetime."""
    zone = _zone(tz_name) or timezone.utc
    local = datetime(d.year, d.month, d.day, tzinfo=zone)
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def end_of_day(d: date, tz_name: str | None = None) -> datetime:
    """Return the following local midnight as a naive UTC datetime (exclusive bound)."""
    return start_of_day(d + timedelta(days=1), tz_name)


def days_ago(days: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=max(int(days), 0))
