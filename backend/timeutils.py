from datetime import date, datetime, time, timedelta, timezone

SECONDS_PER_HOUR = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    # naive values are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Fixed-width UTC form (2025-01-20T08:00:00.000Z); sorts lexically in time order."""
    return to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    return to_utc(datetime.fromisoformat(value.strip()))


def parse_range_bound(value: str | None, *, end_of_day: bool = False) -> str | None:
    """
    Normalize a date or datetime filter bound to the stored timestamp form.

    A bare date (YYYY-MM-DD) means the start of that day, or its last
    millisecond when used as an upper bound. Raises ValueError on garbage.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    if len(raw) == 10:
        day = date.fromisoformat(raw)
        moment = datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        return to_iso(moment)
    return to_iso(parse_iso(raw))


def local_midnight_utc(now: datetime | None = None) -> datetime:
    local_now = (now or utcnow()).astimezone()
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def days_ago(days: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


def hours_between(check_in: str, check_out: str | None) -> float:
    if not check_out:
        return 0.0
    delta = parse_iso(check_out) - parse_iso(check_in)
    return delta.total_seconds() / SECONDS_PER_HOUR


def duration_hours(check_in: str, check_out: str | None) -> float | None:
    if not check_out:
        return None
    return round(hours_between(check_in, check_out), 2)
