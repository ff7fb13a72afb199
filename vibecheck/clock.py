"""Calendar-day helpers for the daily queue."""

from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo


def resolve_timezone(name: str | None) -> tzinfo | None:
    """IANA zone for ``name``; None means the machine's local zone."""
    return ZoneInfo(name) if name else None


def local_now(tz: tzinfo | None = None) -> datetime:
    return datetime.now(tz).astimezone(tz)


def today_date(now: datetime | None = None, tz: tzinfo | None = None) -> date:
    """The user's local calendar day."""
    now = now or local_now(tz)
    if tz is not None and now.tzinfo is not None:
        now = now.astimezone(tz)
    return now.date()


def next_queue_time(now: datetime, hour: int = 10) -> datetime:
    """The next time a fresh queue becomes available (today or tomorrow at ``hour``)."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target += timedelta(days=1)
    return target


def format_countdown(remaining: timedelta) -> str:
    """Format a duration as HH:MM:SS; non-positive durations are 00:00:00."""
    total_seconds = int(remaining.total_seconds())
    if total_seconds <= 0:
        return "00:00:00"
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
