import logging
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` string into a ``time``."""
    hours, _, minutes = (value or "").strip().partition(":")
    try:
        return time(hour=int(hours), minute=int(minutes or 0))
    except ValueError as exc:
        raise ValueError(f"Invalid clock value: {value!r}") from exc


def is_within_quiet_hours(start: str, end: str, local_time: time) -> bool:
    quiet_start = parse_clock(start)
    quiet_end = parse_clock(end)
    current = (local_time.hour, local_time.minute)
    start_key = (quiet_start.hour, quiet_start.minute)
    end_key = (quiet_end.hour, quiet_end.minute)
    if start_key > end_key:
        # Window spans midnight, e.g. 21:00-08:00.
        return current >= start_key or current < end_key
    return start_key <= current < end_key


def resolve_timezone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_timezone name=%s fallback=UTC", name)
        return timezone.utc


def client_local_now(timezone_name: str, now: datetime) -> datetime:
    """Convert ``now`` (aware, or naive UTC) to the client's local time."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(resolve_timezone(timezone_name))
