from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


UTC = timezone.utc


def utcnow() -> datetime:
    """
    Returns timezone-aware current UTC time.
    """
    return datetime.now(UTC)


def ensure_aware(dt: datetime, assume_utc: bool = True) -> datetime:
    """
    Ensure a datetime is timezone-aware. If naive and assume_utc is True,
    interpret as UTC; otherwise raise ValueError.
    """
    if dt.tzinfo is not None:
        return dt.astimezone(UTC)
    if assume_utc:
        return dt.replace(tzinfo=UTC)
    raise ValueError("Naive datetime provided and assume_utc=False")


def maybe_aware(dt: Optional[datetime]) -> Optional[datetime]:
    return ensure_aware(dt) if dt is not None else None


def add_hours(dt: datetime, hours: float) -> datetime:
    """
    Add hours to a (aware or naive) datetime and return UTC-aware datetime.
    """
    return ensure_aware(dt) + timedelta(hours=hours)


def days_ago(days: int, *, now: Optional[datetime] = None) -> datetime:
    return ensure_aware(now or utcnow()) - timedelta(days=days)


def epoch_ms(dt: datetime) -> int:
    return int(ensure_aware(dt).timestamp() * 1000)


def is_past(when: Optional[datetime], *, now: Optional[datetime] = None, grace_seconds: int = 0) -> bool:
    """
    True if `when` has passed (optionally with a grace window).
    """
    if when is None:
        return False
    now_ = ensure_aware(now or utcnow())
    target = ensure_aware(when)
    return now_ >= (target + timedelta(seconds=grace_seconds))


def humanize_delta(seconds: int) -> str:
    """
    Simple humanization for durations like '1h 25m' or '17m'.
    """
    if seconds < 0:
        seconds = 0
    minutes, _ = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)
