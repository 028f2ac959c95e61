from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.utils.time import add_hours, ensure_aware, humanize_delta, is_past, utcnow


class Clock:
    """
    Source of "now" for every service. Swapped for a FrozenClock in tests.
    """

    def now(self) -> datetime:
        return utcnow()


class FrozenClock(Clock):
    def __init__(self, at: datetime):
        self._at = ensure_aware(at)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = ensure_aware(at)

    def advance(self, **kwargs) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at


def cooldown_hours() -> float:
    return settings.CHECKIN_COOLDOWN_HOURS


def next_checkin_time(last_check_in: datetime, hours: Optional[float] = None) -> datetime:
    """
    The earliest moment a new check-in is accepted after `last_check_in`.
    """
    return add_hours(last_check_in, cooldown_hours() if hours is None else hours)


def is_cooldown_over(last_check_in: Optional[datetime], *, now: datetime, hours: Optional[float] = None) -> bool:
    if last_check_in is None:
        return True
    return is_past(next_checkin_time(last_check_in, hours), now=now)


def cooldown_remaining(last_check_in: datetime, *, now: datetime, hours: Optional[float] = None) -> int:
    """
    Seconds left in the cooldown window, never negative.
    """
    seconds = int((next_checkin_time(last_check_in, hours) - ensure_aware(now)).total_seconds())
    return max(seconds, 0)


def eta_text(last_check_in: Optional[datetime], *, now: datetime, hours: Optional[float] = None) -> str:
    """
    Human-readable time until the next check-in like 'in 3h 5m' or 'now'.
    """
    if last_check_in is None:
        return "now"
    seconds = cooldown_remaining(last_check_in, now=now, hours=hours)
    if seconds <= 0:
        return "now"
    return f"in {humanize_delta(seconds)}"
