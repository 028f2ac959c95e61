"""
Unit tests for app.services.clock module.
"""
from datetime import datetime, timedelta
from app.services.clock import (
    Clock, FrozenClock, cooldown_hours, next_checkin_time, is_cooldown_over,
    cooldown_remaining, eta_text
)
from app.utils.time import UTC


LAST = datetime(2026, 3, 10, 8, 0, tzinfo=UTC)


class TestClocks:
    """Test Clock and FrozenClock."""

    def test_clock_is_aware(self):
        """The real clock returns aware UTC datetimes."""
        assert Clock().now().tzinfo == UTC

    def test_frozen_clock_holds_time(self):
        """A frozen clock does not move on its own."""
        clock = FrozenClock(LAST)
        assert clock.now() == LAST
        assert clock.now() == LAST

    def test_frozen_clock_advance_and_set(self):
        """advance moves forward; set jumps anywhere."""
        clock = FrozenClock(datetime(2026, 3, 10, 8, 0))
        assert clock.now().tzinfo == UTC
        assert clock.advance(hours=2) == LAST + timedelta(hours=2)
        clock.set(LAST)
        assert clock.now() == LAST


class TestCooldown:
    """Test cooldown helpers."""

    def test_default_cooldown_is_a_day(self):
        """The configured default cooldown is 24 hours."""
        assert cooldown_hours() == 24

    def test_next_checkin_time(self):
        """Next check-in is last plus the cooldown."""
        assert next_checkin_time(LAST) == LAST + timedelta(hours=24)
        assert next_checkin_time(LAST, hours=1) == LAST + timedelta(hours=1)

    def test_is_cooldown_over(self):
        """Cooldown ends exactly at last + 24h."""
        assert is_cooldown_over(None, now=LAST) is True
        assert is_cooldown_over(LAST, now=LAST + timedelta(hours=23, minutes=59)) is False
        assert is_cooldown_over(LAST, now=LAST + timedelta(hours=24)) is True

    def test_cooldown_remaining_never_negative(self):
        """Remaining seconds bottom out at zero."""
        assert cooldown_remaining(LAST, now=LAST + timedelta(hours=23)) == 3600
        assert cooldown_remaining(LAST, now=LAST + timedelta(hours=30)) == 0


class TestEtaText:
    """Test eta_text function."""

    def test_no_previous_checkin(self):
        """Without a previous check-in the next one is available now."""
        assert eta_text(None, now=LAST) == "now"

    def test_inside_cooldown(self):
        """Inside the cooldown the remaining time is humanized."""
        assert eta_text(LAST, now=LAST + timedelta(hours=20, minutes=55)) == "in 3h 5m"

    def test_after_cooldown(self):
        """After the cooldown the answer is now."""
        assert eta_text(LAST, now=LAST + timedelta(days=2)) == "now"

    def test_custom_cooldown(self):
        """A configured cooldown length replaces the default."""
        assert eta_text(LAST, now=LAST + timedelta(hours=1), hours=2) == "in 1h 0m"
