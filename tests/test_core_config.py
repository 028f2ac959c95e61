"""
Unit tests for app.core.config module.
"""
import pytest
from pydantic import ValidationError
from app.core.config import Settings


class TestSettings:
    """Test Settings configuration."""

    def test_settings_defaults(self):
        """Test default values in settings."""
        s = Settings(_env_file=None)

        assert s.APP_NAME == "MindMate API"
        assert s.JWT_AUDIENCE == "authenticated"
        assert s.CHECKIN_COOLDOWN_HOURS == 24
        assert s.NOTIFICATION_FLAG_TTL_HOURS == 24
        assert s.DEDUP_WINDOW_SECONDS == 5
        assert s.DEVICE_REGISTRATION_ATTEMPTS == 3
        assert s.RECENT_WINDOW_DAYS == 3
        assert s.CLASSIFIER_PROVIDER == "heuristic"
        assert s.ADMIN_ROUTES_ENABLED is False
        assert s.PUSH_GATEWAY_URL is None

    def test_widening_policy_defaults(self):
        """Support widening thresholds are configuration values."""
        s = Settings(_env_file=None)
        assert s.SUPPORT_WIDEN_AFTER_HOURS == 12
        assert s.SUPPORT_WIDEN_AFTER_REPEATS == 2
        assert s.SUPPORT_SKIP_EMPTY_TIERS is True

    def test_settings_env_override(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("APP_NAME", "Test API")
        monkeypatch.setenv("SUPPORT_WIDEN_AFTER_HOURS", "6")
        monkeypatch.setenv("scheduler_enabled", "false")

        s = Settings(_env_file=None)

        assert s.APP_NAME == "Test API"
        assert s.SUPPORT_WIDEN_AFTER_HOURS == 6
        assert s.SCHEDULER_ENABLED is False

    def test_invalid_value(self, monkeypatch):
        """Test that badly typed values are rejected."""
        monkeypatch.setenv("DEDUP_WINDOW_SECONDS", "soon")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
