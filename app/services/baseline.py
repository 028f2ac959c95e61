from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import InsufficientDataError
from app.db.models import BaselineProfile
from app.repositories import baseline_repo, checkin_repo, health_repo
from app.services import metrics
from app.services.classifier import Classifier, classify_bounded
from app.services.clock import Clock
from app.services.metrics import SignalWindow
from app.utils.time import days_ago, ensure_aware

logger = logging.getLogger(__name__)


def load_window(db: Session, user_id: UUID, *, end: datetime, days: int, weighted: bool = False) -> SignalWindow:
    """
    Collect the user's check-ins and daily health rows for the `days` before `end`.
    """
    start = days_ago(days, now=end)
    health = health_repo.list_health_between(db, user_id, start.date(), end.date())
    checkins = checkin_repo.list_checkins_between(db, user_id, start, end)
    return SignalWindow(user_id=user_id, start=start, end=end, days=days,
                        health=health, checkins=checkins, weighted=weighted)


def averaged_metrics(window: SignalWindow) -> dict:
    health, checkins = window.health, window.checkins
    return {
        "sleepHours": metrics.average_sleep_hours(health),
        "sleepQuality": metrics.modal_sleep_quality(health),
        "activityLevel": metrics.activity_level(health),
        "averageMoodScore": metrics.average_mood(checkins),
        "averageStepsPerDay": metrics.average_steps(health),
        "exerciseMinutesPerWeek": metrics.exercise_minutes_per_week(health, window.days),
    }


def data_points(window: SignalWindow) -> dict:
    return {
        "totalDays": window.days,
        "daysWithSleepData": sum(1 for h in window.health if h.sleep_seconds),
        "daysWithActivityData": sum(1 for h in window.health if (h.total_steps or 0) > 0 or h.exercise_count),
        "checkInsCount": len(window.checkins),
    }


class BaselineBuilder:
    """
    Summarizes a long historical window into a new BaselineProfile. Older
    profiles are kept as history; the newest one is active.
    """

    def __init__(self, clock: Clock, classifier: Classifier, *, window_days: int = 30,
                 min_sample_days: int = 1, classifier_timeout: float | None = None):
        self.clock = clock
        self.classifier = classifier
        self.window_days = window_days
        self.min_sample_days = min_sample_days
        self.classifier_timeout = classifier_timeout

    async def establish(self, db: Session, user_id: UUID) -> BaselineProfile:
        now = self.clock.now()
        window = load_window(db, user_id, end=now, days=self.window_days)
        sample_days = window.sample_days()
        if sample_days < max(self.min_sample_days, 1):
            raise InsufficientDataError(
                f"Baseline needs at least {max(self.min_sample_days, 1)} day(s) of check-ins or health data "
                f"in the last {self.window_days} days, found {sample_days}"
            )

        averages = averaged_metrics(window)
        result = await classify_bounded(self.classifier, window, timeout=self.classifier_timeout)
        averages["significantPatterns"] = result.significant_changes

        profile = baseline_repo.create_baseline(
            db,
            user_id,
            established_at=now,
            averaged_metrics=averages,
            confidence_score=result.confidence,
            data_points=data_points(window),
            raw_assessment_data={
                "mentalHealthStatus": result.status,
                "needsSupport": result.needs_support,
                "reasoningData": result.reasoning,
                "model": result.model,
            },
        )
        logger.info("Baseline %s established for %s from %s sample day(s)", profile.id, user_id, sample_days)
        return profile

    def active(self, db: Session, user_id: UUID) -> Optional[BaselineProfile]:
        return baseline_repo.get_active_baseline(db, user_id)

    def history(self, db: Session, user_id: UUID, limit: int = 5) -> list[BaselineProfile]:
        return baseline_repo.list_baselines(db, user_id, limit=limit)

    def analyzed_data(self, db: Session, user_id: UUID) -> Optional[SignalWindow]:
        """
        The rows behind the active baseline, or None when there is none.
        """
        profile = self.active(db, user_id)
        if profile is None:
            return None
        return load_window(db, user_id, end=ensure_aware(profile.established_at), days=self.window_days)
