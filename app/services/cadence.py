from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.db.models import CheckIn
from app.repositories import checkin_repo, device_repo, notification_repo
from app.services.clock import Clock, eta_text, is_cooldown_over, next_checkin_time
from app.services.notification_tracker import CHECK_IN_AVAILABLE, NotificationTracker
from app.services.notifications import NotificationDeliverer
from app.utils.time import days_ago, ensure_aware

logger = logging.getLogger(__name__)

MOOD_LABELS = {"Very Low", "Low", "Neutral", "Good", "Very Good"}
ACTIVITY_TYPES = {"Sleep", "Exercise", "Social", "Work"}
ACTIVITY_LEVELS = {"low", "moderate", "high"}

AVAILABLE_TYPE = "wellness"
AVAILABLE_TITLE = "Check-In Available"
AVAILABLE_BODY = "Your next check-in is now available. How are you feeling today?"
AVAILABLE_ROUTE = "/home/check_in"
COMPLETE_TITLE = "Check-In Complete"


@dataclass(slots=True)
class CadenceStatus:
    can_check_in: bool
    next_check_in_time: Optional[datetime] = None
    last_check_in: Optional[datetime] = None
    notification_created: bool = False


def validate_checkin(mood: dict, activities: list) -> None:
    """
    Raise ValidationError for an out-of-range mood or malformed activities.
    """
    if not isinstance(mood, dict):
        raise ValidationError("Mood is required")
    score = mood.get("score")
    if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
        raise ValidationError("Mood score must be an integer between 1 and 5")
    if mood.get("label") not in MOOD_LABELS:
        raise ValidationError(f"Mood label must be one of {sorted(MOOD_LABELS)}")
    if not isinstance(activities, list):
        raise ValidationError("Activities must be a list")
    for i, activity in enumerate(activities):
        if not isinstance(activity, dict):
            raise ValidationError(f"Activity {i} is malformed")
        if activity.get("type") not in ACTIVITY_TYPES:
            raise ValidationError(f"Activity {i} has unknown type {activity.get('type')!r}")
        if activity.get("level") not in ACTIVITY_LEVELS:
            raise ValidationError(f"Activity {i} level must be low, moderate or high")


class CheckInCadenceController:
    """
    Enforces the cooldown between check-ins and keeps at most one unread
    availability notification per user.
    """

    def __init__(self, clock: Clock, deliverer: NotificationDeliverer, tracker: NotificationTracker,
                 cooldown_hours: float = 24):
        self.clock = clock
        self.deliverer = deliverer
        self.tracker = tracker
        self.cooldown_hours = cooldown_hours

    async def submit(self, db: Session, user_id: UUID, mood: dict, activities: list,
                     notes: Optional[str] = None) -> CheckIn:
        validate_checkin(mood, activities)
        now = self.clock.now()
        ci = checkin_repo.create_checkin(
            db,
            user_id,
            timestamp=now,
            mood_score=mood["score"],
            mood_label=mood["label"],
            mood_description=mood.get("description"),
            activities=[{"type": a["type"], "level": a["level"]} for a in activities],
            notes=notes,
        )
        logger.info("Check-in %s stored for %s (mood %s)", ci.id, user_id, ci.mood_score)

        # The check-in is stored; nothing below may fail the submission
        try:
            notification_repo.delete_notifications(db, user_id, type=AVAILABLE_TYPE, title=AVAILABLE_TITLE)
            device_repo.set_cooldown(db, user_id, True, now)
            self.tracker.reset(user_id, CHECK_IN_AVAILABLE)
            await self.deliverer.schedule(
                db, user_id, COMPLETE_TITLE, f"You rated your mood as {ci.mood_label}",
                {"type": AVAILABLE_TYPE, "category": "check_in_complete", "actionable": False,
                 "relatedId": ci.id},
            )
        except Exception as e:
            db.rollback()
            logger.error("Post check-in side effects failed for %s: %s", user_id, e)
        return ci

    async def _notify_available(self, db: Session, user_id: UUID) -> bool:
        nid = await self.deliverer.schedule(
            db, user_id, AVAILABLE_TITLE, AVAILABLE_BODY,
            {"type": AVAILABLE_TYPE, "actionable": True, "actionRoute": AVAILABLE_ROUTE},
        )
        self.tracker.mark_shown(user_id, CHECK_IN_AVAILABLE)
        return nid is not None

    def _has_unread_available(self, db: Session, user_id: UUID) -> bool:
        return notification_repo.find_unread(db, user_id, type=AVAILABLE_TYPE, title=AVAILABLE_TITLE) is not None

    async def status(self, db: Session, user_id: UUID) -> CadenceStatus:
        latest = checkin_repo.get_latest_checkin(db, user_id)
        now = self.clock.now()

        if latest is None:
            created = False
            if not self.tracker.has_shown(user_id) and not self._has_unread_available(db, user_id):
                created = await self._notify_available(db, user_id)
            return CadenceStatus(can_check_in=True, notification_created=created)

        last = ensure_aware(latest.timestamp)
        next_at = next_checkin_time(last, self.cooldown_hours)
        if not is_cooldown_over(last, now=now, hours=self.cooldown_hours):
            device_repo.set_cooldown(db, user_id, True, last)
            logger.debug("Next check-in for %s %s", user_id, eta_text(last, now=now, hours=self.cooldown_hours))
            return CadenceStatus(can_check_in=False, next_check_in_time=next_at, last_check_in=last)

        device_repo.set_cooldown(db, user_id, False)
        created = False
        if not self.tracker.has_shown(user_id) and not self._has_unread_available(db, user_id):
            created = await self._notify_available(db, user_id)
        return CadenceStatus(can_check_in=True, last_check_in=last, notification_created=created)

    async def reset_timer(self, db: Session, user_id: UUID) -> dict:
        """
        Developer escape hatch: forget the latest check-in and announce availability again.
        """
        deleted = checkin_repo.delete_latest_checkin(db, user_id)
        device_repo.set_cooldown(db, user_id, False)
        notification_repo.delete_notifications(
            db, user_id, type=AVAILABLE_TYPE, title=AVAILABLE_TITLE, unread_only=False,
        )
        self.tracker.reset(user_id, CHECK_IN_AVAILABLE)
        self.deliverer.reset(user_id)
        await self._notify_available(db, user_id)
        logger.info("Check-in timer reset for %s (check-in deleted: %s)", user_id, deleted)
        return {
            "message": "Check-in timer reset successfully",
            "canCheckIn": True,
            "deletedCheckIn": deleted,
            "notification": {"title": AVAILABLE_TITLE, "message": AVAILABLE_BODY},
            "shouldTriggerLocalNotification": True,
        }

    def recent(self, db: Session, user_id: UUID, days: int = 7) -> list[CheckIn]:
        return checkin_repo.list_recent_checkins(db, user_id, days_ago(days, now=self.clock.now()))

    async def poll_availability(self, db: Session) -> int:
        """
        Re-evaluate users whose devices are still flagged as cooling down.
        Returns how many availability notifications were created.
        """
        created = 0
        for user_id in device_repo.users_in_cooldown(db):
            status = await self.status(db, user_id)
            created += int(status.notification_created)
        return created
