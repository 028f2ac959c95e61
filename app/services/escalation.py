"""Support-request state machine and tier widening policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.db.models import MentalHealthAssessment
from app.repositories import assessment_repo, user_repo
from app.services.clock import Clock
from app.services.notifications import NotificationDeliverer
from app.utils.time import ensure_aware, maybe_aware

logger = logging.getLogger(__name__)

NONE = "none"
PROVIDED = "supportProvided"


class SupportTier(IntEnum):
    """Ordered support tiers; a request only ever moves up."""

    NONE = 0
    BUDDY = 1
    COMMUNITY = 2
    GLOBAL = 3


TIER_STATUS = {
    SupportTier.NONE: NONE,
    SupportTier.BUDDY: "buddyRequested",
    SupportTier.COMMUNITY: "communityRequested",
    SupportTier.GLOBAL: "globalRequested",
}
STATUS_TIER = {status: tier for tier, status in TIER_STATUS.items()}
OPEN_STATUSES = set(assessment_repo.OPEN_TIERS)

TIER_MESSAGES = {
    SupportTier.BUDDY: {
        "title": "Buddy Support Request",
        "body": "Someone in your support network might need help",
        "type": "buddy_support",
        "actionRoute": "/buddy-support",
    },
    SupportTier.COMMUNITY: {
        "title": "Community Support Request",
        "body": "A member of your community might need support",
        "type": "community_support",
        "actionRoute": "/community-support",
    },
    SupportTier.GLOBAL: {
        "title": "Global Support Request",
        "body": "Someone in the MindMate community might need support",
        "type": "global_support",
        "actionRoute": "/global-support",
    },
}


@dataclass(frozen=True)
class WideningDecision:
    widen: bool
    tier: SupportTier
    trigger: str | None


@dataclass(frozen=True)
class Transition:
    assessment_id: UUID
    user_id: UUID
    previous: str
    current: str
    trigger: str
    audience: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SupportRequestView:
    assessment: MentalHealthAssessment
    user_id: UUID
    username: Optional[str]
    display_name: Optional[str]


class EscalationPolicy:
    """
    Widen an open request by one tier once it has gone unaddressed for
    `widen_after` since its last tier change, or once `widen_after_repeats`
    further needs-support assessments arrived while it was open.
    """

    def __init__(self, widen_after_hours: float = 12, widen_after_repeats: int = 2):
        self.widen_after = timedelta(hours=widen_after_hours)
        self.widen_after_repeats = widen_after_repeats

    def decide(self, tier: SupportTier, *, tier_changed_at: Optional[datetime], repeat_count: int,
               now: datetime) -> WideningDecision:
        if tier in (SupportTier.NONE, SupportTier.GLOBAL):
            return WideningDecision(widen=False, tier=tier, trigger=None)
        next_tier = SupportTier(tier + 1)
        if self.widen_after_repeats > 0 and repeat_count >= self.widen_after_repeats:
            return WideningDecision(widen=True, tier=next_tier, trigger="repeated_need")
        if tier_changed_at is not None and ensure_aware(now) - ensure_aware(tier_changed_at) >= self.widen_after:
            return WideningDecision(widen=True, tier=next_tier, trigger="unaddressed")
        return WideningDecision(widen=False, tier=tier, trigger=None)


class SupportEscalationEngine:
    def __init__(self, clock: Clock, deliverer: NotificationDeliverer, policy: EscalationPolicy, *,
                 skip_empty_tiers: bool = True):
        self.clock = clock
        self.deliverer = deliverer
        self.policy = policy
        self.skip_empty_tiers = skip_empty_tiers

    def audience(self, db: Session, user_id: UUID, tier: SupportTier) -> list[UUID]:
        if tier == SupportTier.BUDDY:
            return user_repo.list_buddy_ids(db, user_id)
        if tier == SupportTier.COMMUNITY:
            return user_repo.list_community_peer_ids(db, user_id)
        if tier == SupportTier.GLOBAL:
            return user_repo.list_all_user_ids(db, exclude=user_id)
        return []

    def _resolve_tier(self, db: Session, user_id: UUID, start: SupportTier) -> tuple[SupportTier, list[UUID]]:
        tier = start
        while True:
            audience = self.audience(db, user_id, tier)
            if audience or not self.skip_empty_tiers or tier == SupportTier.GLOBAL:
                return tier, audience
            logger.info("No audience at tier %s for %s, skipping", tier.name, user_id)
            tier = SupportTier(tier + 1)

    async def _move(self, db: Session, a: MentalHealthAssessment, start: SupportTier, trigger: str) -> Transition:
        previous = a.support_request_status
        tier, audience = self._resolve_tier(db, a.user_id, start)
        now = self.clock.now()
        a.support_request_status = TIER_STATUS[tier]
        if previous == NONE:
            a.support_request_time = now
        a.tier_changed_at = now
        a.repeat_count = 0
        assessment_repo.save(db, a)
        logger.info("Support request %s: %s -> %s (%s, %s recipients)",
                    a.id, previous, a.support_request_status, trigger, len(audience))

        msg = TIER_MESSAGES[tier]
        await self.deliverer.broadcast(
            db, audience, msg["title"], msg["body"],
            {"type": msg["type"], "actionable": True, "actionRoute": msg["actionRoute"],
             "actionParams": {"assessmentId": str(a.id)}, "relatedId": a.id},
        )
        return Transition(a.id, a.user_id, previous, a.support_request_status, trigger, tuple(audience))

    async def process(self, db: Session, assessment: MentalHealthAssessment) -> Optional[Transition]:
        """
        Apply a fresh assessment. Opens a request when support is needed and
        none is open; otherwise counts it as a repeat on the open request.
        At most one transition happens per call.
        """
        if not assessment.needs_support:
            return None

        open_request = assessment_repo.get_open_request(db, assessment.user_id, exclude_id=assessment.id)
        if open_request is None:
            if assessment.support_request_status != NONE:
                return None
            return await self._move(db, assessment, SupportTier.BUDDY, "needs_support")

        open_request.repeat_count = (open_request.repeat_count or 0) + 1
        assessment.analysis_metadata = {**(assessment.analysis_metadata or {}), "repeatOf": str(open_request.id)}
        assessment_repo.save(db, assessment)

        decision = self.policy.decide(
            STATUS_TIER[open_request.support_request_status],
            tier_changed_at=maybe_aware(open_request.tier_changed_at),
            repeat_count=open_request.repeat_count,
            now=self.clock.now(),
        )
        if not decision.widen:
            assessment_repo.save(db, open_request)
            return None
        return await self._move(db, open_request, decision.tier, decision.trigger)

    async def sweep(self, db: Session) -> list[Transition]:
        """
        Widen every open request the policy says has waited long enough.
        """
        transitions: list[Transition] = []
        now = self.clock.now()
        for a in assessment_repo.list_open_requests(db):
            decision = self.policy.decide(
                STATUS_TIER[a.support_request_status],
                tier_changed_at=maybe_aware(a.tier_changed_at or a.support_request_time),
                repeat_count=a.repeat_count or 0,
                now=now,
            )
            if decision.widen:
                transitions.append(await self._move(db, a, decision.tier, decision.trigger))
        if transitions:
            logger.info("Support sweep widened %s request(s)", len(transitions))
        return transitions

    async def provide_support(self, db: Session, assessment_id: UUID, helper_id: UUID) -> MentalHealthAssessment:
        a = assessment_repo.get_assessment(db, assessment_id)
        if a is None:
            raise NotFoundError("Assessment not found")
        if a.support_request_status not in OPEN_STATUSES:
            raise ConflictError(f"Support cannot be provided while status is {a.support_request_status}")
        if a.user_id == helper_id:
            raise ConflictError("You cannot provide support for your own request")

        previous = a.support_request_status
        a.support_request_status = PROVIDED
        a.support_provided_by = helper_id
        a.support_provided_time = self.clock.now()
        assessment_repo.save(db, a)
        logger.info("Support request %s: %s -> %s by %s", a.id, previous, PROVIDED, helper_id)

        helper = user_repo.get_users(db, [helper_id]).get(helper_id)
        name = (helper.display_name or helper.username) if helper else "Someone"
        await self.deliverer.schedule(
            db, a.user_id, "Support Is On The Way", f"{name} reached out to support you",
            {"type": "support", "actionable": True, "actionRoute": "/messages",
             "actionParams": {"helperId": str(helper_id)}, "relatedId": a.id},
        )
        return a

    def reset(self, db: Session, assessment_id: UUID) -> MentalHealthAssessment:
        a = assessment_repo.get_assessment(db, assessment_id)
        if a is None:
            raise NotFoundError("Assessment not found")
        logger.warning("Resetting support request %s from %s", a.id, a.support_request_status)
        a.support_request_status = NONE
        a.support_request_time = None
        a.support_provided_by = None
        a.support_provided_time = None
        a.tier_changed_at = None
        a.repeat_count = 0
        return assessment_repo.save(db, a)

    def _project(self, db: Session, rows: list[MentalHealthAssessment]) -> list[SupportRequestView]:
        users = user_repo.get_users(db, list({a.user_id for a in rows}))
        views = []
        for a in rows:
            u = users.get(a.user_id)
            views.append(SupportRequestView(
                assessment=a,
                user_id=a.user_id,
                username=u.username if u else None,
                display_name=u.display_name if u else None,
            ))
        return views

    def list_buddy_support_requests(self, db: Session, viewer_id: UUID) -> list[SupportRequestView]:
        buddies = user_repo.list_buddy_ids(db, viewer_id)
        rows = assessment_repo.list_requests_in_tier(db, TIER_STATUS[SupportTier.BUDDY], user_ids=buddies)
        return self._project(db, rows)

    def list_community_support_requests(self, db: Session, viewer_id: UUID) -> list[SupportRequestView]:
        peers = user_repo.list_community_peer_ids(db, viewer_id)
        rows = assessment_repo.list_requests_in_tier(db, TIER_STATUS[SupportTier.COMMUNITY], user_ids=peers)
        return self._project(db, rows)

    def list_global_support_requests(self, db: Session, viewer_id: UUID) -> list[SupportRequestView]:
        rows = assessment_repo.list_requests_in_tier(db, TIER_STATUS[SupportTier.GLOBAL], exclude_user=viewer_id)
        return self._project(db, rows)
