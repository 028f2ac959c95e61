from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import Settings, settings as default_settings
from app.services.analysis import RecencyAnalyzer
from app.services.baseline import BaselineBuilder
from app.services.cadence import CheckInCadenceController
from app.services.classifier import Classifier, build_classifier
from app.services.clock import Clock
from app.services.escalation import EscalationPolicy, SupportEscalationEngine
from app.services.notification_tracker import FlagStore, NotificationTracker, build_flag_store
from app.services.notifications import DedupWindow, NotificationDeliverer, Sleeper
from app.services.push import PushGateway, build_push_gateway
from app.services.scheduler import PeriodicScheduler

logger = logging.getLogger(__name__)

CADENCE_POLL_JOB = "cadence-availability"
SUPPORT_SWEEP_JOB = "support-sweep"


@dataclass(slots=True)
class ServiceContainer:
    clock: Clock
    classifier: Classifier
    push: PushGateway
    tracker: NotificationTracker
    deliverer: NotificationDeliverer
    cadence: CheckInCadenceController
    baselines: BaselineBuilder
    escalation: SupportEscalationEngine
    analyzer: RecencyAnalyzer
    scheduler: PeriodicScheduler
    session_factory: Callable[[], Session]


def build_container(*, session_factory: Optional[Callable[[], Session]] = None, clock: Optional[Clock] = None,
                    classifier: Optional[Classifier] = None, push: Optional[PushGateway] = None,
                    flag_store: Optional[FlagStore] = None, sleeper: Sleeper = asyncio.sleep,
                    cfg: Settings = default_settings) -> ServiceContainer:
    """
    Wire every service explicitly. Collaborators left as None come from settings.
    """
    if session_factory is None:
        from app.db.session import SessionLocal
        session_factory = SessionLocal

    clock = clock or Clock()
    classifier = classifier or build_classifier(cfg.CLASSIFIER_PROVIDER)
    push = push or build_push_gateway()
    tracker = NotificationTracker(
        flag_store or build_flag_store(cfg.FLAG_STORE_PATH), clock, ttl_hours=cfg.NOTIFICATION_FLAG_TTL_HOURS,
    )
    deliverer = NotificationDeliverer(
        clock, push, DedupWindow(clock, cfg.DEDUP_WINDOW_SECONDS),
        sleeper=sleeper, registration_attempts=cfg.DEVICE_REGISTRATION_ATTEMPTS,
    )
    cadence = CheckInCadenceController(clock, deliverer, tracker, cooldown_hours=cfg.CHECKIN_COOLDOWN_HOURS)
    baselines = BaselineBuilder(
        clock, classifier, window_days=cfg.BASELINE_WINDOW_DAYS, min_sample_days=cfg.BASELINE_MIN_SAMPLE_DAYS,
        classifier_timeout=cfg.CLASSIFIER_TIMEOUT_SECONDS,
    )
    escalation = SupportEscalationEngine(
        clock, deliverer,
        EscalationPolicy(cfg.SUPPORT_WIDEN_AFTER_HOURS, cfg.SUPPORT_WIDEN_AFTER_REPEATS),
        skip_empty_tiers=cfg.SUPPORT_SKIP_EMPTY_TIERS,
    )
    analyzer = RecencyAnalyzer(
        clock, classifier, baselines, escalation,
        recent_days=cfg.RECENT_WINDOW_DAYS, standard_days=cfg.STANDARD_WINDOW_DAYS,
        classifier_timeout=cfg.CLASSIFIER_TIMEOUT_SECONDS,
    )
    scheduler = PeriodicScheduler(on_stop=deliverer.reset)

    container = ServiceContainer(
        clock=clock, classifier=classifier, push=push, tracker=tracker, deliverer=deliverer,
        cadence=cadence, baselines=baselines, escalation=escalation, analyzer=analyzer,
        scheduler=scheduler, session_factory=session_factory,
    )

    async def cadence_poll():
        with session_factory() as db:
            return await cadence.poll_availability(db)

    async def support_sweep():
        with session_factory() as db:
            return await escalation.sweep(db)

    scheduler.register(CADENCE_POLL_JOB, cfg.CADENCE_POLL_SECONDS, cadence_poll)
    scheduler.register(SUPPORT_SWEEP_JOB, cfg.SUPPORT_SWEEP_SECONDS, support_sweep)
    logger.info("Services built (classifier=%s, push=%s)", getattr(classifier, "name", "?"),
                "enabled" if push.enabled else "disabled")
    return container
