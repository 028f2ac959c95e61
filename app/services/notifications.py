from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, TransientDeliveryError
from app.db.models import Notification
from app.repositories import device_repo, notification_repo
from app.services.clock import Clock
from app.services.push import PushGateway

logger = logging.getLogger(__name__)

# Event classes deduplicated per recipient regardless of the text they carry
CLASS_DEDUPED = {"check_in_complete"}

Sleeper = Callable[[float], Awaitable[None]]


class DedupWindow:
    """
    Time-indexed map of recently delivered keys. Expired entries are swept
    lazily on access; the map never holds more than `max_entries` keys.
    """

    def __init__(self, clock: Clock, window_seconds: float = 5, max_entries: int = 10_000):
        self.clock = clock
        self.window = timedelta(seconds=window_seconds)
        self.max_entries = max_entries
        self._expiry: dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._expiry)

    def _sweep(self, now: datetime) -> None:
        for key in [k for k, exp in self._expiry.items() if exp <= now]:
            del self._expiry[key]
        while len(self._expiry) >= self.max_entries:
            oldest = min(self._expiry, key=self._expiry.__getitem__)
            del self._expiry[oldest]

    def admit(self, key: str) -> bool:
        """
        True the first time `key` is seen inside the window, False for repeats.
        """
        now = self.clock.now()
        exp = self._expiry.get(key)
        if exp is not None and exp > now:
            return False
        self._sweep(now)
        self._expiry[key] = now + self.window
        return True

    def clear(self, user_id=None) -> None:
        if user_id is None:
            self._expiry.clear()
            return
        prefix = f"{user_id}|"
        for key in [k for k in self._expiry if k.startswith(prefix)]:
            del self._expiry[key]


def dedup_key(user_id, title: str, body: str, data: Optional[dict] = None) -> str:
    data = data or {}
    category = data.get("category")
    if category in CLASS_DEDUPED:
        return f"{user_id}|class:{category}"
    # Notices about different records never collapse into one
    related = data.get("relatedId")
    content = f"{title}\x1f{body}" if related is None else f"{title}\x1f{body}\x1f{related}"
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:32]
    return f"{user_id}|{digest}"


class NotificationDeliverer:
    """
    Creates inbox notifications, fans them out to the recipients' devices and
    owns device push-token registration.
    """

    def __init__(self, clock: Clock, push: PushGateway, dedup: DedupWindow, *,
                 sleeper: Sleeper = asyncio.sleep, registration_attempts: int = 3):
        self.clock = clock
        self.push = push
        self.dedup = dedup
        self.sleeper = sleeper
        self.registration_attempts = registration_attempts

    def _store(self, db: Session, user_id: UUID, title: str, body: str, data: dict) -> Optional[Notification]:
        if not self.dedup.admit(dedup_key(user_id, title, body, data)):
            logger.info("Suppressed duplicate notification %r for %s", title, user_id)
            return None
        related = data.get("relatedId")
        return notification_repo.create_notification(
            db,
            user_id,
            type=data.get("type", "alert"),
            title=title,
            message=body,
            time=self.clock.now(),
            actionable=bool(data.get("actionable", bool(data.get("actionRoute")))),
            action_route=data.get("actionRoute"),
            action_params=data.get("actionParams") or {},
            related_id=UUID(str(related)) if related else None,
        )

    async def _push(self, db: Session, user_ids: list[UUID], title: str, body: str, data: dict) -> None:
        tokens_by_user = device_repo.list_tokens(db, user_ids)
        tokens = [t for uid in user_ids for t in tokens_by_user.get(uid, [])]
        if not tokens:
            return
        wire = {k: (str(v) if isinstance(v, UUID) else v) for k, v in data.items()}
        try:
            await self.push.send(tokens, title, body, wire)
        except (TransientDeliveryError, httpx.HTTPError) as e:
            logger.warning("Push delivery of %r skipped for %s device(s): %s", title, len(tokens), e)
            return
        now = self.clock.now()
        for uid in tokens_by_user:
            device_repo.mark_notified(db, uid, now)

    async def schedule(self, db: Session, user_id: UUID, title: str, body: str,
                       data: Optional[dict] = None) -> Optional[UUID]:
        """
        Deliver one notification. Returns its id, or None when it was a
        duplicate of one delivered inside the dedup window.
        """
        data = dict(data or {})
        n = self._store(db, user_id, title, body, data)
        if n is None:
            return None
        await self._push(db, [user_id], title, body, data)
        return n.id

    async def broadcast(self, db: Session, recipients: Iterable[UUID], title: str, body: str,
                        data: Optional[dict] = None) -> list[UUID]:
        data = dict(data or {})
        targets = list(dict.fromkeys(recipients))
        delivered: list[UUID] = []
        ids: list[UUID] = []
        for uid in targets:
            n = self._store(db, uid, title, body, data)
            if n is not None:
                delivered.append(uid)
                ids.append(n.id)
        if delivered:
            await self._push(db, delivered, title, body, data)
        logger.info("Broadcast %r to %s of %s recipient(s)", title, len(delivered), len(targets))
        return ids

    async def register_device(self, db: Session, user_id: UUID, token: str, platform: str,
                              device_id: Optional[str] = None) -> bool:
        """
        Record the device and register its token with the push channel.
        Returns False once every attempt failed; never raises for delivery errors.
        """
        _, created = device_repo.upsert_device(
            db, user_id, push_token=token, platform=platform, device_id=device_id, last_active=self.clock.now(),
        )
        logger.info("%s device token for %s (%s)", "Registered" if created else "Refreshed", user_id, platform)
        if not self.push.enabled:
            return True

        delay = 1
        for attempt in range(self.registration_attempts):
            try:
                await self.push.register(token, platform, device_id)
                return True
            except (TransientDeliveryError, httpx.HTTPError) as e:
                logger.warning("Push registration attempt %s/%s failed, retrying in %ss: %s",
                               attempt + 1, self.registration_attempts, delay, e)
                await self.sleeper(delay)
                delay *= 2  # Exponential backoff
        logger.error("Push registration failed after %s attempts for %s", self.registration_attempts, user_id)
        return False

    def unregister_device(self, db: Session, user_id: UUID, token: str) -> bool:
        removed = device_repo.delete_device(db, user_id, token)
        self.reset(user_id)
        return removed

    def reset(self, user_id=None) -> None:
        self.dedup.clear(user_id)

    def list_for_user(self, db: Session, user_id: UUID, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        return notification_repo.list_notifications(db, user_id, unread_only=unread_only, limit=limit)

    def mark_read(self, db: Session, user_id: UUID, notification_id: UUID) -> Notification:
        n = notification_repo.get_notification_owned(db, user_id, notification_id)
        if not n:
            raise NotFoundError("Notification not found")
        return notification_repo.mark_read(db, n)

    def mark_all_read(self, db: Session, user_id: UUID) -> int:
        return notification_repo.mark_all_read(db, user_id)
