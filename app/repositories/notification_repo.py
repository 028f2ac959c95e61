from sqlalchemy.orm import Session
from sqlalchemy import select, delete, update
from app.db.models import Notification
from uuid import UUID
from datetime import datetime

def create_notification(db: Session, user_id: UUID, *, type: str, title: str, message: str, time: datetime,
                        actionable: bool = False, action_route: str | None = None,
                        action_params: dict | None = None, related_id: UUID | None = None) -> Notification:
    n = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        read=False,
        time=time,
        actionable=actionable,
        action_route=action_route,
        action_params=action_params or {},
        related_id=related_id,
    )
    db.add(n); db.commit(); db.refresh(n)
    return n

def find_unread(db: Session, user_id: UUID, *, type: str, title: str) -> Notification | None:
    q = (
        select(Notification)
        .where(Notification.user_id == user_id, Notification.type == type,
               Notification.title == title, Notification.read.is_(False))
        .order_by(Notification.time.desc())
        .limit(1)
    )
    return db.execute(q).scalar_one_or_none()

def delete_notifications(db: Session, user_id: UUID, *, type: str, title: str, unread_only: bool = True) -> int:
    stmt = delete(Notification).where(
        Notification.user_id == user_id, Notification.type == type, Notification.title == title,
    )
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    res = db.execute(stmt)
    db.commit()
    return res.rowcount or 0

def list_notifications(db: Session, user_id: UUID, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        q = q.where(Notification.read.is_(False))
    q = q.order_by(Notification.time.desc()).limit(limit)
    return list(db.execute(q).scalars())

def get_notification_owned(db: Session, user_id: UUID, notification_id: UUID) -> Notification | None:
    q = select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    return db.execute(q).scalar_one_or_none()

def mark_read(db: Session, n: Notification) -> Notification:
    n.read = True
    db.commit(); db.refresh(n)
    return n

def mark_all_read(db: Session, user_id: UUID) -> int:
    res = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    db.commit()
    return res.rowcount or 0
