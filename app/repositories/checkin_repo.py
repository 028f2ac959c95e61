from sqlalchemy.orm import Session
from sqlalchemy import select
from app.db.models import CheckIn
from uuid import UUID
from datetime import datetime

def create_checkin(db: Session, user_id: UUID, *, timestamp: datetime, mood_score: int, mood_label: str,
                   mood_description: str | None, activities: list[dict], notes: str | None) -> CheckIn:
    ci = CheckIn(
        user_id=user_id,
        timestamp=timestamp,
        mood_score=mood_score,
        mood_label=mood_label,
        mood_description=mood_description,
        activities=activities,
        notes=notes,
    )
    db.add(ci); db.commit(); db.refresh(ci)
    return ci

def get_latest_checkin(db: Session, user_id: UUID) -> CheckIn | None:
    q = select(CheckIn).where(CheckIn.user_id == user_id).order_by(CheckIn.timestamp.desc()).limit(1)
    return db.execute(q).scalar_one_or_none()

def list_checkins_between(db: Session, user_id: UUID, start: datetime, end: datetime) -> list[CheckIn]:
    q = (
        select(CheckIn)
        .where(CheckIn.user_id == user_id, CheckIn.timestamp >= start, CheckIn.timestamp <= end)
        .order_by(CheckIn.timestamp.asc())
    )
    return list(db.execute(q).scalars())

def list_recent_checkins(db: Session, user_id: UUID, since: datetime) -> list[CheckIn]:
    q = (
        select(CheckIn)
        .where(CheckIn.user_id == user_id, CheckIn.timestamp >= since)
        .order_by(CheckIn.timestamp.desc())
    )
    return list(db.execute(q).scalars())

def delete_latest_checkin(db: Session, user_id: UUID) -> bool:
    ci = get_latest_checkin(db, user_id)
    if not ci:
        return False
    db.delete(ci); db.commit()
    return True
