from sqlalchemy.orm import Session
from sqlalchemy import select
from app.db.models import HealthData
from uuid import UUID
from datetime import date, datetime

SYNC_FIELDS = ("sleep_seconds", "sleep_quality", "total_steps", "exercise_seconds", "exercise_count")

def upsert_health_day(db: Session, user_id: UUID, day: date, fields: dict, synced_at: datetime) -> HealthData:
    q = select(HealthData).where(HealthData.user_id == user_id, HealthData.day == day)
    row = db.execute(q).scalar_one_or_none()
    if row is None:
        row = HealthData(user_id=user_id, day=day)
        db.add(row)
    # Only overwrite metrics the sync actually carried
    for key in SYNC_FIELDS:
        if fields.get(key) is not None:
            setattr(row, key, fields[key])
    row.last_synced_at = synced_at
    db.commit(); db.refresh(row)
    return row

def list_health_between(db: Session, user_id: UUID, start: date, end: date) -> list[HealthData]:
    q = (
        select(HealthData)
        .where(HealthData.user_id == user_id, HealthData.day >= start, HealthData.day <= end)
        .order_by(HealthData.day.asc())
    )
    return list(db.execute(q).scalars())
