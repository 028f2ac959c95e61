from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from app.db.models import BaselineProfile
from uuid import UUID
from datetime import datetime

def create_baseline(db: Session, user_id: UUID, *, established_at: datetime, averaged_metrics: dict,
                    confidence_score: float, data_points: dict, raw_assessment_data: dict | None) -> BaselineProfile:
    b = BaselineProfile(
        user_id=user_id,
        established_at=established_at,
        averaged_metrics=averaged_metrics,
        confidence_score=confidence_score,
        data_points=data_points,
        raw_assessment_data=raw_assessment_data,
    )
    db.add(b); db.commit(); db.refresh(b)
    return b

def get_active_baseline(db: Session, user_id: UUID) -> BaselineProfile | None:
    q = (
        select(BaselineProfile)
        .where(BaselineProfile.user_id == user_id)
        .order_by(BaselineProfile.established_at.desc())
        .limit(1)
    )
    return db.execute(q).scalar_one_or_none()

def list_baselines(db: Session, user_id: UUID, limit: int = 5) -> list[BaselineProfile]:
    q = (
        select(BaselineProfile)
        .where(BaselineProfile.user_id == user_id)
        .order_by(BaselineProfile.established_at.desc())
        .limit(limit)
    )
    return list(db.execute(q).scalars())

def delete_baselines(db: Session, user_id: UUID) -> int:
    res = db.execute(delete(BaselineProfile).where(BaselineProfile.user_id == user_id))
    db.commit()
    return res.rowcount or 0
