from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from app.db.models import MentalHealthAssessment
from uuid import UUID
from datetime import datetime

OPEN_TIERS = ("buddyRequested", "communityRequested", "globalRequested")

def create_assessment(db: Session, user_id: UUID, *, timestamp: datetime, status: str, confidence_score: float,
                      needs_support: bool, reasoning_data: dict, analysis_metadata: dict) -> MentalHealthAssessment:
    a = MentalHealthAssessment(
        user_id=user_id,
        timestamp=timestamp,
        mental_health_status=status,
        confidence_score=confidence_score,
        needs_support=needs_support,
        support_request_status="none",
        reasoning_data=reasoning_data,
        analysis_metadata=analysis_metadata,
    )
    db.add(a); db.commit(); db.refresh(a)
    return a

def get_assessment(db: Session, assessment_id: UUID) -> MentalHealthAssessment | None:
    return db.get(MentalHealthAssessment, assessment_id)

def get_latest_assessment(db: Session, user_id: UUID, analysis_type: str | None = None) -> MentalHealthAssessment | None:
    items = list_assessments(db, user_id, limit=1, analysis_type=analysis_type)
    return items[0] if items else None

def list_assessments(db: Session, user_id: UUID, limit: int = 10, analysis_type: str | None = None) -> list[MentalHealthAssessment]:
    q = select(MentalHealthAssessment).where(MentalHealthAssessment.user_id == user_id)
    if analysis_type:
        q = q.where(MentalHealthAssessment.analysis_metadata["analysisType"].as_string() == analysis_type)
    q = q.order_by(MentalHealthAssessment.timestamp.desc()).limit(limit)
    return list(db.execute(q).scalars())

def list_assessments_since(db: Session, user_id: UUID, since: datetime) -> list[MentalHealthAssessment]:
    q = (
        select(MentalHealthAssessment)
        .where(MentalHealthAssessment.user_id == user_id, MentalHealthAssessment.timestamp >= since)
        .order_by(MentalHealthAssessment.timestamp.asc())
    )
    return list(db.execute(q).scalars())

def get_open_request(db: Session, user_id: UUID, exclude_id: UUID | None = None) -> MentalHealthAssessment | None:
    q = select(MentalHealthAssessment).where(
        MentalHealthAssessment.user_id == user_id,
        MentalHealthAssessment.support_request_status.in_(OPEN_TIERS),
    )
    if exclude_id is not None:
        q = q.where(MentalHealthAssessment.id != exclude_id)
    q = q.order_by(MentalHealthAssessment.support_request_time.desc()).limit(1)
    return db.execute(q).scalar_one_or_none()

def list_open_requests(db: Session) -> list[MentalHealthAssessment]:
    q = (
        select(MentalHealthAssessment)
        .where(MentalHealthAssessment.support_request_status.in_(OPEN_TIERS))
        .order_by(MentalHealthAssessment.support_request_time.asc())
    )
    return list(db.execute(q).scalars())

def list_requests_in_tier(db: Session, tier: str, *, user_ids: list[UUID] | None = None,
                          exclude_user: UUID | None = None) -> list[MentalHealthAssessment]:
    q = select(MentalHealthAssessment).where(
        MentalHealthAssessment.needs_support.is_(True),
        MentalHealthAssessment.support_request_status == tier,
    )
    if user_ids is not None:
        if not user_ids:
            return []
        q = q.where(MentalHealthAssessment.user_id.in_(user_ids))
    if exclude_user is not None:
        q = q.where(MentalHealthAssessment.user_id != exclude_user)
    q = q.order_by(MentalHealthAssessment.support_request_time.asc())
    return list(db.execute(q).scalars())

def save(db: Session, a: MentalHealthAssessment) -> MentalHealthAssessment:
    db.add(a); db.commit(); db.refresh(a)
    return a

def delete_assessments(db: Session, user_id: UUID) -> int:
    res = db.execute(delete(MentalHealthAssessment).where(MentalHealthAssessment.user_id == user_id))
    db.commit()
    return res.rowcount or 0
