from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import ForeignKey, String, Enum, JSON, Date, DateTime, Float, Integer, Boolean, Uuid, UniqueConstraint, Index
import uuid
from datetime import date, datetime
from typing import Optional
from app.utils.time import utcnow

mental_health_status_enum = Enum(
    "stable", "declining", "critical",
    name="mental_health_status",
)

support_request_status_enum = Enum(
    "none", "buddyRequested", "communityRequested", "globalRequested", "supportProvided",
    name="support_request_status",
)

sleep_quality_enum = Enum("poor", "fair", "good", name="sleep_quality")

platform_enum = Enum("ios", "android", "web", name="device_platform")

class Base(DeclarativeBase):
    type_annotation_map = {
        datetime: DateTime(timezone=True),
        uuid.UUID: Uuid(),
        dict: JSON,
        list: JSON,
    }

class User(Base):
    __tablename__ = "users"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(64), unique=True)
    display_name: Mapped[Optional[str]]
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

class BuddyLink(Base):
    __tablename__ = "buddy_links"
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    buddy_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

class CommunityMembership(Base):
    __tablename__ = "community_memberships"
    community_id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

class CheckIn(Base):
    __tablename__ = "checkins"
    __table_args__ = (Index("ix_checkins_user_timestamp", "user_id", "timestamp"),)
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow)
    mood_score: Mapped[int]
    mood_label: Mapped[str] = mapped_column(String(32))
    mood_description: Mapped[Optional[str]]
    activities: Mapped[list] = mapped_column(default=list)
    notes: Mapped[Optional[str]]

class HealthData(Base):
    __tablename__ = "health_data"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_health_data_user_date"),)
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    day: Mapped[date] = mapped_column("date", Date)
    sleep_seconds: Mapped[Optional[int]]
    sleep_quality: Mapped[Optional[str]] = mapped_column(sleep_quality_enum)
    total_steps: Mapped[Optional[int]]
    exercise_seconds: Mapped[Optional[int]]
    exercise_count: Mapped[int] = mapped_column(Integer, default=0)
    last_synced_at: Mapped[datetime] = mapped_column(default=utcnow)

class BaselineProfile(Base):
    __tablename__ = "baseline_profiles"
    __table_args__ = (Index("ix_baselines_user_established", "user_id", "established_at"),)
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    established_at: Mapped[datetime] = mapped_column(default=utcnow)
    averaged_metrics: Mapped[dict] = mapped_column(default=dict)
    confidence_score: Mapped[float] = mapped_column(Float)
    data_points: Mapped[dict] = mapped_column(default=dict)
    raw_assessment_data: Mapped[Optional[dict]]

class MentalHealthAssessment(Base):
    __tablename__ = "mental_health_assessments"
    __table_args__ = (
        Index("ix_assessments_user_timestamp", "user_id", "timestamp"),
        Index("ix_assessments_support", "support_request_status", "support_request_time"),
    )
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow)
    mental_health_status: Mapped[str] = mapped_column(mental_health_status_enum)
    confidence_score: Mapped[float] = mapped_column(Float)
    needs_support: Mapped[bool] = mapped_column(Boolean, default=False)
    support_request_status: Mapped[str] = mapped_column(support_request_status_enum, default="none")
    support_request_time: Mapped[Optional[datetime]]
    support_provided_by: Mapped[Optional[uuid.UUID]]
    support_provided_time: Mapped[Optional[datetime]]
    tier_changed_at: Mapped[Optional[datetime]]
    repeat_count: Mapped[int] = mapped_column(Integer, default=0)
    reasoning_data: Mapped[dict] = mapped_column(default=dict)
    # "metadata" is reserved on declarative classes
    analysis_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "read"),)
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32))
    title: Mapped[str]
    message: Mapped[str]
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    time: Mapped[datetime] = mapped_column(default=utcnow)
    actionable: Mapped[bool] = mapped_column(Boolean, default=False)
    action_route: Mapped[Optional[str]]
    action_params: Mapped[dict] = mapped_column(default=dict)
    related_id: Mapped[Optional[uuid.UUID]]

class DeviceRegistration(Base):
    __tablename__ = "device_registrations"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    push_token: Mapped[str] = mapped_column(String(255), unique=True)
    platform: Mapped[str] = mapped_column(platform_enum)
    device_id: Mapped[Optional[str]]
    last_active: Mapped[datetime] = mapped_column(default=utcnow)
    check_in_cooldown: Mapped[bool] = mapped_column(Boolean, default=False)
    last_check_in: Mapped[Optional[datetime]]
    last_notification: Mapped[Optional[datetime]]
