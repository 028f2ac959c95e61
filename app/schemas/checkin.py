from pydantic import Field
from uuid import UUID
from datetime import datetime
from typing import Optional
from app.schemas.common import CamelModel

class MoodIn(CamelModel):
    score: int
    label: str
    description: Optional[str] = None

class ActivityIn(CamelModel):
    type: str  # Sleep | Exercise | Social | Work
    level: str  # low | moderate | high

class CheckInCreate(CamelModel):
    mood: MoodIn
    activities: list[ActivityIn] = Field(default_factory=list)
    notes: Optional[str] = None

class CheckInOut(CamelModel):
    id: UUID
    user_id: UUID
    timestamp: datetime
    mood: MoodIn
    activities: list[ActivityIn]
    notes: Optional[str] = None

    @classmethod
    def from_model(cls, ci) -> "CheckInOut":
        return cls(
            id=ci.id,
            user_id=ci.user_id,
            timestamp=ci.timestamp,
            mood=MoodIn(score=ci.mood_score, label=ci.mood_label, description=ci.mood_description),
            activities=[ActivityIn(**a) for a in (ci.activities or [])],
            notes=ci.notes,
        )

class CheckInSubmitOut(CamelModel):
    message: str
    check_in: CheckInOut

class CheckInStatusOut(CamelModel):
    can_check_in: bool
    next_check_in_time: Optional[datetime] = None

class ResetTimerOut(CamelModel):
    message: str
    can_check_in: bool
    deleted_check_in: bool
    notification: dict
    should_trigger_local_notification: bool
