from pydantic import Field
from uuid import UUID
from datetime import date, datetime
from typing import Optional
from app.schemas.common import CamelModel
from app.schemas.checkin import CheckInOut

class BaselineOut(CamelModel):
    id: UUID
    user_id: UUID
    established_at: datetime
    averaged_metrics: dict
    confidence_score: float
    data_points: dict = Field(default_factory=dict)
    raw_assessment_data: Optional[dict] = None

class AssessmentOut(CamelModel):
    id: UUID
    user_id: UUID
    timestamp: datetime
    mental_health_status: str
    confidence_score: float
    needs_support: bool
    support_request_status: Optional[str] = None
    support_request_time: Optional[datetime] = None
    support_provided_by: Optional[UUID] = None
    support_provided_time: Optional[datetime] = None
    reasoning_data: dict = Field(default_factory=dict)
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_model(cls, a, include_support: bool = True) -> "AssessmentOut":
        out = cls(
            id=a.id,
            user_id=a.user_id,
            timestamp=a.timestamp,
            mental_health_status=a.mental_health_status,
            confidence_score=a.confidence_score,
            needs_support=a.needs_support,
            reasoning_data=a.reasoning_data or {},
            metadata=a.analysis_metadata or {},
        )
        if include_support:
            out.support_request_status = a.support_request_status
            out.support_request_time = a.support_request_time
            out.support_provided_by = a.support_provided_by
            out.support_provided_time = a.support_provided_time
        return out

class AnalysisOut(CamelModel):
    message: str
    status: str
    needs_support: bool
    confidence_score: float
    analysis_type: str
    baseline_comparison: Optional[dict] = None
    support_request_status: str
    assessment: AssessmentOut

class SubmitterOut(CamelModel):
    id: UUID
    username: Optional[str] = None
    display_name: Optional[str] = None

class SupportRequestOut(AssessmentOut):
    user: SubmitterOut

class ProvideSupportOut(CamelModel):
    message: str
    assessment: AssessmentOut

class HealthDayOut(CamelModel):
    day: date = Field(alias="date")
    sleep_seconds: Optional[int] = None
    sleep_quality: Optional[str] = None
    total_steps: Optional[int] = None
    exercise_seconds: Optional[int] = None
    exercise_count: int = 0

class AnalyzedDataOut(CamelModel):
    analysis_type: str
    period: dict
    health_data: list[HealthDayOut]
    check_ins: list[CheckInOut]

class ClearAssessmentsOut(CamelModel):
    message: str
    deleted_assessments: int
    deleted_baselines: int

class SweepOut(CamelModel):
    widened: int
    transitions: list[dict]
