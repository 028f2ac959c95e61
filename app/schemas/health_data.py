from pydantic import Field
from datetime import date
from typing import Literal, Optional
from app.schemas.common import CamelModel

class HealthDayIn(CamelModel):
    day: date = Field(alias="date")
    sleep_seconds: Optional[int] = Field(default=None, ge=0)
    sleep_quality: Optional[Literal["poor", "fair", "good"]] = None
    total_steps: Optional[int] = Field(default=None, ge=0)
    exercise_seconds: Optional[int] = Field(default=None, ge=0)
    exercise_count: Optional[int] = Field(default=None, ge=0)

class HealthSyncIn(CamelModel):
    days: list[HealthDayIn] = Field(min_length=1)

class HealthSyncOut(CamelModel):
    message: str
    synced: int
