from pydantic import Field
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional
from app.schemas.common import CamelModel

class RegisterDeviceIn(CamelModel):
    token: str = Field(min_length=1)
    platform: Literal["ios", "android", "web"]
    device_id: Optional[str] = None

class UnregisterDeviceIn(CamelModel):
    token: str = Field(min_length=1)

class RegisterDeviceOut(CamelModel):
    registered: bool
    message: str

class NotificationOut(CamelModel):
    id: UUID
    type: str
    title: str
    message: str
    read: bool
    time: datetime
    actionable: bool
    action_route: Optional[str] = None
    action_params: dict = Field(default_factory=dict)
    related_id: Optional[UUID] = None

class MarkAllReadOut(CamelModel):
    updated: int
