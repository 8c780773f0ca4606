"""Teacher-initiated reschedule requests, reviewed by admins and managers."""
import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator, model_validator

from liveclass.services.clock import clock_minutes, parse_clock


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class _RequestFields(BaseModel):
    schedule_id: str
    teacher_user_id: str
    new_date: datetime.date
    new_start_time: str
    new_end_time: str
    reason: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    @field_validator("new_start_time", "new_end_time")
    @classmethod
    def _normalise_clock(cls, value: str) -> str:
        return parse_clock(value)


class ScheduleRequest(_RequestFields, Document):
    schedule_id: Indexed(str)
    teacher_user_id: Indexed(str)

    class Settings:
        name = "schedule_requests"
        use_state_management = True


class ScheduleChange(_RequestFields):
    id: Optional[str] = None


class ScheduleRequestCreate(BaseModel):
    schedule_id: str
    new_date: datetime.date
    new_start_time: str
    new_end_time: str
    reason: Optional[str] = None

    @field_validator("new_start_time", "new_end_time")
    @classmethod
    def _normalise_clock(cls, value: str) -> str:
        return parse_clock(value)

    @model_validator(mode="after")
    def validate_window(self):
        if clock_minutes(self.new_end_time) <= clock_minutes(self.new_start_time):
            raise ValueError("new_end_time must be after new_start_time")
        return self
