"""Class schedules: weekly recurring slots or one-off dated sessions."""
import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator

from liveclass.services.clock import parse_clock


class _ScheduleFields(BaseModel):
    batch: str
    subject: str
    # When date is set it alone decides whether the schedule applies
    date: Optional[datetime.date] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)  # 0 = Sunday
    start_time: str
    end_time: str
    reminder_time: Optional[str] = None
    link: Optional[str] = None
    reminder_sent_date: Optional[datetime.date] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalise_clock(cls, value: str) -> str:
        return parse_clock(value)

    @field_validator("reminder_time")
    @classmethod
    def _normalise_reminder(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return parse_clock(value)


class Schedule(_ScheduleFields, Document):
    batch: Indexed(str)
    subject: Indexed(str)
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)
    updated_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    class Settings:
        name = "schedules"
        use_state_management = True


class ScheduleSlot(_ScheduleFields):
    """Store-independent view of a schedule."""

    id: str
