"""Join/leave events for live classes, one per user, schedule and day."""
import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel


class AttendanceRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class _AttendanceFields(BaseModel):
    user_id: str
    user_name: str
    user_role: AttendanceRole
    schedule_id: Optional[str] = None  # None for ad-hoc links
    batch: str
    subject: str
    class_date: datetime.date
    joined_at: datetime.datetime
    left_at: Optional[datetime.datetime] = None
    duration_minutes: Optional[int] = None


class ClassAttendance(_AttendanceFields, Document):
    batch: Indexed(str)
    subject: Indexed(str)
    class_date: Indexed(datetime.date)

    class Settings:
        name = "class_attendance"
        use_state_management = True
        indexes = [
            IndexModel(
                [("user_id", ASCENDING), ("schedule_id", ASCENDING), ("class_date", ASCENDING)],
                unique=True,
                name="attendance_upsert_key",
            ),
        ]


class AttendanceEntry(_AttendanceFields):
    id: Optional[str] = None

    @property
    def upsert_key(self) -> tuple[str, Optional[str], datetime.date]:
        return (self.user_id, self.schedule_id, self.class_date)
