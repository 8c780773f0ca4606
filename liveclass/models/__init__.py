"""Beanie document models and Pydantic schemas."""
from liveclass.models.user import User, UserRole, Caller
from liveclass.models.schedule import Schedule, ScheduleSlot
from liveclass.models.attendance import ClassAttendance, AttendanceEntry, AttendanceRole
from liveclass.models.recording import Recording, RecordingItem
from liveclass.models.enrollment import UserEnrollment, Enrollment
from liveclass.models.teacher import Teacher, TeacherAssignment
from liveclass.models.group import GoogleGroup
from liveclass.models.schedule_request import (
    ScheduleRequest,
    ScheduleChange,
    ScheduleRequestCreate,
    RequestStatus,
)

__all__ = [
    "User",
    "UserRole",
    "Caller",
    "Schedule",
    "ScheduleSlot",
    "ClassAttendance",
    "AttendanceEntry",
    "AttendanceRole",
    "Recording",
    "RecordingItem",
    "UserEnrollment",
    "Enrollment",
    "Teacher",
    "TeacherAssignment",
    "GoogleGroup",
    "ScheduleRequest",
    "ScheduleChange",
    "ScheduleRequestCreate",
    "RequestStatus",
]
