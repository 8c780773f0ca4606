"""Narrow store interfaces consumed by the admission gate, the scheduler and the routers.

Each interface names exactly the lookups and writes its consumer needs; the
MongoDB implementation lives in ``liveclass.mongo``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from liveclass.models.attendance import AttendanceEntry, AttendanceRole
from liveclass.models.enrollment import Enrollment
from liveclass.models.recording import RecordingItem
from liveclass.models.schedule import ScheduleSlot
from liveclass.models.schedule_request import ScheduleChange
from liveclass.models.teacher import TeacherAssignment
from liveclass.models.user import Caller


class ScheduleStore(ABC):
    @abstractmethod
    async def find_schedule_by_id(self, schedule_id: str) -> Optional[ScheduleSlot]: ...

    @abstractmethod
    async def list_reminder_schedules(self) -> list[ScheduleSlot]:
        """Schedules carrying a reminder time."""

    @abstractmethod
    async def list_schedules_for(self, batch: str, subject: str) -> list[ScheduleSlot]: ...

    @abstractmethod
    async def mark_reminder_sent(self, schedule_id: str, on: date) -> None: ...

    @abstractmethod
    async def reschedule(
        self,
        schedule_id: str,
        *,
        new_date: date,
        start_time: str,
        end_time: str,
        day_of_week: int,
    ) -> bool:
        """Rewrite the timing of a schedule; False when it no longer exists."""


class EnrollmentStore(ABC):
    @abstractmethod
    async def find_enrollment_by_id(self, enrollment_id: str) -> Optional[Enrollment]: ...


class TeacherStore(ABC):
    @abstractmethod
    async def find_teacher_by_user(self, user_id: str) -> Optional[TeacherAssignment]: ...

    @abstractmethod
    async def list_teachers_for(self, batch: str, subject: str) -> list[TeacherAssignment]:
        """Teachers whose assignment contains both the batch and the subject."""


class AttendanceStore(ABC):
    @abstractmethod
    async def find_attendance(
        self,
        batch: str,
        subject: str,
        on: date,
        role: AttendanceRole,
        schedule_id: Optional[str] = None,
    ) -> list[AttendanceEntry]:
        """Attendance for a class day; ``schedule_id`` narrows the match when given."""

    @abstractmethod
    async def upsert_attendance(self, entry: AttendanceEntry) -> AttendanceEntry:
        """Insert or overwrite the record keyed by (user_id, schedule_id, class_date)."""

    @abstractmethod
    async def find_user_attendance(
        self, user_id: str, batch: str, subject: str, on: date
    ) -> list[AttendanceEntry]: ...

    @abstractmethod
    async def mark_left(self, attendance_id: str, left_at: datetime, duration_minutes: int) -> None: ...

    @abstractmethod
    async def list_attendance_between(
        self, batch: str, subject: str, from_date: date, to_date: date
    ) -> list[AttendanceEntry]: ...


class GroupDirectory(ABC):
    @abstractmethod
    async def find_group_address(self, batch: str, subject: str) -> Optional[str]:
        """Active mailing-list address for (batch, subject), if any."""


class RecordingStore(ABC):
    @abstractmethod
    async def list_unannounced_recordings(self, on: date) -> list[RecordingItem]: ...

    @abstractmethod
    async def mark_recording_announced(self, recording_id: str) -> None: ...


class UserStore(ABC):
    @abstractmethod
    async def find_user(self, user_id: str) -> Optional[Caller]: ...

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[Caller]: ...


class ScheduleRequestStore(ABC):
    @abstractmethod
    async def create_schedule_request(self, change: ScheduleChange) -> ScheduleChange: ...

    @abstractmethod
    async def find_schedule_request(self, request_id: str) -> Optional[ScheduleChange]: ...

    @abstractmethod
    async def list_schedule_requests(self, teacher_user_id: Optional[str] = None) -> list[ScheduleChange]: ...

    @abstractmethod
    async def save_schedule_request(self, change: ScheduleChange) -> None: ...


class AdmissionStore(ScheduleStore, EnrollmentStore, TeacherStore, AttendanceStore, ABC):
    """Everything the admission gate reads and writes."""


class ReminderStore(ScheduleStore, TeacherStore, GroupDirectory, RecordingStore, ABC):
    """Everything the reminder scheduler reads and writes."""


class Repository(AdmissionStore, ReminderStore, UserStore, ScheduleRequestStore, ABC):
    """Full store surface used by the HTTP layer."""
