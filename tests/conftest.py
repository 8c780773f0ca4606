import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import itertools
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from liveclass.config import Settings
from liveclass.errors import TransientProviderError
from liveclass.models.attendance import AttendanceEntry, AttendanceRole
from liveclass.models.enrollment import Enrollment
from liveclass.models.recording import RecordingItem
from liveclass.models.schedule import ScheduleSlot
from liveclass.models.schedule_request import ScheduleChange
from liveclass.models.teacher import TeacherAssignment
from liveclass.models.user import Caller, UserRole
from liveclass.repository import Repository
from liveclass.services.mailer import Mailer, OutgoingEmail

IST = ZoneInfo("Asia/Kolkata")

# 2024-01-02 is a Tuesday (day_of_week 2)
TUESDAY = date(2024, 1, 2)


def ist(day: date, hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=IST)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRepository(Repository):
    """In-memory store with the same matching rules as the MongoDB one."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.users: dict[str, Caller] = {}
        self.schedules: dict[str, ScheduleSlot] = {}
        self.enrollments: dict[str, Enrollment] = {}
        self.teachers: list[TeacherAssignment] = []
        self.attendance: dict[tuple, AttendanceEntry] = {}
        self.groups: dict[tuple[str, str], str] = {}
        self.recordings: dict[str, RecordingItem] = {}
        self.requests: dict[str, ScheduleChange] = {}
        self.upserts: list[AttendanceEntry] = []
        self.attendance_failures = 0
        self.upsert_failures = 0
        # (batch, subject) pairs whose lookups raise, to simulate a broken store
        self.broken_classes: set[tuple[str, str]] = set()

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def _check(self, batch: str, subject: str) -> None:
        if (batch, subject) in self.broken_classes:
            raise ConnectionError(f"store unavailable for {batch} - {subject}")

    # Seeding helpers

    def add_user(self, role: UserRole, name: str = "", email: str = "", hashed_password: Optional[str] = None) -> Caller:
        user_id = self._next_id("user")
        user = Caller(
            id=user_id,
            email=email or f"{user_id}@example.com",
            name=name or None,
            role=role,
            hashed_password=hashed_password,
        )
        self.users[user_id] = user
        return user

    def add_schedule(self, **fields) -> ScheduleSlot:
        schedule = ScheduleSlot(id=self._next_id("sched"), **fields)
        self.schedules[schedule.id] = schedule
        return schedule

    def add_enrollment(self, user: Caller, batch: str, subject: str) -> Enrollment:
        enrollment = Enrollment(
            id=self._next_id("enr"), user_id=user.id, batch_name=batch, subject_name=subject, email=user.email
        )
        self.enrollments[enrollment.id] = enrollment
        return enrollment

    def add_teacher(self, user: Caller, batches: list[str], subjects: list[str]) -> TeacherAssignment:
        teacher = TeacherAssignment(
            id=self._next_id("teacher"),
            user_id=user.id,
            name=user.display_name,
            email=user.email,
            assigned_batches=batches,
            assigned_subjects=subjects,
        )
        self.teachers.append(teacher)
        return teacher

    def add_recording(self, **fields) -> RecordingItem:
        recording = RecordingItem(id=self._next_id("rec"), **fields)
        self.recordings[recording.id] = recording
        return recording

    def teacher_joins(self, teacher: Caller, schedule: ScheduleSlot, at: datetime) -> AttendanceEntry:
        entry = AttendanceEntry(
            id=self._next_id("att"),
            user_id=teacher.id,
            user_name=teacher.display_name,
            user_role=AttendanceRole.TEACHER,
            schedule_id=schedule.id,
            batch=schedule.batch,
            subject=schedule.subject,
            class_date=at.date(),
            joined_at=at,
        )
        self.attendance[entry.upsert_key] = entry
        return entry

    # Schedules

    async def find_schedule_by_id(self, schedule_id):
        return self.schedules.get(schedule_id)

    async def list_reminder_schedules(self):
        return [s for s in self.schedules.values() if s.reminder_time]

    async def list_schedules_for(self, batch, subject):
        self._check(batch, subject)
        return [s for s in self.schedules.values() if s.batch == batch and s.subject == subject]

    async def mark_reminder_sent(self, schedule_id, on):
        self.schedules[schedule_id].reminder_sent_date = on

    async def reschedule(self, schedule_id, *, new_date, start_time, end_time, day_of_week):
        schedule = self.schedules.get(schedule_id)
        if not schedule:
            return False
        schedule.date = new_date
        schedule.start_time = start_time
        schedule.end_time = end_time
        schedule.day_of_week = day_of_week
        return True

    # Enrollments and teachers

    async def find_enrollment_by_id(self, enrollment_id):
        return self.enrollments.get(enrollment_id)

    async def find_teacher_by_user(self, user_id):
        return next((t for t in self.teachers if t.user_id == user_id), None)

    async def list_teachers_for(self, batch, subject):
        self._check(batch, subject)
        return [t for t in self.teachers if batch in t.assigned_batches and subject in t.assigned_subjects]

    # Attendance

    async def find_attendance(self, batch, subject, on, role, schedule_id=None):
        if self.attendance_failures:
            self.attendance_failures -= 1
            raise ConnectionError("store unavailable")
        return [
            e
            for e in self.attendance.values()
            if e.batch == batch
            and e.subject == subject
            and e.class_date == on
            and e.user_role == role
            and (not schedule_id or e.schedule_id == schedule_id)
        ]

    async def upsert_attendance(self, entry):
        if self.upsert_failures:
            self.upsert_failures -= 1
            raise ConnectionError("store unavailable")
        existing = self.attendance.get(entry.upsert_key)
        stored = entry.model_copy(update={"id": existing.id if existing else self._next_id("att")})
        self.attendance[entry.upsert_key] = stored
        self.upserts.append(stored)
        return stored

    async def find_user_attendance(self, user_id, batch, subject, on):
        return [
            e
            for e in self.attendance.values()
            if e.user_id == user_id and e.batch == batch and e.subject == subject and e.class_date == on
        ]

    async def mark_left(self, attendance_id, left_at, duration_minutes):
        for entry in self.attendance.values():
            if entry.id == attendance_id:
                entry.left_at = left_at
                entry.duration_minutes = duration_minutes

    async def list_attendance_between(self, batch, subject, from_date, to_date):
        entries = [
            e
            for e in self.attendance.values()
            if e.batch == batch and e.subject == subject and from_date <= e.class_date <= to_date
        ]
        return sorted(entries, key=lambda e: e.class_date)

    # Groups and recordings

    async def find_group_address(self, batch, subject):
        self._check(batch, subject)
        return self.groups.get((batch, subject))

    async def list_unannounced_recordings(self, on):
        return [r for r in self.recordings.values() if r.date == on and not r.recording_email_sent]

    async def mark_recording_announced(self, recording_id):
        self.recordings[recording_id].recording_email_sent = True

    # Users

    async def find_user(self, user_id):
        return self.users.get(user_id)

    async def find_user_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    # Schedule change requests

    async def create_schedule_request(self, change):
        stored = change.model_copy(update={"id": self._next_id("req")})
        self.requests[stored.id] = stored
        return stored

    async def find_schedule_request(self, request_id):
        change = self.requests.get(request_id)
        return change.model_copy() if change else None

    async def list_schedule_requests(self, teacher_user_id=None):
        return [c for c in self.requests.values() if not teacher_user_id or c.teacher_user_id == teacher_user_id]

    async def save_schedule_request(self, change):
        self.requests[change.id] = change


class FakeMailer(Mailer):
    def __init__(self, fail_for: tuple[str, ...] = ()):
        self.sent: list[OutgoingEmail] = []
        self.fail_for = set(fail_for)

    async def send(self, email):
        if self.fail_for.intersection(email.to):
            raise TransientProviderError(f"rejected {email.to[0]}")
        self.sent.append(email)
        return f"msg-{len(self.sent)}"

    def recipients(self) -> list[str]:
        return [addr for email in self.sent for addr in email.to]


@pytest.fixture
def settings():
    return Settings(
        debug=True,
        jwt_secret_key="test-secret",
        presence_poll_interval_seconds=0.01,
        resend_api_key="re_test",
        org_name="Test Academy",
    )


@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def clock():
    return FixedClock(ist(TUESDAY, 10, 5))
