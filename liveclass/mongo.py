"""MongoDB (Beanie) implementation of the store interfaces."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from beanie import PydanticObjectId
from beanie.operators import Set
from pymongo.errors import DuplicateKeyError

from liveclass.models.attendance import AttendanceEntry, AttendanceRole, ClassAttendance
from liveclass.models.enrollment import Enrollment, UserEnrollment
from liveclass.models.group import GoogleGroup
from liveclass.models.recording import Recording, RecordingItem
from liveclass.models.schedule import Schedule, ScheduleSlot
from liveclass.models.schedule_request import ScheduleChange, ScheduleRequest
from liveclass.models.teacher import Teacher, TeacherAssignment
from liveclass.models.user import Caller, User
from liveclass.repository import Repository

logger = logging.getLogger(__name__)


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except Exception:
        return None


def _view(schema, doc):
    return schema.model_validate({**doc.model_dump(exclude={"id", "revision_id"}), "id": str(doc.id)})


class MongoRepository(Repository):
    # Schedules

    async def find_schedule_by_id(self, schedule_id: str) -> Optional[ScheduleSlot]:
        oid = safe_object_id(schedule_id)
        if not oid:
            return None
        doc = await Schedule.get(oid)
        return _view(ScheduleSlot, doc) if doc else None

    async def list_reminder_schedules(self) -> list[ScheduleSlot]:
        docs = await Schedule.find({"reminder_time": {"$ne": None}}).to_list()
        return [_view(ScheduleSlot, d) for d in docs]

    async def list_schedules_for(self, batch: str, subject: str) -> list[ScheduleSlot]:
        docs = await Schedule.find({"batch": batch, "subject": subject}).to_list()
        return [_view(ScheduleSlot, d) for d in docs]

    async def mark_reminder_sent(self, schedule_id: str, on: date) -> None:
        oid = safe_object_id(schedule_id)
        doc = await Schedule.get(oid) if oid else None
        if not doc:
            return
        doc.reminder_sent_date = on
        doc.updated_at = datetime.utcnow()
        await doc.save()

    async def reschedule(
        self,
        schedule_id: str,
        *,
        new_date: date,
        start_time: str,
        end_time: str,
        day_of_week: int,
    ) -> bool:
        oid = safe_object_id(schedule_id)
        doc = await Schedule.get(oid) if oid else None
        if not doc:
            return False
        doc.date = new_date
        doc.start_time = start_time
        doc.end_time = end_time
        doc.day_of_week = day_of_week
        doc.updated_at = datetime.utcnow()
        await doc.save()
        return True

    # Enrollments and teachers

    async def find_enrollment_by_id(self, enrollment_id: str) -> Optional[Enrollment]:
        oid = safe_object_id(enrollment_id)
        if not oid:
            return None
        doc = await UserEnrollment.get(oid)
        return _view(Enrollment, doc) if doc else None

    async def find_teacher_by_user(self, user_id: str) -> Optional[TeacherAssignment]:
        doc = await Teacher.find_one({"user_id": user_id})
        return _view(TeacherAssignment, doc) if doc else None

    async def list_teachers_for(self, batch: str, subject: str) -> list[TeacherAssignment]:
        # Array fields: equality matches any element
        docs = await Teacher.find({"assigned_batches": batch, "assigned_subjects": subject}).to_list()
        return [_view(TeacherAssignment, d) for d in docs]

    # Attendance

    async def find_attendance(
        self,
        batch: str,
        subject: str,
        on: date,
        role: AttendanceRole,
        schedule_id: Optional[str] = None,
    ) -> list[AttendanceEntry]:
        query = {"batch": batch, "subject": subject, "class_date": on, "user_role": role.value}
        if schedule_id:
            query["schedule_id"] = schedule_id
        docs = await ClassAttendance.find(query).to_list()
        return [_view(AttendanceEntry, d) for d in docs]

    async def upsert_attendance(self, entry: AttendanceEntry) -> AttendanceEntry:
        key = {
            "user_id": entry.user_id,
            "schedule_id": entry.schedule_id,
            "class_date": entry.class_date,
        }
        fields = Set(
            {
                "user_name": entry.user_name,
                "user_role": entry.user_role.value,
                "batch": entry.batch,
                "subject": entry.subject,
                "joined_at": entry.joined_at,
                "left_at": None,
                "duration_minutes": None,
            }
        )
        try:
            await ClassAttendance.find_one(key).upsert(
                fields,
                on_insert=ClassAttendance(**entry.model_dump(exclude={"id"})),
            )
        except DuplicateKeyError:
            # A concurrent join inserted the record between our update and insert
            logger.info(f"Attendance for {entry.user_id} already inserted, updating instead")
            await ClassAttendance.find_one(key).update(fields)
        doc = await ClassAttendance.find_one(key)
        return _view(AttendanceEntry, doc) if doc else entry

    async def find_user_attendance(
        self, user_id: str, batch: str, subject: str, on: date
    ) -> list[AttendanceEntry]:
        docs = await ClassAttendance.find(
            {"user_id": user_id, "batch": batch, "subject": subject, "class_date": on}
        ).to_list()
        return [_view(AttendanceEntry, d) for d in docs]

    async def mark_left(self, attendance_id: str, left_at: datetime, duration_minutes: int) -> None:
        oid = safe_object_id(attendance_id)
        doc = await ClassAttendance.get(oid) if oid else None
        if not doc:
            return
        doc.left_at = left_at
        doc.duration_minutes = duration_minutes
        await doc.save()

    async def list_attendance_between(
        self, batch: str, subject: str, from_date: date, to_date: date
    ) -> list[AttendanceEntry]:
        docs = (
            await ClassAttendance.find(
                {
                    "batch": batch,
                    "subject": subject,
                    "class_date": {"$gte": from_date, "$lte": to_date},
                }
            )
            .sort("class_date")
            .to_list()
        )
        return [_view(AttendanceEntry, d) for d in docs]

    # Groups and recordings

    async def find_group_address(self, batch: str, subject: str) -> Optional[str]:
        group = await GoogleGroup.find_one(
            {"batch_name": batch, "subject_name": subject, "is_active": True}
        )
        return group.group_email if group else None

    async def list_unannounced_recordings(self, on: date) -> list[RecordingItem]:
        docs = await Recording.find({"date": on, "recording_email_sent": False}).to_list()
        return [_view(RecordingItem, d) for d in docs]

    async def mark_recording_announced(self, recording_id: str) -> None:
        oid = safe_object_id(recording_id)
        doc = await Recording.get(oid) if oid else None
        if not doc:
            return
        doc.recording_email_sent = True
        await doc.save()

    # Users

    async def find_user(self, user_id: str) -> Optional[Caller]:
        oid = safe_object_id(user_id)
        doc = await User.get(oid) if oid else None
        return _view(Caller, doc) if doc else None

    async def find_user_by_email(self, email: str) -> Optional[Caller]:
        doc = await User.find_one(User.email == email)
        return _view(Caller, doc) if doc else None

    # Schedule change requests

    async def create_schedule_request(self, change: ScheduleChange) -> ScheduleChange:
        doc = ScheduleRequest(**change.model_dump(exclude={"id"}))
        await doc.insert()
        return _view(ScheduleChange, doc)

    async def find_schedule_request(self, request_id: str) -> Optional[ScheduleChange]:
        oid = safe_object_id(request_id)
        doc = await ScheduleRequest.get(oid) if oid else None
        return _view(ScheduleChange, doc) if doc else None

    async def list_schedule_requests(self, teacher_user_id: Optional[str] = None) -> list[ScheduleChange]:
        query = {"teacher_user_id": teacher_user_id} if teacher_user_id else {}
        docs = await ScheduleRequest.find(query).sort("-created_at").to_list()
        return [_view(ScheduleChange, d) for d in docs]

    async def save_schedule_request(self, change: ScheduleChange) -> None:
        oid = safe_object_id(change.id)
        doc = await ScheduleRequest.get(oid) if oid else None
        if not doc:
            return
        doc.status = change.status
        doc.reviewed_by = change.reviewed_by
        doc.reviewed_at = change.reviewed_at
        await doc.save()
