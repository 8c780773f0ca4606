"""Class-session admission gate.

Teachers assigned to the class enter the room straight away. Students are
verified against their own enrollment and then held in ``waiting_for_teacher``
until a teacher attendance record exists for the class today; the repeat
check is an asyncio task the caller can cancel at any time.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from liveclass.config import Settings
from liveclass.errors import AccessDenied
from liveclass.models.attendance import AttendanceEntry, AttendanceRole
from liveclass.models.user import Caller
from liveclass.repository import AdmissionStore
from liveclass.services.clock import Clock, make_clock
from liveclass.services.rooms import Handoff, build_handoff
from liveclass.services.subjects import matcher_for

logger = logging.getLogger(__name__)

# Link id used by teachers in place of an enrollment id
TEACHER_ACCESS = "teacher-access"


class AdmissionState(str, Enum):
    VERIFYING = "verifying"
    ERROR = "error"
    WAITING_FOR_TEACHER = "waiting_for_teacher"
    REDIRECTING = "redirecting"


class AdmissionRequest(BaseModel):
    enrollment_id: Optional[str] = None
    schedule_id: Optional[str] = None
    teacher_access: bool = False

    @classmethod
    def from_link(cls, link_id: Optional[str], schedule_id: Optional[str] = None) -> "AdmissionRequest":
        link_id = (link_id or "").strip() or None
        schedule_id = (schedule_id or "").strip() or None
        if link_id == TEACHER_ACCESS:
            return cls(schedule_id=schedule_id, teacher_access=True)
        return cls(enrollment_id=link_id, schedule_id=schedule_id)


class ClassDetails(BaseModel):
    batch: str
    subject: str
    schedule_id: Optional[str] = None


StateListener = Callable[[AdmissionState], None]


class AdmissionGate:
    """One participant's pass through the admission flow.

    A gate is single-use: create one per join attempt, call :meth:`begin`,
    and for students either poll with :meth:`check_presence` or hand the
    waiting over to :meth:`wait_for_teacher`. Use it as an async context
    manager to guarantee the poll is cancelled on teardown.
    """

    def __init__(
        self,
        store: AdmissionStore,
        settings: Settings,
        *,
        clock: Optional[Clock] = None,
        on_state_change: Optional[StateListener] = None,
    ):
        self._store = store
        self._settings = settings
        self._clock = clock or make_clock(settings.timezone)
        self._subjects_match = matcher_for(settings.subject_match_mode)
        self._poll_interval = settings.presence_poll_interval_seconds
        self._on_state_change = on_state_change

        self._state = AdmissionState.VERIFYING
        self._caller: Optional[Caller] = None
        self._details: Optional[ClassDetails] = None
        self._handoff: Optional[Handoff] = None
        self._error: Optional[str] = None
        self._admitting = False
        self._poll_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "AdmissionGate":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    @property
    def state(self) -> AdmissionState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def handoff(self) -> Optional[Handoff]:
        return self._handoff

    @property
    def details(self) -> Optional[ClassDetails]:
        return self._details

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def _transition(self, state: AdmissionState) -> None:
        if state == self._state:
            return
        logger.info(f"Admission {self._state.value} -> {state.value}")
        self._state = state
        if self._on_state_change:
            self._on_state_change(state)

    async def begin(self, caller: Optional[Caller], request: AdmissionRequest) -> AdmissionState:
        """Verify the link and run the first presence check; returns the resulting state."""
        if self._state != AdmissionState.VERIFYING:
            raise RuntimeError("Admission already started")
        try:
            if caller is None:
                raise AccessDenied("Please log in to join the class.")
            self._caller = caller
            if request.teacher_access:
                await self._admit_teacher(caller, request)
            else:
                await self._verify_student(caller, request)
                await self.check_presence()
        except AccessDenied as exc:
            logger.warning(f"Admission denied for {caller.id if caller else 'anonymous'}: {exc.reason}")
            self._error = exc.reason
            self._transition(AdmissionState.ERROR)
            raise
        return self._state

    async def _admit_teacher(self, caller: Caller, request: AdmissionRequest) -> None:
        if not request.schedule_id:
            raise AccessDenied("Invalid meeting link.")
        schedule = await self._store.find_schedule_by_id(request.schedule_id)
        if not schedule:
            raise AccessDenied("Class schedule not found. This link may be invalid.")
        teacher = await self._store.find_teacher_by_user(caller.id)
        if not teacher:
            raise AccessDenied("Access Denied. You are not registered as a teacher.")
        if schedule.batch not in teacher.assigned_batches:
            raise AccessDenied(f"Access Denied. You are not assigned to batch {schedule.batch}.")
        if not any(self._subjects_match(s, schedule.subject) for s in teacher.assigned_subjects):
            raise AccessDenied(f"Access Denied. You are not assigned to teach {schedule.subject}.")

        self._details = ClassDetails(batch=schedule.batch, subject=schedule.subject, schedule_id=schedule.id)
        await self._admit(AttendanceRole.TEACHER)

    async def _verify_student(self, caller: Caller, request: AdmissionRequest) -> None:
        if not request.enrollment_id:
            raise AccessDenied("Invalid meeting link.")
        enrollment = await self._store.find_enrollment_by_id(request.enrollment_id)
        if not enrollment:
            raise AccessDenied("Enrollment verification failed. This link may be invalid.")
        # The enrollment id is not a capability: ownership is always re-checked
        if enrollment.user_id != caller.id:
            raise AccessDenied("Access Denied. This meeting link does not belong to your account.")

        self._details = ClassDetails(
            batch=enrollment.batch_name,
            subject=enrollment.subject_name,
            schedule_id=request.schedule_id,
        )

    async def check_presence(self) -> bool:
        """Admit the student if a teacher has joined this class today."""
        if self._state == AdmissionState.REDIRECTING:
            return True
        if self._state == AdmissionState.ERROR or self._details is None:
            raise RuntimeError("Presence check requires a verified student")

        details = self._details
        today = self._clock().date()
        teachers = await self._store.find_attendance(
            details.batch,
            details.subject,
            today,
            AttendanceRole.TEACHER,
            schedule_id=details.schedule_id,
        )
        if not teachers:
            self._transition(AdmissionState.WAITING_FOR_TEACHER)
            return False

        if self._state == AdmissionState.REDIRECTING:
            return True
        if self._admitting:
            # Another check is writing the attendance; the next tick sees the result
            return False
        self._admitting = True
        try:
            await self._admit(AttendanceRole.STUDENT)
        finally:
            self._admitting = False
        self._cancel_poll()
        return True

    async def _admit(self, role: AttendanceRole) -> None:
        caller, details = self._caller, self._details
        now = self._clock()
        display_name = caller.display_name or role.value.title()
        await self._store.upsert_attendance(
            AttendanceEntry(
                user_id=caller.id,
                user_name=display_name,
                user_role=role,
                schedule_id=details.schedule_id,
                batch=details.batch,
                subject=details.subject,
                class_date=now.date(),
                joined_at=now,
            )
        )
        self._handoff = build_handoff(
            domain=self._settings.jitsi_domain,
            prefix=self._settings.jitsi_room_prefix,
            role=role,
            display_name=display_name,
            batch=details.batch,
            subject=details.subject,
            class_date=now.date(),
        )
        self._transition(AdmissionState.REDIRECTING)

    def start_polling(self) -> asyncio.Task:
        """Start (or return) the single repeating presence check."""
        if self._state != AdmissionState.WAITING_FOR_TEACHER:
            raise RuntimeError(f"Cannot poll from state {self._state.value}")
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.ensure_future(self._poll())
        return self._poll_task

    async def _poll(self) -> Handoff:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.check_presence()
            except Exception as e:
                # Store hiccup: stay in the waiting room and try again next tick
                logger.error(f"Presence check failed, retrying in {self._poll_interval}s: {e}")
                continue
            if self._state == AdmissionState.REDIRECTING:
                return self._handoff

    async def wait_for_teacher(self) -> Handoff:
        """Wait until a teacher is present; cancelling the caller cancels the poll."""
        if self._state == AdmissionState.REDIRECTING:
            return self._handoff
        return await self.start_polling()

    async def join(self, caller: Optional[Caller], request: AdmissionRequest) -> Handoff:
        await self.begin(caller, request)
        return await self.wait_for_teacher()

    def cancel(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()

    def _cancel_poll(self) -> None:
        task = self._poll_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
