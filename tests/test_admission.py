import asyncio

import pytest

from liveclass.errors import AccessDenied
from liveclass.models.attendance import AttendanceRole
from liveclass.models.user import UserRole
from liveclass.services.admission import TEACHER_ACCESS, AdmissionGate, AdmissionRequest, AdmissionState
from tests.conftest import TUESDAY, ist


@pytest.fixture
def classroom(repo):
    teacher = repo.add_user(UserRole.TEACHER, name="Ms. Rao", email="rao@example.com")
    student = repo.add_user(UserRole.STUDENT, name="Sam", email="sam@example.com")
    schedule = repo.add_schedule(
        batch="JEE 2025", subject="Physics", day_of_week=2, start_time="10:00", end_time="11:00"
    )
    repo.add_teacher(teacher, ["JEE 2025"], ["Physics (Mains)"])
    enrollment = repo.add_enrollment(student, "JEE 2025", "Physics")
    return teacher, student, schedule, enrollment


def _gate(repo, settings, clock, **kwargs) -> AdmissionGate:
    return AdmissionGate(repo, settings, clock=clock, **kwargs)


def test_from_link_recognises_teacher_sentinel():
    request = AdmissionRequest.from_link(TEACHER_ACCESS, " sched1 ")
    assert request.teacher_access
    assert request.schedule_id == "sched1"
    assert request.enrollment_id is None

    request = AdmissionRequest.from_link("enr5", "")
    assert not request.teacher_access
    assert request.enrollment_id == "enr5"
    assert request.schedule_id is None


async def test_assigned_teacher_is_admitted(repo, settings, clock, classroom):
    teacher, _, schedule, _ = classroom
    gate = _gate(repo, settings, clock)

    state = await gate.begin(teacher, AdmissionRequest.from_link(TEACHER_ACCESS, schedule.id))

    assert state == AdmissionState.REDIRECTING
    assert gate.handoff.role == AttendanceRole.TEACHER
    assert gate.handoff.room_name == "erp_portal_jee2025_physics_20240102"
    assert len(repo.upserts) == 1
    entry = repo.upserts[0]
    assert entry.user_role == AttendanceRole.TEACHER
    assert entry.schedule_id == schedule.id
    assert entry.class_date == TUESDAY
    assert entry.user_name == "Ms. Rao"


@pytest.mark.parametrize(
    "batches, subjects, reason",
    [
        (["NEET 2025"], ["Physics"], "Access Denied. You are not assigned to batch JEE 2025."),
        (["JEE 2025"], ["Chemistry"], "Access Denied. You are not assigned to teach Physics."),
    ],
)
async def test_teacher_needs_batch_and_subject(repo, settings, clock, batches, subjects, reason):
    other = repo.add_user(UserRole.TEACHER, name="Mr. Other")
    repo.add_teacher(other, batches, subjects)
    schedule = repo.add_schedule(batch="JEE 2025", subject="Physics", day_of_week=2, start_time="10:00", end_time="11:00")
    gate = _gate(repo, settings, clock)

    with pytest.raises(AccessDenied) as exc:
        await gate.begin(other, AdmissionRequest.from_link(TEACHER_ACCESS, schedule.id))

    assert exc.value.reason == reason
    assert gate.state == AdmissionState.ERROR
    assert gate.error == reason
    assert repo.upserts == []


async def test_unregistered_teacher_is_refused(repo, settings, clock, classroom):
    _, student, schedule, _ = classroom
    gate = _gate(repo, settings, clock)
    with pytest.raises(AccessDenied, match="not registered as a teacher"):
        await gate.begin(student, AdmissionRequest.from_link(TEACHER_ACCESS, schedule.id))


async def test_teacher_link_needs_known_schedule(repo, settings, clock, classroom):
    teacher = classroom[0]
    with pytest.raises(AccessDenied, match="Invalid meeting link"):
        await _gate(repo, settings, clock).begin(teacher, AdmissionRequest.from_link(TEACHER_ACCESS))
    with pytest.raises(AccessDenied, match="Class schedule not found"):
        await _gate(repo, settings, clock).begin(teacher, AdmissionRequest.from_link(TEACHER_ACCESS, "missing"))


async def test_anonymous_caller_must_log_in(repo, settings, clock, classroom):
    enrollment = classroom[3]
    gate = _gate(repo, settings, clock)
    with pytest.raises(AccessDenied, match="Please log in"):
        await gate.begin(None, AdmissionRequest.from_link(enrollment.id))
    assert gate.state == AdmissionState.ERROR


async def test_student_cannot_use_someone_elses_link(repo, settings, clock, classroom):
    enrollment = classroom[3]
    intruder = repo.add_user(UserRole.STUDENT, name="Eve")
    gate = _gate(repo, settings, clock)

    with pytest.raises(AccessDenied) as exc:
        await gate.begin(intruder, AdmissionRequest.from_link(enrollment.id))

    assert exc.value.reason == "Access Denied. This meeting link does not belong to your account."
    assert repo.upserts == []


async def test_unknown_enrollment_is_refused(repo, settings, clock, classroom):
    student = classroom[1]
    with pytest.raises(AccessDenied, match="Enrollment verification failed"):
        await _gate(repo, settings, clock).begin(student, AdmissionRequest.from_link("enr-missing"))


async def test_student_waits_until_teacher_joins(repo, settings, clock, classroom):
    _, student, schedule, enrollment = classroom
    gate = _gate(repo, settings, clock)

    state = await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    assert state == AdmissionState.WAITING_FOR_TEACHER
    assert gate.handoff is None
    assert repo.upserts == []
    assert not await gate.check_presence()


async def test_student_admitted_when_teacher_present(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 9, 58))
    gate = _gate(repo, settings, clock)

    state = await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    assert state == AdmissionState.REDIRECTING
    assert gate.handoff.role == AttendanceRole.STUDENT
    assert gate.handoff.params["config.disableInviteFunctions"] is True
    assert [e.user_role for e in repo.upserts] == [AttendanceRole.STUDENT]


async def test_teacher_on_another_day_does_not_count(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 9, 58).replace(day=1))
    gate = _gate(repo, settings, clock)
    assert await gate.begin(student, AdmissionRequest.from_link(enrollment.id)) == AdmissionState.WAITING_FOR_TEACHER


async def test_poll_admits_exactly_once(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    states = []
    gate = _gate(repo, settings, clock, on_state_change=states.append)
    await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    task = gate.start_polling()
    assert gate.start_polling() is task
    await asyncio.sleep(0.03)
    assert gate.state == AdmissionState.WAITING_FOR_TEACHER

    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 10, 1))
    handoff = await asyncio.wait_for(gate.wait_for_teacher(), timeout=1)

    assert handoff.role == AttendanceRole.STUDENT
    assert gate.state == AdmissionState.REDIRECTING
    assert not gate.is_polling
    # Further checks after admission are no-ops
    assert await gate.check_presence()
    assert len(repo.upserts) == 1
    assert states == [AdmissionState.WAITING_FOR_TEACHER, AdmissionState.REDIRECTING]


async def test_cancel_stops_the_poll(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    gate = _gate(repo, settings, clock)
    await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    task = gate.start_polling()
    gate.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 10, 1))
    await asyncio.sleep(0.03)
    assert gate.state == AdmissionState.WAITING_FOR_TEACHER
    assert not gate.is_polling
    assert repo.upserts == []


async def test_leaving_context_cancels_the_poll(repo, settings, clock, classroom):
    _, student, schedule, enrollment = classroom
    async with _gate(repo, settings, clock) as gate:
        await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))
        task = gate.start_polling()
    await asyncio.sleep(0.01)
    assert task.cancelled()


async def test_poll_survives_store_errors(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    gate = _gate(repo, settings, clock)
    await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 10, 1))
    repo.attendance_failures = 2
    handoff = await asyncio.wait_for(gate.wait_for_teacher(), timeout=1)

    assert handoff.role == AttendanceRole.STUDENT
    assert len(repo.upserts) == 1


async def test_failed_admission_write_is_retried_by_the_poll(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    gate = _gate(repo, settings, clock)
    await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 10, 1))
    repo.upsert_failures = 1
    handoff = await asyncio.wait_for(gate.wait_for_teacher(), timeout=1)

    assert handoff is not None
    assert handoff.role == AttendanceRole.STUDENT
    assert gate.state == AdmissionState.REDIRECTING
    assert len(repo.upserts) == 1


async def test_direct_check_can_retry_after_failed_write(repo, settings, clock, classroom):
    teacher, student, schedule, enrollment = classroom
    repo.teacher_joins(teacher, schedule, ist(TUESDAY, 9, 58))
    repo.upsert_failures = 1
    gate = _gate(repo, settings, clock)

    with pytest.raises(ConnectionError):
        await gate.begin(student, AdmissionRequest.from_link(enrollment.id, schedule.id))

    assert await gate.check_presence()
    assert gate.state == AdmissionState.REDIRECTING
    assert len(repo.upserts) == 1


async def test_gate_is_single_use(repo, settings, clock, classroom):
    teacher, _, schedule, _ = classroom
    gate = _gate(repo, settings, clock)
    await gate.begin(teacher, AdmissionRequest.from_link(TEACHER_ACCESS, schedule.id))
    with pytest.raises(RuntimeError):
        await gate.begin(teacher, AdmissionRequest.from_link(TEACHER_ACCESS, schedule.id))
    with pytest.raises(RuntimeError):
        gate.start_polling()
