"""Reschedule requests: teachers propose, admins and managers decide."""
from __future__ import annotations

import logging
from datetime import datetime

from liveclass.errors import AccessDenied
from liveclass.models.schedule_request import RequestStatus, ScheduleChange, ScheduleRequestCreate
from liveclass.models.user import Caller
from liveclass.repository import Repository
from liveclass.services.clock import day_of_week
from liveclass.services.subjects import SubjectMatcher, subjects_match

logger = logging.getLogger(__name__)


class RequestNotFound(LookupError):
    pass


class RequestAlreadyReviewed(ValueError):
    pass


async def submit_request(
    store: Repository,
    teacher: Caller,
    data: ScheduleRequestCreate,
    *,
    match: SubjectMatcher = subjects_match,
) -> ScheduleChange:
    """Teachers may only ask to move classes they are assigned to."""
    schedule = await store.find_schedule_by_id(data.schedule_id)
    if not schedule:
        raise AccessDenied("Class schedule not found.")
    assignment = await store.find_teacher_by_user(teacher.id)
    if (
        not assignment
        or schedule.batch not in assignment.assigned_batches
        or not any(match(s, schedule.subject) for s in assignment.assigned_subjects)
    ):
        raise AccessDenied("You are not assigned to this class.")

    change = ScheduleChange(
        schedule_id=schedule.id,
        teacher_user_id=teacher.id,
        new_date=data.new_date,
        new_start_time=data.new_start_time,
        new_end_time=data.new_end_time,
        reason=data.reason,
    )
    return await store.create_schedule_request(change)


async def review_request(
    store: Repository,
    request_id: str,
    reviewer: Caller,
    *,
    approve: bool,
    now: datetime | None = None,
) -> ScheduleChange:
    """Approve (rewriting the schedule's timing) or reject a pending request."""
    change = await store.find_schedule_request(request_id)
    if not change:
        raise RequestNotFound(request_id)
    if change.status != RequestStatus.PENDING:
        raise RequestAlreadyReviewed(f"Request already {change.status.value}")

    if approve:
        updated = await store.reschedule(
            change.schedule_id,
            new_date=change.new_date,
            start_time=change.new_start_time,
            end_time=change.new_end_time,
            day_of_week=day_of_week(change.new_date),
        )
        if not updated:
            # The request is still recorded as approved, the schedule is simply gone
            logger.warning(f"Schedule {change.schedule_id} for request {request_id} no longer exists")

    change.status = RequestStatus.APPROVED if approve else RequestStatus.REJECTED
    change.reviewed_by = reviewer.id
    change.reviewed_at = now or datetime.utcnow()
    await store.save_schedule_request(change)
    return change
