"""Reschedule requests: teachers submit, admins and managers approve or reject."""
from datetime import datetime

from fastapi import APIRouter, HTTPException, status

from liveclass.api.deps import AppSettings, StaffOnly, Store, TeacherOnly, TeacherOrStaff
from liveclass.models.schedule_request import ScheduleChange, ScheduleRequestCreate
from liveclass.models.user import UserRole
from liveclass.services.schedule_requests import (
    RequestAlreadyReviewed,
    RequestNotFound,
    review_request,
    submit_request,
)
from liveclass.services.subjects import matcher_for

router = APIRouter()


@router.post("", response_model=ScheduleChange, status_code=status.HTTP_201_CREATED)
async def create_request(data: ScheduleRequestCreate, user: TeacherOnly, repo: Store, settings: AppSettings):
    return await submit_request(repo, user, data, match=matcher_for(settings.subject_match_mode))


@router.get("", response_model=list[ScheduleChange])
async def list_requests(user: TeacherOrStaff, repo: Store):
    """Teachers see their own requests; admins and managers see all of them."""
    if user.role == UserRole.TEACHER:
        return await repo.list_schedule_requests(teacher_user_id=user.id)
    return await repo.list_schedule_requests()


async def _review(repo: Store, request_id: str, reviewer, approve: bool) -> ScheduleChange:
    try:
        return await review_request(repo, request_id, reviewer, approve=approve, now=datetime.utcnow())
    except RequestNotFound:
        raise HTTPException(status_code=404, detail="Schedule request not found")
    except RequestAlreadyReviewed as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{request_id}/approve", response_model=ScheduleChange)
async def approve_request(request_id: str, user: StaffOnly, repo: Store):
    return await _review(repo, request_id, user, approve=True)


@router.post("/{request_id}/reject", response_model=ScheduleChange)
async def reject_request(request_id: str, user: StaffOnly, repo: Store):
    return await _review(repo, request_id, user, approve=False)
