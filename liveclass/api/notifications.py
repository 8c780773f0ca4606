"""Typed notification emails to a class mailing list."""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from liveclass.api.deps import AppMailer, AppSettings, Store, TeacherOrStaff
from liveclass.errors import TransientProviderError
from liveclass.models.user import UserRole
from liveclass.services.notifications import NotificationType, content_update, group_email_for
from liveclass.services.subjects import matcher_for

logger = logging.getLogger(__name__)

router = APIRouter()


class NotificationEmailRequest(BaseModel):
    type: NotificationType
    batch: str
    subject: str
    title: Optional[str] = None
    message: Optional[str] = None
    link: Optional[str] = None


@router.post("/email")
async def send_notification_email(
    body: NotificationEmailRequest,
    user: TeacherOrStaff,
    repo: Store,
    settings: AppSettings,
    mailer: AppMailer,
):
    if user.role == UserRole.TEACHER:
        match = matcher_for(settings.subject_match_mode)
        assignment = await repo.find_teacher_by_user(user.id)
        if (
            not assignment
            or body.batch not in assignment.assigned_batches
            or not any(match(s, body.subject) for s in assignment.assigned_subjects)
        ):
            raise HTTPException(status_code=403, detail="You are not assigned to this class")

    group_email = await repo.find_group_address(body.batch, body.subject)
    if not group_email:
        return JSONResponse(
            status_code=404,
            content={
                "detail": f"No active group for {body.batch} / {body.subject}",
                "suggested_group_email": group_email_for(body.batch, body.subject, settings.google_groups_domain),
            },
        )

    email = content_update(
        body.type,
        group_email,
        batch=body.batch,
        subject=body.subject,
        title=body.title,
        message=body.message,
        link=body.link,
        sender_name=user.display_name,
        org_name=settings.org_name,
    )
    try:
        message_id = await mailer.send(email)
    except TransientProviderError as e:
        logger.error(f"Notification email to {group_email} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True, "id": message_id, "to": group_email}
