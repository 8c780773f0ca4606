"""Cron-triggered reminder and recording-email passes."""
import hmac
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from liveclass.api.deps import AppClock, AppMailer, AppSettings, Store
from liveclass.services.reminders import ReminderScheduler, ScanReport

router = APIRouter()


def verify_scheduler_secret(
    settings: AppSettings,
    x_scheduler_secret: Optional[str] = Header(None),
):
    if not settings.scheduler_secret:
        return
    if not x_scheduler_secret or not hmac.compare_digest(x_scheduler_secret, settings.scheduler_secret):
        raise HTTPException(status_code=401, detail="Invalid scheduler secret")


def get_scheduler(repo: Store, mailer: AppMailer, settings: AppSettings, clock: AppClock) -> ReminderScheduler:
    return ReminderScheduler(repo, mailer, settings, clock=clock)


Scheduler = Annotated[ReminderScheduler, Depends(get_scheduler)]


@router.post("/class-reminders", dependencies=[Depends(verify_scheduler_secret)])
async def class_reminders(scheduler: Scheduler):
    results = await scheduler.send_class_reminders()
    return ScanReport(results=results).model_dump(exclude_none=True)


@router.post("/recording-emails", dependencies=[Depends(verify_scheduler_secret)])
async def recording_emails(scheduler: Scheduler):
    results = await scheduler.send_recording_emails()
    return ScanReport(results=results).model_dump(exclude_none=True)


@router.post("/run", dependencies=[Depends(verify_scheduler_secret)])
async def run_all(scheduler: Scheduler):
    report = await scheduler.run()
    return report.model_dump(exclude_none=True)
