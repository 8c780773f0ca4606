"""Periodic class-reminder and recording-ready notification scans.

Both passes are meant to be triggered every minute by an external cron. They
are safe to run twice: reminders are stamped with the day they went out and
recordings carry a sticky "email sent" flag.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from liveclass.config import Settings
from liveclass.errors import TransientProviderError
from liveclass.models.recording import RecordingItem
from liveclass.models.schedule import ScheduleSlot
from liveclass.repository import ReminderStore
from liveclass.services import notifications
from liveclass.services.clock import Clock, applies_on, has_ended, make_clock, within_tolerance
from liveclass.services.mailer import Mailer

logger = logging.getLogger(__name__)

SENT_TO_GROUP = "sent_to_group"
SENT = "sent"
CLASS_NOT_ENDED_YET = "class_not_ended_yet"
NO_GROUP_FOUND = "no_group_found"


class ScanResult(BaseModel):
    batch: str
    subject: str
    status: str
    recording_id: Optional[str] = None


class ScanReport(BaseModel):
    success: bool = True
    results: list[ScanResult] = Field(default_factory=list)


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        mailer: Mailer,
        settings: Settings,
        *,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._mailer = mailer
        self._settings = settings
        self._clock = clock or make_clock(settings.timezone)

    async def send_class_reminders(self, now: Optional[datetime] = None) -> list[ScanResult]:
        now = now or self._clock()
        today = now.date()
        logger.info(f"Checking reminders at {now:%H:%M} on {today.isoformat()} ({self._settings.timezone})")

        results: list[ScanResult] = []
        for schedule in await self._store.list_reminder_schedules():
            if not schedule.reminder_time or not applies_on(schedule, today):
                continue
            if schedule.reminder_sent_date == today:
                continue
            if not within_tolerance(schedule.reminder_time, now, self._settings.reminder_tolerance_minutes):
                continue
            results.extend(await self._remind(schedule))
            # Stamped after delivery was attempted, whatever the outcome
            try:
                await self._store.mark_reminder_sent(schedule.id, today)
            except Exception as e:
                logger.error(f"Failed to stamp reminder for schedule {schedule.id}: {e}")

        logger.info(f"Reminder pass finished with {len(results)} result(s)")
        return results

    async def _remind(self, schedule: ScheduleSlot) -> list[ScanResult]:
        logger.info(f"Sending reminder for {schedule.subject} - {schedule.batch}")
        results: list[ScanResult] = []
        org = self._settings.org_name

        group_email = None
        try:
            group_email = await self._store.find_group_address(schedule.batch, schedule.subject)
            if group_email:
                await self._mailer.send(notifications.group_reminder(schedule, group_email, org))
                results.append(ScanResult(batch=schedule.batch, subject=schedule.subject, status=SENT_TO_GROUP))
        except Exception as e:
            logger.error(f"Failed to send reminder to group {group_email or schedule.batch}: {e}")
            results.append(ScanResult(batch=schedule.batch, subject=schedule.subject, status=f"group_error:{e}"))

        try:
            teachers = await self._store.list_teachers_for(schedule.batch, schedule.subject)
        except Exception as e:
            logger.error(f"Failed to look up teachers for {schedule.subject} - {schedule.batch}: {e}")
            teachers = []

        for teacher in teachers:
            try:
                await self._mailer.send(notifications.teacher_reminder(schedule, teacher, org))
            except Exception as e:
                logger.error(f"Failed to send reminder to teacher {teacher.email}: {e}")
                continue
            results.append(
                ScanResult(
                    batch=schedule.batch,
                    subject=schedule.subject,
                    status=f"sent_to_teacher:{teacher.email}",
                )
            )
        return results

    async def send_recording_emails(self, now: Optional[datetime] = None) -> list[ScanResult]:
        now = now or self._clock()
        today = now.date()
        logger.info(f"Checking recording emails at {now:%H:%M} on {today.isoformat()}")

        results: list[ScanResult] = []
        for recording in await self._store.list_unannounced_recordings(today):
            try:
                results.append(await self._announce(recording, now))
            except Exception as e:
                logger.error(f"Failed to process recording {recording.id}: {e}")
                results.append(
                    ScanResult(
                        batch=recording.batch,
                        subject=recording.subject,
                        status=f"error:{e}",
                        recording_id=recording.id,
                    )
                )

        logger.info(f"Recording pass finished with {len(results)} result(s)")
        return results

    async def _announce(self, recording: RecordingItem, now: datetime) -> ScanResult:
        def result(status: str) -> ScanResult:
            return ScanResult(
                batch=recording.batch,
                subject=recording.subject,
                status=status,
                recording_id=recording.id,
            )

        schedules = await self._store.list_schedules_for(recording.batch, recording.subject)
        class_ended = any(
            applies_on(s, now.date()) and has_ended(s.end_time, now) for s in schedules
        )
        if not class_ended:
            return result(CLASS_NOT_ENDED_YET)

        group_email = await self._store.find_group_address(recording.batch, recording.subject)
        if not group_email:
            return result(NO_GROUP_FOUND)

        try:
            await self._mailer.send(
                notifications.recording_ready(recording, group_email, self._settings.org_name)
            )
        except TransientProviderError as e:
            logger.error(f"Failed to send recording email for {recording.id}: {e}")
            return result(f"error:{e}")

        await self._store.mark_recording_announced(recording.id)
        return result(SENT)

    async def run(self) -> ScanReport:
        """Both passes against the same instant."""
        now = self._clock()
        results = await self.send_class_reminders(now)
        results += await self.send_recording_emails(now)
        return ScanReport(results=results)
