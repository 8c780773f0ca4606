"""Plain-text email templates for class reminders, recordings and content updates."""
from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from liveclass.models.recording import RecordingItem
from liveclass.models.schedule import ScheduleSlot
from liveclass.models.teacher import TeacherAssignment
from liveclass.services.clock import clock_minutes
from liveclass.services.mailer import OutgoingEmail

_GROUP_SLUG_RE = re.compile(r"[^a-z0-9]")


class NotificationType(str, Enum):
    ANNOUNCEMENT = "announcement"
    RECORDING = "recording"
    NOTE = "note"
    DPP = "dpp"
    CHAT = "chat"
    REMINDER = "reminder"


def batch_prefix(batch: Optional[str]) -> str:
    return f"[{batch}] " if batch else ""


def subject_line(
    kind: NotificationType,
    *,
    batch: Optional[str],
    subject: Optional[str],
    title: Optional[str] = None,
) -> str:
    subject = subject or "General"
    if kind == NotificationType.ANNOUNCEMENT:
        headline = f"Announcement: {title or subject}"
    elif kind == NotificationType.RECORDING:
        headline = f"New Lecture: {subject}"
    elif kind == NotificationType.NOTE:
        headline = f"New Notes: {subject}"
    elif kind == NotificationType.DPP:
        headline = f"New DPP: {subject}"
    elif kind == NotificationType.CHAT:
        headline = f"Priority Message in {subject}"
    else:
        headline = f"Class Reminder: {subject}"
    return f"{batch_prefix(batch)}{headline}"


def group_email_for(batch: str, subject: Optional[str], domain: str) -> str:
    """Conventional list address: ``{batch}-{subject}@domain`` or ``{batch}-all@domain``."""

    def slug(value: str) -> str:
        return _GROUP_SLUG_RE.sub("", value.lower())[:30]

    local = f"{slug(batch)}-{slug(subject)}" if subject else f"{slug(batch)}-all"
    return f"{local}@{domain}"


def _starts_in(schedule: ScheduleSlot) -> str:
    if not schedule.reminder_time:
        return "is starting soon"
    lead = clock_minutes(schedule.start_time) - clock_minutes(schedule.reminder_time)
    if lead <= 0:
        return "is starting now"
    return f"is starting in {lead} minute{'s' if lead != 1 else ''}"


def _signoff(org_name: str) -> str:
    return f"Regards,\n{org_name} Academic Team"


def group_reminder(schedule: ScheduleSlot, group_email: str, org_name: str) -> OutgoingEmail:
    text = (
        "Dear Student,\n\n"
        f"Your {schedule.subject} class {_starts_in(schedule)}.\n\n"
        f"Batch: {schedule.batch}\n"
        f"Time: {schedule.start_time} - {schedule.end_time}\n\n"
        "Please join the class on time through your dashboard.\n\n"
        f"{_signoff(org_name)}"
    )
    return OutgoingEmail(
        to=[group_email],
        subject=subject_line(NotificationType.REMINDER, batch=schedule.batch, subject=schedule.subject),
        text=text,
    )


def teacher_reminder(schedule: ScheduleSlot, teacher: TeacherAssignment, org_name: str) -> OutgoingEmail:
    text = (
        f"Dear {teacher.name},\n\n"
        f"This is a reminder that your {schedule.subject} class for {schedule.batch} {_starts_in(schedule)}.\n\n"
        f"Time: {schedule.start_time} - {schedule.end_time}\n\n"
        f"{_signoff(org_name)}"
    )
    return OutgoingEmail(
        to=[teacher.email],
        subject=subject_line(NotificationType.REMINDER, batch=schedule.batch, subject=schedule.subject),
        text=text,
    )


def recording_ready(recording: RecordingItem, group_email: str, org_name: str) -> OutgoingEmail:
    text = (
        "Dear Student,\n\n"
        "A new recording has been uploaded for your course.\n\n"
        f"Subject: {recording.subject}\n"
        f"Topic: {recording.topic}\n"
        f"Date: {recording.date.isoformat()}\n\n"
        "Please check your dashboard to watch the recording.\n\n"
        f"{_signoff(org_name)}"
    )
    return OutgoingEmail(
        to=[group_email],
        subject=subject_line(NotificationType.RECORDING, batch=recording.batch, subject=recording.subject),
        text=text,
    )


def content_update(
    kind: NotificationType,
    group_email: str,
    *,
    batch: str,
    subject: str,
    title: Optional[str] = None,
    message: Optional[str] = None,
    link: Optional[str] = None,
    sender_name: Optional[str] = None,
    org_name: str,
) -> OutgoingEmail:
    """Announcement, notes, DPP, recording or priority chat message for one class list."""
    lines: list[str] = []
    if kind == NotificationType.ANNOUNCEMENT:
        lines += [f"Subject: {subject}", "", title or "", "", message or ""]
    elif kind == NotificationType.RECORDING:
        lines += [f"A new video lecture has been uploaded for {subject}.", f"Topic: {title or ''}"]
    elif kind in (NotificationType.NOTE, NotificationType.DPP):
        label = "DPP" if kind == NotificationType.DPP else "Notes"
        lines += [f"New {label} are available for {subject}.", f"Title: {title or ''}"]
    elif kind == NotificationType.CHAT:
        lines += [f"From: {sender_name or 'Teacher'}", "", message or "", "", "Please check the community chat for more details."]
    else:
        lines += [message or ""]
    if link:
        lines += ["", link]
    text = "\n".join(lines).strip() + f"\n\n{_signoff(org_name)}"
    return OutgoingEmail(
        to=[group_email],
        subject=subject_line(kind, batch=batch, subject=subject, title=title),
        text=text,
    )
