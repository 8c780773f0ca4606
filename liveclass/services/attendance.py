"""Leave tracking and attendance exports."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import pandas as pd

from liveclass.models.attendance import AttendanceEntry
from liveclass.repository import AttendanceStore

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["Date", "Name", "Role", "User ID", "Joined At", "Left At", "Duration (min)"]


async def record_leave(store: AttendanceStore, user_id: str, batch: str, subject: str, now: datetime) -> int:
    """Stamp left_at/duration on today's records for this class; returns how many were updated."""
    entries = await store.find_user_attendance(user_id, batch, subject, now.date())
    updated = 0
    for entry in entries:
        if entry.id is None:
            continue
        joined_at = entry.joined_at
        if joined_at.tzinfo is None:
            # MongoDB hands back naive UTC
            joined_at = joined_at.replace(tzinfo=timezone.utc)
        duration = max(0, round((now - joined_at).total_seconds() / 60))
        await store.mark_left(entry.id, now, duration)
        updated += 1
    if not updated:
        logger.info(f"No join found for {user_id} in {batch}/{subject} on {now.date().isoformat()}")
    return updated


def attendance_frame(entries: list[AttendanceEntry]) -> pd.DataFrame:
    rows = [
        {
            "Date": e.class_date,
            "Name": e.user_name,
            "Role": e.user_role.value,
            "User ID": e.user_id,
            "Joined At": e.joined_at.isoformat(),
            "Left At": e.left_at.isoformat() if e.left_at else "",
            "Duration (min)": e.duration_minutes if e.duration_minutes is not None else "",
        }
        for e in entries
    ]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)
