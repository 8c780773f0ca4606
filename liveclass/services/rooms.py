"""Jitsi room naming and role-specific connection parameters."""
from __future__ import annotations

import json
import re
from datetime import date
from urllib.parse import quote

from pydantic import BaseModel, Field

from liveclass.models.attendance import AttendanceRole

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")

STUDENT_TOOLBAR_BUTTONS = [
    "microphone",
    "camera",
    "desktop",
    "chat",
    "raisehand",
    "participants-pane",
    "tileview",
    "fullscreen",
]


class Handoff(BaseModel):
    """Where an admitted participant is sent, and with what room settings."""

    room_name: str
    url: str
    role: AttendanceRole
    display_name: str
    batch: str
    subject: str
    params: dict[str, object] = Field(default_factory=dict)


def room_name(batch: str, subject: str, class_date: date, prefix: str = "erp_portal") -> str:
    """Same batch, subject and day always give the same room, whoever asks first."""
    clean_batch = _NON_ALNUM_RE.sub("", batch).lower()
    clean_subject = _NON_ALNUM_RE.sub("", subject).lower()
    return f"{prefix}_{clean_batch}_{clean_subject}_{class_date:%Y%m%d}"


def connection_params(
    role: AttendanceRole, display_name: str, batch: str, subject: str
) -> dict[str, object]:
    params: dict[str, object] = {
        "userInfo.displayName": display_name,
        "config.subject": f"{subject} - {batch}",
        "config.prejoinPageEnabled": False,
        "config.disableDeepLinking": True,
    }
    if role == AttendanceRole.STUDENT:
        params.update(
            {
                "config.disableInviteFunctions": True,
                "config.remoteVideoMenu.disableKick": True,
                "config.remoteVideoMenu.disableGrantModerator": True,
                "config.disableRemoteMute": True,
                "interfaceConfig.TOOLBAR_BUTTONS": STUDENT_TOOLBAR_BUTTONS,
            }
        )
    return params


def room_url(domain: str, room: str, params: dict[str, object]) -> str:
    """``https://domain/room#key=<json>&...`` as read by the Jitsi web client."""
    fragment = "&".join(f"{key}={quote(json.dumps(value), safe='')}" for key, value in params.items())
    base = f"https://{domain.strip('/')}/{room}"
    return f"{base}#{fragment}" if fragment else base


def build_handoff(
    *,
    domain: str,
    prefix: str,
    role: AttendanceRole,
    display_name: str,
    batch: str,
    subject: str,
    class_date: date,
) -> Handoff:
    name = room_name(batch, subject, class_date, prefix)
    params = connection_params(role, display_name, batch, subject)
    return Handoff(
        room_name=name,
        url=room_url(domain, name, params),
        role=role,
        display_name=display_name,
        batch=batch,
        subject=subject,
        params=params,
    )
