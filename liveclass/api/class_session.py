"""Live-class entry: admission for teachers and students, waiting room and leave."""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from liveclass.api.deps import AppClock, AppSettings, CurrentUser, Store, caller_from_token
from liveclass.errors import AccessDenied
from liveclass.services.admission import AdmissionGate, AdmissionRequest, AdmissionState
from liveclass.services.attendance import record_leave

logger = logging.getLogger(__name__)

router = APIRouter()


class LeaveRequest(BaseModel):
    batch: str
    subject: str


def _state_payload(gate: AdmissionGate, settings) -> dict:
    payload = {"state": gate.state.value}
    if gate.details:
        payload["batch"] = gate.details.batch
        payload["subject"] = gate.details.subject
    if gate.state == AdmissionState.REDIRECTING:
        payload["handoff"] = gate.handoff.model_dump(mode="json")
    elif gate.state == AdmissionState.WAITING_FOR_TEACHER:
        payload["retry_after_seconds"] = settings.presence_poll_interval_seconds
    return payload


@router.post("/leave")
async def leave_class(body: LeaveRequest, user: CurrentUser, repo: Store, clock: AppClock):
    """Stamp left_at and duration on today's attendance for this class."""
    updated = await record_leave(repo, user.id, body.batch, body.subject, clock())
    return {"success": True, "updated": updated}


@router.api_route("/{enrollment_id}", methods=["GET", "POST"])
async def admit(
    enrollment_id: str,
    user: CurrentUser,
    repo: Store,
    settings: AppSettings,
    clock: AppClock,
    schedule_id: Optional[str] = Query(None, alias="scheduleId"),
):
    """One admission step.

    Admission writes the caller's attendance record, so clients that can
    should POST; GET stays for the emailed join links.
    Teachers use ``teacher-access`` as the link id together with ``scheduleId``.
    Students waiting for their teacher repeat the call after ``retry_after_seconds``.
    """
    async with AdmissionGate(repo, settings, clock=clock) as gate:
        await gate.begin(user, AdmissionRequest.from_link(enrollment_id, schedule_id))
        return _state_payload(gate, settings)


@router.websocket("/{enrollment_id}/ws")
async def admit_ws(
    websocket: WebSocket,
    enrollment_id: str,
    repo: Store,
    settings: AppSettings,
    clock: AppClock,
    token: Optional[str] = Query(None),
    schedule_id: Optional[str] = Query(None, alias="scheduleId"),
):
    """Waiting room: the server polls for the teacher and pushes each state change."""
    await websocket.accept()
    caller = await caller_from_token(token, repo, settings)

    async with AdmissionGate(repo, settings, clock=clock) as gate:
        try:
            await gate.begin(caller, AdmissionRequest.from_link(enrollment_id, schedule_id))
        except AccessDenied as exc:
            await websocket.send_json({"state": AdmissionState.ERROR.value, "detail": exc.reason})
            await websocket.close(code=1008)
            return

        await websocket.send_json(_state_payload(gate, settings))
        if gate.state == AdmissionState.WAITING_FOR_TEACHER:
            if not await _wait_or_disconnect(websocket, gate):
                logger.info(f"Client left the waiting room for {enrollment_id}")
                return
            await websocket.send_json(_state_payload(gate, settings))
        await websocket.close()


async def _wait_or_disconnect(websocket: WebSocket, gate: AdmissionGate) -> bool:
    """True once the teacher is present, False if the client went away first."""
    waiter = asyncio.ensure_future(gate.wait_for_teacher())
    try:
        while True:
            receiver = asyncio.ensure_future(websocket.receive())
            done, _ = await asyncio.wait({waiter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if waiter in done:
                receiver.cancel()
                waiter.result()
                return True
            # Anything but a disconnect is ignored while waiting
            if receiver.result()["type"] == "websocket.disconnect":
                return False
    except WebSocketDisconnect:
        return False
    finally:
        if not waiter.done():
            waiter.cancel()
