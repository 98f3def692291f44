"""
api/routes/notifications.py -- Trigger a notification for a user.

Routes:
  POST /api/notifications/{uuid}  -- dispatch via the user's enabled channels (admin only)

Status mapping:
  200  at least one channel delivered
  404  unknown user (no transport was contacted)
  500  no channel delivered; body carries per-channel status and the error
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import NotificationRequest, NotificationResponse
from auth.dependencies import require_admin
from core.errors import FailureKind
from notify.dispatcher import NotificationDispatcher

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/notifications/{uuid}", response_model=NotificationResponse)
def notify_user(uuid: str, body: NotificationRequest, request: Request) -> JSONResponse:
    dispatcher: NotificationDispatcher = request.app.state.dispatcher
    report = dispatcher.notify(uuid, body.to_payload())
    if report.kind is FailureKind.NOT_FOUND:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": report.error})
    return JSONResponse(
        status_code=200 if report.ok else 500,
        content=NotificationResponse.from_report(report).model_dump(),
    )
