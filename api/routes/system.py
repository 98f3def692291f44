"""
api/routes/system.py -- Health, build information and mail self-test.

Routes:
  GET /api/system/health_check  -- liveness probe with server timestamp
  GET /api/system/system_info   -- project, version, author and build info
  GET /api/system/test_email    -- upserts the server admin as a test user and
                                   sends them a status report through the
                                   notification dispatcher

Auth policy: all three paths are on the gate's exemption list. test_email has
side effects (a DB write and an outbound email), so it is rate-limited.
"""

from __future__ import annotations

import platform
import sys
from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from api.limiter import TEST_EMAIL_LIMIT, limiter
from api.models import HealthResponse, SystemInfoResponse
from auth.models import NotificationPreference, User
from auth.store import CredentialStore
from core.config import (
    APP_AUTHOR,
    APP_DESCRIPTION,
    APP_LICENSE,
    APP_LONG_NAME,
    APP_NAME,
    APP_VERSION,
    Settings,
)
from notify.dispatcher import NotificationDispatcher

TEST_USER_UUID = "test-admin-01"

router = APIRouter()


@router.get("/system/health_check", response_model=HealthResponse)
def health_check() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"))


@router.get("/system/system_info", response_model=SystemInfoResponse)
def system_info() -> SystemInfoResponse:
    major, minor, patch = (APP_VERSION.split(".") + ["0", "0"])[:3]
    return SystemInfoResponse(
        project={
            "name": APP_NAME,
            "long_name": APP_LONG_NAME,
            "description": APP_DESCRIPTION,
            "license": APP_LICENSE,
        },
        version={"full": APP_VERSION, "major": int(major), "minor": int(minor), "patch": int(patch)},
        author={"name": APP_AUTHOR},
        build={
            "python": sys.version.split()[0],
            "implementation": platform.python_implementation(),
            "platform": platform.platform(terse=True),
        },
    )


@router.get("/system/test_email", response_class=PlainTextResponse)
@limiter.limit(TEST_EMAIL_LIMIT)
def send_test_email(request: Request) -> PlainTextResponse:
    """Send a system status email to the configured server admin.

    The admin is upserted as user "test-admin-01" with email enabled, so the
    route also exercises the store's transactional write path. Persistence
    and transport failures both come back as 500 with the error text.
    """
    settings: Settings = request.app.state.settings
    store: CredentialStore = request.app.state.store
    dispatcher: NotificationDispatcher = request.app.state.dispatcher

    user = User(uuid=TEST_USER_UUID, name=settings.server_admin_name, email=settings.server_admin_email)
    outcome = store.upsert(user, NotificationPreference.default(user.uuid))
    if not outcome:
        return PlainTextResponse(f"Failed to create test user: {outcome.message}", status_code=500)

    message = "\n".join(
        [
            "System Status Report:",
            f"Project: {APP_LONG_NAME}",
            f"Version: {APP_VERSION}",
            f"Python: {sys.version.split()[0]}",
        ]
    )
    payload = {
        "subject": "System Info Test",
        "title": "System Information",
        "message": message,
        "app_name": APP_LONG_NAME,
        "has_link": False,
    }
    report = dispatcher.notify(user.uuid, payload)
    if not report:
        return PlainTextResponse(f"Failed to send email: {report.error}", status_code=500)
    return PlainTextResponse(f"Email sent successfully to {user.email}")
