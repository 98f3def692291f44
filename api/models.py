"""
API request and response models for the app server REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
notify/models.py, which own the internal domain representation. Route
handlers map between the two.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import NotificationPreference, TokenPayload, User
from notify.models import DispatchReport

# Same shape the mailer accepts: "de", "en", "pt-BR", "zh_Hant"
LANGUAGE_PATTERN = r"^[A-Za-z]{2,8}(?:[_-][A-Za-z0-9]{1,8})?$"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/system/health_check."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    timestamp: str


class SystemInfoResponse(BaseModel):
    """Response for GET /api/system/system_info."""

    model_config = ConfigDict(frozen=True)

    project: dict[str, str]
    version: dict[str, Any]
    author: dict[str, str]
    build: dict[str, str]


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class MeResponse(BaseModel):
    """The caller's identity as decoded from their bearer token."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    is_admin: bool
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "MeResponse":
        return cls(
            user_id=payload.user_id,
            email=payload.email,
            is_admin=payload.is_admin,
            issued_at=payload.issued_at,
            expires_at=payload.expires_at,
        )


class TotpSetupResponse(BaseModel):
    """Fresh TOTP secret for the caller. The client stores it; the server does not."""

    model_config = ConfigDict(frozen=True)

    secret: str
    otpauth_uri: str


class TotpVerifyRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    secret: str = Field(min_length=1, max_length=128)
    code: str = Field(max_length=16)


class TotpVerifyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool


# ---------------------------------------------------------------------------
# Users and preferences
# ---------------------------------------------------------------------------


class PreferenceModel(BaseModel):
    """Notification preference. Omitted fields take the defaults."""

    email_enabled: bool = True
    html_email: bool = True
    push_enabled: bool = False
    language: str = Field(default="en", pattern=LANGUAGE_PATTERN)

    @classmethod
    def from_domain(cls, pref: NotificationPreference) -> "PreferenceModel":
        return cls(
            email_enabled=pref.email_enabled,
            html_email=pref.html_email,
            push_enabled=pref.push_enabled,
            language=pref.language,
        )


class UserUpsert(BaseModel):
    """Request body for PUT /api/users/{uuid}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    preference: PreferenceModel = Field(default_factory=PreferenceModel)

    def to_domain(self, uuid: str) -> tuple[User, NotificationPreference]:
        user = User(uuid=uuid, name=self.name, email=self.email)
        pref = NotificationPreference(
            user_uuid=uuid,
            email_enabled=self.preference.email_enabled,
            html_email=self.preference.html_email,
            push_enabled=self.preference.push_enabled,
            language=self.preference.language,
        )
        return user, pref


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    uuid: str
    name: str
    email: str
    preference: PreferenceModel

    @classmethod
    def from_domain(cls, user: User, pref: NotificationPreference) -> "UserResponse":
        return cls(uuid=user.uuid, name=user.name, email=user.email, preference=PreferenceModel.from_domain(pref))


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationRequest(BaseModel):
    """Request body for POST /api/notifications/{uuid}.

    subject/title/message are the fields the bundled templates use; anything
    in extra is passed through to the template as-is.
    """

    subject: Optional[str] = Field(default=None, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    message: str = Field(min_length=1, max_length=10000)
    link_url: Optional[str] = Field(default=None, max_length=2048)
    link_text: Optional[str] = Field(default=None, max_length=255)
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        for key in ("subject", "title", "link_text"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        payload["message"] = self.message
        if self.link_url:
            payload["link_url"] = self.link_url
            payload["has_link"] = True
        return payload


class NotificationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    channels: dict[str, str]
    error: Optional[str] = None

    @classmethod
    def from_report(cls, report: DispatchReport) -> "NotificationResponse":
        return cls(
            ok=report.ok,
            channels={name: status.value for name, status in report.channels.items()},
            error=report.error or None,
        )
