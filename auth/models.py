"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). The store and the
token service do the work; these only own the domain shape.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DEFAULT_LANGUAGE = "en"


@dataclass
class User:
    """A registered identity.

    uuid is the stable primary identity and never changes once created.
    email is unique across all users; the store rejects a second user with
    the same address.
    """

    uuid: str
    name: str
    email: str


@dataclass
class NotificationPreference:
    """Per-user notification channel settings.

    Exactly one per user. When no row exists the store synthesizes
    NotificationPreference.default(uuid), so callers never see None.
    """

    user_uuid: str
    email_enabled: bool = True
    html_email: bool = True
    push_enabled: bool = False
    language: str = DEFAULT_LANGUAGE

    @classmethod
    def default(cls, user_uuid: str) -> NotificationPreference:
        return cls(user_uuid=user_uuid)


@dataclass(frozen=True)
class TokenPayload:
    """Identity decoded from a verified bearer token.

    Only TokenService.verify() builds these. Never construct one from request
    data: the payload is trustworthy because the signature check produced it.
    Lives for the duration of one request (request.state.current_user).
    """

    user_id: str
    email: str
    is_admin: bool
    issued_at: datetime | None
    expires_at: datetime | None
