"""
auth/gate.py -- Per-request authorization decision.

Every inbound request is evaluated exactly once, before any handler runs:

  Unchecked -> Exempt           public path or CORS preflight; no identity
            -> Unauthenticated  no "Authorization: Bearer <token>" header (401)
            -> Forbidden        token present but rejected by TokenService (403)
            -> Authenticated    payload attached to request.state.current_user

evaluate_request() is pure so it can be tested without an ASGI stack. The
auth_gate middleware in api/main.py calls it and short-circuits with
gate_response() for the 401/403 states. Both rejections carry
FailureKind.INVALID_CREDENTIAL, which the middleware logs.

Layer rule: no imports from api/ or notify/. starlette is allowed because the
short-circuit response is an HTTP concern owned by this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from starlette.responses import PlainTextResponse, Response

from auth.models import TokenPayload
from core.errors import FailureKind

if TYPE_CHECKING:
    from auth.tokens import TokenService

EXEMPT_PATHS = frozenset(
    {
        "/api/auth/login",
        "/api/auth/forgot-password",
        "/api/auth/register",
        "/api/system/system_info",
        "/api/system/health_check",
        "/api/system/test_email",
    }
)
EXEMPT_PREFIXES = ("/static", "/api/events/stream", "/api/uploads/")

UNAUTHORIZED_BODY = "Unauthorized: Missing or invalid token format."
FORBIDDEN_BODY = "Forbidden: Invalid or expired token."

_BEARER_PREFIX = "Bearer "


class GateState(str, Enum):
    EXEMPT = "exempt"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    payload: TokenPayload | None = None
    kind: FailureKind | None = None

    @property
    def allowed(self) -> bool:
        return self.state in (GateState.EXEMPT, GateState.AUTHENTICATED)


def is_exempt_path(path: str) -> bool:
    return path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES)


def evaluate_request(method: str, path: str, authorization: str | None, tokens: TokenService) -> GateDecision:
    """Decide what happens to a request. Order matters: exemptions first."""
    if is_exempt_path(path):
        return GateDecision(GateState.EXEMPT)
    if method.upper() == "OPTIONS":
        return GateDecision(GateState.EXEMPT)

    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return GateDecision(GateState.UNAUTHENTICATED, kind=FailureKind.INVALID_CREDENTIAL)

    payload = tokens.verify(authorization[len(_BEARER_PREFIX) :])
    if payload is None:
        return GateDecision(GateState.FORBIDDEN, kind=FailureKind.INVALID_CREDENTIAL)
    return GateDecision(GateState.AUTHENTICATED, payload)


def gate_response(decision: GateDecision) -> Response | None:
    """Return the short-circuit response for a rejected request, else None."""
    if decision.state is GateState.UNAUTHENTICATED:
        return PlainTextResponse(UNAUTHORIZED_BODY, status_code=401)
    if decision.state is GateState.FORBIDDEN:
        return PlainTextResponse(FORBIDDEN_BODY, status_code=403)
    return None
