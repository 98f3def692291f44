"""
auth/dependencies.py -- FastAPI Depends() helpers for authenticated routes.

The auth_gate middleware has already verified the bearer token by the time a
route runs. These helpers only read the TokenPayload it attached to
request.state; they never decode tokens themselves.

get_current_user() raises HTTP 401 if no payload is attached (the route sits
on an exempt path, or the middleware was not installed).
require_admin() wraps get_current_user() and raises HTTP 403 if not admin.

Layer rule: no imports from api/ or notify/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import TokenPayload


def try_get_current_user(request: Request) -> TokenPayload | None:
    """Return the payload attached by the gate, or None. Never raises."""
    payload = getattr(request.state, "current_user", None)
    return payload if isinstance(payload, TokenPayload) else None


def get_current_user(request: Request) -> TokenPayload:
    """Require an authenticated caller.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: TokenPayload = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_admin(request: Request) -> TokenPayload:
    """Require the adm claim. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
