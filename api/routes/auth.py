"""
api/routes/auth.py -- Identity and second-factor endpoints for the current caller.

Routes:
  GET  /api/auth/me           -- identity decoded from the bearer token
  POST /api/auth/2fa/setup    -- new TOTP secret + otpauth:// provisioning URI
  POST /api/auth/2fa/verify   -- check a 6-digit code against a secret

Auth policy: every route here requires an authenticated caller. The request
gate has already rejected missing (401) and invalid (403) tokens; the
get_current_user dependency only reads what the gate attached.

The server does not persist TOTP secrets. The caller keeps the secret from
/2fa/setup and presents it to /2fa/verify.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import MeResponse, TotpSetupResponse, TotpVerifyRequest, TotpVerifyResponse
from auth import totp
from auth.dependencies import get_current_user
from auth.models import TokenPayload
from core.config import Settings

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: TokenPayload = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse.from_payload(current_user)


@router.post("/auth/2fa/setup", response_model=TotpSetupResponse)
def totp_setup(request: Request, current_user: TokenPayload = Depends(get_current_user)) -> TotpSetupResponse:
    settings: Settings = request.app.state.settings
    secret = totp.generate_secret()
    return TotpSetupResponse(
        secret=secret,
        otpauth_uri=totp.provisioning_uri(current_user.email, secret, settings.totp_issuer),
    )


@router.post("/auth/2fa/verify", response_model=TotpVerifyResponse)
def totp_verify(body: TotpVerifyRequest) -> TotpVerifyResponse:
    """A mismatch is not an error: the response is simply {"valid": false}."""
    return TotpVerifyResponse(valid=totp.validate_code(body.secret, body.code))
