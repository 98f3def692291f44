"""
auth/tokens.py -- Signed bearer token issuance and verification.

Security design decisions:
  JWS: python-jose with HS256. Tokens are signed with the configured secret
       and carry uid, sub (email), adm (admin flag), iat, exp and iss. The
       header type is "JWS". Verification returns None on any failure --
       the request gate turns that into a 403.

  Lifetime: 24 hours from issue. There is no refresh or revocation; a leaked
       token stays valid until exp.

  Secret: injected by the caller (normally Settings.jwt_secret). An empty
       secret falls back to _UNSAFE_DEFAULT_SECRET and logs a warning. Anyone
       who knows the default can forge tokens, so a deployment that sees the
       warning is effectively unauthenticated.

Layer rule: no imports from api/ or notify/. core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import TokenPayload

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("appserver.auth")

_ALGORITHM = "HS256"
_TOKEN_TYPE = "JWS"
_UNSAFE_DEFAULT_SECRET = "CHANGE_ME_IN_PRODUCTION_THIS_IS_UNSAFE"
_MIN_SECRET_LENGTH = 32

DEFAULT_ISSUER = "CakePlanner"
DEFAULT_LIFETIME_SECONDS = 24 * 60 * 60


class TokenService:
    """Issue and verify HS256 bearer tokens.

    Stateless apart from its key, issuer and lifetime, so one instance is
    shared across all requests.

    Usage:
        tokens = TokenService(secret="...")
        raw = tokens.issue("u1", "e@x.com", is_admin=True)
        payload = tokens.verify(raw)   # TokenPayload or None
    """

    def __init__(
        self,
        secret: str = "",
        issuer: str = DEFAULT_ISSUER,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
    ) -> None:
        if not secret:
            logger.warning("Token secret not set! Using unsafe default.")
            secret = _UNSAFE_DEFAULT_SECRET
        elif len(secret) < _MIN_SECRET_LENGTH:
            logger.warning("Token secret is shorter than %d characters.", _MIN_SECRET_LENGTH)
        self._secret = secret
        self.issuer = issuer
        self.lifetime = timedelta(seconds=lifetime_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.token_issuer,
            lifetime_seconds=settings.token_expire_seconds,
        )

    @property
    def uses_default_secret(self) -> bool:
        return self._secret == _UNSAFE_DEFAULT_SECRET

    def issue(self, user_id: str, email: str, is_admin: bool, now: datetime | None = None) -> str:
        """Encode a signed token for the given identity.

        Args:
            user_id:  Stable user uuid, stored in the "uid" claim.
            email:    Stored as the subject ("sub") claim.
            is_admin: Stored as the boolean "adm" claim.
            now:      Issue time. Defaults to the current UTC time; tests pass
                      a past value to produce an already-expired token.
        """
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "iss": self.issuer,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
            "uid": user_id,
            "sub": email,
            "adm": bool(is_admin),
        }
        return jwt.encode(claims, self._secret, algorithm=_ALGORITHM, headers={"typ": _TOKEN_TYPE})

    def verify(self, raw_token: str) -> TokenPayload | None:
        """Verify signature, issuer and expiry. Returns the payload or None.

        Returning None (rather than raising) keeps the gate simple: any
        invalid token is treated as forbidden.
        """
        if not isinstance(raw_token, str) or not raw_token:
            return None
        try:
            claims = jwt.decode(
                raw_token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self.issuer,
                options={"require_exp": True, "require_iss": True},
            )
        except (JWTError, ValueError, TypeError):
            return None

        user_id = claims.get("uid")
        email = claims.get("sub")
        if not isinstance(user_id, str) or not isinstance(email, str):
            return None
        is_admin = claims.get("adm")

        return TokenPayload(
            user_id=user_id,
            email=email,
            is_admin=is_admin if isinstance(is_admin, bool) else False,
            issued_at=_claim_time(claims.get("iat")),
            expires_at=_claim_time(claims.get("exp")),
        )


def _claim_time(value) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)
