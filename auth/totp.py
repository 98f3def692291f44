"""
auth/totp.py -- Time-based one-time passwords (RFC 6238).

Pure functions only. The secret is generated here but persisted by the
caller; this module never touches the store.

Algorithm (RFC 4226 HOTP over a 30-second time step):
  key    = base32 decode of the secret (case-insensitive, foreign chars ignored)
  step   = floor(unix_seconds / 30)
  digest = HMAC-SHA1(key, step as 8-byte big-endian)
  offset = low nibble of digest[-1]
  code   = (31-bit big-endian int at digest[offset:offset+4]) % 10**6, zero-padded

validate_code() accepts the current step and one step either side so a
client clock that drifted by up to 30 seconds still works.

Known limitation: provisioning_uri() does not percent-encode the email or
issuer. Addresses containing reserved URI characters ('+', '&', '#', ...)
produce a URI that authenticator apps may misparse.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
SECRET_LENGTH = 32
PERIOD_SECONDS = 30
DIGITS = 6
DRIFT_STEPS = 1

_BASE32_INDEX = {ch: i for i, ch in enumerate(BASE32_ALPHABET)}


def generate_secret() -> str:
    """Return a fresh 32-character Base32 secret (160 bits of entropy)."""
    return "".join(secrets.choice(BASE32_ALPHABET) for _ in range(SECRET_LENGTH))


def provisioning_uri(email: str, secret: str, issuer: str) -> str:
    """Return the otpauth:// URI an authenticator app scans from a QR code."""
    return (
        f"otpauth://totp/{issuer}:{email}?secret={secret}&issuer={issuer}"
        f"&algorithm=SHA1&digits={DIGITS}&period={PERIOD_SECONDS}"
    )


def base32_decode(secret: str) -> bytes:
    """Decode a Base32 secret leniently.

    base64.b32decode() rejects lowercase, missing padding and stray characters.
    Users paste secrets with spaces and dashes, so decode bit-by-bit instead:
    unknown characters are skipped and trailing bits that do not fill a whole
    byte are dropped.
    """
    out = bytearray()
    buffer = 0
    bits = 0
    for ch in secret.upper():
        value = _BASE32_INDEX.get(ch)
        if value is None:
            continue
        buffer = ((buffer << 5) | value) & 0xFFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((buffer >> bits) & 0xFF)
    return bytes(out)


def current_step(now: float | None = None) -> int:
    if now is None:
        now = time.time()
    return int(now // PERIOD_SECONDS)


def code_for_step(key: bytes, step: int) -> str:
    """Return the 6-digit code for a decoded key at a given time step."""
    digest = hmac.new(key, step.to_bytes(8, "big"), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    binary = int.from_bytes(digest[offset : offset + 4], "big") & 0x7FFFFFFF
    return str(binary % 10**DIGITS).zfill(DIGITS)


def validate_code(secret: str, code: str, now: float | None = None) -> bool:
    """Return True if code is valid for secret within +-1 time step of now.

    Anything that is not exactly six ASCII digits is rejected before any
    HMAC work is done.
    """
    if not secret or not isinstance(code, str):
        return False
    if len(code) != DIGITS or not (code.isascii() and code.isdigit()):
        return False

    key = base32_decode(secret)
    step = current_step(now)
    for drift in range(-DRIFT_STEPS, DRIFT_STEPS + 1):
        if step + drift < 0:
            continue
        if hmac.compare_digest(code_for_step(key, step + drift), code):
            return True
    return False
