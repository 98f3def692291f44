"""
auth/passwords.py -- Password hashing and random password generation.

Security design decisions:
  Hashing: argon2-cffi with Argon2id (OWASP parameters): time_cost=3,
       memory_cost=64 MiB, parallelism=4, 16-byte random salt per call,
       32-byte digest. The encoded PHC string carries algorithm, version,
       parameters, salt and digest, so nothing else needs to be stored to
       verify it later.

  Blocking: one hash or verify allocates 64 MiB and takes tens to hundreds of
       milliseconds. Call these from sync route handlers (FastAPI runs them in
       its threadpool) or from the CLI, never from an async handler directly.

  Failure contract: hash_password() returns "" on internal failure and
       verify_password() returns False for anything it cannot verify. Neither
       raises.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

import logging
import secrets
import string

from argon2 import PasswordHasher, Type
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

logger = logging.getLogger("appserver.auth")

TIME_COST = 3
MEMORY_COST_KIB = 65536
PARALLELISM = 4
SALT_LEN = 16
HASH_LEN = 32

# 62 symbols: a-z, A-Z, 0-9
PASSWORD_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits

_hasher = PasswordHasher(
    time_cost=TIME_COST,
    memory_cost=MEMORY_COST_KIB,
    parallelism=PARALLELISM,
    hash_len=HASH_LEN,
    salt_len=SALT_LEN,
    type=Type.ID,
)


def hash_password(plain: str) -> str:
    """Return the Argon2id encoded hash of plain, or "" if hashing failed."""
    try:
        return _hasher.hash(plain)
    except (HashingError, MemoryError, TypeError) as exc:
        logger.error("Argon2id hashing failed: %s", exc)
        return ""


def verify_password(plain: str, encoded: str) -> bool:
    """Return True if plain matches the encoded Argon2id hash.

    Empty, malformed, or non-Argon2 encodings return False.
    """
    if not encoded:
        return False
    try:
        return _hasher.verify(encoded, plain)
    except (VerificationError, InvalidHashError, TypeError):
        return False


def generate_random_password(length: int = 12) -> str:
    """Return a random alphanumeric password of the given length.

    secrets.choice() draws uniformly over the whole alphabet for every symbol,
    so there is no modulo bias.
    """
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(max(length, 0)))
