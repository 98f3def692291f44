"""
core/errors.py -- Failure taxonomy shared by every layer.

Public operations in auth/ and notify/ never raise library exceptions past
their boundary. They return a value, or an explicit failure indicator:
  - None / False / ""   where the contract is a lookup or a yes/no check
  - Outcome             where the caller needs to know *why* it failed

FailureKind is the vocabulary the API layer uses to pick a status code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    TRANSPORT = "transport"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"


@dataclass(frozen=True)
class Outcome:
    """Result of an operation that can fail for a reason the caller must see."""

    ok: bool
    kind: FailureKind | None = None
    message: str = ""

    @classmethod
    def success(cls) -> Outcome:
        return cls(ok=True)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> Outcome:
        return cls(ok=False, kind=kind, message=message)

    def __bool__(self) -> bool:
        return self.ok


class MailTransportError(Exception):
    """Raised by a mail transport when a message could not be delivered.

    Covers template lookup/rendering failures as well as SMTP and socket
    errors (including timeouts). The dispatcher catches it per channel.
    """
