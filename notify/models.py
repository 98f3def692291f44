"""
notify/models.py -- Result types for notification dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from core.errors import FailureKind


class ChannelStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # enabled, but the collaborator delivered nothing
    DISABLED = "disabled"


@dataclass
class DispatchReport:
    """Aggregate outcome of one notify() call.

    ok is True only if at least one enabled channel reports SENT. channels
    maps channel name ("email", "push") to its ChannelStatus; errors holds
    the per-channel failure text for logging and the HTTP response.
    """

    ok: bool
    kind: FailureKind | None = None
    error: str = ""
    channels: dict[str, ChannelStatus] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok
