"""
notify/dispatcher.py -- Preference-driven, multi-channel notification fan-out.

notify(user_uuid, payload):
  1. Resolve the user. Unknown uuid is a hard failure; no transport is touched.
  2. Resolve the notification preference (the store synthesizes a default).
  3. Copy the payload and add the user's display name as "name" if missing.
  4. Email channel, if enabled: hand off to the mail transport. A transport
     failure is logged and recorded, never raised, and does not stop the
     push channel.
  5. Push channel, if enabled: hand off to the push transport. The default
     NullPushTransport delivers nothing and reports so.
  6. Success means at least one enabled channel actually delivered. A user
     with every channel disabled fails without any transport call.

Resolution (1-3) always completes before any channel runs. The channels are
independent of each other and their order carries no meaning.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from core.errors import FailureKind, MailTransportError
from notify.models import ChannelStatus, DispatchReport

if TYPE_CHECKING:
    from auth.models import NotificationPreference, User
    from auth.store import CredentialStore
    from notify.mailer import MailTransport

logger = logging.getLogger("appserver.notify")

EMAIL = "email"
PUSH = "push"


class PushTransport(Protocol):
    def send(self, user: User, preference: NotificationPreference, payload: dict[str, Any]) -> bool: ...


class NullPushTransport:
    """Placeholder push channel. Logs the request and delivers nothing."""

    def send(self, user: User, preference: NotificationPreference, payload: dict[str, Any]) -> bool:
        logger.info("Push notification enabled for user %s, but no push service is configured.", user.uuid)
        return False


class NotificationDispatcher:
    """Send a notification to a user through every channel they enabled.

    Usage:
        dispatcher = NotificationDispatcher(store, SmtpMailer.from_settings(settings))
        report = dispatcher.notify(user_uuid, {"subject": "Hi", "message": "..."})
        if not report.ok: ...
    """

    def __init__(self, store: CredentialStore, mailer: MailTransport, push: PushTransport | None = None) -> None:
        self.store = store
        self.mailer = mailer
        self.push = push if push is not None else NullPushTransport()

    def notify(self, user_uuid: str, payload: dict[str, Any]) -> DispatchReport:
        user = self.store.get_user(user_uuid)
        if user is None:
            logger.warning("Notification failed: user %s not found.", user_uuid)
            return DispatchReport(ok=False, kind=FailureKind.NOT_FOUND, error="User not found")

        preference = self.store.get_preference(user_uuid)

        data = dict(payload or {})
        data.setdefault("name", user.name)

        report = DispatchReport(ok=False)
        report.channels[EMAIL] = self._send_email(user, preference, data, report)
        report.channels[PUSH] = self._send_push(user, preference, data, report)

        enabled = [status for status in report.channels.values() if status is not ChannelStatus.DISABLED]
        if ChannelStatus.SENT in enabled:
            report.ok = True
            return report

        if not enabled:
            logger.warning("Notification for user %s skipped: all channels disabled.", user_uuid)
            report.kind = FailureKind.CONFIGURATION
            report.error = "No notification channel enabled for user."
        else:
            report.kind = FailureKind.TRANSPORT
            report.error = "Failed to send notification via enabled channels."
            if EMAIL in report.errors:
                report.error = f"{report.error} {report.errors[EMAIL]}"
        return report

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def _send_email(
        self,
        user: User,
        preference: NotificationPreference,
        data: dict[str, Any],
        report: DispatchReport,
    ) -> ChannelStatus:
        if not preference.email_enabled:
            return ChannelStatus.DISABLED
        logger.info("Dispatching email to %s (%s)", user.name, user.email)
        try:
            self.mailer.send(user.email, preference.language, data, html=preference.html_email)
        except MailTransportError as exc:
            logger.error("Failed to send email to %s: %s", user.email, exc)
            report.errors[EMAIL] = str(exc)
            return ChannelStatus.FAILED
        except Exception as exc:
            logger.exception("Mail transport failed for %s", user.email)
            report.errors[EMAIL] = str(exc)
            return ChannelStatus.FAILED
        return ChannelStatus.SENT

    def _send_push(
        self,
        user: User,
        preference: NotificationPreference,
        data: dict[str, Any],
        report: DispatchReport,
    ) -> ChannelStatus:
        if not preference.push_enabled:
            return ChannelStatus.DISABLED
        try:
            delivered = self.push.send(user, preference, data)
        except Exception as exc:
            logger.exception("Push transport failed for user %s", user.uuid)
            report.errors[PUSH] = str(exc)
            return ChannelStatus.FAILED
        return ChannelStatus.SENT if delivered else ChannelStatus.SKIPPED
