"""
notify/mailer.py -- SMTP mail transport with Jinja2 templates.

The dispatcher owns *whether* to send; this module owns *how*:

  1. Pick the template for the recipient's language:
       <template_dir>/email_template_<lang>.html   (HTML mail)
       <template_dir>/email_template_<lang>.txt    (plain-text mail)
     falling back to "en" when the language has no template.
  2. Render it with the payload. "title" defaults to "Notification" and
     "has_link" to False so templates can rely on both.
  3. Build an EmailMessage (subject from payload["subject"]) and submit it
     over SMTP, upgrading with STARTTLS when configured.

Every failure -- missing template, render error, SMTP refusal, socket error,
timeout -- is raised as MailTransportError. The dispatcher decides whether
that is fatal.

SMTP wire handling is delegated to smtplib; templating to Jinja2.
"""

from __future__ import annotations

import logging
import re
import smtplib
import ssl
from email.errors import MessageError
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from core.config import Settings
from core.errors import MailTransportError

logger = logging.getLogger("appserver.mailer")

DEFAULT_LANGUAGE = "en"
DEFAULT_SUBJECT = "Notification"
DEFAULT_TITLE = "Notification"

# Language codes become part of a filename; anything else falls back to "en".
_LANGUAGE_RE = re.compile(r"^[A-Za-z]{2,8}(?:[_-][A-Za-z0-9]{1,8})?$")


class MailTransport(Protocol):
    """Anything that can deliver one rendered notification email."""

    def send(self, to_email: str, language: str, payload: dict[str, Any], html: bool = True) -> None: ...


class SmtpMailer:
    """Mail transport backed by smtplib and Jinja2 templates.

    Usage:
        mailer = SmtpMailer.from_settings(get_settings())
        mailer.send("ada@example.com", "de", {"subject": "Hi", "message": "..."})
    """

    def __init__(
        self,
        server: str = "localhost",
        port: int = 587,
        username: str = "",
        password: str = "",
        from_address: str = "",
        sender_name: str = "App Server",
        starttls: bool = True,
        timeout: float = 10.0,
        template_dir: Path | str = Path(__file__).parent / "templates",
    ) -> None:
        self.server = server
        self.port = port
        self.username = username
        self._password = password
        self.from_address = from_address
        self.sender_name = sender_name
        self.starttls = starttls
        self.timeout = timeout
        self.template_dir = Path(template_dir)
        self._env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> SmtpMailer:
        return cls(
            server=settings.smtp_server,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.smtp_from,
            sender_name=settings.smtp_sender_name,
            starttls=settings.smtp_starttls,
            timeout=settings.smtp_timeout,
            template_dir=settings.mail_template_dir,
        )

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def resolve_template(self, language: str, html: bool = True) -> str:
        """Return the template filename for a language, falling back to English.

        Raises MailTransportError if neither the language nor the English
        template exists.
        """
        extension = "html" if html else "txt"
        target = language if language and _LANGUAGE_RE.match(language) else DEFAULT_LANGUAGE
        candidates = [f"email_template_{target}.{extension}"]
        if target != DEFAULT_LANGUAGE:
            candidates.append(f"email_template_{DEFAULT_LANGUAGE}.{extension}")
        for name in candidates:
            if (self.template_dir / name).is_file():
                return name
        missing = self.template_dir / candidates[-1]
        logger.error("Template not found: %s", missing)
        raise MailTransportError(f"Template not found: {missing}")

    def render(self, language: str, payload: dict[str, Any], html: bool = True) -> str:
        context = dict(payload)
        context.setdefault("has_link", False)
        context.setdefault("title", DEFAULT_TITLE)
        name = self.resolve_template(language, html=html)
        try:
            return self._env.get_template(name).render(**context)
        except TemplateError as exc:
            logger.error("Template rendering failed for %s: %s", name, exc)
            raise MailTransportError(f"Template rendering failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def build_message(self, to_email: str, language: str, payload: dict[str, Any], html: bool = True) -> EmailMessage:
        body = self.render(language, payload, html=html)
        subject = payload.get("subject")
        msg = EmailMessage()
        msg["Subject"] = subject if isinstance(subject, str) and subject else DEFAULT_SUBJECT
        msg["From"] = formataddr((self.sender_name, self.from_address))
        msg["To"] = to_email
        msg.set_content(body, subtype="html" if html else "plain", charset="utf-8")
        return msg

    def send(self, to_email: str, language: str, payload: dict[str, Any], html: bool = True) -> None:
        """Render and submit one email. Raises MailTransportError on any failure."""
        try:
            msg = self.build_message(to_email, language, payload, html=html)
        except (MessageError, ValueError, TypeError) as exc:
            raise MailTransportError(f"Could not build message for {to_email}: {exc}") from exc

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls(context=ssl.create_default_context())
                if self.username:
                    smtp.login(self.username, self._password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            # socket.timeout is an OSError subclass, so timeouts land here too.
            logger.error("SMTP error sending to %s: %s", to_email, exc)
            raise MailTransportError(f"SMTP Error: {exc}") from exc

        logger.info("Email sent to %s (lang: %s)", to_email, language or DEFAULT_LANGUAGE)
