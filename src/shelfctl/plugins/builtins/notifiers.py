"""Built-in notifiers: a structured log line, and SMTP email to the member.

Both implement the ``notify_issued`` / ``notify_returned`` hooks. The
email notifier raises on SMTP failure so the EventBus records the event
as failed; the circulation transaction has already committed by then.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

import pluggy
import structlog

from shelfctl.config.models import NotificationsConfig

hookimpl = pluggy.HookimplMarker("shelfctl")

logger = logging.getLogger(__name__)

_ISSUED_SUBJECT = "Book Issued Successfully"
_RETURNED_SUBJECT = "Book Returned Successfully"

_ISSUED_BODY = """\
Hello {name},

Your book "{title}" has been successfully issued.

Issue date: {date}

Please return the book on time.

Thank you,
{library}
"""

_RETURNED_BODY = """\
Hello {name},

The book "{title}" has been successfully returned.

Return date: {date}

Thank you for using our library services.

{library}
"""


class LogNotifier:
    """Emit one ``notification.*`` structlog event per circulation notice."""

    def __init__(self) -> None:
        self._log = structlog.get_logger("shelfctl.notifications")

    @hookimpl
    def notify_issued(
        self,
        member_contact: str,
        member_name: str,
        book_title: str,
        issued_at: str,
    ) -> None:
        self._log.info(
            "notification.issued",
            to=member_contact,
            member=member_name,
            title=book_title,
            at=issued_at,
        )

    @hookimpl
    def notify_returned(
        self,
        member_contact: str,
        member_name: str,
        book_title: str,
        returned_at: str,
    ) -> None:
        self._log.info(
            "notification.returned",
            to=member_contact,
            member=member_name,
            title=book_title,
            at=returned_at,
        )


class EmailNotifier:
    """Send issue/return confirmations over SMTP.

    Does nothing when ``smtp_host`` is unset.
    """

    def __init__(self, config: NotificationsConfig | None = None, library_name: str = "Library") -> None:
        self._config = config or NotificationsConfig()
        self._library_name = library_name

    @property
    def _enabled(self) -> bool:
        return bool(self._config.smtp_host)

    @hookimpl
    def notify_issued(
        self,
        member_contact: str,
        member_name: str,
        book_title: str,
        issued_at: str,
    ) -> None:
        if not self._enabled:
            return
        body = _ISSUED_BODY.format(
            name=member_name,
            title=book_title,
            date=issued_at[:10],
            library=self._library_name,
        )
        self._send(member_contact, _ISSUED_SUBJECT, body)

    @hookimpl
    def notify_returned(
        self,
        member_contact: str,
        member_name: str,
        book_title: str,
        returned_at: str,
    ) -> None:
        if not self._enabled:
            return
        body = _RETURNED_BODY.format(
            name=member_name,
            title=book_title,
            date=returned_at[:10],
            library=self._library_name,
        )
        self._send(member_contact, _RETURNED_SUBJECT, body)

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._config.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def _send(self, to: str, subject: str, body: str) -> None:
        config = self._config
        assert config.smtp_host is not None
        msg = self.build_message(to, subject, body)

        with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=config.timeout) as smtp:
            if config.use_tls:
                smtp.starttls()
            if config.smtp_user:
                # App passwords are often pasted with the display spaces left in.
                password = (config.smtp_password or "").replace(" ", "")
                smtp.login(config.smtp_user, password)
            smtp.send_message(msg)
        logger.debug("Sent %r to %s", subject, to)
