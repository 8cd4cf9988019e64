# disclosure/clients/mailer.py
from __future__ import annotations

import logging
import smtplib
import threading
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol

from ..config import settings

log = logging.getLogger("disclosure.mailer")


class MailDeliveryError(Exception):
    """Recoverable: callers downgrade this to a warning."""


@dataclass(frozen=True)
class DeliveryResult:
    message_id: Optional[str] = None


class Mailer(Protocol):
    def send_invite(self, recipient: str, link: str) -> DeliveryResult: ...


def invite_message(*, sender: str, recipient: str, link: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = "Your Seller Disclosure Invite"
    msg["From"] = sender
    msg["To"] = recipient
    msg.set_content(
        "Hello,\n\n"
        "You've been invited to complete the seller disclosure for your property.\n\n"
        f"Accept the invite here:\n{link}\n"
    )
    msg.add_alternative(
        "<p>Hello,</p>"
        "<p>You've been invited to complete the seller disclosure for your property.</p>"
        f'<p><a href="{link}">Accept Invite</a></p>'
        f"<p>Or paste this link in your browser:<br>{link}</p>",
        subtype="html",
    )
    return msg


class SmtpMailer:
    def __init__(
        self,
        *,
        host: Optional[str],
        port: int,
        username: Optional[str],
        password: Optional[str],
        sender: str,
        timeout: float,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def send_invite(self, recipient: str, link: str) -> DeliveryResult:
        if not self.host:
            raise MailDeliveryError("smtp_host not configured")

        msg = invite_message(sender=self.sender, recipient=recipient, link=link)
        try:
            if self.port == 465:
                server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            with server:
                if self.port != 465:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(str(e)) from e

        log.info("invite email sent")
        return DeliveryResult(message_id=msg.get("Message-ID"))


_mailer: Optional[Mailer] = None
_mailer_lock = threading.Lock()


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        with _mailer_lock:
            if _mailer is None:
                _mailer = SmtpMailer(
                    host=settings.smtp_host,
                    port=settings.smtp_port,
                    username=settings.smtp_user,
                    password=settings.smtp_password,
                    sender=settings.email_from,
                    timeout=settings.smtp_timeout_seconds,
                )
    return _mailer
