"""Mail transport and mailing-list channel.

The transport knows how to hand one message to a mail system (a sendmail
binary or an SMTP relay). The channel turns notices into messages for the
configured mailing list.
"""

from __future__ import annotations

import logging
import smtplib
import subprocess
from email.message import EmailMessage
from typing import Optional, Protocol, Sequence

from refwatch.adapters.notification_formatting import format_subject
from refwatch.core.errors import DeliveryError
from refwatch.core.models import Notice

LOGGER = logging.getLogger(__name__)


class MailTransport(Protocol):
    def deliver(
        self,
        recipient: str,
        subject: str,
        content_type: str,
        body_lines: Sequence[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        ...


def build_message(
    sender: str,
    recipient: str,
    subject: str,
    content_type: str,
    body_lines: Sequence[str],
    headers: Optional[dict[str, str]] = None,
) -> EmailMessage:
    """Assemble a single-part message; the body is always sent as UTF-8."""

    maintype, _, subtype = content_type.partition("/")
    if maintype != "text" or not subtype:
        raise ValueError(f"Unsupported content type: {content_type}")

    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = subject
    for name, value in (headers or {}).items():
        message[name] = value
    message.set_content("\n".join(body_lines) + "\n", subtype=subtype, charset="utf-8")
    return message


class SendmailTransport:
    """Pipes messages to a sendmail-compatible binary."""

    def __init__(self, sender: str, command: Sequence[str]) -> None:
        self._sender = sender
        self._command = list(command)

    def deliver(
        self,
        recipient: str,
        subject: str,
        content_type: str,
        body_lines: Sequence[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        message = build_message(self._sender, recipient, subject, content_type, body_lines, headers)
        try:
            proc = subprocess.run(
                self._command,
                input=message.as_bytes(),
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise DeliveryError(f"Cannot run {self._command[0]}: {exc}") from exc
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise DeliveryError(f"{self._command[0]} exited with {proc.returncode}: {stderr}")


class SMTPTransport:
    """Sends messages through an SMTP relay."""

    def __init__(
        self,
        sender: str,
        host: str,
        port: int = 25,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self._sender = sender
        self._host = host
        self._port = port
        self._user = user
        self._password = password

    def deliver(
        self,
        recipient: str,
        subject: str,
        content_type: str,
        body_lines: Sequence[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        message = build_message(self._sender, recipient, subject, content_type, body_lines, headers)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=30) as smtp:
                if self._user:
                    smtp.starttls()
                    smtp.login(self._user, self._password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {recipient} failed: {exc}") from exc


class MailingListChannel:
    """Sends every notice to the configured mailing list."""

    name = "mail"

    def __init__(
        self,
        transport: MailTransport,
        recipients: Sequence[str],
        repo_name: str,
        subject_prefix: Optional[str] = None,
    ) -> None:
        self._transport = transport
        self._recipient = ", ".join(recipients)
        self._repo_name = repo_name
        self._subject_prefix = subject_prefix if subject_prefix is not None else repo_name

    def send(self, notice: Notice) -> None:
        headers = {
            "X-Git-Repository": self._repo_name,
            "X-Git-Refname": notice.ref_name,
            "X-Git-Notice": notice.kind.value,
        }
        if notice.commit is not None:
            headers["X-Git-Object"] = notice.commit.object_id
        self._transport.deliver(
            self._recipient,
            format_subject(notice, self._subject_prefix),
            notice.content_type,
            notice.lines,
            headers=headers,
        )
        LOGGER.info("Mailed '%s' to %s", notice.subject, self._recipient)
