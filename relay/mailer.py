"""Message construction and SMTP delivery for the mail relay."""

import html
import smtplib
import ssl
from email.message import EmailMessage

from relay.config import RelaySettings

SMTP_TIMEOUT = 30


def header_value(value: str) -> str:
    """Fold a client-supplied value onto one line so it is a valid header."""
    return " ".join(value.split())


def build_message(settings: RelaySettings, name: str, email: str, message: str) -> EmailMessage:
    """Build a contact message with plain-text and HTML bodies.

    The bodies carry the values as submitted. Headers get the single-line form.
    """
    msg = EmailMessage()
    msg["Subject"] = f"{settings.subject_prefix}: {header_value(name)}"
    msg["From"] = settings.sender
    msg["To"] = settings.recipient
    msg["Reply-To"] = header_value(email)

    msg.set_content(f"Name: {name}\nEmail: {email}\n\n{message}")
    body = html.escape(message).replace("\n", "<br/>")
    msg.add_alternative(
        f"<p><strong>Name:</strong> {html.escape(name)}</p>"
        f"<p><strong>Email:</strong> {html.escape(email)}</p>"
        f"<p><strong>Message:</strong><br/>{body}</p>",
        subtype="html",
    )
    return msg


class SmtpTransport:
    """Sends messages through the configured SMTP server."""

    def __init__(self, settings: RelaySettings):
        self.settings = settings

    def _connect(self) -> smtplib.SMTP:
        settings = self.settings
        if settings.smtp_secure:
            return smtplib.SMTP_SSL(
                settings.smtp_host,
                settings.smtp_port,
                timeout=SMTP_TIMEOUT,
                context=ssl.create_default_context(),
            )

        smtp = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT)
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls(context=ssl.create_default_context())
            smtp.ehlo()
        return smtp

    def send(self, message: EmailMessage) -> None:
        with self._connect() as smtp:
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_pass or "")
            smtp.send_message(message)
