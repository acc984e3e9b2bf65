"""
Account emails: activation links, password reset links, username reminders.
"""

import uuid
from html import escape as html_escape

import structlog

from mra_auth.core.config import EmailSettings
from mra_auth.core.interfaces.email import (
    Delivery,
    EmailBackend,
    EmailKind,
    EmailMessage,
    Recipient,
)

logger = structlog.get_logger()


class LogEmailBackend:
    """Writes messages to the log instead of sending them."""

    async def send(self, message: EmailMessage) -> Delivery:
        message_id = uuid.uuid4().hex
        logger.info(
            "Email sent",
            message_id=message_id,
            kind=message.kind.value,
            to=[str(r) for r in message.to],
            subject=message.subject,
        )
        return Delivery(message_id=message_id)


class MemoryEmailBackend:
    """Keeps messages in ``outbox`` for tests to inspect."""

    def __init__(self):
        self.outbox: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> Delivery:
        self.outbox.append(message)
        return Delivery(message_id=str(len(self.outbox)))


def get_email_backend(config: EmailSettings) -> EmailBackend:
    if config.backend == "memory":
        return MemoryEmailBackend()
    return LogEmailBackend()


class EmailService:
    """Builds and sends the account emails."""

    def __init__(self, backend: EmailBackend, config: EmailSettings):
        self.backend = backend
        self.sender = Recipient(email=config.from_address, name=config.from_name)

    async def _send(self, kind: EmailKind, to: Recipient, subject: str, text: str) -> Delivery:
        html = "<p>" + "</p><p>".join(html_escape(line) for line in text.split("\n") if line) + "</p>"
        message = EmailMessage(kind=kind, to=[to], subject=subject, text=text, html=html, sender=self.sender)
        delivery = await self.backend.send(message)
        if not delivery.delivered:
            logger.error("Email delivery failed", kind=kind.value, to=to.email, error=delivery.error)
        return delivery

    async def send_verification_email(
        self,
        username: str,
        display_name: str | None,
        email: str,
        activation_link: str,
        activation_code: str,
    ) -> Delivery:
        text = (
            f"Hello {display_name or username},\n"
            f"Please activate your account by opening this link:\n{activation_link}\n"
            f"Or enter this activation code: {activation_code}"
        )
        return await self._send(
            EmailKind.ACTIVATION, Recipient(email=email, name=display_name), "Activate your account", text
        )

    async def send_reset_password_email(
        self,
        username: str,
        display_name: str | None,
        email: str,
        reset_link: str,
    ) -> Delivery:
        text = (
            f"Hello {display_name or username},\n"
            f"A password reset was requested for your account. Open this link to choose a new password:\n"
            f"{reset_link}\n"
            f"If you did not request it, ignore this email."
        )
        return await self._send(
            EmailKind.RESET_PASSWORD, Recipient(email=email, name=display_name), "Reset your password", text
        )

    async def send_usernames_email(self, usernames: list[str], email: str) -> Delivery:
        text = "The following usernames are registered with this email address:\n" + "\n".join(usernames)
        return await self._send(EmailKind.USERNAMES, Recipient(email=email), "Your usernames", text)
