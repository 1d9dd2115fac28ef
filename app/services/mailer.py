from __future__ import annotations

import logging
from typing import Optional

import aiosmtplib
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from fastapi_mail.connection import Connection
from fastapi_mail.errors import ConnectionErrors
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings
from ..emails.templates import EmailDocument

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """Raised when the SMTP relay rejects or cannot take a message."""


class SMTPMailer:
    """FastMail wrapper; one SMTP session per message over STARTTLS."""

    def __init__(self, settings: Settings) -> None:
        self._user: Optional[str] = settings.EMAIL_USER
        self._password: Optional[str] = settings.EMAIL_PASS
        self._conf: Optional[ConnectionConfig] = None
        self._fm: Optional[FastMail] = None
        if not (self._user and self._password):
            missing = [
                key
                for key, value in [("EMAIL_USER", self._user), ("EMAIL_PASS", self._password)]
                if not value
            ]
            logger.warning("SMTP mailer disabled; missing settings: %s", ", ".join(missing))
            return
        try:
            self._conf = ConnectionConfig(
                MAIL_USERNAME=self._user,
                MAIL_PASSWORD=self._password,
                MAIL_FROM=self._user,
                MAIL_FROM_NAME=settings.MAIL_SENDER_NAME,
                MAIL_SERVER=settings.SMTP_HOST,
                MAIL_PORT=settings.SMTP_PORT,
                MAIL_STARTTLS=True,
                MAIL_SSL_TLS=False,
                USE_CREDENTIALS=True,
                VALIDATE_CERTS=True,
                TIMEOUT=settings.SMTP_TIMEOUT_SEC,
            )
        except PydanticValidationError as exc:
            logger.error("SMTP mailer disabled; bad mail settings: %s", exc)
            return
        self._fm = FastMail(self._conf)

    @property
    def enabled(self) -> bool:
        return self._fm is not None

    async def send(self, *, to: str, doc: EmailDocument) -> None:
        """Deliver one rendered email; raises MailDeliveryError on any relay failure."""
        if self._fm is None:
            raise MailDeliveryError("email relay is not configured")

        try:
            message = MessageSchema(
                subject=doc.subject,
                recipients=[to],
                body=doc.html,
                subtype=MessageType.html,
            )
            await self._fm.send_message(message)
        except PydanticValidationError as exc:
            raise MailDeliveryError(f"invalid recipient {to!r}") from exc
        except (ConnectionErrors, aiosmtplib.SMTPException) as exc:
            raise MailDeliveryError(str(exc)) from exc

    async def verify(self) -> bool:
        """Log in once so misconfiguration shows up at startup rather than on first send."""
        if self._conf is None:
            return False
        try:
            async with Connection(self._conf):
                pass
        except ConnectionErrors as exc:
            logger.error("Email configuration error: %s", exc)
            return False
        logger.info("Email server ready")
        return True
