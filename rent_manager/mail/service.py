from __future__ import annotations

import logging

from rent_manager.core.config import EMAIL_BACKEND, IS_DEV
from rent_manager.mail.base import EmailSendResult, EmailSender, OutgoingEmail
from rent_manager.mail.mock_sender import MockEmailSender
from rent_manager.mail.smtp_sender import SmtpEmailSender

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self, *, backend: str = EMAIL_BACKEND) -> None:
        self.backend = backend
        self.mock_sender = MockEmailSender()
        self._smtp_sender = SmtpEmailSender()

    def _select_sender(self) -> EmailSender:
        if self.backend == "smtp":
            return self._smtp_sender
        return self.mock_sender

    def send(self, *, to: str, subject: str, body: str, html: bool = True) -> EmailSendResult:
        sender = self._select_sender()
        message = OutgoingEmail(to=to, subject=subject, body=body, html=html)
        result = sender.send(message)
        if not result.ok and sender is self._smtp_sender and IS_DEV:
            logger.warning("[MAIL] SMTP failed in dev, delivering to mock outbox")
            return self.mock_sender.send(message)
        return result


email_service = EmailService()
