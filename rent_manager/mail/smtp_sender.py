from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from rent_manager.core.config import (
    EMAIL_FROM_ADDRESS,
    EMAIL_FROM_NAME,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_TIMEOUT_SECONDS,
    SMTP_USE_SSL,
    SMTP_USERNAME,
)
from rent_manager.mail.base import EmailSendResult, EmailSender, OutgoingEmail, mask_address

logger = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):
    MAX_RETRIES = 2

    def __init__(
        self,
        *,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        username: str = SMTP_USERNAME,
        password: str = SMTP_PASSWORD,
        use_ssl: bool = SMTP_USE_SSL,
        timeout: int = SMTP_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    def _build(self, message: OutgoingEmail) -> EmailMessage:
        mime = EmailMessage()
        mime["From"] = formataddr((EMAIL_FROM_NAME, EMAIL_FROM_ADDRESS))
        mime["To"] = message.to
        mime["Subject"] = message.subject
        if message.html:
            mime.set_content("This message requires an HTML capable email client.")
            mime.add_alternative(message.body, subtype="html")
        else:
            mime.set_content(message.body)
        return mime

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        client.starttls()
        return client

    def send(self, message: OutgoingEmail) -> EmailSendResult:
        if not self.host or not self.username:
            logger.error("[MAIL] SMTP credentials incomplete")
            return EmailSendResult(status="failed", error="SMTP credentials incomplete", attempts=0)

        mime = self._build(message)
        last_error: str | None = None
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                with self._connect() as client:
                    client.login(self.username, self.password)
                    client.send_message(mime)
                logger.info("[MAIL] sent to=%s attempt=%s", mask_address(message.to), attempt)
                return EmailSendResult(status="sent", attempts=attempt)
            except (smtplib.SMTPException, OSError) as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "[MAIL] send failed to=%s attempt=%s error=%s",
                    mask_address(message.to),
                    attempt,
                    last_error,
                )
        return EmailSendResult(status="failed", error=last_error, attempts=self.MAX_RETRIES)
