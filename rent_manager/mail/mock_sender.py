from __future__ import annotations

import logging
from threading import Lock

from rent_manager.mail.base import EmailSendResult, EmailSender, OutgoingEmail, mask_address

logger = logging.getLogger(__name__)


class MockEmailSender(EmailSender):
    """Keeps messages in memory. ``fail_next`` makes the following sends fail."""

    def __init__(self) -> None:
        self.outbox: list[OutgoingEmail] = []
        self.fail_next = 0
        self._lock = Lock()

    def send(self, message: OutgoingEmail) -> EmailSendResult:
        with self._lock:
            if self.fail_next > 0:
                self.fail_next -= 1
                logger.warning("[MAIL] mock failure to=%s", mask_address(message.to))
                return EmailSendResult(status="failed", error="mock delivery failure")
            self.outbox.append(message)
        logger.info("[MAIL] mock delivered to=%s subject=%s", mask_address(message.to), message.subject)
        return EmailSendResult(status="sent")

    def clear(self) -> None:
        with self._lock:
            self.outbox.clear()
            self.fail_next = 0
