from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

from rent_manager.mail.base import OutgoingEmail, mask_address
from rent_manager.mail.mock_sender import MockEmailSender
from rent_manager.mail.service import EmailService
from rent_manager.mail.smtp_sender import SmtpEmailSender


def _message() -> OutgoingEmail:
    return OutgoingEmail(to="tenant@example.com", subject="Hello", body="<p>Hi</p>")


def test_mask_address():
    assert mask_address("tenant@example.com") == "te***@example.com"
    assert mask_address("a@example.com") == "a***@example.com"
    assert mask_address("broken") == "****"


def test_mock_sender_records_and_fails_on_demand():
    sender = MockEmailSender()
    sender.fail_next = 1

    failed = sender.send(_message())
    delivered = sender.send(_message())

    assert failed.ok is False
    assert delivered.ok is True
    assert len(sender.outbox) == 1


def test_email_service_uses_mock_backend():
    service = EmailService(backend="mock")

    result = service.send(to="tenant@example.com", subject="Hello", body="Hi", html=False)

    assert result.ok is True
    assert service.mock_sender.outbox[0].html is False


def test_smtp_sender_requires_credentials():
    result = SmtpEmailSender(host="smtp.example.com", username="").send(_message())

    assert result.ok is False
    assert result.attempts == 0


def test_smtp_sender_retries_then_reports_failure():
    sender = SmtpEmailSender(host="smtp.example.com", username="mailer", password="secret")

    with patch.object(SmtpEmailSender, "_connect", side_effect=smtplib.SMTPConnectError(421, b"busy")) as connect:
        result = sender.send(_message())

    assert result.ok is False
    assert result.attempts == SmtpEmailSender.MAX_RETRIES
    assert connect.call_count == SmtpEmailSender.MAX_RETRIES


def test_smtp_sender_sends_message():
    sender = SmtpEmailSender(host="smtp.example.com", username="mailer", password="secret")
    client = MagicMock()
    client.__enter__.return_value = client

    with patch.object(SmtpEmailSender, "_connect", return_value=client):
        result = sender.send(_message())

    assert result.ok is True
    client.login.assert_called_once_with("mailer", "secret")
    sent = client.send_message.call_args[0][0]
    assert sent["To"] == "tenant@example.com"
    assert sent["Subject"] == "Hello"
