from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from rent_manager.core.errors import DependencyError, RateLimitError, ValidationError
from rent_manager.mail.service import email_service
from rent_manager.models.enums import OtpStatus, UserType
from rent_manager.models.otp_request import OtpRequest
from rent_manager.services.otp import (
    ACTIVE_EXISTS_MESSAGE,
    EMAIL_FAILED_MESSAGE,
    GENERIC_SENT_MESSAGE,
    INVALID_CODE_MESSAGE,
    INVALID_OR_EXPIRED_MESSAGE,
    SENT_MESSAGE,
    OtpService,
    generate_code,
)

EMAIL = "tenant@example.com"


def _service(db) -> OtpService:
    return OtpService(db, user_type=UserType.TENANT, ip_address="10.1.1.1")


def _generate(db, code: str = "123456"):
    with patch("rent_manager.services.otp.generate_code", return_value=code):
        return _service(db).generate_otp(EMAIL, "Account Reactivation")


def _latest(db) -> OtpRequest:
    db.expire_all()
    return db.query(OtpRequest).order_by(OtpRequest.id.desc()).first()


def _backdate(db, otp: OtpRequest, **fields: timedelta) -> None:
    for name, delta in fields.items():
        setattr(otp, name, getattr(otp, name) - delta)
    db.commit()


def test_generated_code_is_zero_padded():
    with patch("rent_manager.services.otp.secrets.randbelow", return_value=42):
        assert generate_code() == "000042"


def test_unknown_or_active_account_gets_generic_answer(db, inactive_tenant, outbox):
    result = _service(db).generate_otp("someone@example.com")

    assert result.message == GENERIC_SENT_MESSAGE
    assert result.otp_request_id is None
    assert db.query(OtpRequest).count() == 0
    assert outbox == []


def test_invalid_email_is_rejected(db):
    with pytest.raises(ValidationError) as exc:
        _service(db).generate_otp("not-an-email")

    assert exc.value.message == "Invalid email address"


def test_generate_stores_hash_and_emails_code(db, inactive_tenant, outbox):
    result = _generate(db)

    assert result.message == SENT_MESSAGE
    assert result.delivered is True
    row = _latest(db)
    assert row.status == OtpStatus.PENDING
    assert row.user_id == "TEN042"
    assert row.otp != "123456"
    assert row.expires_at - row.created_at == timedelta(minutes=2)
    assert len(outbox) == 1
    assert outbox[0].subject == "Your OTP Code - Account Reactivation"
    assert "123456" in outbox[0].body
    assert outbox[0].html is False


def test_resend_is_throttled_then_reuses_active_code(db, inactive_tenant, outbox):
    _generate(db)

    with pytest.raises(RateLimitError) as exc:
        _generate(db)
    assert exc.value.message.startswith("Please wait ")
    assert exc.value.message.endswith(" seconds before requesting a new OTP.")

    _backdate(db, _latest(db), created_at=timedelta(seconds=40))
    result = _service(db).generate_otp(EMAIL)

    assert result.message == ACTIVE_EXISTS_MESSAGE
    assert db.query(OtpRequest).count() == 1
    assert len(outbox) == 1


def test_three_codes_in_window_trigger_rate_limit(db, inactive_tenant):
    now = datetime.utcnow()
    for minutes in (1, 2, 3):
        db.add(
            OtpRequest(
                user_type=UserType.TENANT,
                user_id="TEN042",
                email=EMAIL,
                otp="x",
                status=OtpStatus.EXPIRED,
                expires_at=now - timedelta(minutes=minutes),
                created_at=now - timedelta(minutes=minutes),
            )
        )
    db.commit()

    with pytest.raises(RateLimitError) as exc:
        _generate(db)

    assert exc.value.message == "Too many OTP requests. Please wait 5 minutes before trying again."


def test_code_verifies_only_once(db, inactive_tenant):
    _generate(db)
    service = _service(db)

    verified = service.verify_otp("TEN042", "123456", EMAIL)
    assert verified.status == OtpStatus.VERIFIED

    with pytest.raises(ValidationError) as exc:
        service.verify_otp("TEN042", "123456", EMAIL)
    assert exc.value.message == INVALID_OR_EXPIRED_MESSAGE


def test_wrong_code_consumes_the_otp(db, inactive_tenant):
    _generate(db)
    service = _service(db)

    with pytest.raises(ValidationError) as wrong:
        service.verify_otp("TEN042", "000000", EMAIL)
    with pytest.raises(ValidationError) as retry:
        service.verify_otp("TEN042", "123456", EMAIL)

    assert wrong.value.message == INVALID_CODE_MESSAGE
    assert retry.value.message == INVALID_OR_EXPIRED_MESSAGE
    assert _latest(db).status == OtpStatus.INVALID_ATTEMPT


def test_expired_code_is_swept_on_verify(db, inactive_tenant):
    _generate(db)
    _backdate(db, _latest(db), expires_at=timedelta(minutes=3))

    with pytest.raises(ValidationError) as exc:
        _service(db).verify_otp("TEN042", "123456", EMAIL)

    assert exc.value.message == INVALID_OR_EXPIRED_MESSAGE
    row = _latest(db)
    assert row.status == OtpStatus.EXPIRED
    assert row.usage_description == "UNUSED (Auto-expired)"


def test_failed_delivery_marks_row(db, inactive_tenant, outbox):
    email_service.mock_sender.fail_next = 1

    with pytest.raises(DependencyError) as exc:
        _generate(db)

    assert exc.value.message == EMAIL_FAILED_MESSAGE
    assert _latest(db).status == OtpStatus.EMAIL_FAILED
    assert outbox == []


def test_send_endpoint(client, inactive_tenant, outbox):
    ok = client.post("/api/otp/send", json={"email": EMAIL, "user_type": "tenant"})
    bad_type = client.post("/api/otp/send", json={"email": EMAIL, "user_type": "landlord"})

    assert ok.status_code == 200
    assert ok.json() == {"success": True, "message": SENT_MESSAGE}
    assert outbox[0].subject == "Your OTP Code - From Rent Manager"
    assert bad_type.status_code == 400
    assert bad_type.json()["success"] is False
