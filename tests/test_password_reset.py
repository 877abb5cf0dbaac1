from __future__ import annotations

from datetime import datetime

import pytest

from rent_manager.core.errors import AuthError, NotFoundError, RateLimitError, StateConflictError, ValidationError
from rent_manager.models.password_reset_attempt import PasswordResetAttempt
from rent_manager.services.lockout import handle_failed_login
from rent_manager.services.password_reset import SUCCESS_MESSAGE, normalize_reset_attempt, reset_password
from rent_manager.services.passwords import verify_password

from tests.fixtures_data import NEW_PASSWORD, SECRET_ANSWER, STRONG_PASSWORD


def _reset(db, **overrides):
    data = {
        "email": "admin@example.com",
        "password": NEW_PASSWORD,
        "confirm_password": NEW_PASSWORD,
        "secret_answer": SECRET_ANSWER,
    }
    data.update(overrides)
    return reset_password(db, **data)


def _attempts(db) -> int:
    db.expire_all()
    row = db.query(PasswordResetAttempt).filter_by(email="admin@example.com").first()
    return row.reset_attempts if row else 0


def test_reset_replaces_password(db, make_admin):
    admin = make_admin()

    message = _reset(db)
    db.commit()

    assert message == SUCCESS_MESSAGE
    db.refresh(admin)
    assert verify_password(NEW_PASSWORD, admin.password_hash)
    assert admin.last_updated_by == "ADM001"


def test_secret_answer_is_case_and_space_insensitive(db, make_admin):
    make_admin()

    assert _reset(db, secret_answer="  blue   WHALE ") == SUCCESS_MESSAGE


def test_missing_fields_are_listed(db):
    with pytest.raises(ValidationError) as exc:
        _reset(db, password="", secret_answer="")

    assert exc.value.message == "Missing required fields: password, secret_answer"


def test_weak_password_lists_every_failed_rule(db, make_admin):
    make_admin()

    with pytest.raises(ValidationError) as exc:
        _reset(db, password="abc", confirm_password="abc")

    assert exc.value.message.startswith("Password requirements not met: ")
    assert "Password must be at least 8 characters long" in exc.value.extra["errors"]
    assert "Password must contain at least one uppercase letter" in exc.value.extra["errors"]
    assert _attempts(db) == 0


def test_mismatch_and_bad_email_do_not_count(db, make_admin):
    make_admin()

    with pytest.raises(ValidationError):
        _reset(db, confirm_password="Different!1")
    with pytest.raises(ValidationError) as exc:
        _reset(db, email="not-an-email")

    assert exc.value.message == "Invalid email address format."
    assert _attempts(db) == 0


def test_unknown_email_is_not_found(db):
    with pytest.raises(NotFoundError):
        _reset(db, email="ghost@example.com")


def test_wrong_answer_counts_and_daily_limit_applies(db, make_admin):
    make_admin()

    for _ in range(3):
        with pytest.raises(AuthError) as exc:
            _reset(db, secret_answer="wrong")
        assert exc.value.message == "Security answer is incorrect."

    with pytest.raises(RateLimitError) as limited:
        _reset(db)

    assert _attempts(db) == 3
    assert limited.value.retry_after_seconds > 0


def test_reusing_current_password_is_rejected(db, make_admin):
    make_admin()

    with pytest.raises(ValidationError) as exc:
        _reset(db, password=STRONG_PASSWORD, confirm_password=STRONG_PASSWORD)

    assert exc.value.message == "New password cannot be the same as your current password."
    assert _attempts(db) == 1


def test_locked_account_cannot_reset(db, make_admin):
    make_admin()
    for _ in range(3):
        handle_failed_login(db, "ADM001")
        db.commit()

    with pytest.raises(StateConflictError) as exc:
        _reset(db)

    assert exc.value.status_code == 423
    assert _attempts(db) == 1


def test_counter_from_previous_day_is_ignored():
    yesterday = PasswordResetAttempt(
        email="admin@example.com",
        reset_attempts=3,
        last_attempt_date=datetime(2024, 3, 1, 23, 59),
    )

    assert normalize_reset_attempt(yesterday, datetime(2024, 3, 2, 0, 1)) == 0
    assert yesterday.reset_attempts == 0


def test_reset_endpoint_returns_envelope(client, make_admin):
    make_admin()

    ok = client.post(
        "/api/auth/reset_password",
        json={
            "email": "admin@example.com",
            "password": NEW_PASSWORD,
            "confirmPassword": NEW_PASSWORD,
            "secret_answer": SECRET_ANSWER,
        },
    )
    missing = client.post("/api/auth/reset_password", json={"email": "admin@example.com"})

    assert ok.status_code == 200
    assert ok.json() == {"success": True, "message": SUCCESS_MESSAGE}
    assert missing.status_code == 400
    assert missing.json()["success"] is False
    assert missing.json()["message"].startswith("Missing required fields: ")
