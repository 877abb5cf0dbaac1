from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from rent_manager.core.config import PASSWORD_RESET_MAX_ATTEMPTS
from rent_manager.core.errors import (
    AccountSecurityError,
    AuthError,
    NotFoundError,
    RateLimitError,
    StateConflictError,
    ValidationError,
)
from rent_manager.models.password_reset_attempt import PasswordResetAttempt
from rent_manager.services.accounts import AdminRepository, normalize_email
from rent_manager.services.audit import log_action
from rent_manager.services.lockout import check_lockout_status, clear_login_attempts, locked_message
from rent_manager.services.passwords import hash_password, verify_password, verify_secret_answer
from rent_manager.services.validators import ensure_password_policy, is_valid_email, require_fields

logger = logging.getLogger(__name__)
RESET_PREFIX = "[PASSWORD_RESET]"

REQUIRED_FIELDS = ("email", "password", "confirmPassword", "secret_answer")
SUCCESS_MESSAGE = "Password has been reset successfully. You can now log in with your new password."
LIMIT_MESSAGE = (
    "You have exceeded the maximum password reset attempts for today. Please try again tomorrow."
)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _seconds_until_tomorrow(now: datetime) -> int:
    tomorrow = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    return max(1, int((tomorrow - now).total_seconds()))


def normalize_reset_attempt(attempt: Optional[PasswordResetAttempt], now: Optional[datetime] = None) -> int:
    """Attempts that count today. A counter from an earlier day is reset in place."""
    if attempt is None:
        return 0
    now = now or _now()
    if attempt.last_attempt_date is None or attempt.last_attempt_date.date() != now.date():
        attempt.reset_attempts = 0
    return attempt.reset_attempts or 0


def get_reset_attempt(db: Session, email: str) -> Optional[PasswordResetAttempt]:
    return (
        db.query(PasswordResetAttempt)
        .filter(PasswordResetAttempt.email == email)
        .with_for_update()
        .first()
    )


def record_reset_attempt(db: Session, email: str, now: Optional[datetime] = None) -> int:
    now = now or _now()
    attempt = get_reset_attempt(db, email)
    if attempt is None:
        attempt = PasswordResetAttempt(email=email, reset_attempts=1, last_attempt_date=now)
        db.add(attempt)
        return 1
    attempt.reset_attempts = normalize_reset_attempt(attempt, now) + 1
    attempt.last_attempt_date = now
    return attempt.reset_attempts


def reset_password(
    db: Session,
    *,
    email: str,
    password: str,
    confirm_password: str,
    secret_answer: str,
) -> str:
    """Replace the admin password after the identity checks pass.

    Rejections after the account lookup are counted and committed here before
    raising; the success path is committed by the caller.
    """
    require_fields(
        {
            "email": email,
            "password": password,
            "confirmPassword": confirm_password,
            "secret_answer": secret_answer,
        },
        REQUIRED_FIELDS,
    )
    email = normalize_email(email)
    if not is_valid_email(email):
        raise ValidationError("Invalid email address format.")
    ensure_password_policy(password)
    if password != confirm_password:
        raise ValidationError("Password and Confirm Password do not match.")

    now = _now()
    if normalize_reset_attempt(get_reset_attempt(db, email), now) >= PASSWORD_RESET_MAX_ATTEMPTS:
        db.commit()
        logger.warning("%s daily limit reached email=%s", RESET_PREFIX, email)
        raise RateLimitError(LIMIT_MESSAGE, retry_after_seconds=_seconds_until_tomorrow(now))

    admin = AdminRepository(db).find_by_email(email)
    if admin is None:
        raise NotFoundError("No active account found with this email address.")

    lockout = check_lockout_status(db, admin.unique_id, now)
    if lockout.locked:
        _reject(
            db,
            email,
            StateConflictError(locked_message(lockout.time_remaining), status_code=423),
            now,
        )

    if verify_password(password, admin.password_hash):
        _reject(db, email, ValidationError("New password cannot be the same as your current password."), now)

    if not verify_secret_answer(secret_answer, admin.secret_answer_hash):
        _reject(db, email, AuthError("Security answer is incorrect."), now)

    admin.password_hash = hash_password(password)
    admin.updated_at = now
    admin.last_updated_by = admin.unique_id
    attempt = get_reset_attempt(db, email)
    if attempt is not None:
        attempt.reset_attempts = 0
        attempt.last_attempt_date = now
    clear_login_attempts(db, admin.unique_id)
    log_action(
        db,
        actor_id=admin.unique_id,
        action="password_reset",
        entity_type="admin",
        entity_id=admin.unique_id,
    )
    logger.info("%s password reset unique_id=%s", RESET_PREFIX, admin.unique_id)
    return SUCCESS_MESSAGE


def _reject(db: Session, email: str, error: AccountSecurityError, now: datetime) -> None:
    attempts = record_reset_attempt(db, email, now)
    db.commit()
    logger.warning("%s rejected email=%s attempts=%s reason=%s", RESET_PREFIX, email, attempts, error.message)
    raise error
