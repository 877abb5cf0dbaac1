from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from rent_manager.core.config import LOCKOUT_DURATION_MINUTES, MAX_LOGIN_ATTEMPTS
from rent_manager.models.enums import LockStatus
from rent_manager.models.login_attempt import LockHistory, LoginAttempt

logger = logging.getLogger(__name__)
LOCKOUT_PREFIX = "[LOCKOUT]"

LOCK_DURATION = timedelta(minutes=LOCKOUT_DURATION_MINUTES)
SYSTEM_ACTOR = "0"
AUTO_LOCK_METHOD = "Automatic lock"
AUTO_UNLOCK_METHOD = "System auto-unlock"
MANUAL_UNLOCK_METHOD = "Manual admin unlock"


@dataclass
class LockoutStatus:
    locked: bool
    attempts: int
    locked_until: Optional[datetime] = None
    time_remaining: Optional[str] = None


@dataclass
class FailedLoginOutcome:
    attempts: int
    locked: bool
    message: str


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_time_remaining(delta: timedelta) -> str:
    total_seconds = max(0, int(delta.total_seconds()))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes} minutes {seconds} seconds"


def locked_message(time_remaining: str) -> str:
    return f"Your account is locked. Please try again in {time_remaining}"


def get_login_attempt(db: Session, unique_id: str, *, for_update: bool = False) -> Optional[LoginAttempt]:
    query = db.query(LoginAttempt).filter(LoginAttempt.unique_id == unique_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def normalize_login_attempt(db: Session, attempt: Optional[LoginAttempt], now: Optional[datetime] = None) -> Optional[LoginAttempt]:
    """Apply the lock-expiry rule to a record read from the database.

    An elapsed lock resets the counter and writes an ``unlocked`` history entry.
    Every read path goes through here so the rule lives in one place.
    """
    if attempt is None or attempt.locked_until is None:
        return attempt
    now = now or _now()
    if attempt.locked_until > now:
        return attempt

    logger.info("%s lock expired unique_id=%s locked_until=%s", LOCKOUT_PREFIX, attempt.unique_id, attempt.locked_until)
    attempt.attempts = 0
    attempt.locked_until = None
    db.add(
        LockHistory(
            unique_id=attempt.unique_id,
            status=LockStatus.UNLOCKED,
            unlocked_by=SYSTEM_ACTOR,
            unlock_method=AUTO_UNLOCK_METHOD,
            unlocked_at=now,
        )
    )
    return attempt


def is_locked(attempt: Optional[LoginAttempt], now: Optional[datetime] = None) -> bool:
    if attempt is None or attempt.locked_until is None:
        return False
    now = now or _now()
    return attempt.locked_until > now and attempt.attempts >= MAX_LOGIN_ATTEMPTS


def check_lockout_status(db: Session, unique_id: str, now: Optional[datetime] = None) -> LockoutStatus:
    now = now or _now()
    attempt = normalize_login_attempt(db, get_login_attempt(db, unique_id), now)
    if attempt is None:
        return LockoutStatus(locked=False, attempts=0)
    if is_locked(attempt, now):
        return LockoutStatus(
            locked=True,
            attempts=attempt.attempts,
            locked_until=attempt.locked_until,
            time_remaining=format_time_remaining(attempt.locked_until - now),
        )
    return LockoutStatus(locked=False, attempts=attempt.attempts or 0)


def handle_failed_login(db: Session, unique_id: str, now: Optional[datetime] = None) -> FailedLoginOutcome:
    now = now or _now()
    attempt = normalize_login_attempt(db, get_login_attempt(db, unique_id, for_update=True), now)
    if attempt is None:
        attempt = LoginAttempt(unique_id=unique_id, attempts=1, last_attempt=now)
        db.add(attempt)
    else:
        attempt.attempts = (attempt.attempts or 0) + 1
        attempt.last_attempt = now

    if attempt.attempts >= MAX_LOGIN_ATTEMPTS:
        attempt.locked_until = now + LOCK_DURATION
        db.add(
            LockHistory(
                unique_id=unique_id,
                status=LockStatus.LOCKED,
                locked_by=SYSTEM_ACTOR,
                lock_reason=f"Account locked due to {attempt.attempts} failed login attempts",
                lock_method=AUTO_LOCK_METHOD,
                locked_at=now,
            )
        )
        logger.warning("%s account locked unique_id=%s attempts=%s", LOCKOUT_PREFIX, unique_id, attempt.attempts)
        return FailedLoginOutcome(
            attempts=attempt.attempts,
            locked=True,
            message=(
                "Too many failed login attempts. "
                f"Your account is locked for {LOCKOUT_DURATION_MINUTES} minutes."
            ),
        )

    remaining = MAX_LOGIN_ATTEMPTS - attempt.attempts
    logger.info("%s failed login unique_id=%s attempts=%s", LOCKOUT_PREFIX, unique_id, attempt.attempts)
    return FailedLoginOutcome(
        attempts=attempt.attempts,
        locked=False,
        message=f"Invalid credentials. Attempts remaining: {remaining}",
    )


def clear_login_attempts(db: Session, unique_id: str) -> None:
    attempt = get_login_attempt(db, unique_id)
    if attempt is None:
        return
    db.delete(attempt)


def unlock_account(
    db: Session,
    unique_id: str,
    *,
    unlocked_by: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Manual unlock by an administrator. Returns False when nothing was locked."""
    now = now or _now()
    attempt = get_login_attempt(db, unique_id, for_update=True)
    if attempt is None:
        return False
    was_locked = is_locked(attempt, now)
    db.delete(attempt)
    if was_locked:
        db.add(
            LockHistory(
                unique_id=unique_id,
                status=LockStatus.UNLOCKED,
                unlocked_by=str(unlocked_by),
                lock_reason=reason,
                unlock_method=MANUAL_UNLOCK_METHOD,
                unlocked_at=now,
            )
        )
        logger.info("%s manual unlock unique_id=%s by=%s", LOCKOUT_PREFIX, unique_id, unlocked_by)
    return was_locked
