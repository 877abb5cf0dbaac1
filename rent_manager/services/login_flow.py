from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rent_manager.core.best_effort import run_best_effort
from rent_manager.models.account import Admin
from rent_manager.services.accounts import AdminRepository
from rent_manager.services.audit import log_action
from rent_manager.services.lockout import check_lockout_status, handle_failed_login, locked_message
from rent_manager.services.passwords import hash_password, needs_rehash, verify_password
from rent_manager.services.sessions import SessionContext, SessionManager, encode_session_cookie

logger = logging.getLogger(__name__)
LOGIN_PREFIX = "[LOGIN]"

INVALID_CREDENTIALS = "Invalid credentials"
LOGIN_ERROR = "An error occurred during login"


@dataclass
class StepResult:
    ok: bool
    payload: dict[str, Any] = field(default_factory=dict)
    status_code: int = 200

    @classmethod
    def success(cls, **payload: Any) -> "StepResult":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, message: str, status_code: int, **extra: Any) -> "StepResult":
        return cls(ok=False, payload={"message": message, **extra}, status_code=status_code)


class LoginFlow:
    """Login as an ordered list of steps; the first failing step ends the attempt.

    ValidatingInput -> FindingUser -> CheckingAccountStatus -> CheckingLockout
    -> VerifyingPassword -> DestroyingOldSession -> CreatingSession.
    The lockout step runs before any hash comparison.
    """

    def __init__(
        self,
        db: Session,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_manager: Optional[SessionManager] = None,
    ) -> None:
        self.db = db
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.sessions = session_manager or SessionManager(db)
        self.accounts = AdminRepository(db)
        self.username = ""
        self.password = ""
        self.account: Optional[Admin] = None
        self.context: Optional[SessionContext] = None
        self.session_token: Optional[str] = None

    def process_login(self, username: str | None, password: str | None) -> StepResult:
        self.username = (username or "").strip()
        self.password = password or ""
        steps: list[Callable[[], StepResult]] = [
            self.validate_input,
            self.find_user,
            self.check_account_status,
            self.check_lockout,
            self.verify_password,
            self.destroy_old_session,
            self.create_session,
        ]
        for step in steps:
            result = step()
            if not result.ok:
                return result

        account = self.account
        log_action(self.db, actor_id=account.unique_id, action="login_success", entity_type="admin", entity_id=account.unique_id)
        logger.info("%s success unique_id=%s ip=%s", LOGIN_PREFIX, account.unique_id, self.ip_address)
        return StepResult.success(
            message="Login successful",
            data={
                "user_id": account.unique_id,
                "firstname": account.firstname,
                "lastname": account.lastname,
                "role": account.role,
            },
        )

    def validate_input(self) -> StepResult:
        if not self.username or not self.password.strip():
            return StepResult.failure("Username and password are required", 400)
        return StepResult.success()

    def find_user(self) -> StepResult:
        self.account = self.accounts.find_by_login(self.username)
        if self.account is None:
            logger.info("%s unknown username ip=%s", LOGIN_PREFIX, self.ip_address)
            return StepResult.failure(INVALID_CREDENTIALS, 401)
        return StepResult.success()

    def check_account_status(self) -> StepResult:
        account = self.account
        if account.is_blocked:
            logger.warning("%s blocked account unique_id=%s", LOGIN_PREFIX, account.unique_id)
            return StepResult.failure("This account has been blocked!", 403)
        if not account.is_active:
            logger.warning("%s deactivated account unique_id=%s", LOGIN_PREFIX, account.unique_id)
            return StepResult.failure("This account has been deactivated. Please contact support", 403)
        return StepResult.success()

    def check_lockout(self) -> StepResult:
        status = check_lockout_status(self.db, self.account.unique_id)
        if status.locked:
            log_action(self.db, actor_id=self.account.unique_id, action="login_locked", entity_type="admin", entity_id=self.account.unique_id)
            return StepResult.failure(locked_message(status.time_remaining), 423)
        return StepResult.success()

    def verify_password(self) -> StepResult:
        account = self.account
        unique_id = account.unique_id
        if verify_password(self.password, account.password_hash):
            if needs_rehash(account.password_hash):
                run_best_effort("password rehash", self._rehash_password)
            return StepResult.success()

        try:
            outcome = handle_failed_login(self.db, account.unique_id)
            log_action(
                self.db,
                actor_id=account.unique_id,
                action="login_locked" if outcome.locked else "login_failed",
                entity_type="admin",
                entity_id=account.unique_id,
                meta={"attempts": outcome.attempts},
            )
            self.db.flush()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("%s failed-attempt bookkeeping error unique_id=%s", LOGIN_PREFIX, unique_id)
            return StepResult.failure(LOGIN_ERROR, 500)
        return StepResult.failure(outcome.message, 401)

    def destroy_old_session(self) -> StepResult:
        run_best_effort("destroy previous session", self._destroy_previous_session)
        return StepResult.success()

    def create_session(self) -> StepResult:
        unique_id = self.account.unique_id
        try:
            self.context = self.sessions.create_new_session(
                self.account,
                ip_address=self.ip_address,
                user_agent=self.user_agent,
            )
            self.session_token = encode_session_cookie(self.context.session_id)
        except (SQLAlchemyError, RuntimeError):
            self.db.rollback()
            if self.context is not None:
                self.sessions.store.destroy(self.context.session_id)
                self.context = None
            logger.exception("%s session creation failed unique_id=%s", LOGIN_PREFIX, unique_id)
            return StepResult.failure(LOGIN_ERROR, 500)
        return StepResult.success()

    def _rehash_password(self) -> None:
        with self.db.begin_nested():
            self.account.password_hash = hash_password(self.password)

    def _destroy_previous_session(self) -> None:
        with self.db.begin_nested():
            self.sessions.destroy_existing_session(self.account.unique_id)
