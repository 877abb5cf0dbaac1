from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Dict, Optional

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from rent_manager.core.config import (
    SESSION_COOKIE_DOMAIN,
    SESSION_COOKIE_HTTPONLY,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SAMESITE,
    SESSION_COOKIE_SECURE,
    SESSION_DURATION_SECONDS,
    SESSION_IDLE_TIMEOUT_SECONDS,
    SESSION_SECRET,
)
from rent_manager.models.account import Admin
from rent_manager.models.active_session import ActiveSession
from rent_manager.models.enums import SessionStatus
from rent_manager.services.lockout import clear_login_attempts
from rent_manager.services.passwords import fingerprint

logger = logging.getLogger(__name__)
SESSION_PREFIX = "[SESSION]"
SESSION_SALT = "rent-manager-session"


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class SessionContext:
    session_id: str
    unique_id: str
    firstname: str
    lastname: str
    role: str
    restriction_id: int
    secret_answer_hash: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime
    last_activity: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionContext":
        return cls(**data)

    def public_view(self) -> Dict[str, Any]:
        return {
            "user_id": self.unique_id,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "role": self.role,
            "restriction_id": self.restriction_id,
            "login_time": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }


class SessionStore(ABC):
    @abstractmethod
    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored attributes or None when missing/expired."""

    @abstractmethod
    def set(self, session_id: str, data: Dict[str, Any]) -> None:
        """Store attributes, restarting the entry lifetime."""

    @abstractmethod
    def destroy(self, session_id: str) -> None:
        """Forget the session. Unknown ids are ignored."""


class InMemorySessionStore(SessionStore):
    """Process-local session storage with a fixed lifetime per entry."""

    def __init__(self, *, ttl_seconds: int = SESSION_DURATION_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[datetime, Dict[str, Any]]] = {}
        self._lock = Lock()

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            expires_at, data = entry
            if expires_at <= _now():
                del self._entries[session_id]
                return None
            return dict(data)

    def set(self, session_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._entries[session_id] = (_now() + timedelta(seconds=self.ttl_seconds), dict(data))

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


session_store = InMemorySessionStore()


def _serializer() -> URLSafeTimedSerializer:
    if not SESSION_SECRET:
        raise RuntimeError("SESSION_SECRET is not configured.")
    return URLSafeTimedSerializer(SESSION_SECRET, salt=SESSION_SALT)


def encode_session_cookie(session_id: str) -> str:
    return _serializer().dumps({"sid": session_id})


def decode_session_cookie(token: str) -> Optional[str]:
    try:
        payload = _serializer().loads(token, max_age=SESSION_DURATION_SECONDS)
    except (BadSignature, SignatureExpired, ValueError):
        return None
    session_id = payload.get("sid") if isinstance(payload, dict) else None
    return session_id if isinstance(session_id, str) and session_id else None


def _request_is_secure(request: Request | None) -> bool:
    if request is None:
        return False
    forwarded_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip().lower()
    return forwarded_proto == "https" or request.url.scheme == "https"


def build_session_cookie_options(request: Request | None = None) -> dict[str, Any]:
    secure = SESSION_COOKIE_SECURE or _request_is_secure(request)
    samesite = SESSION_COOKIE_SAMESITE
    # Browsers reject SameSite=None without Secure.
    if samesite == "none" and not secure:
        samesite = "strict"
    return {
        "domain": SESSION_COOKIE_DOMAIN,
        "httponly": SESSION_COOKIE_HTTPONLY,
        "samesite": samesite,
        "path": "/",
        "secure": secure,
    }


def set_session_cookie(response: Response, token: str, request: Request | None = None) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_DURATION_SECONDS,
        **build_session_cookie_options(request),
    )


def clear_session_cookie(response: Response, request: Request | None = None) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, **build_session_cookie_options(request))


class SessionManager:
    """Owns the ``active_sessions`` rows and the session store entries behind them.

    Methods flush but never commit; the caller decides the transaction boundary.
    """

    def __init__(self, db: Session, store: SessionStore | None = None) -> None:
        self.db = db
        self.store = store or session_store

    def _record_for(self, unique_id: str) -> Optional[ActiveSession]:
        return (
            self.db.query(ActiveSession)
            .filter(ActiveSession.unique_id == unique_id)
            .with_for_update()
            .first()
        )

    def destroy_existing_session(self, unique_id: str) -> bool:
        record = self._record_for(unique_id)
        if record is None:
            return True
        self.store.destroy(record.session_id)
        self.db.delete(record)
        self.db.flush()
        logger.info("%s previous session destroyed unique_id=%s", SESSION_PREFIX, unique_id)
        return True

    def create_new_session(
        self,
        account: Admin,
        *,
        ip_address: Optional[str],
        user_agent: Optional[str],
        now: Optional[datetime] = None,
    ) -> SessionContext:
        now = now or _now()
        context = SessionContext(
            session_id=secrets.token_urlsafe(32),
            unique_id=account.unique_id,
            firstname=account.firstname,
            lastname=account.lastname,
            role=account.role,
            restriction_id=account.restriction_id or 0,
            secret_answer_hash=fingerprint(account.secret_answer_hash) if account.secret_answer_hash else None,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
            created_at=now,
            last_activity=now,
        )

        # A row left behind by a failed destroy is overwritten; the unique key rejects a concurrent insert.
        record = self._record_for(account.unique_id)
        if record is not None:
            self.store.destroy(record.session_id)
        else:
            record = ActiveSession(unique_id=account.unique_id)
            self.db.add(record)
        record.session_id = context.session_id
        record.login_time = now
        record.last_activity = now
        record.ip_address = ip_address
        record.user_agent = context.user_agent
        record.status = SessionStatus.ACTIVE
        record.logged_out_at = None

        clear_login_attempts(self.db, account.unique_id)
        self.db.flush()
        self.store.set(context.session_id, context.to_dict())
        logger.info("%s session created unique_id=%s ip=%s", SESSION_PREFIX, account.unique_id, ip_address)
        return context

    def load(self, session_id: str) -> Optional[SessionContext]:
        data = self.store.get(session_id)
        if data is None:
            return None
        context = SessionContext.from_dict(data)
        record = (
            self.db.query(ActiveSession)
            .filter(
                ActiveSession.unique_id == context.unique_id,
                ActiveSession.session_id == session_id,
                ActiveSession.status == SessionStatus.ACTIVE,
            )
            .first()
        )
        if record is None:
            self.store.destroy(session_id)
            return None
        return context

    def is_idle(self, context: SessionContext, now: Optional[datetime] = None) -> bool:
        now = now or _now()
        return (now - context.last_activity).total_seconds() > SESSION_IDLE_TIMEOUT_SECONDS

    def seconds_until_idle(self, context: SessionContext, now: Optional[datetime] = None) -> int:
        now = now or _now()
        return max(0, int(SESSION_IDLE_TIMEOUT_SECONDS - (now - context.last_activity).total_seconds()))

    def touch(self, context: SessionContext, now: Optional[datetime] = None) -> SessionContext:
        now = now or _now()
        context.last_activity = now
        self.store.set(context.session_id, context.to_dict())
        self.db.query(ActiveSession).filter(ActiveSession.session_id == context.session_id).update(
            {ActiveSession.last_activity: now}, synchronize_session=False
        )
        return context

    def logout(self, context: SessionContext, now: Optional[datetime] = None) -> datetime:
        now = now or _now()
        self.store.destroy(context.session_id)
        self.db.query(ActiveSession).filter(
            ActiveSession.unique_id == context.unique_id,
            ActiveSession.session_id == context.session_id,
        ).update(
            {ActiveSession.status: SessionStatus.INACTIVE, ActiveSession.logged_out_at: now},
            synchronize_session=False,
        )
        logger.info("%s session closed unique_id=%s", SESSION_PREFIX, context.unique_id)
        return now
