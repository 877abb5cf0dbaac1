# rent_manager/deps.py
from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from rent_manager.core.database import get_db
from rent_manager.core.errors import AuthError
from rent_manager.core.request_context import set_request_context
from rent_manager.services.accounts import SUPER_ADMIN_ROLE
from rent_manager.services.sessions import SessionContext, SessionManager

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "Not logged in. Please login again."
IDLE_TIMEOUT = "Session expired due to inactivity. Please login again."


def get_session_manager(db: Session = Depends(get_db)) -> SessionManager:
    return SessionManager(db)


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def _log_access_denied(*, reason: str, session: SessionContext, request: Request) -> None:
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s endpoint=%s %s",
        reason,
        session.unique_id,
        session.role,
        request.method,
        request.url.path,
    )


def require_session(
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionContext:
    """Resolve the caller's session and apply the idle timeout.

    Each authenticated request counts as activity; an idle session is logged
    out here and the request rejected.
    """
    session_id = getattr(request.state, "session_id", None)
    if not session_id:
        raise AuthError(NOT_LOGGED_IN)

    context = sessions.load(session_id)
    if context is None:
        raise AuthError(NOT_LOGGED_IN)

    if sessions.is_idle(context):
        sessions.logout(context)
        db.commit()
        logger.info("[SESSION] idle timeout unique_id=%s", context.unique_id)
        raise AuthError(IDLE_TIMEOUT)

    sessions.touch(context)
    db.commit()
    request.state.user_id = context.unique_id
    set_request_context(user_id=context.unique_id)
    return context


def require_role(roles: Iterable[str], *, message: str = "Insufficient permissions"):
    allowed = {_normalize_role(role) for role in roles}

    def _dependency(
        request: Request,
        session: SessionContext = Depends(require_session),
    ) -> SessionContext:
        if _normalize_role(session.role) not in allowed:
            _log_access_denied(reason="role_denied", session=session, request=request)
            raise AuthError(message, status_code=403)
        return session

    return _dependency


require_super_admin = require_role([SUPER_ADMIN_ROLE], message="You don't have permission to perform this action.")
require_reviewer = require_role([SUPER_ADMIN_ROLE], message="You don't have permission to review requests.")
