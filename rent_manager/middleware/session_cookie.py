from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware

from rent_manager.core.config import SESSION_COOKIE_NAME
from rent_manager.services.sessions import decode_session_cookie


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """Resolves the signed session cookie into ``request.state.session_id``."""

    async def dispatch(self, request, call_next):
        request.state.session_id = None
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if token:
            try:
                request.state.session_id = decode_session_cookie(token)
            except RuntimeError:
                request.state.session_id = None
        return await call_next(request)
