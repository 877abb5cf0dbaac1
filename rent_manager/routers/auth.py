from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from rent_manager.core.client import resolve_client_ip, resolve_user_agent
from rent_manager.core.database import get_db
from rent_manager.core.error_handlers import error_response
from rent_manager.core.errors import AuthError, ValidationError
from rent_manager.deps import get_session_manager, require_session
from rent_manager.services.audit import log_action
from rent_manager.services.login_flow import LoginFlow
from rent_manager.services.password_reset import reset_password
from rent_manager.services.passwords import constant_time_equals
from rent_manager.services.sessions import (
    SessionContext,
    SessionManager,
    build_session_cookie_options,
    clear_session_cookie,
    set_session_cookie,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class LoginPayload(BaseModel):
    username: str = ""
    password: str = ""


class LogoutPayload(BaseModel):
    logout_id: Optional[str] = None


class ResetPasswordPayload(BaseModel):
    email: str = ""
    password: str = ""
    confirmPassword: str = ""
    secret_answer: str = Field("", max_length=255)


@router.post("/login")
def login(
    payload: LoginPayload,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    flow = LoginFlow(
        db,
        ip_address=resolve_client_ip(request),
        user_agent=resolve_user_agent(request),
    )
    result = flow.process_login(payload.username, payload.password)
    db.commit()

    if not result.ok:
        details = dict(result.payload)
        return error_response(result.status_code, details.pop("message"), **details)

    cookie_options = build_session_cookie_options(request)
    logger.info(
        "[AUTH_COOKIE] setting session cookie samesite=%s secure=%s",
        cookie_options["samesite"],
        cookie_options["secure"],
    )
    set_session_cookie(response, flow.session_token, request)
    return {"success": True, **result.payload}


@router.post("/logout")
def logout(
    payload: LogoutPayload,
    request: Request,
    response: Response,
    session: SessionContext = Depends(require_session),
    sessions: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db),
):
    logout_id = (payload.logout_id or "").strip()
    if not logout_id:
        raise ValidationError("Logout ID is required")
    if not constant_time_equals(logout_id, session.unique_id):
        logger.warning("[LOGOUT] logout_id mismatch unique_id=%s", session.unique_id)
        raise AuthError("Invalid logout request", status_code=403)

    logged_out_at = sessions.logout(session)
    log_action(db, actor_id=session.unique_id, action="logout", entity_type="admin", entity_id=session.unique_id)
    db.commit()
    clear_session_cookie(response, request)
    return {
        "success": True,
        "message": "Logout successful",
        "logout_time": logged_out_at.isoformat(),
    }


@router.get("/me")
def me(session: SessionContext = Depends(require_session)):
    return {"success": True, "data": session.public_view()}


@router.get("/activity")
def activity(
    session: SessionContext = Depends(require_session),
    sessions: SessionManager = Depends(get_session_manager),
):
    return {
        "success": True,
        "status": "active",
        "expires_in": sessions.seconds_until_idle(session),
    }


@router.post("/reset_password")
def reset_password_endpoint(payload: ResetPasswordPayload, db: Session = Depends(get_db)):
    message = reset_password(
        db,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirmPassword,
        secret_answer=payload.secret_answer,
    )
    db.commit()
    return {"success": True, "message": message}
