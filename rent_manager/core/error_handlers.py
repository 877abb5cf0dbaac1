from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rent_manager.core.errors import (
    GENERIC_ERROR_MESSAGE,
    SERVICE_UNAVAILABLE_MESSAGE,
    AccountSecurityError,
    DependencyError,
    RateLimitError,
)
from rent_manager.core.request_context import get_request_id

logger = logging.getLogger(__name__)

_HTTP_MESSAGES = {
    404: "Resource not found",
    405: "Method not allowed",
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id()


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
        headers=headers,
    )


async def account_security_error_handler(request: Request, exc: AccountSecurityError) -> JSONResponse:
    endpoint = f"{request.method} {request.url.path}"
    if isinstance(exc, DependencyError):
        logger.error("dependency failure on %s: %s", endpoint, exc.message, exc_info=exc.__cause__ or exc)
        return error_response(exc.status_code, exc.message, request_id=_request_id(request), **exc.extra)

    if not exc.public:
        logger.error("integrity failure on %s: %s", endpoint, exc.message, exc_info=exc)
        return error_response(exc.status_code, GENERIC_ERROR_MESSAGE, request_id=_request_id(request))

    headers = None
    if isinstance(exc, RateLimitError) and exc.retry_after_seconds:
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    logger.info("request rejected status=%s endpoint=%s message=%s", exc.status_code, endpoint, exc.message)
    return error_response(exc.status_code, exc.message, headers=headers, **exc.extra)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(503, SERVICE_UNAVAILABLE_MESSAGE, request_id=_request_id(request))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ())[1:]), "message": error.get("msg")}
        for error in exc.errors()
    ]
    return error_response(400, "Invalid request data", errors=errors)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else _HTTP_MESSAGES.get(exc.status_code, "Error")
    if exc.status_code in _HTTP_MESSAGES and exc.detail in {"Not Found", "Method Not Allowed"}:
        message = _HTTP_MESSAGES[exc.status_code]
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccountSecurityError, account_security_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
