from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from rent_manager.core.client import resolve_client_ip, resolve_user_agent
from rent_manager.core.database import get_db
from rent_manager.core.errors import ValidationError
from rent_manager.deps import require_reviewer, require_super_admin
from rent_manager.models.enums import ReactivationStatus, UserType
from rent_manager.services.reactivation import (
    ReactivationReviewService,
    ReactivationService,
    validate_review_input,
)
from rent_manager.services.reactivation_reports import get_request_details, get_stats, list_requests
from rent_manager.services.sessions import SessionContext

router = APIRouter(prefix="/api/reactivation", tags=["reactivation"])


class SubmitReactivationPayload(BaseModel):
    email: str = ""
    user_type: str = ""
    otp: str = ""
    request_reason: str = Field("", max_length=2000)


class ReviewPayload(BaseModel):
    request_id: str = ""
    action: str = ""
    notes: Optional[str] = Field(None, max_length=2000)
    rejection_reason: Optional[str] = Field(None, max_length=2000)


@router.post("/submit")
def submit_request(payload: SubmitReactivationPayload, request: Request, db: Session = Depends(get_db)):
    service = ReactivationService(
        db,
        trace_id=getattr(request.state, "request_id", None),
        ip_address=resolve_client_ip(request),
        user_agent=resolve_user_agent(request),
    )
    result = service.submit(
        email=payload.email,
        user_type=payload.user_type,
        otp=payload.otp,
        request_reason=payload.request_reason,
    )
    return {
        "success": True,
        "message": result.message,
        "request_id": result.request_id,
        "review_time": result.review_time,
    }


@router.post("/review")
def review_request(
    payload: ReviewPayload,
    session: SessionContext = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    if not payload.request_id.strip():
        raise ValidationError("Request ID is required")
    action = validate_review_input(payload.action, payload.rejection_reason)
    outcome = ReactivationReviewService(db, admin_id=session.unique_id).review(
        payload.request_id,
        action,
        notes=payload.notes,
        rejection_reason=payload.rejection_reason,
    )
    return {
        "success": True,
        "message": f"Request {outcome.status.value} successfully",
        "request_id": outcome.request_id,
        "status": outcome.status.value,
    }


@router.get("/requests")
def list_reactivation_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_type: Optional[UserType] = None,
    status: Optional[ReactivationStatus] = None,
    search: Optional[str] = Query(None, max_length=100),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    _session: SessionContext = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    result = list_requests(
        db,
        page=page,
        limit=limit,
        user_type=user_type,
        status=status,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    return {"success": True, **result}


@router.get("/requests/{request_id}")
def reactivation_request_details(
    request_id: str,
    _session: SessionContext = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": get_request_details(db, request_id)}


@router.get("/stats")
def reactivation_stats(
    _session: SessionContext = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": get_stats(db)}
