from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from rent_manager.core.client import resolve_client_ip
from rent_manager.core.database import get_db
from rent_manager.services.accounts import parse_user_type
from rent_manager.services.otp import DEFAULT_TITLE, OtpService

router = APIRouter(prefix="/api/otp", tags=["otp"])


class SendOtpPayload(BaseModel):
    email: str = ""
    user_type: str = ""
    title: str = Field(DEFAULT_TITLE, max_length=120)


@router.post("/send")
def send_otp(payload: SendOtpPayload, request: Request, db: Session = Depends(get_db)):
    service = OtpService(
        db,
        user_type=parse_user_type(payload.user_type),
        request_id=getattr(request.state, "request_id", None),
        ip_address=resolve_client_ip(request),
    )
    result = service.generate_otp(payload.email, payload.title)
    db.commit()
    return {"success": True, "message": result.message}
