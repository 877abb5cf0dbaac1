from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from rent_manager.core.config import (
    OTP_EXPIRY_MINUTES,
    OTP_LENGTH,
    OTP_MAX_ATTEMPTS,
    OTP_RESEND_COOLDOWN_SECONDS,
    OTP_WINDOW_MINUTES,
)
from rent_manager.core.errors import DependencyError, RateLimitError, ValidationError
from rent_manager.mail.service import EmailService, email_service as default_email_service
from rent_manager.models.enums import OtpStatus, UserType
from rent_manager.models.otp_request import OtpRequest
from rent_manager.services.accounts import get_account_repository, normalize_email
from rent_manager.services.passwords import hash_password, verify_password
from rent_manager.services.validators import is_valid_email

logger = logging.getLogger(__name__)
OTP_PREFIX = "[OTP]"

DEFAULT_TITLE = "From Rent Manager"
AUTO_EXPIRED_DESCRIPTION = "UNUSED (Auto-expired)"

GENERIC_SENT_MESSAGE = "If your email is registered, you will receive an OTP shortly."
SENT_MESSAGE = "OTP sent successfully. Please check your email."
ACTIVE_EXISTS_MESSAGE = "An active OTP already exists. Please check your email."
EMAIL_FAILED_MESSAGE = (
    "OTP was generated but we encountered an issue sending it to your email. "
    "Please try again or contact support."
)
INVALID_OR_EXPIRED_MESSAGE = "Invalid or expired OTP. Please request a new OTP."
INVALID_CODE_MESSAGE = "Invalid OTP. Please try again."


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_code(length: int = OTP_LENGTH) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


@dataclass
class OtpResult:
    message: str
    otp_request_id: Optional[int] = None
    delivered: bool = False


class OtpService:
    """One-time codes bound to ``(user_type, user_id, email)``.

    Expired pending rows are swept to ``expired`` at the start of every
    generate/verify call; there is no background job.
    """

    def __init__(
        self,
        db: Session,
        *,
        user_type: UserType,
        request_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        email_service: Optional[EmailService] = None,
    ) -> None:
        self.db = db
        self.user_type = user_type
        self.request_id = request_id
        self.ip_address = ip_address
        self.email_service = email_service or default_email_service
        self.accounts = get_account_repository(db, user_type)

    def _owner_query(self, account_id: str):
        return self.db.query(OtpRequest).filter(
            OtpRequest.user_type == self.user_type,
            OtpRequest.user_id == account_id,
        )

    def expire_stale(self, account_id: str, now: Optional[datetime] = None) -> int:
        now = now or _now()
        expired = (
            self._owner_query(account_id)
            .filter(OtpRequest.status == OtpStatus.PENDING, OtpRequest.expires_at <= now)
            .update(
                {
                    OtpRequest.status: OtpStatus.EXPIRED,
                    OtpRequest.usage_description: AUTO_EXPIRED_DESCRIPTION,
                },
                synchronize_session=False,
            )
        )
        if expired:
            logger.info("%s expired %s pending otp(s) user_id=%s", OTP_PREFIX, expired, account_id)
        return expired

    def count_recent(self, account_id: str, now: Optional[datetime] = None) -> int:
        now = now or _now()
        window_start = now - timedelta(minutes=OTP_WINDOW_MINUTES)
        return self._owner_query(account_id).filter(OtpRequest.created_at > window_start).count()

    def active_otp(self, account_id: str, now: Optional[datetime] = None) -> Optional[OtpRequest]:
        now = now or _now()
        return (
            self._owner_query(account_id)
            .filter(OtpRequest.status == OtpStatus.PENDING, OtpRequest.expires_at > now)
            .order_by(OtpRequest.created_at.desc(), OtpRequest.id.desc())
            .first()
        )

    def generate_otp(self, email: str, title: str = DEFAULT_TITLE) -> OtpResult:
        if not is_valid_email(email):
            raise ValidationError("Invalid email address")
        email = normalize_email(email)
        title = (title or "").strip() or DEFAULT_TITLE
        now = _now()

        account = self.accounts.find_inactive_by_email(email)
        if account is None:
            logger.info("%s no eligible account request_id=%s", OTP_PREFIX, self.request_id)
            return OtpResult(message=GENERIC_SENT_MESSAGE)

        account_id = account.account_id
        # Serializes concurrent generation for the same account.
        self.accounts.lock(account_id)
        self.expire_stale(account_id, now)

        if self.count_recent(account_id, now) >= OTP_MAX_ATTEMPTS:
            self.db.commit()
            logger.warning("%s rate limited user_id=%s", OTP_PREFIX, account_id)
            raise RateLimitError(
                f"Too many OTP requests. Please wait {OTP_WINDOW_MINUTES} minutes before trying again.",
                retry_after_seconds=OTP_WINDOW_MINUTES * 60,
            )

        active = self.active_otp(account_id, now)
        if active is not None:
            self.db.commit()
            seconds_since = int((now - active.created_at).total_seconds())
            if seconds_since < OTP_RESEND_COOLDOWN_SECONDS:
                wait_seconds = OTP_RESEND_COOLDOWN_SECONDS - seconds_since
                raise RateLimitError(
                    f"Please wait {wait_seconds} seconds before requesting a new OTP.",
                    retry_after_seconds=wait_seconds,
                )
            return OtpResult(message=ACTIVE_EXISTS_MESSAGE, otp_request_id=active.id)

        code = generate_code()
        otp_request = OtpRequest(
            user_type=self.user_type,
            user_id=account_id,
            email=email,
            otp=hash_password(code),
            status=OtpStatus.PENDING,
            expires_at=now + timedelta(minutes=OTP_EXPIRY_MINUTES),
            created_at=now,
            ip_address=self.ip_address,
        )
        self.db.add(otp_request)
        # The row must survive a failed send, otherwise failures would reset the rate limit.
        self.db.commit()
        logger.info("%s generated otp_id=%s user_id=%s", OTP_PREFIX, otp_request.id, account_id)

        result = self.email_service.send(
            to=email,
            subject=f"Your OTP Code - {title}",
            body=(
                f"Your OTP for {title} is: {code}. It expires in {OTP_EXPIRY_MINUTES} minutes.\n\n"
                "Do not share this code with anyone.\n"
                "If you didn't request this, please ignore this email."
            ),
            html=False,
        )
        if not result.ok:
            otp_request.status = OtpStatus.EMAIL_FAILED
            self.db.commit()
            logger.error(
                "%s email delivery failed otp_id=%s error=%s",
                OTP_PREFIX,
                otp_request.id,
                result.error,
            )
            raise DependencyError(EMAIL_FAILED_MESSAGE)

        return OtpResult(message=SENT_MESSAGE, otp_request_id=otp_request.id, delivered=True)

    def verify_otp(self, account_id: str, code: str, email: str) -> OtpRequest:
        """Consume the newest pending code. Both outcomes are committed: a code is never checked twice."""
        now = _now()
        self.expire_stale(account_id, now)
        otp_request = (
            self._owner_query(account_id)
            .filter(
                OtpRequest.email == normalize_email(email),
                OtpRequest.status == OtpStatus.PENDING,
                OtpRequest.expires_at > now,
            )
            .order_by(OtpRequest.created_at.desc(), OtpRequest.id.desc())
            .with_for_update()
            .first()
        )
        if otp_request is None:
            self.db.commit()
            raise ValidationError(INVALID_OR_EXPIRED_MESSAGE)

        if not verify_password((code or "").strip(), otp_request.otp):
            otp_request.status = OtpStatus.INVALID_ATTEMPT
            self.db.commit()
            logger.warning("%s invalid code otp_id=%s user_id=%s", OTP_PREFIX, otp_request.id, account_id)
            raise ValidationError(INVALID_CODE_MESSAGE)

        otp_request.status = OtpStatus.VERIFIED
        self.db.commit()
        logger.info("%s verified otp_id=%s user_id=%s", OTP_PREFIX, otp_request.id, account_id)
        return otp_request
