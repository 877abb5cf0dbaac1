from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from rent_manager.core.best_effort import run_best_effort
from rent_manager.core.config import REACTIVATION_COOLDOWN_HOURS, REACTIVATION_MAX_PER_DAY
from rent_manager.core.errors import (
    AccountIntegrityError,
    NotFoundError,
    RateLimitError,
    StateConflictError,
    ValidationError,
)
from rent_manager.mail.service import EmailService
from rent_manager.models.enums import ReactivationStatus, ReviewAction, UserType
from rent_manager.models.reactivation_request import AccountReactivationRequest
from rent_manager.services.accounts import get_account_repository, normalize_email, parse_user_type
from rent_manager.services.audit import log_action
from rent_manager.services.notifications import notify_super_admins_of_request, notify_user_of_review
from rent_manager.services.otp import OtpService
from rent_manager.services.validators import require_fields

logger = logging.getLogger(__name__)
REACTIVATION_PREFIX = "[REACTIVATION]"

REVIEW_TIME = "24-48 hours"
SUBMITTED_MESSAGE = (
    "Reactivation request submitted successfully. Our team will review your request shortly."
)
COUNTED_STATUSES = (
    ReactivationStatus.PENDING,
    ReactivationStatus.APPROVED,
    ReactivationStatus.REJECTED,
)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def cooldown_hours_remaining(rejected_at: datetime, now: datetime) -> int:
    hours_elapsed = (now - rejected_at).total_seconds() / 3600
    return max(1, math.ceil(REACTIVATION_COOLDOWN_HOURS - hours_elapsed))


@dataclass
class SubmissionResult:
    request_id: str
    message: str = SUBMITTED_MESSAGE
    review_time: str = REVIEW_TIME


@dataclass
class ReviewOutcome:
    request_id: str
    status: ReactivationStatus
    user_notified: bool = False


class ReactivationService:
    """Submission side of the reactivation pipeline."""

    def __init__(
        self,
        db: Session,
        *,
        trace_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        email_service: Optional[EmailService] = None,
    ) -> None:
        self.db = db
        self.trace_id = trace_id
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.email_service = email_service

    def _owner_query(self, user_type: UserType, account_id: str):
        return self.db.query(AccountReactivationRequest).filter(
            AccountReactivationRequest.user_type == user_type,
            AccountReactivationRequest.user_id == account_id,
        )

    def requests_today(self, user_type: UserType, account_id: str, now: datetime) -> int:
        start_of_day = datetime.combine(now.date(), datetime.min.time())
        return (
            self._owner_query(user_type, account_id)
            .filter(
                AccountReactivationRequest.created_at >= start_of_day,
                AccountReactivationRequest.status.in_(COUNTED_STATUSES),
            )
            .count()
        )

    def pending_request(self, user_type: UserType, account_id: str) -> Optional[AccountReactivationRequest]:
        return (
            self._owner_query(user_type, account_id)
            .filter(AccountReactivationRequest.status == ReactivationStatus.PENDING)
            .first()
        )

    def last_rejection(self, user_type: UserType, account_id: str) -> Optional[AccountReactivationRequest]:
        return (
            self._owner_query(user_type, account_id)
            .filter(AccountReactivationRequest.status == ReactivationStatus.REJECTED)
            .order_by(AccountReactivationRequest.created_at.desc())
            .first()
        )

    def _new_request_id(self) -> str:
        for _ in range(5):
            candidate = secrets.token_hex(4).upper()
            exists = (
                self.db.query(AccountReactivationRequest.id)
                .filter(AccountReactivationRequest.request_id == candidate)
                .first()
            )
            if exists is None:
                return candidate
        raise RuntimeError("could not allocate a unique reactivation request id")

    def submit(self, *, email: str, user_type: str, otp: str, request_reason: str) -> SubmissionResult:
        require_fields(
            {"email": email, "user_type": user_type, "otp": otp, "request_reason": request_reason},
            ("email", "user_type", "otp", "request_reason"),
        )
        kind = parse_user_type(user_type, message="Invalid user type")
        email = normalize_email(email)
        accounts = get_account_repository(self.db, kind)

        account = accounts.find_by_email(email)
        if account is None:
            logger.info("%s unknown account trace=%s", REACTIVATION_PREFIX, self.trace_id)
            raise ValidationError("Invalid request. Please check your details and try again.")
        if account.is_active:
            raise ValidationError("Your account is already active.")

        account_id = account.account_id
        otp_request = OtpService(
            self.db,
            user_type=kind,
            request_id=self.trace_id,
            ip_address=self.ip_address,
            email_service=self.email_service,
        ).verify_otp(account_id, otp, email)

        now = _now()
        accounts.lock(account_id)
        if self.requests_today(kind, account_id, now) >= REACTIVATION_MAX_PER_DAY:
            raise RateLimitError(
                "You have reached the maximum number of reactivation requests for today. "
                "Please try again tomorrow."
            )

        pending = self.pending_request(kind, account_id)
        if pending is not None:
            raise ValidationError(
                "You already have a pending reactivation request. Please wait for it to be reviewed.",
                extra={"existing_request_id": pending.request_id},
            )

        rejection = self.last_rejection(kind, account_id)
        if rejection is not None and now - rejection.created_at < timedelta(hours=REACTIVATION_COOLDOWN_HOURS):
            hours = cooldown_hours_remaining(rejection.created_at, now)
            retry_after = rejection.created_at + timedelta(hours=REACTIVATION_COOLDOWN_HOURS) - now
            raise RateLimitError(
                f"Your last request was rejected. Please wait {hours} hours before submitting a new request.",
                retry_after_seconds=max(1, int(retry_after.total_seconds())),
            )

        reactivation = AccountReactivationRequest(
            request_id=self._new_request_id(),
            user_type=kind,
            user_id=account_id,
            email=email,
            otp_request_id=otp_request.id,
            request_reason=request_reason.strip(),
            status=ReactivationStatus.PENDING,
            request_ip=self.ip_address,
            request_user_agent=(self.user_agent or "")[:512] or None,
            created_at=now,
        )
        self.db.add(reactivation)
        otp_request.usage_description = f"Account reactivation request #{reactivation.request_id}"
        self.db.commit()
        logger.info(
            "%s submitted request=%s user_type=%s user_id=%s",
            REACTIVATION_PREFIX,
            reactivation.request_id,
            kind.value,
            account_id,
        )

        run_best_effort(
            "notify super admins",
            notify_super_admins_of_request,
            self.db,
            reactivation,
            self.email_service,
        )
        return SubmissionResult(request_id=reactivation.request_id)


def validate_review_input(action: str | None, rejection_reason: str | None) -> ReviewAction:
    try:
        review_action = ReviewAction((action or "").strip().lower())
    except ValueError as exc:
        raise ValidationError("Invalid action. Must be 'approve' or 'reject'") from exc
    if review_action is ReviewAction.REJECT and not (rejection_reason or "").strip():
        raise ValidationError("Rejection reason is required when rejecting a request")
    return review_action


class ReactivationReviewService:
    """Super Admin decision on a pending request.

    The row lock plus the pending-status guard mean only one reviewer can
    ever act on a request.
    """

    def __init__(self, db: Session, *, admin_id: str, email_service: Optional[EmailService] = None) -> None:
        self.db = db
        self.admin_id = admin_id
        self.email_service = email_service

    def review(
        self,
        request_id: str,
        action: ReviewAction,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> ReviewOutcome:
        reactivation = (
            self.db.query(AccountReactivationRequest)
            .filter(AccountReactivationRequest.request_id == (request_id or "").strip().upper())
            .with_for_update()
            .first()
        )
        if reactivation is None:
            raise NotFoundError("Request not found")
        if reactivation.status != ReactivationStatus.PENDING:
            raise StateConflictError(
                "Request has already been reviewed",
                extra={"status": reactivation.status.value},
            )

        now = _now()
        status = action.resulting_status
        reactivation.status = status
        reactivation.reviewed_by = self.admin_id
        reactivation.review_notes = (notes or "").strip() or None
        reactivation.rejection_reason = (
            None if action is ReviewAction.APPROVE else (rejection_reason or "").strip()
        )
        reactivation.review_timestamp = now

        if action is ReviewAction.APPROVE:
            user_type, user_id = reactivation.user_type, reactivation.user_id
            affected = get_account_repository(self.db, user_type).activate(user_id, reactivation.email)
            if affected == 0:
                self.db.rollback()
                logger.error(
                    "%s approval matched no account request=%s user_type=%s user_id=%s",
                    REACTIVATION_PREFIX,
                    request_id,
                    user_type.value,
                    user_id,
                )
                raise AccountIntegrityError("Account activation affected no rows")

        log_action(
            self.db,
            actor_id=self.admin_id,
            action=f"reactivation_{status.value}",
            entity_type="account_reactivation_request",
            entity_id=reactivation.request_id,
            meta={
                "user_type": reactivation.user_type.value,
                "user_id": reactivation.user_id,
                "notes": reactivation.review_notes,
            },
        )
        self.db.commit()
        logger.info(
            "%s reviewed request=%s status=%s by=%s",
            REACTIVATION_PREFIX,
            reactivation.request_id,
            status.value,
            self.admin_id,
        )

        notified = run_best_effort(
            "notify user of review",
            notify_user_of_review,
            email=reactivation.email,
            request_id=reactivation.request_id,
            status=status,
            rejection_reason=reactivation.rejection_reason,
            email_service=self.email_service,
        )
        return ReviewOutcome(request_id=reactivation.request_id, status=status, user_notified=notified)
