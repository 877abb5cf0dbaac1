from __future__ import annotations

import logging
from html import escape
from typing import Optional

from sqlalchemy.orm import Session

from rent_manager.mail.base import mask_address
from rent_manager.mail.service import EmailService, email_service as default_email_service
from rent_manager.models.enums import ReactivationStatus
from rent_manager.models.reactivation_request import AccountReactivationRequest
from rent_manager.services.accounts import AdminRepository

logger = logging.getLogger(__name__)
NOTIFY_PREFIX = "[NOTIFY]"


def notify_super_admins_of_request(
    db: Session,
    reactivation: AccountReactivationRequest,
    email_service: Optional[EmailService] = None,
) -> int:
    """Email every active Super Admin about a new request. Returns how many were delivered."""
    service = email_service or default_email_service
    delivered = 0
    for admin in AdminRepository(db).active_super_admins():
        result = service.send(
            to=admin.email,
            subject=f"New account reactivation request #{reactivation.request_id}",
            body=(
                f"<p>Hello {escape(admin.firstname or 'Admin')},</p>"
                f"<p>A {escape(reactivation.user_type.value)} account ({escape(reactivation.email)}) "
                f"submitted reactivation request <strong>#{escape(reactivation.request_id)}</strong>.</p>"
                f"<p>Reason: {escape(reactivation.request_reason)}</p>"
                "<p>Please review it from the admin dashboard.</p>"
            ),
        )
        if result.ok:
            delivered += 1
        else:
            logger.warning(
                "%s admin notification failed to=%s request=%s error=%s",
                NOTIFY_PREFIX,
                mask_address(admin.email),
                reactivation.request_id,
                result.error,
            )
    logger.info("%s notified %s super admin(s) request=%s", NOTIFY_PREFIX, delivered, reactivation.request_id)
    return delivered


def notify_user_of_review(
    *,
    email: str,
    request_id: str,
    status: ReactivationStatus,
    rejection_reason: Optional[str] = None,
    email_service: Optional[EmailService] = None,
) -> bool:
    service = email_service or default_email_service
    if status == ReactivationStatus.APPROVED:
        subject = "Your account has been reactivated"
        body = (
            f"<p>Your reactivation request <strong>#{escape(request_id)}</strong> was approved.</p>"
            "<p>You can now log in to your account.</p>"
        )
    else:
        subject = "Your account reactivation request was rejected"
        body = (
            f"<p>Your reactivation request <strong>#{escape(request_id)}</strong> was rejected.</p>"
            f"<p>Reason: {escape(rejection_reason or 'Not specified')}</p>"
            "<p>You may submit a new request after 24 hours.</p>"
        )
    result = service.send(to=email, subject=subject, body=body)
    if not result.ok:
        logger.warning(
            "%s user notification failed to=%s request=%s error=%s",
            NOTIFY_PREFIX,
            mask_address(email),
            request_id,
            result.error,
        )
    return result.ok
