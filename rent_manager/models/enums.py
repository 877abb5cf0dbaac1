from __future__ import annotations

from enum import Enum
from typing import Type

from sqlalchemy import Enum as SAEnum


class UserType(str, Enum):
    ADMIN = "admin"
    AGENT = "agent"
    CLIENT = "client"
    TENANT = "tenant"


class AccountStatus(str, Enum):
    ACTIVE = "1"
    INACTIVE = "0"


class SessionStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class LockStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class OtpStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    INVALID_ATTEMPT = "invalid_attempt"
    EXPIRED = "expired"
    EMAIL_FAILED = "email_failed"


class ReactivationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def resulting_status(self) -> ReactivationStatus:
        if self is ReviewAction.APPROVE:
            return ReactivationStatus.APPROVED
        return ReactivationStatus.REJECTED


def enum_column(enum_cls: Type[Enum], length: int = 32) -> SAEnum:
    """Store the enum *value* in a VARCHAR column and hand back members on load."""
    return SAEnum(
        enum_cls,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=length,
        validate_strings=True,
    )
