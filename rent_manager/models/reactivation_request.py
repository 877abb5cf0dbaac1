from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from rent_manager.core.database import Base
from rent_manager.models.enums import ReactivationStatus, UserType, enum_column


class AccountReactivationRequest(Base):
    __tablename__ = "account_reactivation_requests"
    __table_args__ = (
        Index("ix_reactivation_owner_status", "user_type", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(16), nullable=False, unique=True, index=True)
    user_type = Column(enum_column(UserType, length=16), nullable=False)
    user_id = Column(String(32), nullable=False)
    email = Column(String(255), nullable=False)
    otp_request_id = Column(Integer, ForeignKey("otp_requests.id"), nullable=True)
    request_reason = Column(Text, nullable=False)
    status = Column(
        enum_column(ReactivationStatus, length=16),
        nullable=False,
        default=ReactivationStatus.PENDING,
    )
    reviewed_by = Column(String(32), nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    review_timestamp = Column(DateTime, nullable=True)
    request_ip = Column(String(64), nullable=True)
    request_user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
