from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from rent_manager.core.database import Base
from rent_manager.models.enums import OtpStatus, UserType, enum_column


class OtpRequest(Base):
    __tablename__ = "otp_requests"
    __table_args__ = (
        Index("ix_otp_requests_owner_status", "user_type", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_type = Column(enum_column(UserType, length=16), nullable=False)
    user_id = Column(String(32), nullable=False)
    email = Column(String(255), nullable=False)
    otp = Column(String(255), nullable=False)
    status = Column(enum_column(OtpStatus, length=20), nullable=False, default=OtpStatus.PENDING)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    ip_address = Column(String(64), nullable=True)
    usage_description = Column(String(255), nullable=True)
