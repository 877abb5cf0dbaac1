from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from rent_manager.core.database import Base
from rent_manager.models.enums import SessionStatus, enum_column


class ActiveSession(Base):
    """One row per account; the unique key makes concurrent logins collide instead of duplicating."""

    __tablename__ = "active_sessions"

    id = Column(Integer, primary_key=True, index=True)
    unique_id = Column(String(32), nullable=False, unique=True, index=True)
    session_id = Column(String(128), nullable=False, index=True)
    login_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_activity = Column(DateTime, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    status = Column(enum_column(SessionStatus, length=16), nullable=False, default=SessionStatus.ACTIVE)
    logged_out_at = Column(DateTime, nullable=True)
