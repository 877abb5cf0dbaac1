from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from rent_manager.core.database import Base
from rent_manager.models.enums import LockStatus, enum_column


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id = Column(Integer, primary_key=True, index=True)
    unique_id = Column(String(32), nullable=False, unique=True, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_attempt = Column(DateTime, nullable=True)
    locked_until = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class LockHistory(Base):
    __tablename__ = "lock_history"

    id = Column(Integer, primary_key=True, index=True)
    unique_id = Column(String(32), nullable=False, index=True)
    status = Column(enum_column(LockStatus, length=16), nullable=False)
    locked_by = Column(String(32), nullable=True)
    unlocked_by = Column(String(32), nullable=True)
    lock_reason = Column(String(255), nullable=True)
    lock_method = Column(String(64), nullable=True)
    unlock_method = Column(String(64), nullable=True)
    locked_at = Column(DateTime, nullable=True)
    unlocked_at = Column(DateTime, nullable=True)
