from sqlalchemy import Column, DateTime, Integer, String

from rent_manager.core.database import Base


class PasswordResetAttempt(Base):
    __tablename__ = "password_reset_attempts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    reset_attempts = Column(Integer, nullable=False, default=0)
    last_attempt_date = Column(DateTime, nullable=True)
