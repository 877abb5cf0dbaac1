from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from rent_manager.core.database import Base
from rent_manager.models.enums import AccountStatus, enum_column


class AccountColumnsMixin:
    firstname = Column(String(100), nullable=False, default="")
    lastname = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(32), nullable=True, index=True)
    password_hash = Column(String(255), nullable=False)
    secret_answer_hash = Column(String(255), nullable=True)
    status = Column(enum_column(AccountStatus, length=1), nullable=False, default=AccountStatus.ACTIVE)
    block_id = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.firstname or ''} {self.lastname or ''}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @property
    def is_blocked(self) -> bool:
        return bool(self.block_id)


class Admin(AccountColumnsMixin, Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    unique_id = Column(String(32), nullable=False, unique=True, index=True)
    role = Column(String(32), nullable=False, default="Admin")
    restriction_id = Column(Integer, nullable=False, default=0)
    last_updated_by = Column(String(32), nullable=True)

    @property
    def account_id(self) -> str:
        return self.unique_id


class Agent(AccountColumnsMixin, Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True)
    agent_code = Column(String(32), nullable=False, unique=True, index=True)

    @property
    def account_id(self) -> str:
        return self.agent_code


class Client(AccountColumnsMixin, Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    client_code = Column(String(32), nullable=False, unique=True, index=True)

    @property
    def account_id(self) -> str:
        return self.client_code


class Tenant(AccountColumnsMixin, Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    tenant_code = Column(String(32), nullable=False, unique=True, index=True)

    @property
    def account_id(self) -> str:
        return self.tenant_code
