from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import InstrumentedAttribute

from rent_manager.core.errors import ValidationError
from rent_manager.models.account import Admin, Agent, Client, Tenant
from rent_manager.models.enums import AccountStatus, UserType

Account = Union[Admin, Agent, Client, Tenant]

SUPER_ADMIN_ROLE = "Super Admin"


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class AccountRepository(ABC):
    """Account lookups and status flips for one user type."""

    user_type: UserType
    model: type

    def __init__(self, db: Session) -> None:
        self.db = db

    @property
    @abstractmethod
    def identifier(self) -> InstrumentedAttribute:
        """Natural key column of this account table."""

    def find_by_email(self, email: str) -> Optional[Account]:
        return (
            self.db.query(self.model)
            .filter(func.lower(self.model.email) == normalize_email(email))
            .first()
        )

    def find_inactive_by_email(self, email: str) -> Optional[Account]:
        return (
            self.db.query(self.model)
            .filter(
                func.lower(self.model.email) == normalize_email(email),
                self.model.status == AccountStatus.INACTIVE,
            )
            .first()
        )

    def get(self, account_id: str) -> Optional[Account]:
        return self.db.query(self.model).filter(self.identifier == account_id).first()

    def lock(self, account_id: str) -> Optional[Account]:
        return self.db.query(self.model).filter(self.identifier == account_id).with_for_update().first()

    def get_many(self, account_ids: Iterable[str]) -> dict[str, Account]:
        ids = {account_id for account_id in account_ids if account_id}
        if not ids:
            return {}
        rows = self.db.query(self.model).filter(self.identifier.in_(ids)).all()
        return {row.account_id: row for row in rows}

    def activate(self, account_id: str, email: str) -> int:
        """Flip status to active, matching id and email together. Returns affected rows."""
        return (
            self.db.query(self.model)
            .filter(self.identifier == account_id, func.lower(self.model.email) == normalize_email(email))
            .update(
                {self.model.status: AccountStatus.ACTIVE, self.model.updated_at: _now()},
                synchronize_session=False,
            )
        )


class AdminRepository(AccountRepository):
    user_type = UserType.ADMIN
    model = Admin

    @property
    def identifier(self) -> InstrumentedAttribute:
        return Admin.unique_id

    def find_by_login(self, username: str) -> Optional[Admin]:
        value = (username or "").strip()
        return (
            self.db.query(Admin)
            .filter(or_(func.lower(Admin.email) == value.lower(), Admin.phone == value))
            .first()
        )

    def active_super_admins(self) -> list[Admin]:
        return (
            self.db.query(Admin)
            .filter(Admin.role == SUPER_ADMIN_ROLE, Admin.status == AccountStatus.ACTIVE)
            .all()
        )


class AgentRepository(AccountRepository):
    user_type = UserType.AGENT
    model = Agent

    @property
    def identifier(self) -> InstrumentedAttribute:
        return Agent.agent_code


class ClientRepository(AccountRepository):
    user_type = UserType.CLIENT
    model = Client

    @property
    def identifier(self) -> InstrumentedAttribute:
        return Client.client_code


class TenantRepository(AccountRepository):
    user_type = UserType.TENANT
    model = Tenant

    @property
    def identifier(self) -> InstrumentedAttribute:
        return Tenant.tenant_code


_REPOSITORIES: dict[UserType, type[AccountRepository]] = {
    UserType.ADMIN: AdminRepository,
    UserType.AGENT: AgentRepository,
    UserType.CLIENT: ClientRepository,
    UserType.TENANT: TenantRepository,
}


def parse_user_type(raw: str | UserType | None, *, message: str = "Invalid request. Please try again.") -> UserType:
    if isinstance(raw, UserType):
        return raw
    try:
        return UserType((raw or "").strip().lower())
    except ValueError as exc:
        raise ValidationError(message) from exc


def get_account_repository(db: Session, user_type: UserType) -> AccountRepository:
    return _REPOSITORIES[user_type](db)
