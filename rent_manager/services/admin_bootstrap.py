from __future__ import annotations

import logging
import secrets
from datetime import datetime

from sqlalchemy import func, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from rent_manager.core.config import (
    DEV_ADMIN_EMAIL,
    DEV_ADMIN_FIRSTNAME,
    DEV_ADMIN_LASTNAME,
    DEV_ADMIN_PASSWORD,
    DEV_ADMIN_SECRET_ANSWER,
)
from rent_manager.models.account import Admin
from rent_manager.models.enums import AccountStatus
from rent_manager.services.accounts import SUPER_ADMIN_ROLE, normalize_email
from rent_manager.services.passwords import hash_password, hash_secret_answer, looks_hashed

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[BOOTSTRAP]"


def ensure_admins_table(engine: Engine) -> None:
    inspector = inspect(engine)
    if not inspector.has_table("admins"):
        raise RuntimeError("Table admins not found. Run `alembic upgrade head` first.")


def generate_unique_id() -> str:
    return f"ADM{secrets.token_hex(4).upper()}"


def _resolve_password_hash(password: str) -> str:
    return password if looks_hashed(password) else hash_password(password)


def upsert_admin(
    db: Session,
    *,
    email: str,
    firstname: str,
    lastname: str = "",
    role: str = "Admin",
    password: str | None = None,
    secret_answer: str | None = None,
    unique_id: str | None = None,
) -> tuple[Admin, bool]:
    """Create or refresh an administrator, matched by email.

    An existing account is reactivated and unblocked; its password and secret
    answer only change when new values are given.
    """
    email = normalize_email(email)
    existing = db.query(Admin).filter(func.lower(Admin.email) == email).first()
    if existing:
        existing.firstname = firstname
        existing.lastname = lastname
        existing.role = role
        existing.status = AccountStatus.ACTIVE
        existing.block_id = 0
        if password:
            existing.password_hash = _resolve_password_hash(password)
        if secret_answer:
            existing.secret_answer_hash = hash_secret_answer(secret_answer)
        existing.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("Password is required to create a new admin.")

    admin = Admin(
        unique_id=unique_id or generate_unique_id(),
        email=email,
        firstname=firstname,
        lastname=lastname,
        role=role,
        password_hash=_resolve_password_hash(password),
        secret_answer_hash=hash_secret_answer(secret_answer) if secret_answer else None,
        status=AccountStatus.ACTIVE,
        block_id=0,
        created_at=datetime.utcnow(),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, True


def _find_admin(db: Session, email: str) -> Admin | None:
    return db.query(Admin).filter(func.lower(Admin.email) == normalize_email(email)).first()


def bootstrap_super_admin(db: Session, *, email: str = DEV_ADMIN_EMAIL, password: str = DEV_ADMIN_PASSWORD) -> Admin | None:
    """Create the first Super Admin from the ``DEV_ADMIN_*`` settings.

    Does nothing without a password or when the account already exists.
    """
    if not password:
        logger.warning("%s skipped: configure DEV_ADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return None
    existing = _find_admin(db, email)
    if existing is not None:
        logger.info("%s exists unique_id=%s", BOOTSTRAP_PREFIX, existing.unique_id)
        return None

    admin, _ = upsert_admin(
        db,
        email=email,
        firstname=DEV_ADMIN_FIRSTNAME,
        lastname=DEV_ADMIN_LASTNAME,
        role=SUPER_ADMIN_ROLE,
        password=password,
        secret_answer=DEV_ADMIN_SECRET_ANSWER or None,
    )
    logger.info("%s created unique_id=%s email=%s", BOOTSTRAP_PREFIX, admin.unique_id, admin.email)
    return admin


def reset_admin_password(db: Session, *, email: str = DEV_ADMIN_EMAIL, password: str = DEV_ADMIN_PASSWORD) -> bool:
    if not password:
        logger.info("%s reset requested but DEV_ADMIN_PASSWORD missing", BOOTSTRAP_PREFIX)
        return False
    admin = _find_admin(db, email)
    if admin is None:
        logger.error("%s admin not found for reset email=%s", BOOTSTRAP_PREFIX, email)
        return False
    admin.password_hash = hash_password(password)
    admin.updated_at = datetime.utcnow()
    db.commit()
    logger.info("%s password reset unique_id=%s", BOOTSTRAP_PREFIX, admin.unique_id)
    return True
