from __future__ import annotations

import re
from typing import Iterable, Mapping

from email_validator import EmailNotValidError, validate_email

from rent_manager.core.errors import ValidationError

PASSWORD_MIN_LENGTH = 8
COMMON_PASSWORDS = frozenset({"password", "12345678", "admin123", "welcome123"})
_SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>_\-]")


def is_valid_email(email: str | None) -> bool:
    if not email:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def require_fields(data: Mapping[str, object], fields: Iterable[str]) -> None:
    missing = [field for field in fields if not str(data.get(field) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def password_policy_errors(password: str) -> list[str]:
    errors: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character")
    if re.search(r"\s", password):
        errors.append("Password cannot contain spaces")
    if password.lower() in COMMON_PASSWORDS:
        errors.append("Password is too common. Please choose a stronger password")
    return errors


def ensure_password_policy(password: str) -> None:
    errors = password_policy_errors(password)
    if errors:
        raise ValidationError(
            "Password requirements not met: " + ". ".join(errors),
            extra={"errors": errors},
        )
