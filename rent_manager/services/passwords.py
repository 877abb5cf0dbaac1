from __future__ import annotations

import hashlib
import hmac
import logging

from passlib.context import CryptContext

from rent_manager.core.config import PASSWORD_BCRYPT_ROUNDS

logger = logging.getLogger(__name__)

# pbkdf2_sha256 hashes from older imports still verify and get upgraded on next login.
_pwd_context = CryptContext(
    schemes=["bcrypt", "pbkdf2_sha256"],
    deprecated="auto",
    bcrypt__rounds=PASSWORD_BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return _pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        logger.warning("[PASSWORDS] unrecognized hash format")
        return False


def needs_rehash(password_hash: str) -> bool:
    try:
        return _pwd_context.needs_update(password_hash)
    except (ValueError, TypeError):
        return False


def looks_hashed(value: str) -> bool:
    return _pwd_context.identify(value) is not None


def normalize_secret_answer(answer: str) -> str:
    return " ".join((answer or "").split()).lower()


def hash_secret_answer(answer: str) -> str:
    return _pwd_context.hash(normalize_secret_answer(answer))


def verify_secret_answer(answer: str, answer_hash: str | None) -> bool:
    return verify_password(normalize_secret_answer(answer), answer_hash)


def fingerprint(value: str) -> str:
    """Short non-reversible marker of a stored hash, safe to keep in session state."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def constant_time_equals(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
