from __future__ import annotations

from passlib.hash import pbkdf2_sha256

from rent_manager.services.passwords import (
    constant_time_equals,
    hash_password,
    hash_secret_answer,
    looks_hashed,
    needs_rehash,
    verify_password,
    verify_secret_answer,
)
from rent_manager.services.validators import is_valid_email, password_policy_errors


def test_bcrypt_hash_round_trip():
    hashed = hash_password("Str0ng!Pass")

    assert hashed.startswith("$2b$")
    assert verify_password("Str0ng!Pass", hashed) is True
    assert verify_password("wrong", hashed) is False
    assert looks_hashed(hashed) is True
    assert looks_hashed("Str0ng!Pass") is False


def test_verify_tolerates_missing_or_garbage_hash():
    assert verify_password("anything", None) is False
    assert verify_password("anything", "not-a-hash") is False


def test_legacy_pbkdf2_hash_verifies_and_needs_rehash():
    legacy = pbkdf2_sha256.hash("Str0ng!Pass")

    assert verify_password("Str0ng!Pass", legacy) is True
    assert needs_rehash(legacy) is True
    assert needs_rehash(hash_password("Str0ng!Pass")) is False


def test_secret_answer_normalization():
    stored = hash_secret_answer("Blue Whale")

    assert verify_secret_answer("blue whale", stored) is True
    assert verify_secret_answer("  BLUE\tWHALE ", stored) is True
    assert verify_secret_answer("red whale", stored) is False


def test_constant_time_equals():
    assert constant_time_equals("ADM001", "ADM001") is True
    assert constant_time_equals("ADM001", "ADM002") is False


def test_email_validation():
    assert is_valid_email("someone@example.com") is True
    assert is_valid_email("someone@") is False
    assert is_valid_email("") is False


def test_password_policy():
    assert password_policy_errors("Str0ng!Pass") == []
    assert "Password cannot contain spaces" in password_policy_errors("Str0ng! Pass")
    assert "Password must contain at least one special character" in password_policy_errors("Str0ngPass")
    assert "Password is too common. Please choose a stronger password" in password_policy_errors("password")
