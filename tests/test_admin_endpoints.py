from __future__ import annotations

import pytest

from rent_manager.models.account import Admin
from rent_manager.models.enums import AccountStatus
from rent_manager.models.login_attempt import LoginAttempt
from rent_manager.services.admin_bootstrap import (
    bootstrap_super_admin,
    generate_unique_id,
    reset_admin_password,
    upsert_admin,
)
from rent_manager.services.passwords import verify_password, verify_secret_answer

from tests.fixtures_data import NEW_PASSWORD, STRONG_PASSWORD


def _login_super_admin(client):
    response = client.post("/api/auth/login", json={"username": "super@example.com", "password": STRONG_PASSWORD})
    assert response.status_code == 200


def test_super_admin_unlocks_locked_account(db, client, make_admin, super_admin):
    make_admin()
    for _ in range(3):
        client.post("/api/auth/login", json={"username": "admin@example.com", "password": "wrong"})
    _login_super_admin(client)

    status = client.get("/api/admin/accounts/ADM001/lock")
    unlocked = client.post("/api/admin/accounts/ADM001/unlock", json={"reason": "called support"})
    again = client.post("/api/admin/accounts/ADM001/unlock")

    assert status.json()["data"]["locked"] is True
    assert status.json()["data"]["history"][0]["status"] == "locked"
    assert unlocked.json() == {"success": True, "message": "Account unlocked successfully", "unlocked": True}
    assert again.json()["unlocked"] is False
    db.expire_all()
    assert db.query(LoginAttempt).filter_by(unique_id="ADM001").first() is None


def test_unlock_unknown_account_is_404(client, super_admin):
    _login_super_admin(client)

    response = client.post("/api/admin/accounts/NOPE/unlock")

    assert response.status_code == 404
    assert response.json()["message"] == "Account not found"


def test_audit_listing_filters_by_action(client, make_admin, super_admin):
    make_admin()
    client.post("/api/auth/login", json={"username": "admin@example.com", "password": "wrong"})
    _login_super_admin(client)

    response = client.get("/api/admin/audit", params={"action": "login_failed"})

    assert response.status_code == 200
    entries = response.json()
    assert len(entries) == 1
    assert entries[0]["actor_id"] == "ADM001"
    assert entries[0]["actor_name"] == "Ada Lovelace"
    assert entries[0]["meta"] == {"attempts": 1}


def test_internal_metrics_require_super_admin(client, make_admin, super_admin):
    assert client.get("/internal/metrics").status_code == 401

    _login_super_admin(client)
    response = client.get("/internal/metrics")

    assert response.status_code == 200
    assert response.json()["endpoints"]["POST /api/auth/login"]["total_requests"] >= 1


def test_upsert_admin_creates_then_updates(db):
    admin, created = upsert_admin(
        db,
        email="Owner@Example.com",
        firstname="Olga",
        role="Super Admin",
        password=STRONG_PASSWORD,
        secret_answer="Green",
    )
    assert created is True
    assert admin.email == "owner@example.com"
    assert admin.unique_id.startswith("ADM")
    assert verify_secret_answer("green", admin.secret_answer_hash)

    admin.status = AccountStatus.INACTIVE
    db.commit()
    updated, created_again = upsert_admin(db, email="owner@example.com", firstname="Olga", lastname="K")

    assert created_again is False
    assert updated.status == AccountStatus.ACTIVE
    assert updated.lastname == "K"
    assert verify_password(STRONG_PASSWORD, updated.password_hash)
    assert db.query(Admin).count() == 1


def test_upsert_admin_requires_password_for_new_account(db):
    with pytest.raises(ValueError):
        upsert_admin(db, email="new@example.com", firstname="New")


def test_generated_unique_ids_differ():
    assert generate_unique_id() != generate_unique_id()


def test_bootstrap_creates_super_admin_once(db):
    assert bootstrap_super_admin(db, email="boot@example.com", password="") is None

    created = bootstrap_super_admin(db, email="boot@example.com", password=STRONG_PASSWORD)

    assert created is not None
    assert created.role == "Super Admin"
    assert verify_password(STRONG_PASSWORD, created.password_hash)
    assert bootstrap_super_admin(db, email="BOOT@example.com", password=NEW_PASSWORD) is None
    assert db.query(Admin).filter(Admin.email == "boot@example.com").count() == 1


def test_reset_admin_password_replaces_hash(db, make_admin):
    admin = make_admin()

    assert reset_admin_password(db, email="missing@example.com", password=NEW_PASSWORD) is False
    assert reset_admin_password(db, email=admin.email, password=NEW_PASSWORD) is True

    db.refresh(admin)
    assert verify_password(NEW_PASSWORD, admin.password_hash)
