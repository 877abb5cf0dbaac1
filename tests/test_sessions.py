from __future__ import annotations

from datetime import timedelta

from rent_manager.models.active_session import ActiveSession
from rent_manager.models.enums import SessionStatus
from rent_manager.services.sessions import (
    InMemorySessionStore,
    SessionManager,
    build_session_cookie_options,
    decode_session_cookie,
    encode_session_cookie,
)


def test_session_cookie_is_signed():
    token = encode_session_cookie("abc123")

    assert decode_session_cookie(token) == "abc123"
    assert decode_session_cookie(token + "tampered") is None
    assert decode_session_cookie("not-a-token") is None


def test_cookie_options_are_http_only_and_strict():
    options = build_session_cookie_options()

    assert options["httponly"] is True
    assert options["samesite"] == "strict"
    assert options["path"] == "/"
    assert options["secure"] is False


def test_create_session_persists_row_and_store_entry(db, make_admin):
    admin = make_admin()
    store = InMemorySessionStore()
    manager = SessionManager(db, store)

    context = manager.create_new_session(admin, ip_address="10.0.0.1", user_agent="pytest")
    db.commit()

    row = db.query(ActiveSession).filter_by(unique_id="ADM001").one()
    assert row.session_id == context.session_id
    assert row.status == SessionStatus.ACTIVE
    assert row.ip_address == "10.0.0.1"
    assert store.get(context.session_id)["unique_id"] == "ADM001"
    assert manager.load(context.session_id).role == "Admin"


def test_new_login_replaces_previous_session(db, make_admin):
    admin = make_admin()
    store = InMemorySessionStore()
    manager = SessionManager(db, store)

    first = manager.create_new_session(admin, ip_address=None, user_agent=None)
    db.commit()
    manager.destroy_existing_session(admin.unique_id)
    second = manager.create_new_session(admin, ip_address=None, user_agent=None)
    db.commit()

    assert db.query(ActiveSession).count() == 1
    assert manager.load(first.session_id) is None
    assert manager.load(second.session_id) is not None


def test_session_goes_idle_after_timeout(db, make_admin):
    manager = SessionManager(db, InMemorySessionStore())
    context = manager.create_new_session(make_admin(), ip_address=None, user_agent=None)

    assert manager.is_idle(context, context.last_activity + timedelta(seconds=1799)) is False
    assert manager.is_idle(context, context.last_activity + timedelta(seconds=1801)) is True
    assert manager.seconds_until_idle(context, context.last_activity + timedelta(seconds=600)) == 1200


def test_logout_marks_row_inactive(db, make_admin):
    manager = SessionManager(db, InMemorySessionStore())
    context = manager.create_new_session(make_admin(), ip_address=None, user_agent=None)
    db.commit()

    logged_out_at = manager.logout(context)
    db.commit()

    row = db.query(ActiveSession).filter_by(unique_id="ADM001").one()
    assert row.status == SessionStatus.INACTIVE
    assert row.logged_out_at == logged_out_at
    assert manager.load(context.session_id) is None


def test_store_entries_expire():
    store = InMemorySessionStore(ttl_seconds=0)
    store.set("sid", {"unique_id": "ADM001"})

    assert store.get("sid") is None
