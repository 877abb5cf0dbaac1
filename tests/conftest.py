from __future__ import annotations

import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["PASSWORD_BCRYPT_ROUNDS"] = "4"
os.environ["EMAIL_BACKEND"] = "mock"
os.environ["CLIENT_RATE_LIMIT"] = "1000"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from rent_manager.core.database import Base, enable_sqlite_savepoints, get_db  # noqa: E402
from rent_manager.core.metrics import request_metrics  # noqa: E402
from rent_manager.mail.service import email_service  # noqa: E402
from rent_manager.models.account import Admin, Tenant  # noqa: E402
from rent_manager.models.enums import AccountStatus  # noqa: E402
from rent_manager.services.passwords import hash_password, hash_secret_answer  # noqa: E402
from rent_manager.services.sessions import session_store  # noqa: E402
import rent_manager.models  # noqa: E402,F401

from tests.fixtures_data import ADMIN, INACTIVE_TENANT, SECRET_ANSWER, STRONG_PASSWORD, SUPER_ADMIN  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _reset_process_state():
    session_store.clear()
    email_service.mock_sender.clear()
    request_metrics.reset()
    yield
    session_store.clear()
    email_service.mock_sender.clear()


@pytest.fixture()
def outbox():
    return email_service.mock_sender.outbox


@pytest.fixture()
def make_admin(db):
    def _make_admin(**overrides) -> Admin:
        data = {**ADMIN, **overrides}
        password = data.pop("password", STRONG_PASSWORD)
        secret_answer = data.pop("secret_answer", SECRET_ANSWER)
        admin = Admin(
            password_hash=hash_password(password),
            secret_answer_hash=hash_secret_answer(secret_answer) if secret_answer else None,
            status=data.pop("status", AccountStatus.ACTIVE),
            block_id=data.pop("block_id", 0),
            **data,
        )
        db.add(admin)
        db.commit()
        return admin

    return _make_admin


@pytest.fixture()
def super_admin(make_admin) -> Admin:
    return make_admin(**SUPER_ADMIN)


@pytest.fixture()
def inactive_tenant(db) -> Tenant:
    tenant = Tenant(
        password_hash=hash_password(STRONG_PASSWORD),
        status=AccountStatus.INACTIVE,
        **INACTIVE_TENANT,
    )
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture()
def client(db, monkeypatch):
    from rent_manager import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)
    main.app.dependency_overrides[get_db] = lambda: db
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture()
def login(client):
    def _login(username: str, password: str = STRONG_PASSWORD):
        return client.post("/api/auth/login", json={"username": username, "password": password})

    return _login
