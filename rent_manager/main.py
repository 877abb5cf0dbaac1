import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rent_manager.core.config import CORS_ORIGINS, DATABASE_URL, RESET_ADMIN_PASSWORD
from rent_manager.core.database import Base, SessionLocal, engine
from rent_manager.core.error_handlers import register_exception_handlers
from rent_manager.core.logging_setup import configure_logging
from rent_manager.core.startup_checks import (
    apply_migrations,
    ensure_migrations_applied,
    ensure_required_tables,
    validate_database_environment,
    validate_session_secret,
)
from rent_manager.middleware.client_rate_limit import ClientRateLimitMiddleware
from rent_manager.middleware.observability import ObservabilityMiddleware
from rent_manager.middleware.session_cookie import SessionCookieMiddleware
import rent_manager.models  # registers every table on Base.metadata before create_all

from rent_manager.services.admin_bootstrap import bootstrap_super_admin, reset_admin_password
from rent_manager.routers.auth import router as auth_router
from rent_manager.routers.otp import router as otp_router
from rent_manager.routers.reactivation import router as reactivation_router
from rent_manager.routers.admin_accounts import router as admin_accounts_router
from rent_manager.routers.admin_audit import router as admin_audit_router
from rent_manager.routers.internal_metrics import router as internal_metrics_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(Path(__file__).resolve().parents[1] / "alembic.ini")))


def _prepare_schema() -> None:
    # Local SQLite files get tables straight from the models; alembic still stamps them.
    if DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    apply_migrations(alembic_config_path=ALEMBIC_CONFIG_PATH)
    ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    ensure_required_tables(engine)


def _seed_admin() -> None:
    db = SessionLocal()
    try:
        if RESET_ADMIN_PASSWORD:
            reset_admin_password(db)
        bootstrap_super_admin(db)
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_session_secret()
        _prepare_schema()
        _seed_admin()
    except Exception:
        logger.exception("%s startup failed", STARTUP_PREFIX)
        raise
    logger.info("%s ready", STARTUP_PREFIX)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Rent Manager Account Security API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ClientRateLimitMiddleware)
app.add_middleware(SessionCookieMiddleware)
# Added last so it wraps everything, including rate-limited responses.
app.add_middleware(ObservabilityMiddleware)
register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(otp_router)
app.include_router(reactivation_router)
app.include_router(admin_accounts_router)
app.include_router(admin_audit_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
