from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from rent_manager.core.config import DATABASE_URL, SESSION_SECRET

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"
STARTUP_PREFIX = "[STARTUP]"

REQUIRED_TABLES = (
    "admins",
    "login_attempts",
    "lock_history",
    "active_sessions",
    "password_reset_attempts",
    "otp_requests",
    "account_reactivation_requests",
    "audit_log",
)


def _current_env() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "dev")).strip().lower()


def _alembic_config(alembic_config_path: Path) -> Config:
    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")
    return Config(str(alembic_config_path))


def validate_database_environment() -> None:
    if _current_env() in {"prod", "production"} and DATABASE_URL.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def validate_session_secret(secret: str | None = None) -> None:
    value = SESSION_SECRET if secret is None else secret
    if value:
        return
    if _current_env() in {"dev", "development", "local", "test"}:
        logger.warning("%s SESSION_SECRET is empty; logins will fail until it is set", STARTUP_PREFIX)
        return
    logger.critical("%s SESSION_SECRET missing", STARTUP_PREFIX)
    raise RuntimeError("SESSION_SECRET must be configured outside development")


def apply_migrations(*, alembic_config_path: Path) -> None:
    """Upgrade the database to head when AUTO_APPLY_MIGRATIONS (or production) asks for it."""
    auto_apply_raw = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower()
    if auto_apply_raw in {"0", "false", "no", "off"}:
        logger.info("%s auto migration disabled by AUTO_APPLY_MIGRATIONS", MIGRATIONS_PREFIX)
        return

    env = _current_env()
    should_auto_apply = auto_apply_raw in {"1", "true", "yes", "on"} or (
        auto_apply_raw == "" and env in {"prod", "production"}
    )
    if not should_auto_apply:
        logger.info("%s auto migration skipped env=%s", MIGRATIONS_PREFIX, env)
        return

    alembic_cfg = _alembic_config(alembic_config_path)
    alembic_cfg.attributes["configure_logger"] = False
    logger.info("%s applying migrations to head", MIGRATIONS_PREFIX)
    try:
        command.upgrade(alembic_cfg, "head")
    except Exception as exc:
        logger.critical("%s migration apply failed", MIGRATIONS_PREFIX, exc_info=True)
        raise RuntimeError("Automatic migration failed") from exc
    logger.info("%s migrations applied", MIGRATIONS_PREFIX)


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    if _current_env() == "test":
        logger.info("%s skipped migration check in test environment", MIGRATIONS_PREFIX)
        return

    script_directory = ScriptDirectory.from_config(_alembic_config(alembic_config_path))
    expected_heads = set(script_directory.get_heads())

    with engine.connect() as connection:
        if "alembic_version" not in inspect(connection).get_table_names():
            logger.critical("%s alembic_version table missing", MIGRATIONS_PREFIX)
            raise RuntimeError("Database has no migration state")
        current_rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()

    current_heads = {row[0] for row in current_rows if row and row[0]}
    if current_heads != expected_heads:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(current_heads),
            sorted(expected_heads),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified", MIGRATIONS_PREFIX)


def ensure_required_tables(engine: Engine, tables: Iterable[str] = REQUIRED_TABLES) -> None:
    inspector = inspect(engine)
    missing = sorted(table for table in tables if not inspector.has_table(table))
    if missing:
        logger.error("%s tables missing / migrations not applied missing=%s", STARTUP_PREFIX, ",".join(missing))
        raise RuntimeError("tables missing / migrations not applied")
