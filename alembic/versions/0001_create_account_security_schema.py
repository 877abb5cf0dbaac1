from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_account_security"
down_revision = None
branch_labels = None
depends_on = None

ACCOUNT_TABLES = (
    ("admins", "unique_id"),
    ("agents", "agent_code"),
    ("clients", "client_code"),
    ("tenants", "tenant_code"),
)


def _account_columns() -> list[sa.Column]:
    return [
        sa.Column("firstname", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("lastname", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("secret_answer_hash", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=1), nullable=False, server_default="1"),
        sa.Column("block_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _has_index(inspector, table_name: str, index_name: str) -> bool:
    return any(idx["name"] == index_name for idx in inspector.get_indexes(table_name))


def _create_index(table_name: str, columns: list[str], *, unique: bool = False, name: str | None = None) -> None:
    index_name = name or f"ix_{table_name}_{'_'.join(columns)}"
    if not _has_index(inspect(op.get_bind()), table_name, index_name):
        op.create_index(index_name, table_name, columns, unique=unique)


def upgrade() -> None:
    inspector = inspect(op.get_bind())
    existing = set(inspector.get_table_names())

    for table_name, code_column in ACCOUNT_TABLES:
        if table_name in existing:
            continue
        extra: list[sa.Column] = []
        if table_name == "admins":
            extra = [
                sa.Column("role", sa.String(length=32), nullable=False, server_default="Admin"),
                sa.Column("restriction_id", sa.Integer(), nullable=False, server_default="0"),
                sa.Column("last_updated_by", sa.String(length=32), nullable=True),
            ]
        op.create_table(
            table_name,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(code_column, sa.String(length=32), nullable=False),
            *_account_columns(),
            *extra,
        )
        _create_index(table_name, [code_column], unique=True)
        _create_index(table_name, ["email"])
        _create_index(table_name, ["phone"])

    if "login_attempts" not in existing:
        op.create_table(
            "login_attempts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("unique_id", sa.String(length=32), nullable=False),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_attempt", sa.DateTime(), nullable=True),
            sa.Column("locked_until", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        _create_index("login_attempts", ["unique_id"], unique=True)

    if "lock_history" not in existing:
        op.create_table(
            "lock_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("unique_id", sa.String(length=32), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("locked_by", sa.String(length=32), nullable=True),
            sa.Column("unlocked_by", sa.String(length=32), nullable=True),
            sa.Column("lock_reason", sa.String(length=255), nullable=True),
            sa.Column("lock_method", sa.String(length=64), nullable=True),
            sa.Column("unlock_method", sa.String(length=64), nullable=True),
            sa.Column("locked_at", sa.DateTime(), nullable=True),
            sa.Column("unlocked_at", sa.DateTime(), nullable=True),
        )
        _create_index("lock_history", ["unique_id"])

    if "active_sessions" not in existing:
        op.create_table(
            "active_sessions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("unique_id", sa.String(length=32), nullable=False),
            sa.Column("session_id", sa.String(length=128), nullable=False),
            sa.Column("login_time", sa.DateTime(), nullable=False),
            sa.Column("last_activity", sa.DateTime(), nullable=True),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("user_agent", sa.String(length=512), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="Active"),
            sa.Column("logged_out_at", sa.DateTime(), nullable=True),
        )
        _create_index("active_sessions", ["unique_id"], unique=True)
        _create_index("active_sessions", ["session_id"])

    if "password_reset_attempts" not in existing:
        op.create_table(
            "password_reset_attempts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("reset_attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_attempt_date", sa.DateTime(), nullable=True),
        )
        _create_index("password_reset_attempts", ["email"], unique=True)

    if "otp_requests" not in existing:
        op.create_table(
            "otp_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_type", sa.String(length=16), nullable=False),
            sa.Column("user_id", sa.String(length=32), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("otp", sa.String(length=255), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("usage_description", sa.String(length=255), nullable=True),
        )
        _create_index("otp_requests", ["user_type", "user_id", "status"], name="ix_otp_requests_owner_status")

    if "account_reactivation_requests" not in existing:
        op.create_table(
            "account_reactivation_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("request_id", sa.String(length=16), nullable=False),
            sa.Column("user_type", sa.String(length=16), nullable=False),
            sa.Column("user_id", sa.String(length=32), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("otp_request_id", sa.Integer(), sa.ForeignKey("otp_requests.id"), nullable=True),
            sa.Column("request_reason", sa.Text(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("reviewed_by", sa.String(length=32), nullable=True),
            sa.Column("review_notes", sa.Text(), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("review_timestamp", sa.DateTime(), nullable=True),
            sa.Column("request_ip", sa.String(length=64), nullable=True),
            sa.Column("request_user_agent", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        _create_index("account_reactivation_requests", ["request_id"], unique=True)
        _create_index(
            "account_reactivation_requests",
            ["user_type", "user_id", "status"],
            name="ix_reactivation_owner_status",
        )

    if "audit_log" not in existing:
        op.create_table(
            "audit_log",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("actor_id", sa.String(length=32), nullable=False),
            sa.Column("action", sa.String(length=64), nullable=False),
            sa.Column("entity_type", sa.String(length=64), nullable=True),
            sa.Column("entity_id", sa.String(length=64), nullable=True),
            sa.Column("meta_json", sa.Text(), nullable=True),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        _create_index("audit_log", ["actor_id"])


def downgrade() -> None:
    for table_name in (
        "audit_log",
        "account_reactivation_requests",
        "otp_requests",
        "password_reset_attempts",
        "active_sessions",
        "lock_history",
        "login_attempts",
        "tenants",
        "clients",
        "agents",
        "admins",
    ):
        op.drop_table(table_name)
