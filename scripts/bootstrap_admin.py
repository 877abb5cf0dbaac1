#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from rent_manager.core.config import DEV_BOOTSTRAP_ALLOW, IS_DEV  # noqa: E402
from rent_manager.core.database import SessionLocal, engine  # noqa: E402
from rent_manager.services.admin_bootstrap import (  # noqa: E402
    ensure_admins_table,
    upsert_admin,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update a Rent Manager administrator.")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", help="Admin password (plain or already hashed)")
    parser.add_argument("--firstname", required=True, help="First name")
    parser.add_argument("--lastname", default="", help="Last name")
    parser.add_argument("--role", default="Admin", help="Role, e.g. 'Super Admin'")
    parser.add_argument("--secret-answer", dest="secret_answer", help="Answer used for password resets")
    parser.add_argument("--unique-id", dest="unique_id", help="Explicit unique id for a new admin")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run without DEV_BOOTSTRAP_ALLOW=1",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not DEV_BOOTSTRAP_ALLOW and not args.force:
        print("Admin bootstrap disabled. Set DEV_BOOTSTRAP_ALLOW=1 or pass --force.")
        return 1

    try:
        ensure_admins_table(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        admin, created = upsert_admin(
            db,
            email=args.email,
            firstname=args.firstname,
            lastname=args.lastname,
            role=args.role,
            password=args.password,
            secret_answer=args.secret_answer,
            unique_id=args.unique_id,
        )
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Admin {action}: unique_id={admin.unique_id} email={admin.email} role={admin.role}")
    if IS_DEV:
        password_info = args.password if args.password else "<unchanged>"
        print(f"DEV summary -> Email: {admin.email} | Password: {password_info}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
