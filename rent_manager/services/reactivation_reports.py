from __future__ import annotations

import math
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from rent_manager.core.errors import NotFoundError
from rent_manager.models.enums import ReactivationStatus, UserType
from rent_manager.models.reactivation_request import AccountReactivationRequest
from rent_manager.services.accounts import AdminRepository, get_account_repository

MAX_PAGE_SIZE = 100
PENDING_AGE_GROUPS = ("Today", "Yesterday", "This Week", "This Month", "Older")

_STATUS_ORDER = case(
    (AccountReactivationRequest.status == ReactivationStatus.PENDING, 1),
    (AccountReactivationRequest.status == ReactivationStatus.APPROVED, 2),
    (AccountReactivationRequest.status == ReactivationStatus.REJECTED, 3),
    (AccountReactivationRequest.status == ReactivationStatus.EXPIRED, 4),
    else_=5,
)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_request(
    reactivation: AccountReactivationRequest,
    account: Any = None,
    reviewer: Any = None,
) -> dict[str, Any]:
    return {
        "request_id": reactivation.request_id,
        "user_type": reactivation.user_type.value,
        "user_id": reactivation.user_id,
        "email": reactivation.email,
        "request_reason": reactivation.request_reason,
        "status": reactivation.status.value,
        "reviewed_by": reactivation.reviewed_by,
        "reviewed_by_name": reviewer.full_name if reviewer is not None else None,
        "review_notes": reactivation.review_notes,
        "rejection_reason": reactivation.rejection_reason,
        "review_timestamp": _iso(reactivation.review_timestamp),
        "request_ip": reactivation.request_ip,
        "created_at": _iso(reactivation.created_at),
        "user_full_name": account.full_name if account is not None else None,
        "phone": account.phone if account is not None else None,
        "current_account_status": account.status.value if account is not None else None,
    }


def _enrich(db: Session, rows: list[AccountReactivationRequest]) -> list[dict[str, Any]]:
    accounts: dict[tuple[UserType, str], Any] = {}
    ids_by_type: dict[UserType, set[str]] = {}
    for row in rows:
        ids_by_type.setdefault(row.user_type, set()).add(row.user_id)
    for user_type, ids in ids_by_type.items():
        for account_id, account in get_account_repository(db, user_type).get_many(ids).items():
            accounts[(user_type, account_id)] = account

    reviewers = AdminRepository(db).get_many(row.reviewed_by for row in rows if row.reviewed_by)
    return [
        serialize_request(row, accounts.get((row.user_type, row.user_id)), reviewers.get(row.reviewed_by or ""))
        for row in rows
    ]


def status_counts(db: Session) -> dict[str, int]:
    counts = {status.value: 0 for status in ReactivationStatus}
    rows = (
        db.query(AccountReactivationRequest.status, func.count(AccountReactivationRequest.id))
        .group_by(AccountReactivationRequest.status)
        .all()
    )
    for status, total in rows:
        counts[status.value] = total
    counts["total"] = sum(counts[status.value] for status in ReactivationStatus)
    return counts


def list_requests(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    user_type: Optional[UserType] = None,
    status: Optional[ReactivationStatus] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict[str, Any]:
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))

    query = db.query(AccountReactivationRequest)
    if user_type is not None:
        query = query.filter(AccountReactivationRequest.user_type == user_type)
    if status is not None:
        query = query.filter(AccountReactivationRequest.status == status)
    term = (search or "").strip()
    if term:
        pattern = f"%{term.lower()}%"
        query = query.filter(
            or_(
                func.lower(AccountReactivationRequest.email).like(pattern),
                func.lower(AccountReactivationRequest.user_id).like(pattern),
            )
        )
    if date_from is not None:
        query = query.filter(AccountReactivationRequest.created_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        query = query.filter(
            AccountReactivationRequest.created_at < datetime.combine(date_to + timedelta(days=1), time.min)
        )

    total = query.count()
    rows = (
        query.order_by(_STATUS_ORDER, AccountReactivationRequest.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "requests": _enrich(db, rows),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
        "stats": status_counts(db),
    }


def get_request_details(db: Session, request_id: str) -> dict[str, Any]:
    row = (
        db.query(AccountReactivationRequest)
        .filter(AccountReactivationRequest.request_id == (request_id or "").strip().upper())
        .first()
    )
    if row is None:
        raise NotFoundError("Request not found")
    return _enrich(db, [row])[0]


def _age_group(created_at: datetime, today: date) -> str:
    created_on = created_at.date()
    if created_on == today:
        return "Today"
    if created_on == today - timedelta(days=1):
        return "Yesterday"
    if created_on > today - timedelta(days=7):
        return "This Week"
    if created_on > today - timedelta(days=30):
        return "This Month"
    return "Older"


def get_stats(db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or _now()
    today = now.date()
    start_of_today = datetime.combine(today, time.min)
    week_start = start_of_today - timedelta(days=6)

    today_count = (
        db.query(func.count(AccountReactivationRequest.id))
        .filter(AccountReactivationRequest.created_at >= start_of_today)
        .scalar()
    )

    recent = (
        db.query(AccountReactivationRequest.created_at)
        .filter(AccountReactivationRequest.created_at >= week_start)
        .all()
    )
    per_day = Counter(created_at.date() for (created_at,) in recent)
    days = [week_start.date() + timedelta(days=offset) for offset in range(7)]
    daily = [{"date": day.isoformat(), "count": per_day.get(day, 0)} for day in days]

    by_type = {user_type.value: 0 for user_type in UserType}
    for user_type, total in (
        db.query(AccountReactivationRequest.user_type, func.count(AccountReactivationRequest.id))
        .group_by(AccountReactivationRequest.user_type)
        .all()
    ):
        by_type[user_type.value] = total

    pending_ages = {group: 0 for group in PENDING_AGE_GROUPS}
    for (created_at,) in (
        db.query(AccountReactivationRequest.created_at)
        .filter(AccountReactivationRequest.status == ReactivationStatus.PENDING)
        .all()
    ):
        pending_ages[_age_group(created_at, today)] += 1

    return {
        "status_counts": status_counts(db),
        "today": today_count or 0,
        "daily": daily,
        "user_types": by_type,
        "pending_age_groups": pending_ages,
    }
