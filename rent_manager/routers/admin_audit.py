from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from rent_manager.core.database import get_db
from rent_manager.deps import require_super_admin
from rent_manager.models.account import Admin
from rent_manager.models.audit_log import AuditLog
from rent_manager.services.sessions import SessionContext

router = APIRouter(prefix="/api/admin/audit", tags=["admin-audit"])


class AuditEntryRead(BaseModel):
    id: int
    actor_id: str
    actor_name: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[str]
    meta: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    created_at: datetime


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        cleaned = value.replace("Z", "+00:00")
        parsed = datetime.fromisoformat(cleaned)
        return parsed.replace(tzinfo=None)
    except ValueError:
        return None


@router.get("", response_model=List[AuditEntryRead])
def list_audit_entries(
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    actor_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(200, ge=1, le=500),
    _session: SessionContext = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    start_dt = _parse_datetime(from_date)
    end_dt = _parse_datetime(to_date)

    query = db.query(AuditLog, Admin).outerjoin(Admin, Admin.unique_id == AuditLog.actor_id)
    if start_dt:
        query = query.filter(AuditLog.created_at >= start_dt)
    if end_dt:
        query = query.filter(AuditLog.created_at <= end_dt)
    if actor_id:
        query = query.filter(AuditLog.actor_id == actor_id)
    if action:
        query = query.filter(AuditLog.action == action)

    rows = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    results: List[Dict[str, Any]] = []
    for entry, admin in rows:
        meta = None
        if entry.meta_json:
            try:
                meta = json.loads(entry.meta_json)
            except json.JSONDecodeError:
                meta = {"raw": entry.meta_json}
        results.append(
            {
                "id": entry.id,
                "actor_id": entry.actor_id,
                "actor_name": admin.full_name if admin else None,
                "action": entry.action,
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "meta": meta,
                "ip_address": entry.ip_address,
                "created_at": entry.created_at,
            }
        )
    return results
