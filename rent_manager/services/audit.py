from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from rent_manager.core.request_context import get_client_ip
from rent_manager.models.audit_log import AuditLog

SYSTEM_ACTOR = "0"


def log_action(
    db: Session,
    *,
    actor_id: str | None,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    entry = AuditLog(
        actor_id=str(actor_id) if actor_id else SYSTEM_ACTOR,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta_json=json.dumps(meta, default=str) if meta else None,
        ip_address=get_client_ip(),
    )
    db.add(entry)
    return entry
