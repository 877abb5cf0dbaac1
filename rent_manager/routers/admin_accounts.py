from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from rent_manager.core.database import get_db
from rent_manager.core.errors import NotFoundError
from rent_manager.deps import require_super_admin
from rent_manager.models.login_attempt import LockHistory
from rent_manager.services.accounts import AdminRepository
from rent_manager.services.audit import log_action
from rent_manager.services.lockout import check_lockout_status, unlock_account
from rent_manager.services.sessions import SessionContext

router = APIRouter(prefix="/api/admin/accounts", tags=["admin-accounts"])


class UnlockPayload(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


def _require_admin_account(db: Session, unique_id: str) -> None:
    if AdminRepository(db).get(unique_id) is None:
        raise NotFoundError("Account not found")


@router.get("/{unique_id}/lock")
def lock_status(
    unique_id: str,
    _session: SessionContext = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    _require_admin_account(db, unique_id)
    status = check_lockout_status(db, unique_id)
    history = (
        db.query(LockHistory)
        .filter(LockHistory.unique_id == unique_id)
        .order_by(LockHistory.id.desc())
        .limit(20)
        .all()
    )
    db.commit()
    return {
        "success": True,
        "data": {
            "locked": status.locked,
            "attempts": status.attempts,
            "locked_until": status.locked_until.isoformat() if status.locked_until else None,
            "time_remaining": status.time_remaining,
            "history": [
                {
                    "status": entry.status.value,
                    "locked_by": entry.locked_by,
                    "unlocked_by": entry.unlocked_by,
                    "lock_reason": entry.lock_reason,
                    "lock_method": entry.lock_method,
                    "unlock_method": entry.unlock_method,
                    "locked_at": entry.locked_at.isoformat() if entry.locked_at else None,
                    "unlocked_at": entry.unlocked_at.isoformat() if entry.unlocked_at else None,
                }
                for entry in history
            ],
        },
    }


@router.post("/{unique_id}/unlock")
def unlock(
    unique_id: str,
    payload: Optional[UnlockPayload] = None,
    session: SessionContext = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    _require_admin_account(db, unique_id)
    reason = payload.reason if payload else None
    was_locked = unlock_account(db, unique_id, unlocked_by=session.unique_id, reason=reason)
    if was_locked:
        log_action(
            db,
            actor_id=session.unique_id,
            action="account_unlocked",
            entity_type="admin",
            entity_id=unique_id,
            meta={"reason": reason},
        )
    db.commit()
    message = "Account unlocked successfully" if was_locked else "Account is not locked"
    return {"success": True, "message": message, "unlocked": was_locked}
