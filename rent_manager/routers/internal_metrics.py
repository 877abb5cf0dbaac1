from __future__ import annotations

from fastapi import APIRouter, Depends

from rent_manager.core.metrics import request_metrics
from rent_manager.deps import require_super_admin
from rent_manager.services.sessions import SessionContext

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def endpoint_metrics(_session: SessionContext = Depends(require_super_admin)):
    return {"endpoints": request_metrics.snapshot()}
