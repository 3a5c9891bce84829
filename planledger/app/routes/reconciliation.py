"""API routes exposing the drift report."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import Principal
from ..errors import EngineError
from ..reconciliation import DriftReport
from ..services.engine import get_reconciliation_reader
from .dependencies import require_operator


router = APIRouter(prefix="/api/admin/reconciliation", tags=["reconciliation"])


@router.get("/drift", response_model=DriftReport)
def list_drift(*, operator: Principal = Depends(require_operator)) -> DriftReport:
    try:
        return get_reconciliation_reader().list_drift(operator.credential)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
