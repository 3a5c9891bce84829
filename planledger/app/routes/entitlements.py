"""API routes for maintaining entitlements."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from ..auth import Principal
from ..claims import ClaimsSyncOutcome
from ..entitlements import EntitlementRecord, EntitlementStatus
from ..errors import EngineError
from ..schemas.entitlements import (
    ChangePlanRequest,
    EntitlementListResponse,
    ExpireLapsedResponse,
    ExtendEntitlementRequest,
)
from ..services.engine import get_claims_synchronizer, get_entitlement_store
from .dependencies import render_sync_outcome, require_operator


router = APIRouter(prefix="/api/admin/entitlements", tags=["entitlements"])


@router.get("", response_model=EntitlementListResponse)
def list_entitlements(
    status_filter: Optional[EntitlementStatus] = Query(None, alias="status"),
    subject_id: Optional[str] = Query(None, alias="userId"),
    *,
    operator: Principal = Depends(require_operator),
) -> EntitlementListResponse:
    records = get_entitlement_store().list(status=status_filter, subject_id=subject_id)
    return EntitlementListResponse(entitlements=list(records))


@router.post("/expire-lapsed", response_model=ExpireLapsedResponse)
def expire_lapsed(*, operator: Principal = Depends(require_operator)) -> ExpireLapsedResponse:
    return ExpireLapsedResponse.from_records(get_entitlement_store().expire_lapsed())


@router.post("/{entitlement_id}/extend", response_model=EntitlementRecord)
def extend_entitlement(
    entitlement_id: str,
    payload: ExtendEntitlementRequest,
    *,
    operator: Principal = Depends(require_operator),
) -> EntitlementRecord:
    try:
        return get_entitlement_store().extend(entitlement_id, payload.expiry_date)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/{entitlement_id}/change-plan", response_model=EntitlementRecord)
def change_plan(
    entitlement_id: str,
    payload: ChangePlanRequest,
    *,
    operator: Principal = Depends(require_operator),
) -> EntitlementRecord:
    try:
        return get_entitlement_store().change_plan(entitlement_id, payload.plan_name)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/{entitlement_id}/cancel", response_model=EntitlementRecord)
def cancel_entitlement(
    entitlement_id: str,
    *,
    operator: Principal = Depends(require_operator),
) -> EntitlementRecord:
    try:
        return get_entitlement_store().cancel(entitlement_id)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/{entitlement_id}/sync-claims", response_model=ClaimsSyncOutcome)
def sync_claims(
    entitlement_id: str,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> ClaimsSyncOutcome:
    try:
        record = get_entitlement_store().get(entitlement_id)
        outcome = get_claims_synchronizer().sync_entitlement(operator.credential, record)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return render_sync_outcome(outcome, response)
