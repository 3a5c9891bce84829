"""API routes for reading and writing external authorization claims."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..auth import Principal
from ..claims import ClaimsLookup, ClaimsSyncOutcome
from ..errors import EngineError
from ..schemas.claims import ClaimsDeleteRequest, ClaimsListResponse, ClaimsWriteRequest
from ..services.engine import get_claims_synchronizer
from .dependencies import render_sync_outcome, require_operator


router = APIRouter(prefix="/api/admin/claims", tags=["claims"])


@router.get("", response_model=ClaimsListResponse)
def list_claims(
    search: Optional[str] = Query(None),
    *,
    operator: Principal = Depends(require_operator),
) -> ClaimsListResponse:
    try:
        users = get_claims_synchronizer().list_claims(operator.credential, search=search)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return ClaimsListResponse(users=list(users))


@router.get("/search", response_model=ClaimsLookup)
def search_claims(
    user_id: Optional[str] = Query(None, alias="userId"),
    email: Optional[str] = Query(None),
    *,
    operator: Principal = Depends(require_operator),
) -> ClaimsLookup:
    if bool(user_id) == bool(email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Provide exactly one of userId or email")
    try:
        return get_claims_synchronizer().get_claims(operator.credential, user_id=user_id, email=email)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/{subject_id}", response_model=ClaimsSyncOutcome)
def set_claims(
    subject_id: str,
    payload: ClaimsWriteRequest,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> ClaimsSyncOutcome:
    try:
        outcome = get_claims_synchronizer().set(operator.credential, subject_id, payload.custom_claims)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return render_sync_outcome(outcome, response)


@router.put("/{subject_id}", response_model=ClaimsSyncOutcome)
def update_claims(
    subject_id: str,
    payload: ClaimsWriteRequest,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> ClaimsSyncOutcome:
    try:
        outcome = get_claims_synchronizer().update(operator.credential, subject_id, payload.custom_claims)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return render_sync_outcome(outcome, response)


@router.delete("/{subject_id}", response_model=ClaimsSyncOutcome)
def delete_claims(
    subject_id: str,
    payload: ClaimsDeleteRequest,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> ClaimsSyncOutcome:
    try:
        outcome = get_claims_synchronizer().delete(operator.credential, subject_id, payload.fields_to_delete)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return render_sync_outcome(outcome, response)
