"""API routes for submitting, verifying and processing manual payments."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..auth import Principal
from ..errors import EngineError
from ..orchestration import ProcessPaymentResult
from ..payments import PaymentRecord, PaymentStatus
from ..schemas.payments import (
    PaymentListResponse,
    PaymentSubmitRequest,
    RejectPaymentRequest,
    VerificationResponse,
    VerifyPaymentRequest,
)
from ..services.engine import get_payment_ledger, get_payment_orchestrator, get_verification_gate
from .dependencies import require_operator, require_principal


router = APIRouter(prefix="/api/admin/payments", tags=["payments"])


def _render_verification(response_body: VerificationResponse, response: Response) -> VerificationResponse:
    if response_body.needs_attention:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return response_body


@router.post("", response_model=PaymentRecord, status_code=status.HTTP_201_CREATED)
def submit_payment(
    payload: PaymentSubmitRequest,
    *,
    current_user: Principal = Depends(require_principal),
) -> PaymentRecord:
    try:
        return get_payment_ledger().submit(payload.to_submission(current_user))
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.get("", response_model=PaymentListResponse)
def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    *,
    operator: Principal = Depends(require_operator),
) -> PaymentListResponse:
    payments = get_payment_ledger().list(status=status_filter)
    return PaymentListResponse(payments=list(payments))


@router.get("/{payment_id}", response_model=PaymentRecord)
def get_payment(
    payment_id: str,
    *,
    operator: Principal = Depends(require_operator),
) -> PaymentRecord:
    try:
        return get_payment_ledger().get(payment_id)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/{payment_id}/verify", response_model=VerificationResponse)
def verify_payment(
    payment_id: str,
    payload: VerifyPaymentRequest,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> VerificationResponse:
    try:
        outcome = get_verification_gate().verify(payment_id, operator, notes=payload.notes)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return _render_verification(VerificationResponse.from_outcome(outcome), response)


@router.post("/{payment_id}/reject", response_model=PaymentRecord)
def reject_payment(
    payment_id: str,
    payload: RejectPaymentRequest,
    *,
    operator: Principal = Depends(require_operator),
) -> PaymentRecord:
    try:
        return get_verification_gate().reject(payment_id, operator, payload.reason)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/{payment_id}/activate", response_model=VerificationResponse)
def replay_activation(
    payment_id: str,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> VerificationResponse:
    try:
        outcome = get_verification_gate().replay_activation(payment_id, operator)
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    return _render_verification(VerificationResponse.from_outcome(outcome), response)


@router.post("/{payment_id}/process", response_model=ProcessPaymentResult)
def process_payment(
    payment_id: str,
    response: Response,
    *,
    operator: Principal = Depends(require_operator),
) -> ProcessPaymentResult:
    try:
        payment = get_payment_ledger().get(payment_id)
        result = get_payment_orchestrator().process_payment(
            operator.credential,
            payment_id=payment.id,
            user_id=payment.user_id,
            plan_name=payment.plan_name,
        )
    except EngineError as exc:
        raise exc.to_http_exception() from exc
    if not result.is_complete:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return result
