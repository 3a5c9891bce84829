"""Verification gate: drives a payment through its state machine and follows through."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..auth import Principal
from ..claims.models import ClaimsSyncOutcome
from ..claims.synchronizer import ClaimsSynchronizer
from ..entitlements.models import EntitlementRecord
from ..entitlements.service import EntitlementStore
from ..errors import DuplicateEntitlement, EngineError, InvalidState, ValidationError
from ..invoices import InvoiceRequest, InvoiceSender
from ..payments.models import PaymentRecord, PaymentStatus
from ..payments.service import PaymentLedger, PaymentRepository


logger = logging.getLogger("verification")


class ActivationStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class VerificationOutcome(BaseModel):
    """Everything that happened after a payment reached ``success``.

    The payment status is final even when activation or claims sync failed;
    those failures are reported here for a manual replay.
    """

    payment: PaymentRecord
    activation: ActivationStatus
    entitlement: Optional[EntitlementRecord] = None
    activation_error: Optional[Dict[str, Any]] = None
    claims: Optional[ClaimsSyncOutcome] = None
    claims_error: Optional[Dict[str, Any]] = None
    invoice_sent: Optional[bool] = None
    invoice_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def needs_attention(self) -> bool:
        if self.activation == ActivationStatus.FAILED or self.claims_error is not None:
            return True
        return self.claims is not None and not self.claims.is_complete


@dataclass
class VerificationGate:
    """Operator commands for verifying, rejecting and replaying payments."""

    ledger: PaymentLedger
    store: EntitlementStore
    synchronizer: Optional[ClaimsSynchronizer] = None
    invoice_sender: Optional[InvoiceSender] = None

    @property
    def repository(self) -> PaymentRepository:
        return self.ledger.repository

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def verify(
        self,
        payment_id: str,
        verifier: Principal,
        notes: Optional[str] = None,
    ) -> VerificationOutcome:
        payment = self.ledger.get(payment_id)
        self._require_pending(payment)

        remarks = (notes or "").strip() or f"Payment verified by {verifier.display_name}"
        updated = self._transition(payment, PaymentStatus.SUCCESS, verifier, remarks)
        logger.info("Payment %s verified by %s", updated.id, verifier.display_name)

        outcome = self._follow_through(updated, verifier)
        if self.invoice_sender is not None:
            outcome = outcome.model_copy(update=self._send_invoice(updated, verifier))
        return outcome

    def reject(self, payment_id: str, verifier: Principal, reason: str) -> PaymentRecord:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("A rejection reason is required", detail={"field": "reason"})

        payment = self.ledger.get(payment_id)
        self._require_pending(payment)
        updated = self._transition(payment, PaymentStatus.REJECTED, verifier, cleaned)
        logger.info("Payment %s rejected by %s", updated.id, verifier.display_name)
        return updated

    def replay_activation(self, payment_id: str, operator: Principal) -> VerificationOutcome:
        """Re-run activation and claims sync for an already verified payment."""

        payment = self.ledger.get(payment_id)
        if payment.status != PaymentStatus.SUCCESS:
            raise InvalidState(
                f"Payment {payment_id} is {payment.status.value}; only verified payments can be activated",
                detail={"payment_id": payment_id, "status": payment.status.value},
            )
        logger.info("Replaying activation for payment %s by %s", payment_id, operator.display_name)
        return self._follow_through(payment, operator)

    def _require_pending(self, payment: PaymentRecord) -> None:
        if payment.status != PaymentStatus.PENDING:
            raise InvalidState(
                f"Payment {payment.id} is already {payment.status.value}",
                detail={"payment_id": payment.id, "status": payment.status.value},
            )

    def _transition(
        self,
        payment: PaymentRecord,
        status: PaymentStatus,
        verifier: Principal,
        remarks: str,
    ) -> PaymentRecord:
        updated = self.repository.transition_status(
            payment.id,
            status=status,
            verified_by=verifier.display_name,
            verified_at=self._now(),
            remarks=remarks,
        )
        if updated is None:
            # Another operator moved the payment out of pending first.
            current = self.ledger.get(payment.id)
            raise InvalidState(
                f"Payment {payment.id} is already {current.status.value}",
                detail={"payment_id": payment.id, "status": current.status.value},
            )
        return updated

    def _follow_through(self, payment: PaymentRecord, operator: Principal) -> VerificationOutcome:
        entitlement: Optional[EntitlementRecord] = None
        activation_error: Optional[Dict[str, Any]] = None
        try:
            entitlement = self.store.activate(payment)
            activation = ActivationStatus.CREATED
        except DuplicateEntitlement as exc:
            entitlement = exc.existing
            activation = ActivationStatus.DUPLICATE
        except EngineError as exc:
            logger.warning("Activation failed for payment %s: %s", payment.id, exc.message)
            activation = ActivationStatus.FAILED
            activation_error = exc.payload

        claims: Optional[ClaimsSyncOutcome] = None
        claims_error: Optional[Dict[str, Any]] = None
        if self.synchronizer is not None and entitlement is not None and entitlement.is_active:
            try:
                claims = self.synchronizer.sync_entitlement(operator.credential, entitlement)
            except EngineError as exc:
                logger.warning("Claims sync failed for entitlement %s: %s", entitlement.id, exc.message)
                claims_error = exc.payload

        return VerificationOutcome(
            payment=payment,
            activation=activation,
            entitlement=entitlement,
            activation_error=activation_error,
            claims=claims,
            claims_error=claims_error,
        )

    def _send_invoice(self, payment: PaymentRecord, operator: Principal) -> Dict[str, Any]:
        try:
            invoice_id = self.invoice_sender.send_invoice(
                operator.credential, InvoiceRequest.from_payment(payment)
            )
        except EngineError as exc:
            logger.warning("Invoice dispatch failed for payment %s: %s", payment.id, exc.message)
            return {"invoice_sent": False}
        return {"invoice_sent": True, "invoice_id": invoice_id}


__all__ = ["ActivationStatus", "VerificationGate", "VerificationOutcome"]
