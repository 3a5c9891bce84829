"""Payment ledger: submission and lookup of manual payment claims."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence
from uuid import uuid4

from ..errors import NotFound, ValidationError
from .models import PaymentRecord, PaymentStatus, PaymentSubmission


logger = logging.getLogger("payments")


class PaymentRepository(Protocol):
    """Persistence operations required by the ledger and the verification gate."""

    def add_payment(self, payment: PaymentRecord) -> PaymentRecord:
        ...

    def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        ...

    def list_payments(self, *, status: Optional[PaymentStatus] = None) -> Sequence[PaymentRecord]:
        ...

    def transition_status(
        self,
        payment_id: str,
        *,
        status: PaymentStatus,
        verified_by: str,
        verified_at: datetime,
        remarks: str,
    ) -> Optional[PaymentRecord]:
        """Conditionally move a pending payment to ``status``; ``None`` if it was not pending."""


def _require_text(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required", detail={"field": field})
    return cleaned


@dataclass
class PaymentLedger:
    """Records submitted payments; records are immutable apart from verification fields."""

    repository: PaymentRepository

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def submit(self, submission: PaymentSubmission) -> PaymentRecord:
        if submission.amount <= 0:
            raise ValidationError("amount must be a positive integer", detail={"field": "amount"})

        now = self._now()
        record = PaymentRecord(
            id=f"pay_{uuid4().hex}",
            amount=submission.amount,
            payment_reference=_require_text(submission.payment_reference, "payment_reference"),
            payment_method=_require_text(submission.payment_method, "payment_method"),
            plan_name=_require_text(submission.plan_name, "plan_name"),
            user_id=_require_text(submission.user_id, "user_id"),
            user_email=_require_text(submission.user_email, "user_email"),
            screenshot_ref=(submission.screenshot_ref or "").strip() or None,
            utr_number=(submission.utr_number or "").strip() or None,
            remarks=(submission.remarks or "").strip(),
            status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        stored = self.repository.add_payment(record)
        logger.info(
            "Payment %s submitted user=%s plan=%s amount=%s",
            stored.id,
            stored.user_id,
            stored.plan_name,
            stored.amount,
        )
        return stored

    def get(self, payment_id: str) -> PaymentRecord:
        payment = self.repository.get_payment(payment_id)
        if payment is None:
            raise NotFound(f"Payment {payment_id} not found", detail={"payment_id": payment_id})
        return payment

    def list(self, *, status: Optional[PaymentStatus] = None) -> Sequence[PaymentRecord]:
        return self.repository.list_payments(status=status)


__all__ = ["PaymentLedger", "PaymentRepository"]
