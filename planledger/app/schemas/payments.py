"""API schemas for payment endpoints."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..auth import Principal
from ..payments import PaymentRecord, PaymentSubmission
from ..verification import VerificationOutcome


class PaymentSubmitRequest(BaseModel):
    amount: int = Field(gt=0)
    payment_reference: str = Field(alias="paymentReference")
    payment_method: str = Field(alias="paymentMethod")
    plan_name: str = Field(alias="planName")
    user_email: Optional[str] = Field(alias="userEmail", default=None)
    screenshot_ref: Optional[str] = Field(alias="screenshotRef", default=None)
    utr_number: Optional[str] = Field(alias="utrNumber", default=None)
    remarks: str = ""

    model_config = ConfigDict(populate_by_name=True)

    def to_submission(self, submitter: Principal) -> PaymentSubmission:
        """The submitter is always the verified caller, never a body field."""

        return PaymentSubmission(
            amount=self.amount,
            payment_reference=self.payment_reference,
            payment_method=self.payment_method,
            plan_name=self.plan_name,
            user_id=submitter.user_id,
            user_email=submitter.email or (self.user_email or ""),
            screenshot_ref=self.screenshot_ref,
            utr_number=self.utr_number,
            remarks=self.remarks,
        )


class PaymentListResponse(BaseModel):
    payments: List[PaymentRecord]

    model_config = ConfigDict(populate_by_name=True)


class VerifyPaymentRequest(BaseModel):
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class RejectPaymentRequest(BaseModel):
    reason: str = ""

    model_config = ConfigDict(populate_by_name=True)


class VerificationResponse(BaseModel):
    outcome: VerificationOutcome
    needs_attention: bool = Field(alias="needsAttention")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_outcome(cls, outcome: VerificationOutcome) -> "VerificationResponse":
        return cls(outcome=outcome, needs_attention=outcome.needs_attention)


__all__ = [
    "PaymentListResponse",
    "PaymentSubmitRequest",
    "RejectPaymentRequest",
    "VerificationResponse",
    "VerifyPaymentRequest",
]
