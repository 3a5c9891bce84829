"""Domain models for the payment ledger."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    """Verification state of a submitted payment. Values are wire contracts."""

    PENDING = "pending"
    SUCCESS = "success"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class PaymentRecord(BaseModel):
    """A claimed manual payment awaiting, or past, operator verification."""

    id: str
    amount: int = Field(gt=0, description="Amount in minor currency units")
    payment_reference: str = Field(description="External transaction identifier quoted by the payer")
    payment_method: str
    plan_name: str
    user_id: str
    user_email: str
    screenshot_ref: Optional[str] = None
    utr_number: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    remarks: str = ""
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def dedup_key(self) -> Tuple[str, int]:
        """Composite key identifying the real-world transaction."""
        return (self.payment_reference, self.amount)


class PaymentSubmission(BaseModel):
    """Input accepted when a payer records a new manual payment."""

    amount: int
    payment_reference: str
    payment_method: str
    plan_name: str
    user_id: str
    user_email: str
    screenshot_ref: Optional[str] = None
    utr_number: Optional[str] = None
    remarks: str = ""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = ["PaymentRecord", "PaymentStatus", "PaymentSubmission"]
