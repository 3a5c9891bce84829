"""Domain models for materialized plan entitlements."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EntitlementStatus(str, Enum):
    """Lifecycle status of an entitlement. Values are wire contracts."""

    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ValidityWindow:
    """Access window computed for a plan purchase."""

    start_date: datetime
    expiry_date: datetime


class EntitlementRecord(BaseModel):
    """A subject's right to a paid plan, projected from one verified payment."""

    id: str
    user_id: str
    user_email: str
    plan_name: str
    amount: int = Field(gt=0)
    payment_reference: str
    status: EntitlementStatus = EntitlementStatus.ACTIVE
    start_date: datetime
    expiry_date: Optional[datetime] = None
    payment_id: str = Field(description="Ledger id of the payment this entitlement was projected from")
    payment_method: str = ""
    verified_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def dedup_key(self) -> Tuple[str, int]:
        return (self.payment_reference, self.amount)

    @property
    def is_active(self) -> bool:
        return self.status == EntitlementStatus.ACTIVE


__all__ = ["EntitlementRecord", "EntitlementStatus", "ValidityWindow"]
