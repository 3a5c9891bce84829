"""API schemas for entitlement endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements import EntitlementRecord


class EntitlementListResponse(BaseModel):
    entitlements: List[EntitlementRecord]

    model_config = ConfigDict(populate_by_name=True)


class ExtendEntitlementRequest(BaseModel):
    expiry_date: datetime = Field(alias="expiryDate")

    model_config = ConfigDict(populate_by_name=True)


class ChangePlanRequest(BaseModel):
    plan_name: str = Field(alias="planName")

    model_config = ConfigDict(populate_by_name=True)


class ExpireLapsedResponse(BaseModel):
    expired: List[EntitlementRecord]
    count: int

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_records(cls, records: List[EntitlementRecord]) -> "ExpireLapsedResponse":
        return cls(expired=list(records), count=len(records))


__all__ = [
    "ChangePlanRequest",
    "EntitlementListResponse",
    "ExpireLapsedResponse",
    "ExtendEntitlementRequest",
]
