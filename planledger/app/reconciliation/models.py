"""Drift report models."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DriftKind(str, Enum):
    MISSING_ACTIVATION = "missing_activation"
    STALE_CLAIMS = "stale_claims"
    CLAIMS_UNAVAILABLE = "claims_unavailable"


class DriftCase(BaseModel):
    """One disagreement between the ledger, the entitlement store and the claims snapshot."""

    kind: DriftKind
    subject_id: str
    payment_id: Optional[str] = None
    entitlement_id: Optional[str] = None
    payment_reference: Optional[str] = None
    amount: Optional[int] = None
    mismatched_fields: List[str] = Field(default_factory=list)
    expected_claims: Optional[Dict[str, Any]] = None
    actual_claims: Optional[Dict[str, Any]] = None
    detail: str = ""

    model_config = ConfigDict(frozen=True)


class DriftReport(BaseModel):
    cases: List[DriftCase] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    def of_kind(self, kind: DriftKind) -> List[DriftCase]:
        return [case for case in self.cases if case.kind == kind]

    @property
    def is_consistent(self) -> bool:
        return not self.cases


__all__ = ["DriftCase", "DriftKind", "DriftReport"]
