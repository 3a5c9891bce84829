"""Models describing external authorization claims and sync outcomes."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.catalog import claims_plan_code
from ..entitlements.models import EntitlementRecord, EntitlementStatus

CLAIM_FIELDS = ("is_premium", "plan_name", "start_date", "end_date", "role")
_DATE_FIELDS = {"start_date", "end_date"}


class ClaimsSnapshot(BaseModel):
    """The external service's view of a subject's entitlement."""

    is_premium: bool = False
    plan_name: str = ""
    start_date: str = ""
    end_date: str = ""
    role: str = ""

    model_config = ConfigDict(extra="allow", frozen=True)


class ClaimsLookup(BaseModel):
    user_id: str
    email: str = ""
    custom_claims: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def snapshot(self) -> ClaimsSnapshot:
        return ClaimsSnapshot(**self.custom_claims)


class ClaimsOperation(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"


class ClaimsSyncStep(str, Enum):
    FETCH_CURRENT = "fetch_current"
    WRITE_CLAIMS = "write_claims"
    CONFIRM_CLAIMS = "confirm_claims"


SYNC_STEPS = (ClaimsSyncStep.FETCH_CURRENT, ClaimsSyncStep.WRITE_CLAIMS, ClaimsSyncStep.CONFIRM_CLAIMS)


class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class StepError(BaseModel):
    code: str
    message: str

    model_config = ConfigDict(frozen=True)


class ClaimsSyncOutcome(BaseModel):
    """Step-outcome report for one claims write.

    ``steps_completed``, ``steps_failed`` and ``steps_not_processed`` are
    disjoint and together cover every step in execution order.
    """

    operation: ClaimsOperation
    subject_id: str
    status: SyncStatus
    steps_completed: List[ClaimsSyncStep] = Field(default_factory=list)
    steps_failed: List[ClaimsSyncStep] = Field(default_factory=list)
    steps_not_processed: List[ClaimsSyncStep] = Field(default_factory=list)
    errors: Dict[str, StepError] = Field(default_factory=dict)
    claims: Optional[Dict[str, Any]] = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @property
    def is_complete(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    def raise_for_status(self) -> "ClaimsSyncOutcome":
        """Raise :class:`PartialFailure` or :class:`UpstreamUnavailable` unless complete."""

        from ..errors import PartialFailure, UpstreamUnavailable

        if self.status == SyncStatus.PARTIAL:
            raise PartialFailure(
                f"Claims {self.operation.value} for {self.subject_id} completed only partially",
                outcome=self,
            )
        if self.status == SyncStatus.FAILED:
            raise UpstreamUnavailable(
                f"Claims {self.operation.value} for {self.subject_id} failed",
                service="claims",
                outcome=self,
            )
        return self


def _normalize(field: str, value: Any) -> Any:
    if field in _DATE_FIELDS and isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return value


def mismatched_fields(
    expected: Mapping[str, Any],
    actual: Mapping[str, Any],
    fields: Optional[Iterable[str]] = None,
) -> List[str]:
    """Return the fields whose values differ, comparing dates as instants."""

    keys = list(fields) if fields is not None else list(expected)
    return [
        key
        for key in keys
        if _normalize(key, expected.get(key)) != _normalize(key, actual.get(key))
    ]


def claims_from_entitlement(record: EntitlementRecord, *, role: Optional[str] = None) -> Dict[str, Any]:
    """Build the claims that should be published for ``record``.

    ``role`` is omitted unless given so that a sync keeps the subject's
    existing role.
    """

    claims: Dict[str, Any] = {
        "is_premium": record.status == EntitlementStatus.ACTIVE,
        "plan_name": claims_plan_code(record.plan_name),
        "start_date": record.start_date.isoformat(),
        "end_date": record.expiry_date.isoformat() if record.expiry_date else "",
    }
    if role:
        claims["role"] = role
    return claims


__all__ = [
    "CLAIM_FIELDS",
    "ClaimsLookup",
    "ClaimsOperation",
    "ClaimsSnapshot",
    "ClaimsSyncOutcome",
    "ClaimsSyncStep",
    "SYNC_STEPS",
    "StepError",
    "SyncStatus",
    "claims_from_entitlement",
    "mismatched_fields",
]
