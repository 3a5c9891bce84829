"""External authorization-claims integration."""

from .client import ClaimsService, HttpClaimsService
from .models import (
    CLAIM_FIELDS,
    ClaimsLookup,
    ClaimsOperation,
    ClaimsSnapshot,
    ClaimsSyncOutcome,
    ClaimsSyncStep,
    SYNC_STEPS,
    StepError,
    SyncStatus,
    claims_from_entitlement,
    mismatched_fields,
)
from .synchronizer import ClaimsSynchronizer

__all__ = [
    "CLAIM_FIELDS",
    "ClaimsLookup",
    "ClaimsOperation",
    "ClaimsService",
    "ClaimsSnapshot",
    "ClaimsSyncOutcome",
    "ClaimsSyncStep",
    "ClaimsSynchronizer",
    "HttpClaimsService",
    "SYNC_STEPS",
    "StepError",
    "SyncStatus",
    "claims_from_entitlement",
    "mismatched_fields",
]
