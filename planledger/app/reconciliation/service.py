"""Read-only drift detection across the ledger, the store and the claims service."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..auth import AdminGuard
from ..claims.client import ClaimsService
from ..claims.models import ClaimsLookup, claims_from_entitlement, mismatched_fields
from ..entitlements.models import EntitlementRecord, EntitlementStatus
from ..entitlements.service import EntitlementRepository
from ..errors import NotFound, UpstreamUnavailable
from ..payments.models import PaymentStatus
from ..payments.service import PaymentRepository
from .models import DriftCase, DriftKind, DriftReport


logger = logging.getLogger("reconciliation")


def latest_active_by_subject(records: List[EntitlementRecord]) -> Dict[str, EntitlementRecord]:
    """Pick, per subject, the active entitlement the claims snapshot should mirror."""

    latest: Dict[str, EntitlementRecord] = {}
    for record in records:
        if record.status != EntitlementStatus.ACTIVE:
            continue
        current = latest.get(record.user_id)
        if current is None or (record.start_date, record.created_at) > (current.start_date, current.created_at):
            latest[record.user_id] = record
    return latest


@dataclass
class ReconciliationReader:
    """Produces drift reports for operators. Never writes to any store."""

    payments: PaymentRepository
    entitlements: EntitlementRepository
    claims: ClaimsService
    guard: AdminGuard

    def list_drift(self, credential: str) -> DriftReport:
        self.guard.require_admin(credential)
        cases: List[DriftCase] = []
        cases.extend(self._missing_activations())
        cases.extend(self._stale_claims(credential))
        if cases:
            logger.info("Drift report found %s cases", len(cases))
        return DriftReport(cases=cases)

    def _missing_activations(self) -> List[DriftCase]:
        cases: List[DriftCase] = []
        for payment in self.payments.list_payments(status=PaymentStatus.SUCCESS):
            if self.entitlements.find_by_dedup_key(payment.payment_reference, payment.amount) is not None:
                continue
            cases.append(
                DriftCase(
                    kind=DriftKind.MISSING_ACTIVATION,
                    subject_id=payment.user_id,
                    payment_id=payment.id,
                    payment_reference=payment.payment_reference,
                    amount=payment.amount,
                    detail="Verified payment has no entitlement",
                )
            )
        return cases

    def _stale_claims(self, credential: str) -> List[DriftCase]:
        active = list(self.entitlements.list_entitlements(status=EntitlementStatus.ACTIVE))
        cases: List[DriftCase] = []
        for subject_id, record in sorted(latest_active_by_subject(active).items()):
            expected = claims_from_entitlement(record)
            lookup: Optional[ClaimsLookup]
            try:
                lookup = self.claims.get_claims(credential, user_id=subject_id)
            except NotFound:
                lookup = None
            except UpstreamUnavailable as exc:
                cases.append(
                    DriftCase(
                        kind=DriftKind.CLAIMS_UNAVAILABLE,
                        subject_id=subject_id,
                        entitlement_id=record.id,
                        payment_id=record.payment_id,
                        expected_claims=expected,
                        detail=exc.message,
                    )
                )
                continue

            actual = dict(lookup.custom_claims) if lookup is not None else {}
            mismatched = mismatched_fields(expected, actual)
            if not mismatched:
                continue
            cases.append(
                DriftCase(
                    kind=DriftKind.STALE_CLAIMS,
                    subject_id=subject_id,
                    entitlement_id=record.id,
                    payment_id=record.payment_id,
                    payment_reference=record.payment_reference,
                    amount=record.amount,
                    mismatched_fields=mismatched,
                    expected_claims=expected,
                    actual_claims=actual if lookup is not None else None,
                    detail="No claims snapshot for subject" if lookup is None else "Claims disagree with entitlement",
                )
            )
        return cases


__all__ = ["ReconciliationReader", "latest_active_by_subject"]
