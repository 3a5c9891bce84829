"""Pushes entitlements to the external claims service with step-by-step reporting."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..auth import AdminGuard, Principal
from ..entitlements.models import EntitlementRecord
from ..errors import EngineError, ValidationError
from ..events import EntitlementChangeKind, EntitlementEventBus, publish_change
from .client import ClaimsService
from .models import (
    SYNC_STEPS,
    ClaimsLookup,
    ClaimsOperation,
    ClaimsSyncOutcome,
    ClaimsSyncStep,
    StepError,
    SyncStatus,
    claims_from_entitlement,
    mismatched_fields,
)


logger = logging.getLogger("claims")

# Given the current claims, return (target claims, write call, fields to confirm).
_WritePlan = Callable[[Dict[str, Any]], Tuple[Dict[str, Any], Callable[[], Dict[str, Any]], List[str]]]


@dataclass
class ClaimsSynchronizer:
    """Admin-only, idempotent writer for the external claims snapshots.

    Each write runs ``fetch_current``, ``write_claims`` and
    ``confirm_claims`` in order. The first failing step stops the run and
    the remaining steps are reported as not processed. Retrying an identical
    request is safe: every write converges to the same target state.
    """

    service: ClaimsService
    guard: AdminGuard
    default_role: str = "user"
    event_bus: Optional[EntitlementEventBus] = None

    def get_claims(
        self,
        credential: str,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ClaimsLookup:
        self.guard.require_admin(credential)
        return self.service.get_claims(credential, user_id=user_id, email=email)

    def list_claims(self, credential: str, *, search: Optional[str] = None) -> Sequence[ClaimsLookup]:
        self.guard.require_admin(credential)
        return self.service.list_claims(credential, search=search)

    def set(self, credential: str, subject_id: str, claims: Mapping[str, Any]) -> ClaimsSyncOutcome:
        principal = self._authorize(credential, subject_id)
        if not claims:
            raise ValidationError("Claims are required")
        requested = dict(claims)

        def plan(current: Dict[str, Any]):
            target = dict(requested)
            if not target.get("role"):
                target["role"] = current.get("role") or self.default_role
            return target, lambda: self.service.set_claims(credential, subject_id, target), list(target)

        return self._run(principal, ClaimsOperation.SET, subject_id, plan)

    def update(self, credential: str, subject_id: str, partial_claims: Mapping[str, Any]) -> ClaimsSyncOutcome:
        principal = self._authorize(credential, subject_id)
        if not partial_claims:
            raise ValidationError("At least one claim must be provided for an update")
        changes = dict(partial_claims)

        def plan(current: Dict[str, Any]):
            target = {**current, **changes}
            return target, lambda: self.service.update_claims(credential, subject_id, changes), list(changes)

        return self._run(principal, ClaimsOperation.UPDATE, subject_id, plan)

    def delete(self, credential: str, subject_id: str, fields: Sequence[str]) -> ClaimsSyncOutcome:
        principal = self._authorize(credential, subject_id)
        cleaned = [field.strip() for field in fields if field and field.strip()]
        if not cleaned:
            raise ValidationError("At least one claim field must be named for deletion")

        def plan(current: Dict[str, Any]):
            target = {key: value for key, value in current.items() if key not in cleaned}
            return target, lambda: self.service.delete_claims(credential, subject_id, cleaned), []

        return self._run(principal, ClaimsOperation.DELETE, subject_id, plan, removed=cleaned)

    def sync_entitlement(self, credential: str, record: EntitlementRecord) -> ClaimsSyncOutcome:
        """Publish the claims derived from ``record`` for its subject."""

        outcome = self.set(credential, record.user_id, claims_from_entitlement(record))
        if outcome.is_complete:
            publish_change(
                self.event_bus,
                EntitlementChangeKind.CLAIMS_SYNCED,
                entitlement_id=record.id,
                subject_id=record.user_id,
            )
        return outcome

    def _authorize(self, credential: str, subject_id: str) -> Principal:
        principal = self.guard.require_admin(credential)
        if not subject_id or not subject_id.strip():
            raise ValidationError("Subject id is required")
        return principal

    def _run(
        self,
        principal: Principal,
        operation: ClaimsOperation,
        subject_id: str,
        plan: _WritePlan,
        *,
        removed: Sequence[str] = (),
    ) -> ClaimsSyncOutcome:
        completed: List[ClaimsSyncStep] = []
        credential = principal.credential

        try:
            current = dict(self.service.get_claims(credential, user_id=subject_id).custom_claims)
        except EngineError as exc:
            return self._finish(operation, subject_id, completed, ClaimsSyncStep.FETCH_CURRENT, exc, None)
        completed.append(ClaimsSyncStep.FETCH_CURRENT)

        target, write, confirm_fields = plan(current)
        try:
            written = write()
        except EngineError as exc:
            return self._finish(operation, subject_id, completed, ClaimsSyncStep.WRITE_CLAIMS, exc, current)
        completed.append(ClaimsSyncStep.WRITE_CLAIMS)

        try:
            confirmed = dict(self.service.get_claims(credential, user_id=subject_id).custom_claims)
        except EngineError as exc:
            return self._finish(
                operation, subject_id, completed, ClaimsSyncStep.CONFIRM_CLAIMS, exc, written or target
            )

        drift = mismatched_fields(target, confirmed, confirm_fields)
        drift.extend(field for field in removed if field in confirmed)
        if drift:
            error = StepError(
                code="not_converged",
                message=f"Claims service does not yet reflect: {', '.join(sorted(drift))}",
            )
            return self._finish(
                operation, subject_id, completed, ClaimsSyncStep.CONFIRM_CLAIMS, error, confirmed
            )
        completed.append(ClaimsSyncStep.CONFIRM_CLAIMS)

        logger.info(
            "Claims %s for %s confirmed by %s",
            operation.value,
            subject_id,
            principal.display_name,
        )
        return self._finish(operation, subject_id, completed, None, None, confirmed)

    def _finish(
        self,
        operation: ClaimsOperation,
        subject_id: str,
        completed: List[ClaimsSyncStep],
        failed_step: Optional[ClaimsSyncStep],
        error: Optional[Any],
        claims: Optional[Dict[str, Any]],
    ) -> ClaimsSyncOutcome:
        failed: List[ClaimsSyncStep] = []
        not_processed: List[ClaimsSyncStep] = []
        errors: Dict[str, StepError] = {}
        if failed_step is not None:
            failed.append(failed_step)
            index = SYNC_STEPS.index(failed_step)
            not_processed.extend(SYNC_STEPS[index + 1 :])
            if isinstance(error, StepError):
                errors[failed_step.value] = error
            elif isinstance(error, EngineError):
                errors[failed_step.value] = StepError(code=error.code, message=error.message)

        if not failed:
            status = SyncStatus.SUCCESS
        elif completed:
            status = SyncStatus.PARTIAL
        else:
            status = SyncStatus.FAILED

        if failed:
            logger.warning(
                "Claims %s for %s stopped at %s (completed=%s)",
                operation.value,
                subject_id,
                failed_step.value if failed_step else "",
                [step.value for step in completed],
            )
        return ClaimsSyncOutcome(
            operation=operation,
            subject_id=subject_id,
            status=status,
            steps_completed=list(completed),
            steps_failed=failed,
            steps_not_processed=not_processed,
            errors=errors,
            claims=claims,
        )


__all__ = ["ClaimsSynchronizer"]
