"""Idempotent projection of verified payments into entitlements."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Protocol, Sequence
from uuid import uuid4

from ..errors import DuplicateEntitlement, InvalidState, NotFound, ValidationError
from ..events import EntitlementChangeKind, EntitlementEventBus, publish_change
from ..payments.models import PaymentRecord, PaymentStatus
from .duration import duration
from .models import EntitlementRecord, EntitlementStatus


logger = logging.getLogger("entitlements")


class EntitlementRepository(Protocol):
    """Persistence operations required by the entitlement store."""

    def insert_if_absent(self, record: EntitlementRecord) -> Optional[EntitlementRecord]:
        """Atomically insert ``record`` unless its dedup key exists; ``None`` on collision."""

    def get_entitlement(self, entitlement_id: str) -> Optional[EntitlementRecord]:
        ...

    def find_by_dedup_key(self, payment_reference: str, amount: int) -> Optional[EntitlementRecord]:
        ...

    def list_entitlements(
        self,
        *,
        status: Optional[EntitlementStatus] = None,
        user_id: Optional[str] = None,
    ) -> Sequence[EntitlementRecord]:
        ...

    def update_entitlement(
        self,
        entitlement_id: str,
        *,
        expected_status: Optional[EntitlementStatus] = None,
        **changes: Any,
    ) -> Optional[EntitlementRecord]:
        ...

    def expire_lapsed(self, now: datetime) -> Sequence[EntitlementRecord]:
        ...


def is_expired(record: EntitlementRecord, now: datetime) -> bool:
    """Return ``True`` when the record's window has closed at ``now``."""

    if record.expiry_date is None:
        return True
    return now > record.expiry_date


@dataclass
class EntitlementStore:
    """Creates and maintains entitlements, at most one per dedup key."""

    repository: EntitlementRepository
    event_bus: Optional[EntitlementEventBus] = None

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def activate(self, payment: PaymentRecord, *, now: Optional[datetime] = None) -> EntitlementRecord:
        """Materialize the entitlement for a verified payment.

        Raises :class:`DuplicateEntitlement` when the payment's dedup key is
        already projected; the existing record is attached to the error.
        """

        if payment.status != PaymentStatus.SUCCESS:
            raise InvalidState(
                f"Payment {payment.id} is {payment.status.value}; only verified payments can be activated",
                detail={"payment_id": payment.id, "status": payment.status.value},
            )

        moment = now or self._now()
        window = duration(payment.plan_name, payment.amount, moment)
        candidate = EntitlementRecord(
            id=f"ent_{uuid4().hex}",
            user_id=payment.user_id,
            user_email=payment.user_email,
            plan_name=payment.plan_name,
            amount=payment.amount,
            payment_reference=payment.payment_reference,
            status=EntitlementStatus.ACTIVE,
            start_date=window.start_date,
            expiry_date=window.expiry_date,
            payment_id=payment.id,
            payment_method=payment.payment_method,
            verified_by=payment.verified_by,
            created_at=moment,
            updated_at=moment,
        )

        stored = self.repository.insert_if_absent(candidate)
        if stored is None:
            existing = self.repository.find_by_dedup_key(payment.payment_reference, payment.amount)
            logger.info(
                "Entitlement already exists for payment reference=%s amount=%s",
                payment.payment_reference,
                payment.amount,
            )
            raise DuplicateEntitlement(
                "An entitlement already exists for this payment",
                existing=existing,
                detail={
                    "payment_reference": payment.payment_reference,
                    "amount": payment.amount,
                    "entitlement_id": existing.id if existing else None,
                },
            )

        logger.info(
            "Activated entitlement %s plan=%s user=%s expires=%s",
            stored.id,
            stored.plan_name,
            stored.user_id,
            stored.expiry_date,
        )
        publish_change(
            self.event_bus,
            EntitlementChangeKind.ACTIVATED,
            entitlement_id=stored.id,
            subject_id=stored.user_id,
        )
        return stored

    def get(self, entitlement_id: str) -> EntitlementRecord:
        record = self.repository.get_entitlement(entitlement_id)
        if record is None:
            raise NotFound(f"Entitlement {entitlement_id} not found")
        return record

    def find_by_dedup_key(self, payment_reference: str, amount: int) -> Optional[EntitlementRecord]:
        return self.repository.find_by_dedup_key(payment_reference, amount)

    def list(
        self,
        *,
        status: Optional[EntitlementStatus] = None,
        subject_id: Optional[str] = None,
    ) -> Sequence[EntitlementRecord]:
        return self.repository.list_entitlements(status=status, user_id=subject_id)

    def extend(self, entitlement_id: str, new_expiry: datetime) -> EntitlementRecord:
        record = self.get(entitlement_id)
        if new_expiry.tzinfo is None:
            new_expiry = new_expiry.replace(tzinfo=timezone.utc)
        if record.status == EntitlementStatus.CANCELLED:
            raise InvalidState(f"Entitlement {entitlement_id} is cancelled")
        if new_expiry <= record.start_date:
            raise ValidationError("New expiry must be after the start date")

        changes: dict = {"expiry_date": new_expiry}
        if record.status == EntitlementStatus.EXPIRED and new_expiry > self._now():
            changes["status"] = EntitlementStatus.ACTIVE
        updated = self._apply(entitlement_id, expected_status=record.status, **changes)
        publish_change(
            self.event_bus,
            EntitlementChangeKind.EXTENDED,
            entitlement_id=updated.id,
            subject_id=updated.user_id,
        )
        return updated

    def change_plan(
        self,
        entitlement_id: str,
        plan_name: str,
        *,
        now: Optional[datetime] = None,
    ) -> EntitlementRecord:
        if not plan_name or not plan_name.strip():
            raise ValidationError("Plan name is required")
        record = self.get(entitlement_id)
        if record.status != EntitlementStatus.ACTIVE:
            raise InvalidState(f"Entitlement {entitlement_id} is {record.status.value}")

        window = duration(plan_name.strip(), record.amount, now or self._now())
        updated = self._apply(
            entitlement_id,
            expected_status=EntitlementStatus.ACTIVE,
            plan_name=plan_name.strip(),
            start_date=window.start_date,
            expiry_date=window.expiry_date,
        )
        publish_change(
            self.event_bus,
            EntitlementChangeKind.PLAN_CHANGED,
            entitlement_id=updated.id,
            subject_id=updated.user_id,
        )
        return updated

    def cancel(self, entitlement_id: str) -> EntitlementRecord:
        record = self.get(entitlement_id)
        if record.status != EntitlementStatus.ACTIVE:
            raise InvalidState(f"Entitlement {entitlement_id} is {record.status.value}")
        updated = self._apply(
            entitlement_id,
            expected_status=EntitlementStatus.ACTIVE,
            status=EntitlementStatus.CANCELLED,
        )
        logger.info("Cancelled entitlement %s user=%s", updated.id, updated.user_id)
        publish_change(
            self.event_bus,
            EntitlementChangeKind.CANCELLED,
            entitlement_id=updated.id,
            subject_id=updated.user_id,
        )
        return updated

    def expire_lapsed(self, *, now: Optional[datetime] = None) -> List[EntitlementRecord]:
        expired = list(self.repository.expire_lapsed(now or self._now()))
        for record in expired:
            publish_change(
                self.event_bus,
                EntitlementChangeKind.EXPIRED,
                entitlement_id=record.id,
                subject_id=record.user_id,
            )
        if expired:
            logger.info("Expired %s lapsed entitlements", len(expired))
        return expired

    def _apply(
        self,
        entitlement_id: str,
        *,
        expected_status: EntitlementStatus,
        **changes: Any,
    ) -> EntitlementRecord:
        updated = self.repository.update_entitlement(
            entitlement_id, expected_status=expected_status, **changes
        )
        if updated is None:
            raise InvalidState(f"Entitlement {entitlement_id} changed concurrently; reload and retry")
        return updated


__all__ = ["EntitlementRepository", "EntitlementStore", "is_expired"]
