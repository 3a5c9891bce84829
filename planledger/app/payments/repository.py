"""Persistence layer for the payment ledger."""
from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional, Sequence

from ..db import PostgresRepositoryBase
from .models import PaymentRecord, PaymentStatus


def _row_to_payment(row: dict) -> PaymentRecord:
    return PaymentRecord(
        id=str(row["id"]),
        amount=int(row["amount"]),
        payment_reference=row["payment_reference"],
        payment_method=row["payment_method"],
        plan_name=row["plan_name"],
        user_id=row["user_id"],
        user_email=row["user_email"],
        screenshot_ref=row.get("screenshot_ref") or None,
        utr_number=row.get("utr_number") or None,
        status=PaymentStatus(row["status"]),
        remarks=row.get("remarks") or "",
        verified_by=row.get("verified_by"),
        verified_at=row.get("verified_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresPaymentRepository(PostgresRepositoryBase):
    """Concrete repository persisting payments in PostgreSQL."""

    def add_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO payments (
                    id,
                    amount,
                    payment_reference,
                    payment_method,
                    plan_name,
                    user_id,
                    user_email,
                    screenshot_ref,
                    utr_number,
                    status,
                    remarks,
                    created_at,
                    updated_at
                )
                VALUES (%(id)s, %(amount)s, %(payment_reference)s, %(payment_method)s,
                        %(plan_name)s, %(user_id)s, %(user_email)s, %(screenshot_ref)s,
                        %(utr_number)s, %(status)s, %(remarks)s, %(created_at)s, %(updated_at)s)
                RETURNING *
                """,
                {
                    "id": payment.id,
                    "amount": payment.amount,
                    "payment_reference": payment.payment_reference,
                    "payment_method": payment.payment_method,
                    "plan_name": payment.plan_name,
                    "user_id": payment.user_id,
                    "user_email": payment.user_email,
                    "screenshot_ref": payment.screenshot_ref,
                    "utr_number": payment.utr_number,
                    "status": payment.status.value,
                    "remarks": payment.remarks,
                    "created_at": payment.created_at,
                    "updated_at": payment.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist payment")
            return _row_to_payment(row)

    def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM payments
                WHERE id = %s
                LIMIT 1
                """,
                (payment_id,),
            )
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None

    def list_payments(self, *, status: Optional[PaymentStatus] = None) -> List[PaymentRecord]:
        with self._cursor() as cursor:
            if status is None:
                cursor.execute("SELECT * FROM payments ORDER BY created_at DESC")
            else:
                cursor.execute(
                    "SELECT * FROM payments WHERE status = %s ORDER BY created_at DESC",
                    (status.value,),
                )
            rows = cursor.fetchall() or []
            return [_row_to_payment(row) for row in rows]

    def transition_status(
        self,
        payment_id: str,
        *,
        status: PaymentStatus,
        verified_by: str,
        verified_at: datetime,
        remarks: str,
    ) -> Optional[PaymentRecord]:
        """Move a pending payment to a terminal status.

        Returns ``None`` when the payment is missing or no longer pending.
        """

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE payments
                SET status = %s,
                    verified_by = %s,
                    verified_at = %s,
                    remarks = %s,
                    updated_at = NOW()
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (
                    status.value,
                    verified_by,
                    verified_at,
                    remarks,
                    payment_id,
                    PaymentStatus.PENDING.value,
                ),
            )
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None


class InMemoryPaymentRepository:
    """Thread-safe in-memory ledger suitable for tests and local development."""

    def __init__(self) -> None:
        self._payments: Dict[str, PaymentRecord] = {}
        self._lock = Lock()

    def add_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self._lock:
            if payment.id in self._payments:
                raise RuntimeError(f"Payment {payment.id} already exists")
            self._payments[payment.id] = payment
        return payment

    def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        return self._payments.get(payment_id)

    def list_payments(self, *, status: Optional[PaymentStatus] = None) -> Sequence[PaymentRecord]:
        with self._lock:
            payments = list(self._payments.values())
        if status is not None:
            payments = [payment for payment in payments if payment.status == status]
        return sorted(payments, key=lambda payment: payment.created_at, reverse=True)

    def transition_status(
        self,
        payment_id: str,
        *,
        status: PaymentStatus,
        verified_by: str,
        verified_at: datetime,
        remarks: str,
    ) -> Optional[PaymentRecord]:
        with self._lock:
            current = self._payments.get(payment_id)
            if current is None or current.status != PaymentStatus.PENDING:
                return None
            updated = current.model_copy(
                update={
                    "status": status,
                    "verified_by": verified_by,
                    "verified_at": verified_at,
                    "remarks": remarks,
                    "updated_at": verified_at,
                }
            )
            self._payments[payment_id] = updated
            return updated


__all__ = ["InMemoryPaymentRepository", "PostgresPaymentRepository"]
