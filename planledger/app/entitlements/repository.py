"""Persistence layer for entitlement records."""
from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..db import PostgresRepositoryBase
from .models import EntitlementRecord, EntitlementStatus

_UPDATABLE_FIELDS = {"status", "plan_name", "start_date", "expiry_date"}


def _row_to_entitlement(row: dict) -> EntitlementRecord:
    return EntitlementRecord(
        id=str(row["id"]),
        user_id=row["user_id"],
        user_email=row["user_email"],
        plan_name=row["plan_name"],
        amount=int(row["amount"]),
        payment_reference=row["payment_reference"],
        status=EntitlementStatus(row["status"]),
        start_date=row["start_date"],
        expiry_date=row.get("expiry_date"),
        payment_id=str(row["payment_id"]),
        payment_method=row.get("payment_method") or "",
        verified_by=row.get("verified_by"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresEntitlementRepository(PostgresRepositoryBase):
    """Entitlements stored in PostgreSQL.

    The ``entitlements`` table carries ``UNIQUE (payment_reference, amount)``;
    inserts rely on it so that concurrent activations cannot both succeed.
    """

    def insert_if_absent(self, record: EntitlementRecord) -> Optional[EntitlementRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO entitlements (
                    id,
                    user_id,
                    user_email,
                    plan_name,
                    amount,
                    payment_reference,
                    status,
                    start_date,
                    expiry_date,
                    payment_id,
                    payment_method,
                    verified_by
                )
                VALUES (%(id)s, %(user_id)s, %(user_email)s, %(plan_name)s, %(amount)s,
                        %(payment_reference)s, %(status)s, %(start_date)s, %(expiry_date)s,
                        %(payment_id)s, %(payment_method)s, %(verified_by)s)
                ON CONFLICT (payment_reference, amount) DO NOTHING
                RETURNING *
                """,
                {
                    "id": record.id,
                    "user_id": record.user_id,
                    "user_email": record.user_email,
                    "plan_name": record.plan_name,
                    "amount": record.amount,
                    "payment_reference": record.payment_reference,
                    "status": record.status.value,
                    "start_date": record.start_date,
                    "expiry_date": record.expiry_date,
                    "payment_id": record.payment_id,
                    "payment_method": record.payment_method,
                    "verified_by": record.verified_by,
                },
            )
            row = cursor.fetchone()
            return _row_to_entitlement(row) if row else None

    def get_entitlement(self, entitlement_id: str) -> Optional[EntitlementRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM entitlements WHERE id = %s LIMIT 1",
                (entitlement_id,),
            )
            row = cursor.fetchone()
            return _row_to_entitlement(row) if row else None

    def find_by_dedup_key(self, payment_reference: str, amount: int) -> Optional[EntitlementRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM entitlements
                WHERE payment_reference = %s AND amount = %s
                LIMIT 1
                """,
                (payment_reference, amount),
            )
            row = cursor.fetchone()
            return _row_to_entitlement(row) if row else None

    def list_entitlements(
        self,
        *,
        status: Optional[EntitlementStatus] = None,
        user_id: Optional[str] = None,
    ) -> List[EntitlementRecord]:
        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = %s")
            params.append(status.value)
        if user_id is not None:
            clauses.append("user_id = %s")
            params.append(user_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT * FROM entitlements {where} ORDER BY created_at DESC",
                params,
            )
            rows = cursor.fetchall() or []
            return [_row_to_entitlement(row) for row in rows]

    def update_entitlement(
        self,
        entitlement_id: str,
        *,
        expected_status: Optional[EntitlementStatus] = None,
        **changes: Any,
    ) -> Optional[EntitlementRecord]:
        """Apply ``changes`` and return the updated row.

        When ``expected_status`` is given the update only applies while the row
        still has that status; ``None`` is returned otherwise.
        """

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update entitlement fields: {sorted(unknown)}")
        assignments: List[str] = []
        params: List[Any] = []
        for column, value in changes.items():
            assignments.append(f"{column} = %s")
            params.append(value.value if isinstance(value, EntitlementStatus) else value)
        assignments.append("updated_at = NOW()")
        query = f"UPDATE entitlements SET {', '.join(assignments)} WHERE id = %s"
        params.append(entitlement_id)
        if expected_status is not None:
            query += " AND status = %s"
            params.append(expected_status.value)
        with self._cursor() as cursor:
            cursor.execute(query + " RETURNING *", params)
            row = cursor.fetchone()
            return _row_to_entitlement(row) if row else None

    def expire_lapsed(self, now: datetime) -> List[EntitlementRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE entitlements
                SET status = %s, updated_at = NOW()
                WHERE status = %s AND (expiry_date IS NULL OR expiry_date < %s)
                RETURNING *
                """,
                (EntitlementStatus.EXPIRED.value, EntitlementStatus.ACTIVE.value, now),
            )
            rows = cursor.fetchall() or []
            return [_row_to_entitlement(row) for row in rows]


class InMemoryEntitlementRepository:
    """Thread-safe in-memory store keyed by id with a unique dedup-key index."""

    def __init__(self) -> None:
        self._records: Dict[str, EntitlementRecord] = {}
        self._by_key: Dict[Tuple[str, int], str] = {}
        self._lock = Lock()

    def insert_if_absent(self, record: EntitlementRecord) -> Optional[EntitlementRecord]:
        with self._lock:
            if record.dedup_key in self._by_key:
                return None
            self._records[record.id] = record
            self._by_key[record.dedup_key] = record.id
            return record

    def get_entitlement(self, entitlement_id: str) -> Optional[EntitlementRecord]:
        return self._records.get(entitlement_id)

    def find_by_dedup_key(self, payment_reference: str, amount: int) -> Optional[EntitlementRecord]:
        with self._lock:
            entitlement_id = self._by_key.get((payment_reference, amount))
            return self._records.get(entitlement_id) if entitlement_id else None

    def list_entitlements(
        self,
        *,
        status: Optional[EntitlementStatus] = None,
        user_id: Optional[str] = None,
    ) -> Sequence[EntitlementRecord]:
        with self._lock:
            records = list(self._records.values())
        matching = [
            record
            for record in records
            if (status is None or record.status == status)
            and (user_id is None or record.user_id == user_id)
        ]
        return sorted(matching, key=lambda record: record.created_at, reverse=True)

    def update_entitlement(
        self,
        entitlement_id: str,
        *,
        expected_status: Optional[EntitlementStatus] = None,
        **changes: Any,
    ) -> Optional[EntitlementRecord]:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update entitlement fields: {sorted(unknown)}")
        with self._lock:
            current = self._records.get(entitlement_id)
            if current is None:
                return None
            if expected_status is not None and current.status != expected_status:
                return None
            updated = current.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
            self._records[entitlement_id] = updated
            return updated

    def expire_lapsed(self, now: datetime) -> List[EntitlementRecord]:
        expired: List[EntitlementRecord] = []
        with self._lock:
            for entitlement_id, record in list(self._records.items()):
                if record.status != EntitlementStatus.ACTIVE:
                    continue
                if record.expiry_date is not None and record.expiry_date >= now:
                    continue
                updated = record.model_copy(
                    update={"status": EntitlementStatus.EXPIRED, "updated_at": now}
                )
                self._records[entitlement_id] = updated
                expired.append(updated)
        return expired


__all__ = ["InMemoryEntitlementRepository", "PostgresEntitlementRepository"]
