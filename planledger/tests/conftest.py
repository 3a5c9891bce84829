from __future__ import annotations

import pathlib
import sys
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest


ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from planledger.app.auth import AdminGuard, CredentialVerifier, Principal
from planledger.app.claims import ClaimsLookup, ClaimsSynchronizer
from planledger.app.config import AdminGuardMode
from planledger.app.entitlements import EntitlementStore, InMemoryEntitlementRepository
from planledger.app.errors import NotFound
from planledger.app.events import EntitlementChanged, EntitlementEventBus
from planledger.app.payments import InMemoryPaymentRepository, PaymentLedger, PaymentSubmission


TEST_SECRET = "test-secret"


class FakeClaimsService:
    """In-memory stand-in for the external claims service.

    Registered users without claims return an empty snapshot; unknown users
    raise ``NotFound`` like the real service. ``fail_next`` queues an
    exception for the next call of a method. With ``ignore_writes`` set,
    writes are acknowledged but never applied.
    """

    def __init__(self) -> None:
        self.snapshots: Dict[str, Dict[str, Any]] = {}
        self.emails: Dict[str, str] = {}
        self.failures: Dict[str, List[Exception]] = defaultdict(list)
        self.calls: List[str] = []
        self.ignore_writes = False

    def add_user(self, user_id: str, email: str = "", claims: Optional[Mapping[str, Any]] = None) -> None:
        self.snapshots[user_id] = dict(claims or {})
        if email:
            self.emails[email] = user_id

    def fail_next(self, method: str, exc: Exception) -> None:
        self.failures[method].append(exc)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if self.failures[method]:
            raise self.failures[method].pop(0)

    def _require_user(self, user_id: Optional[str]) -> str:
        if user_id is None or user_id not in self.snapshots:
            raise NotFound(f"claims: no user {user_id}")
        return user_id

    def _email_for(self, user_id: str) -> str:
        for email, owner in self.emails.items():
            if owner == user_id:
                return email
        return ""

    def get_claims(self, credential: str, *, user_id: Optional[str] = None, email: Optional[str] = None) -> ClaimsLookup:
        self._enter("get_claims")
        if email:
            user_id = self.emails.get(email)
        subject = self._require_user(user_id)
        return ClaimsLookup(
            user_id=subject,
            email=self._email_for(subject),
            custom_claims=dict(self.snapshots[subject]),
        )

    def list_claims(self, credential: str, *, search: Optional[str] = None) -> Sequence[ClaimsLookup]:
        self._enter("list_claims")
        return [
            ClaimsLookup(user_id=user_id, email=self._email_for(user_id), custom_claims=dict(claims))
            for user_id, claims in sorted(self.snapshots.items())
            if not search or search in user_id
        ]

    def set_claims(self, credential: str, user_id: str, claims: Mapping[str, Any]) -> Dict[str, Any]:
        self._enter("set_claims")
        subject = self._require_user(user_id)
        if not self.ignore_writes:
            self.snapshots[subject] = dict(claims)
        return dict(claims)

    def update_claims(self, credential: str, user_id: str, claims: Mapping[str, Any]) -> Dict[str, Any]:
        self._enter("update_claims")
        subject = self._require_user(user_id)
        merged = {**self.snapshots[subject], **claims}
        if not self.ignore_writes:
            self.snapshots[subject] = merged
        return merged

    def delete_claims(self, credential: str, user_id: str, fields: Sequence[str]) -> Dict[str, Any]:
        self._enter("delete_claims")
        subject = self._require_user(user_id)
        remaining = {key: value for key, value in self.snapshots[subject].items() if key not in fields}
        if not self.ignore_writes:
            self.snapshots[subject] = remaining
        return remaining


class RecordingListener:
    def __init__(self) -> None:
        self.events: List[EntitlementChanged] = []

    def __call__(self, event: EntitlementChanged) -> None:
        self.events.append(event)


def make_submission(**overrides: Any) -> PaymentSubmission:
    values: Dict[str, Any] = {
        "amount": 449,
        "payment_reference": "UTR-1001",
        "payment_method": "upi",
        "plan_name": "Premium - Monthly (₹449)",
        "user_id": "user-1",
        "user_email": "learner@example.com",
        "utr_number": "UTR-1001",
    }
    values.update(overrides)
    return PaymentSubmission(**values)


@pytest.fixture
def verifier() -> CredentialVerifier:
    return CredentialVerifier(secret_key=TEST_SECRET)


@pytest.fixture
def guard(verifier: CredentialVerifier) -> AdminGuard:
    return AdminGuard(verifier, mode=AdminGuardMode.ROLE)


@pytest.fixture
def admin_token(verifier: CredentialVerifier) -> str:
    return verifier.issue(user_id="admin-1", email="ops@example.com", role="admin")


@pytest.fixture
def user_token(verifier: CredentialVerifier) -> str:
    return verifier.issue(user_id="user-1", email="learner@example.com", role="user")


@pytest.fixture
def admin(verifier: CredentialVerifier, admin_token: str) -> Principal:
    return verifier.verify(admin_token)


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def event_bus(listener: RecordingListener) -> EntitlementEventBus:
    bus = EntitlementEventBus()
    bus.subscribe(listener)
    return bus


@pytest.fixture
def payment_repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def entitlement_repository() -> InMemoryEntitlementRepository:
    return InMemoryEntitlementRepository()


@pytest.fixture
def ledger(payment_repository: InMemoryPaymentRepository) -> PaymentLedger:
    return PaymentLedger(repository=payment_repository)


@pytest.fixture
def store(entitlement_repository: InMemoryEntitlementRepository, event_bus: EntitlementEventBus) -> EntitlementStore:
    return EntitlementStore(repository=entitlement_repository, event_bus=event_bus)


@pytest.fixture
def claims_service() -> FakeClaimsService:
    service = FakeClaimsService()
    service.add_user("user-1", "learner@example.com")
    service.add_user("user-2", "second@example.com")
    return service


@pytest.fixture
def synchronizer(claims_service: FakeClaimsService, guard: AdminGuard, event_bus: EntitlementEventBus) -> ClaimsSynchronizer:
    return ClaimsSynchronizer(service=claims_service, guard=guard, event_bus=event_bus)


@pytest.fixture
def submit(ledger: PaymentLedger):
    def _submit(**overrides: Any):
        return ledger.submit(make_submission(**overrides))

    return _submit
