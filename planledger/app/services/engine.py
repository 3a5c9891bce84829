"""Application wiring for the entitlement engine."""
from __future__ import annotations

import logging
from functools import lru_cache

from ..auth import AdminGuard, CredentialVerifier
from ..claims import ClaimsSynchronizer, HttpClaimsService
from ..config import EngineConfig, load_engine_config
from ..entitlements import (
    EntitlementRepository,
    EntitlementStore,
    InMemoryEntitlementRepository,
    PostgresEntitlementRepository,
)
from ..events import EntitlementChanged, EntitlementEventBus
from ..invoices import HttpInvoiceSender, InvoiceSender, LoggingInvoiceSender
from ..orchestration import HttpPaymentOrchestrator
from ..payments import (
    InMemoryPaymentRepository,
    PaymentLedger,
    PaymentRepository,
    PostgresPaymentRepository,
)
from ..reconciliation import ReconciliationReader
from ..verification import VerificationGate


logger = logging.getLogger("entitlement_engine")


class LoggingEntitlementListener:
    """Subscriber forwarding entitlement change events to logging."""

    def __call__(self, event: EntitlementChanged) -> None:
        logger.info(
            "Entitlement event %s entitlement=%s subject=%s",
            event.kind.value,
            event.entitlement_id,
            event.subject_id,
        )


@lru_cache(maxsize=1)
def get_engine_config() -> EngineConfig:
    return load_engine_config()


@lru_cache(maxsize=1)
def get_event_bus() -> EntitlementEventBus:
    bus = EntitlementEventBus()
    bus.subscribe(LoggingEntitlementListener())
    return bus


@lru_cache(maxsize=1)
def get_credential_verifier() -> CredentialVerifier:
    config = get_engine_config()
    return CredentialVerifier(secret_key=config.jwt_secret_key, algorithm=config.jwt_algorithm)


@lru_cache(maxsize=1)
def get_admin_guard() -> AdminGuard:
    config = get_engine_config()
    return AdminGuard(
        get_credential_verifier(),
        mode=config.admin_guard_mode,
        admin_role=config.admin_role,
    )


def _payment_repository(config: EngineConfig) -> PaymentRepository:
    if config.storage_backend == "memory":
        return InMemoryPaymentRepository()
    return PostgresPaymentRepository()


def _entitlement_repository(config: EngineConfig) -> EntitlementRepository:
    if config.storage_backend == "memory":
        return InMemoryEntitlementRepository()
    return PostgresEntitlementRepository()


@lru_cache(maxsize=1)
def get_payment_ledger() -> PaymentLedger:
    return PaymentLedger(repository=_payment_repository(get_engine_config()))


@lru_cache(maxsize=1)
def get_entitlement_store() -> EntitlementStore:
    return EntitlementStore(
        repository=_entitlement_repository(get_engine_config()),
        event_bus=get_event_bus(),
    )


@lru_cache(maxsize=1)
def get_claims_service() -> HttpClaimsService:
    config = get_engine_config()
    return HttpClaimsService(
        base_url=config.claims_api_base_url,
        timeout=config.upstream_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_claims_synchronizer() -> ClaimsSynchronizer:
    config = get_engine_config()
    return ClaimsSynchronizer(
        service=get_claims_service(),
        guard=get_admin_guard(),
        default_role=config.default_claims_role,
        event_bus=get_event_bus(),
    )


def _build_invoice_sender(config: EngineConfig) -> InvoiceSender:
    if config.invoice_api_url:
        return HttpInvoiceSender(base_url=config.invoice_api_url, timeout=config.upstream_timeout_seconds)
    return LoggingInvoiceSender()


@lru_cache(maxsize=1)
def get_verification_gate() -> VerificationGate:
    config = get_engine_config()
    return VerificationGate(
        ledger=get_payment_ledger(),
        store=get_entitlement_store(),
        synchronizer=get_claims_synchronizer() if config.auto_sync_claims else None,
        invoice_sender=_build_invoice_sender(config) if config.send_invoices else None,
    )


@lru_cache(maxsize=1)
def get_reconciliation_reader() -> ReconciliationReader:
    return ReconciliationReader(
        payments=get_payment_ledger().repository,
        entitlements=get_entitlement_store().repository,
        claims=get_claims_service(),
        guard=get_admin_guard(),
    )


@lru_cache(maxsize=1)
def get_payment_orchestrator() -> HttpPaymentOrchestrator:
    config = get_engine_config()
    return HttpPaymentOrchestrator(
        base_url=config.orchestration_api_base_url,
        timeout=config.upstream_timeout_seconds,
    )


__all__ = [
    "LoggingEntitlementListener",
    "get_admin_guard",
    "get_claims_service",
    "get_claims_synchronizer",
    "get_credential_verifier",
    "get_engine_config",
    "get_entitlement_store",
    "get_event_bus",
    "get_payment_ledger",
    "get_payment_orchestrator",
    "get_reconciliation_reader",
    "get_verification_gate",
]
