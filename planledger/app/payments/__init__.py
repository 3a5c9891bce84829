"""Payment ledger package: manual payment records and their persistence."""

from .models import PaymentRecord, PaymentStatus, PaymentSubmission
from .repository import InMemoryPaymentRepository, PostgresPaymentRepository
from .service import PaymentLedger, PaymentRepository

__all__ = [
    "InMemoryPaymentRepository",
    "PaymentLedger",
    "PaymentRecord",
    "PaymentRepository",
    "PaymentStatus",
    "PaymentSubmission",
    "PostgresPaymentRepository",
]
