"""External payment-processing orchestration."""

from .client import HttpPaymentOrchestrator, PaymentOrchestrator, ProcessPaymentResult

__all__ = ["HttpPaymentOrchestrator", "PaymentOrchestrator", "ProcessPaymentResult"]
