"""Invoice notifications sent to payers once a payment is verified."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict

from .payments.models import PaymentRecord
from .upstream import JsonServiceClient


logger = logging.getLogger("invoices")


class InvoiceRequest(BaseModel):
    name: str
    email: str
    amount: int
    plan_name: str
    utr: str = ""
    payment_id: str
    notes: str = ""
    payment_method: str = ""
    verified_by: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_payment(cls, payment: PaymentRecord) -> "InvoiceRequest":
        return cls(
            name=payment.user_email.split("@", 1)[0],
            email=payment.user_email,
            amount=payment.amount,
            plan_name=payment.plan_name,
            utr=payment.utr_number or payment.payment_reference,
            payment_id=payment.payment_reference,
            notes=payment.remarks,
            payment_method=payment.payment_method,
            verified_by=payment.verified_by or "",
        )


class InvoiceSender(Protocol):
    def send_invoice(self, credential: str, invoice: InvoiceRequest) -> Optional[str]:
        """Dispatch ``invoice``; return the provider's invoice id when known."""


class LoggingInvoiceSender:
    """Development sender that logs invoices instead of dispatching them."""

    def send_invoice(self, credential: str, invoice: InvoiceRequest) -> Optional[str]:
        logger.info(
            "Invoice dispatch skipped",
            extra={
                "invoice_email": invoice.email,
                "invoice_plan": invoice.plan_name,
                "invoice_amount": invoice.amount,
            },
        )
        return None


class HttpInvoiceSender(JsonServiceClient):
    service_name = "invoices"

    def send_invoice(self, credential: str, invoice: InvoiceRequest) -> Optional[str]:
        payload = self._request("POST", "", credential=credential, body=invoice.model_dump())
        invoice_id = payload.get("invoice_id")
        return str(invoice_id) if invoice_id else None


__all__ = ["HttpInvoiceSender", "InvoiceRequest", "InvoiceSender", "LoggingInvoiceSender"]
