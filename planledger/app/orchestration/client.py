"""Client for the external payment-processing orchestration service."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..upstream import JsonServiceClient


class ProcessPaymentResult(BaseModel):
    """Step-outcome report returned by the orchestration service, passed through verbatim."""

    status: str
    message: str = ""
    payment_id: str = ""
    user_id: str = ""
    plan_name: str = ""
    claims: Dict[str, Any] = Field(default_factory=dict)
    steps_completed: List[str] = Field(default_factory=list)
    steps_failed: List[str] = Field(default_factory=list)
    steps_not_processed: List[str] = Field(default_factory=list)
    timestamp: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_complete(self) -> bool:
        return not self.steps_failed and not self.steps_not_processed

    @property
    def is_partial(self) -> bool:
        return bool(self.steps_completed) and not self.is_complete


class PaymentOrchestrator(Protocol):
    def process_payment(
        self,
        credential: str,
        *,
        payment_id: str,
        user_id: str,
        plan_name: str,
    ) -> ProcessPaymentResult:
        ...


class HttpPaymentOrchestrator(JsonServiceClient):
    service_name = "orchestration"

    def process_payment(
        self,
        credential: str,
        *,
        payment_id: str,
        user_id: str,
        plan_name: str,
    ) -> ProcessPaymentResult:
        payload = self._request(
            "POST",
            "/process-payment",
            credential=credential,
            body={"payment_id": payment_id, "user_id": user_id, "plan_name": plan_name},
        )
        return ProcessPaymentResult(
            status=str(payload.get("status") or "unknown"),
            message=str(payload.get("message") or ""),
            payment_id=str(payload.get("payment_id") or payment_id),
            user_id=str(payload.get("user_id") or user_id),
            plan_name=str(payload.get("plan_name") or plan_name),
            claims=dict(payload.get("custom_claims") or {}),
            steps_completed=[str(step) for step in payload.get("steps_completed") or []],
            steps_failed=[str(step) for step in payload.get("steps_failed") or []],
            steps_not_processed=[str(step) for step in payload.get("steps_not_processed") or []],
            timestamp=payload.get("timestamp"),
        )


__all__ = ["HttpPaymentOrchestrator", "PaymentOrchestrator", "ProcessPaymentResult"]
