"""Domain exceptions raised by the entitlement engine."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from fastapi import HTTPException, status

if TYPE_CHECKING:  # pragma: no cover
    from .claims.models import ClaimsSyncOutcome
    from .entitlements.models import EntitlementRecord


class EngineError(Exception):
    """Base class for errors surfaced to operators and API callers."""

    code = "engine_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, detail: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = dict(detail or {})

    @property
    def payload(self) -> Dict[str, Any]:
        """Serialized representation suitable for JSON responses."""

        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        body.update(self.detail)
        return body

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=self.payload)


class ValidationError(EngineError):
    """Required input is missing or malformed."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidState(EngineError):
    """A transition was attempted from the wrong status."""

    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class NotFound(EngineError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class AccessDenied(EngineError):
    """The verified credential does not carry the required role."""

    code = "access_denied"
    status_code = status.HTTP_403_FORBIDDEN


class DuplicateEntitlement(EngineError):
    """An entitlement already exists for the dedup key.

    Non-fatal: the desired end state already holds. ``existing`` carries the
    record that won the insert when the store could return it.
    """

    code = "duplicate_entitlement"
    status_code = status.HTTP_200_OK

    def __init__(
        self,
        message: str,
        *,
        existing: Optional["EntitlementRecord"] = None,
        detail: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.existing = existing


class UpstreamUnavailable(EngineError):
    """An external service could not be reached or failed; safe to retry."""

    code = "upstream_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(
        self,
        message: str,
        *,
        service: str = "",
        outcome: Optional["ClaimsSyncOutcome"] = None,
        detail: Optional[Mapping[str, Any]] = None,
    ) -> None:
        merged: Dict[str, Any] = dict(detail or {})
        if service:
            merged.setdefault("service", service)
        if outcome is not None:
            merged.setdefault("outcome", outcome.model_dump(mode="json"))
        super().__init__(message, detail=merged)
        self.service = service
        self.outcome = outcome


class PartialFailure(EngineError):
    """Some, but not all, synchronization steps completed."""

    code = "partial_failure"
    status_code = status.HTTP_207_MULTI_STATUS

    def __init__(self, message: str, *, outcome: "ClaimsSyncOutcome") -> None:
        super().__init__(message, detail={"outcome": outcome.model_dump(mode="json")})
        self.outcome = outcome


__all__ = [
    "AccessDenied",
    "DuplicateEntitlement",
    "EngineError",
    "InvalidState",
    "NotFound",
    "PartialFailure",
    "UpstreamUnavailable",
    "ValidationError",
]
