"""HTTP client for the external authorization-claims service."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from ..upstream import JsonServiceClient
from .models import ClaimsLookup


class ClaimsService(Protocol):
    """Contract of the external service that owns the claims snapshots."""

    def get_claims(
        self,
        credential: str,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ClaimsLookup:
        ...

    def list_claims(self, credential: str, *, search: Optional[str] = None) -> Sequence[ClaimsLookup]:
        ...

    def set_claims(self, credential: str, user_id: str, claims: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    def update_claims(self, credential: str, user_id: str, claims: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    def delete_claims(self, credential: str, user_id: str, fields: Sequence[str]) -> Dict[str, Any]:
        ...


def _lookup_from_payload(payload: Mapping[str, Any], fallback_user_id: str = "") -> ClaimsLookup:
    return ClaimsLookup(
        user_id=str(payload.get("user_id") or fallback_user_id),
        email=str(payload.get("email") or ""),
        custom_claims=dict(payload.get("custom_claims") or {}),
    )


class HttpClaimsService(JsonServiceClient):
    """Talks to the claims service endpoints; every call forwards the caller's credential."""

    service_name = "claims"

    def get_claims(
        self,
        credential: str,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ClaimsLookup:
        if bool(user_id) == bool(email):
            raise ValueError("Exactly one of user_id or email is required")
        params = {"user_id": user_id} if user_id else {"email": email}
        payload = self._request("GET", "/get-custom-claims", credential=credential, params=params)
        return _lookup_from_payload(payload, fallback_user_id=user_id or "")

    def list_claims(self, credential: str, *, search: Optional[str] = None) -> List[ClaimsLookup]:
        params = {"user-id": search} if search else None
        payload = self._request("GET", "/get-all-custom-claims", credential=credential, params=params)
        users = payload.get("users") or []
        return [_lookup_from_payload(user) for user in users if isinstance(user, dict)]

    def set_claims(self, credential: str, user_id: str, claims: Mapping[str, Any]) -> Dict[str, Any]:
        payload = self._request(
            "POST",
            "/set-custom-claims",
            credential=credential,
            body={"user_id": user_id, "custom_claims": dict(claims)},
        )
        return dict(payload.get("custom_claims") or {})

    def update_claims(self, credential: str, user_id: str, claims: Mapping[str, Any]) -> Dict[str, Any]:
        payload = self._request(
            "PUT",
            "/update-custom-claims",
            credential=credential,
            body={"user_id": user_id, "custom_claims": dict(claims)},
        )
        return dict(payload.get("custom_claims") or {})

    def delete_claims(self, credential: str, user_id: str, fields: Sequence[str]) -> Dict[str, Any]:
        payload = self._request(
            "DELETE",
            "/delete-custom-claims",
            credential=credential,
            body={"user_id": user_id, "fields_to_delete": list(fields)},
        )
        return dict(payload.get("custom_claims") or {})


__all__ = ["ClaimsService", "HttpClaimsService"]
