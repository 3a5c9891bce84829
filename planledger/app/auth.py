"""Credential verification and the single operator guard."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field

from .config import AdminGuardMode
from .errors import AccessDenied


class Principal(BaseModel):
    """Identity re-derived from a verified bearer credential."""

    user_id: str
    email: str = ""
    role: Optional[str] = None
    credential: str = Field(default="", repr=False)

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        return self.email or self.user_id


class CredentialVerifier:
    """Verifies signed bearer tokens and extracts the caller's identity and role."""

    def __init__(self, *, secret_key: str, algorithm: str = "HS256") -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm

    def issue(
        self,
        *,
        user_id: str,
        email: str = "",
        role: Optional[str] = None,
        expires_delta: timedelta = timedelta(hours=1),
    ) -> str:
        """Mint a token; used by local tooling and tests."""

        payload: Dict[str, Any] = {
            "sub": user_id,
            "user_id": user_id,
            "email": email,
            "exp": datetime.now(timezone.utc) + expires_delta,
        }
        if role:
            payload["role"] = role
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, credential: Optional[str]) -> Principal:
        if not credential:
            raise AccessDenied("A bearer credential is required", detail={"reason": "missing_credential"})
        try:
            payload = jwt.decode(credential, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise AccessDenied("Credential could not be verified", detail={"reason": "invalid_credential"}) from exc

        subject = payload.get("user_id") or payload.get("sub")
        if not subject:
            raise AccessDenied("Credential carries no subject", detail={"reason": "invalid_credential"})
        role = payload.get("role")
        return Principal(
            user_id=str(subject),
            email=str(payload.get("email") or ""),
            role=str(role) if role else None,
            credential=credential,
        )


class AdminGuard:
    """Decides whether a verified principal may perform operator actions.

    ``AdminGuardMode.ROLE`` requires the verified ``role`` claim to equal the
    configured admin role. ``AdminGuardMode.AUTHENTICATED`` treats every
    verified principal as an operator. Roles supplied anywhere other than the
    verified credential are never consulted.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        *,
        mode: AdminGuardMode = AdminGuardMode.ROLE,
        admin_role: str = "admin",
    ) -> None:
        self.verifier = verifier
        self.mode = mode
        self.admin_role = admin_role

    def is_admin(self, principal: Principal) -> bool:
        if self.mode == AdminGuardMode.AUTHENTICATED:
            return True
        return principal.role == self.admin_role

    def require_admin(self, credential: Optional[str]) -> Principal:
        principal = self.verifier.verify(credential)
        if not self.is_admin(principal):
            raise AccessDenied(
                "Only administrators can perform this action",
                detail={"reason": "not_admin", "user_id": principal.user_id},
            )
        return principal


__all__ = ["AdminGuard", "CredentialVerifier", "Principal"]
