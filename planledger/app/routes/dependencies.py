"""Request dependencies shared by the operator routers."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request, Response, status

from ..auth import Principal
from ..claims import ClaimsSyncOutcome, SyncStatus
from ..errors import EngineError
from ..services.engine import get_admin_guard, get_credential_verifier, get_engine_config


def get_credential(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the session cookie."""

    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return request.cookies.get(get_engine_config().session_cookie_name) or None


def require_principal(credential: Optional[str] = Depends(get_credential)) -> Principal:
    try:
        return get_credential_verifier().verify(credential)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


def require_operator(credential: Optional[str] = Depends(get_credential)) -> Principal:
    try:
        return get_admin_guard().require_admin(credential)
    except EngineError as exc:
        raise exc.to_http_exception() from exc


def render_sync_outcome(outcome: ClaimsSyncOutcome, response: Response) -> ClaimsSyncOutcome:
    """Return complete outcomes as 200, partial ones as 207 and failed ones as 503."""

    if outcome.status == SyncStatus.FAILED:
        try:
            outcome.raise_for_status()
        except EngineError as exc:
            raise exc.to_http_exception() from exc
    if outcome.status == SyncStatus.PARTIAL:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return outcome


__all__ = ["get_credential", "render_sync_outcome", "require_operator", "require_principal"]
