"""Engine configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional


_STORAGE_BACKENDS = {"postgres", "memory"}


class AdminGuardMode(str, Enum):
    """How operator routes decide who counts as an administrator."""

    ROLE = "role"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the entitlement engine and its upstream services."""

    jwt_secret_key: str
    jwt_algorithm: str
    session_cookie_name: str
    claims_api_base_url: str
    orchestration_api_base_url: str
    invoice_api_url: str
    upstream_timeout_seconds: float
    admin_guard_mode: AdminGuardMode
    admin_role: str
    default_claims_role: str
    auto_sync_claims: bool
    send_invoices: bool
    storage_backend: str = "postgres"


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _to_guard_mode(value: Optional[str]) -> AdminGuardMode:
    raw = (value or AdminGuardMode.ROLE.value).strip().lower()
    try:
        return AdminGuardMode(raw)
    except ValueError as exc:
        raise ValueError(f"ADMIN_GUARD_MODE must be 'role' or 'authenticated', got {value!r}") from exc


def _to_storage_backend(value: Optional[str]) -> str:
    backend = (value or "postgres").strip().lower()
    if backend not in _STORAGE_BACKENDS:
        raise ValueError(f"STORAGE_BACKEND must be one of {sorted(_STORAGE_BACKENDS)}, got {value!r}")
    return backend


def load_engine_config(env: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Load :class:`EngineConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    timeout = _to_float(env_mapping.get("UPSTREAM_TIMEOUT_SECONDS"), default=10.0)
    if timeout <= 0:
        raise ValueError("UPSTREAM_TIMEOUT_SECONDS must be positive")

    return EngineConfig(
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_algorithm=env_mapping.get("JWT_ALGORITHM", "HS256"),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session"),
        claims_api_base_url=env_mapping.get("CLAIMS_API_BASE_URL", "http://localhost:8081").rstrip("/"),
        orchestration_api_base_url=env_mapping.get(
            "ORCHESTRATION_API_BASE_URL", "http://localhost:8081"
        ).rstrip("/"),
        invoice_api_url=env_mapping.get("INVOICE_API_URL", ""),
        upstream_timeout_seconds=timeout,
        admin_guard_mode=_to_guard_mode(env_mapping.get("ADMIN_GUARD_MODE")),
        admin_role=(env_mapping.get("ADMIN_ROLE") or "admin").strip(),
        default_claims_role=(env_mapping.get("DEFAULT_CLAIMS_ROLE") or "user").strip(),
        auto_sync_claims=_to_bool(env_mapping.get("AUTO_SYNC_CLAIMS"), default=True),
        send_invoices=_to_bool(env_mapping.get("SEND_INVOICES"), default=False),
        storage_backend=_to_storage_backend(env_mapping.get("STORAGE_BACKEND")),
    )


__all__ = ["AdminGuardMode", "EngineConfig", "load_engine_config"]
