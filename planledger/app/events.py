"""Typed notifications emitted when an entitlement changes."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger("entitlement_events")


class EntitlementChangeKind(str, Enum):
    ACTIVATED = "activated"
    EXTENDED = "extended"
    PLAN_CHANGED = "plan_changed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    CLAIMS_SYNCED = "claims_synced"


class EntitlementChanged(BaseModel):
    """Published after an entitlement write has been persisted."""

    kind: EntitlementChangeKind
    entitlement_id: str
    subject_id: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


EntitlementHandler = Callable[[EntitlementChanged], None]


class EntitlementEventBus:
    """In-process publish/subscribe hub for entitlement changes.

    Handlers run synchronously in subscription order. A failing handler is
    logged and skipped so the remaining subscribers still receive the event.
    """

    def __init__(self) -> None:
        self._handlers: List[EntitlementHandler] = []
        self._lock = Lock()

    def subscribe(self, handler: EntitlementHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unsubscribes it."""

        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, event: EntitlementChanged) -> int:
        """Deliver ``event`` to all subscribers; return the number that succeeded."""

        with self._lock:
            handlers = list(self._handlers)
        delivered = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Entitlement event handler failed",
                    extra={"event_kind": event.kind.value, "entitlement_id": event.entitlement_id},
                )
                continue
            delivered += 1
        return delivered


def publish_change(
    bus: Optional[EntitlementEventBus],
    kind: EntitlementChangeKind,
    *,
    entitlement_id: str,
    subject_id: str,
) -> None:
    if bus is None:
        return
    bus.publish(EntitlementChanged(kind=kind, entitlement_id=entitlement_id, subject_id=subject_id))


__all__ = [
    "EntitlementChangeKind",
    "EntitlementChanged",
    "EntitlementEventBus",
    "EntitlementHandler",
    "publish_change",
]
