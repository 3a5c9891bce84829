"""Entitlement domain: duration inference, catalog and the deduplicated store."""

from .catalog import PLAN_CATALOG, PlanDefinition, claims_plan_code, get_plan_definition
from .duration import add_months, add_years, duration
from .models import EntitlementRecord, EntitlementStatus, ValidityWindow
from .repository import InMemoryEntitlementRepository, PostgresEntitlementRepository
from .service import EntitlementRepository, EntitlementStore, is_expired

__all__ = [
    "PLAN_CATALOG",
    "EntitlementRecord",
    "EntitlementRepository",
    "EntitlementStatus",
    "EntitlementStore",
    "InMemoryEntitlementRepository",
    "PlanDefinition",
    "PostgresEntitlementRepository",
    "ValidityWindow",
    "add_months",
    "add_years",
    "claims_plan_code",
    "duration",
    "get_plan_definition",
    "is_expired",
]
