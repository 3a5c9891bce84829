"""Static catalog mapping purchasable plan names to claims plan codes."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class PlanDefinition:
    """Describes a purchasable plan and how it is represented in claims."""

    display_name: str
    claims_code: str
    amount: Optional[int] = None


PREMIUM_MONTHLY = "PREMIUM_MONTHLY"
PREMIUM_YEARLY = "PREMIUM_YEARLY"
PREMIUM_GENAI = "PREMIUM_GENAI_DEV_01"

PLAN_CATALOG: Dict[str, PlanDefinition] = {
    definition.display_name: definition
    for definition in (
        PlanDefinition(display_name="Premium - Monthly (₹449)", claims_code=PREMIUM_MONTHLY, amount=449),
        PlanDefinition(display_name="Premium - Yearly (₹4308)", claims_code=PREMIUM_YEARLY, amount=4308),
        PlanDefinition(display_name="AI Fundamentals (₹30000)", claims_code=PREMIUM_GENAI, amount=30000),
    )
}

_KNOWN_CODES = {PREMIUM_MONTHLY, PREMIUM_YEARLY, PREMIUM_GENAI}


def get_plan_definition(plan_name: str) -> Optional[PlanDefinition]:
    return PLAN_CATALOG.get(plan_name)


def claims_plan_code(plan_name: str) -> str:
    """Return the claims plan code advertised for ``plan_name``.

    Catalog names and known codes map exactly; other names fall back to
    keyword rules and finally to their upper snake-case form.
    """

    stripped = (plan_name or "").strip()
    definition = PLAN_CATALOG.get(stripped)
    if definition is not None:
        return definition.claims_code
    if stripped in _KNOWN_CODES:
        return stripped

    lowered = stripped.lower()
    if "monthly" in lowered:
        return PREMIUM_MONTHLY
    if "yearly" in lowered:
        return PREMIUM_YEARLY
    if "ai fundamentals" in lowered or "genai" in lowered:
        return PREMIUM_GENAI

    slug = re.sub(r"[^A-Za-z0-9]+", "_", stripped).strip("_")
    return slug.upper()


__all__ = [
    "PLAN_CATALOG",
    "PREMIUM_GENAI",
    "PREMIUM_MONTHLY",
    "PREMIUM_YEARLY",
    "PlanDefinition",
    "claims_plan_code",
    "get_plan_definition",
]
