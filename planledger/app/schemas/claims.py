"""API schemas for claims endpoints."""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from ..claims import ClaimsLookup


class ClaimsWriteRequest(BaseModel):
    custom_claims: Dict[str, Any] = Field(alias="customClaims")

    model_config = ConfigDict(populate_by_name=True)


class ClaimsDeleteRequest(BaseModel):
    fields_to_delete: List[str] = Field(alias="fieldsToDelete")

    model_config = ConfigDict(populate_by_name=True)


class ClaimsListResponse(BaseModel):
    users: List[ClaimsLookup]

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["ClaimsDeleteRequest", "ClaimsListResponse", "ClaimsWriteRequest"]
