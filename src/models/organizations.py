from datetime import datetime
from typing import Literal

from pydantic import BaseModel, field_validator

from src.auth.permissions import ALL_FEATURES


class MembershipResponse(BaseModel):
    organization_id: str
    name: str | None = None
    slug: str | None = None
    status: str | None = None
    org_role: str | None = None


class CurrentOrganizationRequest(BaseModel):
    organization_id: str


class CurrentOrganizationResponse(BaseModel):
    organization_id: str
    org_role: str | None
    enabled_features: dict[str, bool]


class OrganizationResponse(BaseModel):
    id: str
    name: str
    slug: str
    status: str
    enabled_features: dict[str, bool] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrganizationStatusUpdate(BaseModel):
    status: Literal["active", "suspended"]


class OrganizationFeaturesUpdate(BaseModel):
    enabled_features: dict[str, bool]

    @field_validator("enabled_features")
    @classmethod
    def _known_features(cls, value: dict[str, bool]) -> dict[str, bool]:
        unknown = sorted(set(value) - set(ALL_FEATURES))
        if unknown:
            raise ValueError(f"Unknown features: {', '.join(unknown)}")
        return value
