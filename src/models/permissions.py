from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel

from src.auth.permissions import validate_permission_flag


def _check_flags(value: dict[str, bool] | None) -> dict[str, bool] | None:
    if value is None:
        return None
    for flag in value:
        validate_permission_flag(flag)
    return value


PermissionMap = Annotated[dict[str, bool], AfterValidator(_check_flags)]


class RoleCreate(BaseModel):
    name: str
    description: str | None = None
    permissions: PermissionMap = {}
    is_active: bool = True


class RoleUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    permissions: PermissionMap | None = None
    is_active: bool | None = None


class RoleResponse(BaseModel):
    id: str
    organization_id: str | None = None
    name: str
    description: str | None = None
    permissions: dict[str, bool]
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GroupCreate(BaseModel):
    name: str
    description: str | None = None
    permissions: PermissionMap = {}
    is_active: bool = True
    organization_id: str | None = None


class GroupUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    permissions: PermissionMap | None = None
    is_active: bool | None = None


class GroupResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    description: str | None = None
    permissions: dict[str, bool]
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GroupMembershipCreate(BaseModel):
    user_id: str


class GroupMembershipResponse(BaseModel):
    id: str
    user_id: str
    group_id: str
    assigned_by_id: str | None = None


class PermissionOverrideUpdate(BaseModel):
    permissions: PermissionMap


class PermissionOverrideResponse(BaseModel):
    user_id: str
    permissions: dict[str, bool]
    assigned_by_id: str | None = None


class ResolvedPermissionsResponse(BaseModel):
    user_id: str
    permissions: dict[str, bool]


class GroupPermissionSummary(BaseModel):
    group_id: str
    group_name: str | None = None
    permissions: dict[str, bool]


class SecuritySummaryResponse(BaseModel):
    user_id: str
    role_permissions: dict[str, bool]
    group_permissions: list[GroupPermissionSummary]
    individual_permissions: dict[str, bool]
    resolved_permissions: dict[str, bool]


class EnhancedPermissionResponse(BaseModel):
    user_id: str
    permission: str
    granted: bool
