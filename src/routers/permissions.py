from fastapi import APIRouter, Depends, status

from src.auth import AuthContext
from src.auth.dependencies import require_permission
from src.auth.permissions import (
    CAN_DELETE_GROUPS,
    CAN_DELETE_ROLES,
    CAN_DELETE_SECURITY_SETTINGS,
    CAN_EDIT_GROUPS,
    CAN_EDIT_ROLES,
    CAN_EDIT_SECURITY_SETTINGS,
    CAN_MODIFY_GROUPS,
    CAN_MODIFY_ROLES,
    CAN_MODIFY_SECURITY_SETTINGS,
    CAN_SEE_GROUPS,
    CAN_SEE_ROLES,
    CAN_SEE_SECURITY_SETTINGS,
    is_known_flag,
)
from src.auth.resolver import check_enhanced_permission, permission_security_summary, resolve_permissions
from src.auth.tenant import (
    bind_tenant_payload,
    ensure_user_in_tenant,
    tenant_from_auth,
    tenant_get,
    tenant_query,
)
from src.db import supabase
from src.domain.errors import AuthorizationError, InvalidRequestError, NotFoundError
from src.domain.timestamps import utcnow
from src.models.permissions import (
    EnhancedPermissionResponse,
    GroupCreate,
    GroupMembershipCreate,
    GroupMembershipResponse,
    GroupResponse,
    GroupUpdate,
    PermissionOverrideResponse,
    PermissionOverrideUpdate,
    ResolvedPermissionsResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    SecuritySummaryResponse,
)
from src.observability import log_event

router = APIRouter(prefix="/api", tags=["permissions"])

_ROLE_COLUMNS = "id, organization_id, name, description, permissions, is_active, created_at, updated_at"
_GROUP_COLUMNS = "id, organization_id, name, description, permissions, is_active, created_at, updated_at"


def _load_editable_role(role_id: str, auth: AuthContext) -> dict:
    result = supabase.table("roles").select(_ROLE_COLUMNS).eq("id", role_id).execute()
    if not result.data:
        raise NotFoundError("Role not found")
    role = result.data[0]
    if role.get("organization_id") is None:
        raise AuthorizationError("Platform default roles cannot be changed")
    if role["organization_id"] != auth.organization_id:
        raise NotFoundError("Role not found")
    return role


def _require_update(update_data: dict) -> dict:
    if not update_data:
        raise InvalidRequestError("No fields to update")
    update_data["updated_at"] = utcnow().isoformat()
    return update_data


# --- Roles ---

@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(auth: AuthContext = Depends(require_permission(CAN_SEE_ROLES))):
    """Platform default roles plus roles defined by the caller's organization."""
    defaults = supabase.table("roles").select(_ROLE_COLUMNS).is_("organization_id", "null").execute()
    tenant_roles = tenant_query("roles", tenant_from_auth(auth), _ROLE_COLUMNS).execute()
    return (defaults.data or []) + (tenant_roles.data or [])


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(data: RoleCreate, auth: AuthContext = Depends(require_permission(CAN_MODIFY_ROLES))):
    now = utcnow().isoformat()
    payload = {
        **data.model_dump(),
        "organization_id": auth.organization_id,
        "created_at": now,
        "updated_at": now,
    }
    result = supabase.table("roles").insert(payload).execute()
    log_event("role_created", organization_id=auth.organization_id, role_id=result.data[0]["id"])
    return result.data[0]


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: RoleUpdate,
    auth: AuthContext = Depends(require_permission(CAN_EDIT_ROLES)),
):
    _load_editable_role(role_id, auth)
    update_data = _require_update(data.model_dump(exclude_unset=True))
    result = supabase.table("roles").update(update_data).eq("id", role_id).eq(
        "organization_id", auth.organization_id
    ).execute()
    if not result.data:
        raise NotFoundError("Role not found")
    return result.data[0]


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(role_id: str, auth: AuthContext = Depends(require_permission(CAN_DELETE_ROLES))):
    _load_editable_role(role_id, auth)
    supabase.table("roles").delete().eq("id", role_id).eq("organization_id", auth.organization_id).execute()
    return None


# --- Groups ---

@router.get("/groups", response_model=list[GroupResponse])
async def list_groups(auth: AuthContext = Depends(require_permission(CAN_SEE_GROUPS))):
    result = tenant_query("user_groups", tenant_from_auth(auth), _GROUP_COLUMNS).execute()
    return result.data


@router.post("/groups", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(data: GroupCreate, auth: AuthContext = Depends(require_permission(CAN_MODIFY_GROUPS))):
    now = utcnow().isoformat()
    payload = bind_tenant_payload(data.model_dump(), tenant_from_auth(auth))
    payload.update({"created_at": now, "updated_at": now})
    result = supabase.table("user_groups").insert(payload).execute()
    return result.data[0]


@router.put("/groups/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    data: GroupUpdate,
    auth: AuthContext = Depends(require_permission(CAN_EDIT_GROUPS)),
):
    tenant_get("user_groups", tenant_from_auth(auth), group_id, "id", label="Group")
    update_data = _require_update(data.model_dump(exclude_unset=True))
    result = supabase.table("user_groups").update(update_data).eq("id", group_id).eq(
        "organization_id", auth.organization_id
    ).execute()
    if not result.data:
        raise NotFoundError("Group not found")
    return result.data[0]


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(group_id: str, auth: AuthContext = Depends(require_permission(CAN_DELETE_GROUPS))):
    tenant_get("user_groups", tenant_from_auth(auth), group_id, "id", label="Group")
    supabase.table("user_group_memberships").delete().eq("group_id", group_id).execute()
    supabase.table("user_groups").delete().eq("id", group_id).eq("organization_id", auth.organization_id).execute()
    return None


@router.get("/groups/{group_id}/members", response_model=list[GroupMembershipResponse])
async def list_group_members(group_id: str, auth: AuthContext = Depends(require_permission(CAN_SEE_GROUPS))):
    tenant_get("user_groups", tenant_from_auth(auth), group_id, "id", label="Group")
    result = supabase.table("user_group_memberships").select(
        "id, user_id, group_id, assigned_by_id"
    ).eq("group_id", group_id).execute()
    return result.data


@router.post(
    "/groups/{group_id}/members",
    response_model=GroupMembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_group_member(
    group_id: str,
    data: GroupMembershipCreate,
    auth: AuthContext = Depends(require_permission(CAN_EDIT_GROUPS)),
):
    tenant = tenant_from_auth(auth)
    tenant_get("user_groups", tenant, group_id, "id", label="Group")
    ensure_user_in_tenant(data.user_id, tenant)

    existing = supabase.table("user_group_memberships").select(
        "id, user_id, group_id, assigned_by_id"
    ).eq("group_id", group_id).eq("user_id", data.user_id).execute()
    if existing.data:
        return existing.data[0]

    result = supabase.table("user_group_memberships").insert({
        "user_id": data.user_id,
        "group_id": group_id,
        "assigned_by_id": auth.user_id,
    }).execute()
    return result.data[0]


@router.delete("/groups/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_group_member(
    group_id: str,
    user_id: str,
    auth: AuthContext = Depends(require_permission(CAN_EDIT_GROUPS)),
):
    tenant_get("user_groups", tenant_from_auth(auth), group_id, "id", label="Group")
    result = supabase.table("user_group_memberships").delete().eq("group_id", group_id).eq(
        "user_id", user_id
    ).execute()
    if not result.data:
        raise NotFoundError("Membership not found")
    return None


# --- Individual overrides ---

def _load_override(user_id: str) -> dict | None:
    result = supabase.table("user_permissions").select(
        "id, user_id, permissions, assigned_by_id"
    ).eq("user_id", user_id).execute()
    return result.data[0] if result.data else None


@router.get("/users/{user_id}/permissions", response_model=PermissionOverrideResponse)
async def get_permission_override(
    user_id: str,
    auth: AuthContext = Depends(require_permission(CAN_SEE_SECURITY_SETTINGS)),
):
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    override = _load_override(user_id)
    if override is None:
        return PermissionOverrideResponse(user_id=user_id, permissions={})
    return override


@router.post(
    "/users/{user_id}/permissions",
    response_model=PermissionOverrideResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_permission_override(
    user_id: str,
    data: PermissionOverrideUpdate,
    auth: AuthContext = Depends(require_permission(CAN_MODIFY_SECURITY_SETTINGS)),
):
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    if _load_override(user_id) is not None:
        raise InvalidRequestError("User already has a permission override")
    result = supabase.table("user_permissions").insert({
        "user_id": user_id,
        "permissions": data.permissions,
        "assigned_by_id": auth.user_id,
    }).execute()
    log_event("permission_override_created", organization_id=auth.organization_id, user_id=user_id)
    return result.data[0]


@router.put("/users/{user_id}/permissions", response_model=PermissionOverrideResponse)
async def update_permission_override(
    user_id: str,
    data: PermissionOverrideUpdate,
    auth: AuthContext = Depends(require_permission(CAN_EDIT_SECURITY_SETTINGS)),
):
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    if _load_override(user_id) is None:
        raise NotFoundError("Permission override not found")
    result = supabase.table("user_permissions").update({
        "permissions": data.permissions,
        "assigned_by_id": auth.user_id,
    }).eq("user_id", user_id).execute()
    log_event("permission_override_updated", organization_id=auth.organization_id, user_id=user_id)
    return result.data[0]


@router.delete("/users/{user_id}/permissions", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission_override(
    user_id: str,
    auth: AuthContext = Depends(require_permission(CAN_DELETE_SECURITY_SETTINGS)),
):
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    result = supabase.table("user_permissions").delete().eq("user_id", user_id).execute()
    if not result.data:
        raise NotFoundError("Permission override not found")
    return None


# --- Resolution views ---

@router.get("/users/{user_id}/resolved-permissions", response_model=ResolvedPermissionsResponse)
async def get_resolved_permissions(
    user_id: str,
    auth: AuthContext = Depends(require_permission(CAN_SEE_SECURITY_SETTINGS)),
):
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    return ResolvedPermissionsResponse(user_id=user_id, permissions=resolve_permissions(user_id))


@router.get("/users/{user_id}/security-summary", response_model=SecuritySummaryResponse)
async def get_security_summary(
    user_id: str,
    auth: AuthContext = Depends(require_permission(CAN_SEE_SECURITY_SETTINGS)),
):
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    return SecuritySummaryResponse(user_id=user_id, **permission_security_summary(user_id))


@router.get("/users/{user_id}/enhanced-permissions/{flag}", response_model=EnhancedPermissionResponse)
async def get_enhanced_permission(
    user_id: str,
    flag: str,
    auth: AuthContext = Depends(require_permission(CAN_SEE_SECURITY_SETTINGS)),
):
    """Permission check that also applies the caller's support-session restrictions."""
    if not is_known_flag(flag):
        raise InvalidRequestError(f"Unknown permission flag: {flag}")
    ensure_user_in_tenant(user_id, tenant_from_auth(auth))
    return EnhancedPermissionResponse(
        user_id=user_id,
        permission=flag,
        granted=check_enhanced_permission(user_id, flag, auth.impersonation),
    )
