"""Tenant (organization) context resolution and tenant-scoped query helpers."""

from __future__ import annotations

import logging
from typing import Any

from src.auth.context import AuthContext, ImpersonationState, TenantContext
from src.db import supabase
from src.domain.errors import (
    AuthorizationError,
    NotFoundError,
    TenantIsolationViolation,
    TenantSelectionRequired,
)
from src.observability import log_event

ORGANIZATION_STATUS_ACTIVE = "active"
ORGANIZATION_STATUS_SUSPENDED = "suspended"


def _active_memberships(user_id: str) -> list[dict]:
    result = supabase.table("organization_memberships").select(
        "organization_id, org_role, is_active"
    ).eq("user_id", user_id).eq("is_active", True).execute()
    return result.data or []


def _load_organization(organization_id: str) -> dict | None:
    result = supabase.table("organizations").select(
        "id, name, slug, status, enabled_features"
    ).eq("id", organization_id).execute()
    if not result.data:
        return None
    return result.data[0]


def _stored_preference(user_id: str) -> str | None:
    result = supabase.table("users").select("id, current_organization_id").eq("id", user_id).execute()
    if not result.data:
        return None
    return result.data[0].get("current_organization_id")


def _features(organization: dict) -> dict[str, bool]:
    raw = organization.get("enabled_features")
    if not isinstance(raw, dict):
        return {}
    return {str(name): value is True for name, value in raw.items()}


def _select_membership(user_id: str, requested_organization_id: str | None) -> dict:
    memberships = _active_memberships(user_id)
    if not memberships:
        log_event("tenant_no_membership", level=logging.WARNING, user_id=user_id)
        raise AuthorizationError("No active organization membership")

    by_org = {membership["organization_id"]: membership for membership in memberships}
    if requested_organization_id:
        membership = by_org.get(requested_organization_id)
        if membership is None:
            log_event(
                "tenant_selection_denied",
                level=logging.WARNING,
                user_id=user_id,
                organization_id=requested_organization_id,
            )
            raise AuthorizationError("Not a member of the requested organization")
        return membership

    if len(memberships) == 1:
        return memberships[0]

    preferred = _stored_preference(user_id)
    if preferred and preferred in by_org:
        return by_org[preferred]
    raise TenantSelectionRequired(organization_count=len(memberships))


def resolve_tenant(user_id: str, requested_organization_id: str | None = None) -> TenantContext:
    membership = _select_membership(user_id, requested_organization_id)
    organization = _load_organization(membership["organization_id"])
    if organization is None or organization.get("status") != ORGANIZATION_STATUS_ACTIVE:
        log_event(
            "tenant_organization_unavailable",
            level=logging.WARNING,
            user_id=user_id,
            organization_id=membership["organization_id"],
        )
        raise AuthorizationError("Organization unavailable or suspended")
    return TenantContext(
        organization_id=organization["id"],
        org_role=membership.get("org_role"),
        is_active=True,
        enabled_features=_features(organization),
    )


def resolve_support_tenant(impersonation: ImpersonationState) -> TenantContext:
    """Tenant context for a bound support session; suspended organizations stay reachable."""
    organization = _load_organization(impersonation.organization_id)
    if organization is None:
        raise AuthorizationError("Organization unavailable or suspended")
    return TenantContext(
        organization_id=organization["id"],
        org_role=None,
        is_active=organization.get("status") == ORGANIZATION_STATUS_ACTIVE,
        enabled_features=_features(organization),
    )


def set_current_organization(user_id: str, organization_id: str) -> TenantContext:
    tenant = resolve_tenant(user_id, organization_id)
    supabase.table("users").update({"current_organization_id": organization_id}).eq("id", user_id).execute()
    log_event("tenant_preference_updated", user_id=user_id, organization_id=organization_id)
    return tenant


def list_memberships(user_id: str) -> list[dict]:
    memberships = _active_memberships(user_id)
    entries = []
    for membership in memberships:
        organization = _load_organization(membership["organization_id"])
        if organization is None:
            continue
        entries.append({
            "organization_id": organization["id"],
            "name": organization.get("name"),
            "slug": organization.get("slug"),
            "status": organization.get("status"),
            "org_role": membership.get("org_role"),
        })
    return entries


def bind_tenant_payload(payload: dict[str, Any], tenant: TenantContext) -> dict[str, Any]:
    """Stamp the resolved organization onto a write payload; a foreign organization id is rejected."""
    supplied = payload.get("organization_id")
    if supplied is not None and supplied != tenant.organization_id:
        log_event(
            "tenant_isolation_violation",
            level=logging.WARNING,
            organization_id=tenant.organization_id,
            supplied_organization_id=supplied,
        )
        raise TenantIsolationViolation()
    return {**payload, "organization_id": tenant.organization_id}


def tenant_query(table: str, tenant: TenantContext, columns: str = "*"):
    return supabase.table(table).select(columns).eq("organization_id", tenant.organization_id)


def tenant_get(table: str, tenant: TenantContext, record_id: str, columns: str = "*", label: str = "Record") -> dict:
    result = tenant_query(table, tenant, columns).eq("id", record_id).execute()
    if not result.data:
        raise NotFoundError(f"{label} not found")
    return result.data[0]


def is_feature_enabled(tenant: TenantContext, feature: str) -> bool:
    return tenant.enabled_features.get(feature) is True


def ensure_user_in_tenant(user_id: str, tenant: TenantContext) -> None:
    result = supabase.table("organization_memberships").select("user_id").eq(
        "user_id", user_id
    ).eq("organization_id", tenant.organization_id).eq("is_active", True).execute()
    if not result.data:
        raise NotFoundError("User not found")


def tenant_from_auth(auth: AuthContext) -> TenantContext:
    return TenantContext(
        organization_id=auth.organization_id,
        org_role=auth.org_role,
        is_active=True,
        enabled_features=auth.enabled_features,
    )
