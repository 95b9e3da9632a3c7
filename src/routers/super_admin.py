import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr

from src.auth import SuperAdminContext, create_super_admin_token
from src.auth.dependencies import client_ip, get_current_super_admin
from src.auth.passwords import verify_password
from src.auth.permissions import DEFAULT_ENABLED_FEATURES
from src.db import supabase
from src.domain.errors import AuthenticationError, NotFoundError
from src.domain.timestamps import utcnow
from src.models.organizations import (
    OrganizationFeaturesUpdate,
    OrganizationResponse,
    OrganizationStatusUpdate,
)
from src.observability import incr_metric, log_event, metrics_snapshot
from src.ratelimit import super_admin_login_attempts

router = APIRouter(prefix="/api/super-admin", tags=["super-admin"])


# --- Request/Response Models ---

class SuperAdminLoginRequest(BaseModel):
    email: EmailStr
    password: str


class SuperAdminLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SuperAdminMeResponse(BaseModel):
    super_admin_id: str
    email: str


class OrganizationCreate(BaseModel):
    name: str
    slug: str


class MetricsResponse(BaseModel):
    counters: dict[str, int]


def _update_organization(org_id: str, update_data: dict) -> dict:
    update_data["updated_at"] = utcnow().isoformat()
    result = supabase.table("organizations").update(update_data).eq("id", org_id).execute()
    if not result.data:
        raise NotFoundError("Organization not found")
    return result.data[0]


# --- Login (no auth required) ---

@router.post("/login", response_model=SuperAdminLoginResponse)
async def super_admin_login(data: SuperAdminLoginRequest, request: Request):
    """Login as super-admin, returns JWT with type 'super_admin'."""
    attempt_key = super_admin_login_attempts.key_for(data.email, client_ip(request))
    super_admin_login_attempts.attempt(attempt_key)

    result = supabase.table("super_admins").select(
        "id, email, password_hash"
    ).eq("email", data.email).execute()

    if not result.data or not verify_password(data.password, result.data[0].get("password_hash")):
        incr_metric("auth.super_admin_login.failed")
        log_event("super_admin_login_failed", level=logging.WARNING, ip_address=client_ip(request))
        raise AuthenticationError("Invalid email or password")

    super_admin = result.data[0]
    super_admin_login_attempts.reset(attempt_key)
    incr_metric("auth.super_admin_login.succeeded")
    return SuperAdminLoginResponse(access_token=create_super_admin_token(super_admin_id=super_admin["id"]))


# --- Me ---

@router.get("/me", response_model=SuperAdminMeResponse)
async def get_me(ctx: SuperAdminContext = Depends(get_current_super_admin)):
    """Get current super-admin info."""
    return SuperAdminMeResponse(
        super_admin_id=ctx.super_admin_id,
        email=ctx.email,
    )


# --- Organizations ---

@router.post("/organizations", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: OrganizationCreate,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    """Create a new organization with the default feature set."""
    now = utcnow().isoformat()
    result = supabase.table("organizations").insert({
        "name": data.name,
        "slug": data.slug,
        "status": "active",
        "enabled_features": dict(DEFAULT_ENABLED_FEATURES),
        "created_at": now,
        "updated_at": now,
    }).execute()
    return result.data[0]


@router.get("/organizations", response_model=list[OrganizationResponse])
async def list_organizations(ctx: SuperAdminContext = Depends(get_current_super_admin)):
    """List ALL organizations, including suspended ones."""
    result = supabase.table("organizations").select("*").execute()
    return result.data


@router.get("/organizations/{org_id}", response_model=OrganizationResponse)
async def get_organization(
    org_id: str,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    result = supabase.table("organizations").select("*").eq("id", org_id).execute()
    if not result.data:
        raise NotFoundError("Organization not found")
    return result.data[0]


@router.patch("/organizations/{org_id}/status", response_model=OrganizationResponse)
async def update_organization_status(
    org_id: str,
    data: OrganizationStatusUpdate,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    """Suspend or reactivate an organization. Suspended tenants cannot resolve a tenant context."""
    organization = _update_organization(org_id, {"status": data.status})
    log_event("organization_status_changed", organization_id=org_id, status=data.status)
    return organization


@router.patch("/organizations/{org_id}/features", response_model=OrganizationResponse)
async def update_organization_features(
    org_id: str,
    data: OrganizationFeaturesUpdate,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    result = supabase.table("organizations").select("id, enabled_features").eq("id", org_id).execute()
    if not result.data:
        raise NotFoundError("Organization not found")
    features = {**(result.data[0].get("enabled_features") or {}), **data.enabled_features}
    organization = _update_organization(org_id, {"enabled_features": features})
    log_event("organization_features_changed", organization_id=org_id, enabled_features=features)
    return organization


# --- Observability ---

@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(ctx: SuperAdminContext = Depends(get_current_super_admin)):
    return MetricsResponse(counters=metrics_snapshot())
