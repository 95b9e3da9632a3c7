from fastapi import APIRouter, Depends

from src.auth import SessionContext, TenantContext
from src.auth.dependencies import get_current_session, get_tenant_context
from src.auth.tenant import list_memberships, set_current_organization
from src.domain.errors import AuthorizationError
from src.models.organizations import (
    CurrentOrganizationRequest,
    CurrentOrganizationResponse,
    MembershipResponse,
)

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


def _tenant_response(tenant: TenantContext) -> CurrentOrganizationResponse:
    return CurrentOrganizationResponse(
        organization_id=tenant.organization_id,
        org_role=tenant.org_role,
        enabled_features=tenant.enabled_features,
    )


@router.get("/memberships", response_model=list[MembershipResponse])
async def get_memberships(session: SessionContext = Depends(get_current_session)):
    """List the caller's active organization memberships."""
    if session.is_support:
        raise AuthorizationError("Support sessions are bound to a single organization")
    return list_memberships(session.subject_id)


@router.put("/current", response_model=CurrentOrganizationResponse)
async def update_current_organization(
    data: CurrentOrganizationRequest,
    session: SessionContext = Depends(get_current_session),
):
    """Store the caller's preferred organization for requests without X-Organization-Id."""
    if session.is_support:
        raise AuthorizationError("Support sessions are bound to a single organization")
    return _tenant_response(set_current_organization(session.subject_id, data.organization_id))


@router.get("/current", response_model=CurrentOrganizationResponse)
async def get_current_organization(tenant: TenantContext = Depends(get_tenant_context)):
    return _tenant_response(tenant)


@router.get("/current/features")
async def get_current_features(tenant: TenantContext = Depends(get_tenant_context)):
    return {"organization_id": tenant.organization_id, "enabled_features": tenant.enabled_features}
