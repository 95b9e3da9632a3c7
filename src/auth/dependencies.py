from fastapi import Depends, Header, Request

from src.auth.context import (
    AuthContext,
    SessionContext,
    SuperAdminContext,
    SupportOperatorContext,
    TenantContext,
)
from src.auth.jwt import decode_access_token, decode_super_admin_token
from src.auth.permissions import validate_permission_flag
from src.auth.resolver import resolve_permissions, resolve_support_permissions
from src.auth.tenant import is_feature_enabled, resolve_support_tenant, resolve_tenant
from src.auth.user_sessions import load_user_session
from src.db import supabase
from src.domain.errors import AuthenticationError, AuthorizationError, SessionStateError
from src.support.sessions import get_active_support_session


def extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from 'Bearer <token>' header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def session_from_token(token: str | None) -> SessionContext | None:
    """Resolve a bearer token to its live server-side session, or None."""
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload:
        return None
    session = load_user_session(payload["sid"])
    if session is None:
        return None
    if session.subject_id != payload["sub"] or session.principal_type != payload.get("principal", "user"):
        return None
    return session


async def get_current_session(authorization: str | None = Header(None)) -> SessionContext:
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationError("Missing authorization header")
    session = session_from_token(token)
    if session is None:
        raise AuthenticationError("Invalid or expired session")
    return session


async def get_optional_session(authorization: str | None = Header(None)) -> SessionContext | None:
    return session_from_token(extract_bearer_token(authorization))


async def get_tenant_context(
    session: SessionContext = Depends(get_current_session),
    x_organization_id: str | None = Header(None),
) -> TenantContext:
    if session.impersonation is not None:
        if x_organization_id and x_organization_id != session.impersonation.organization_id:
            raise AuthorizationError("Support session is bound to a different organization")
        return resolve_support_tenant(session.impersonation)
    if session.is_support:
        raise AuthorizationError("Support session is no longer bound")
    return resolve_tenant(session.subject_id, x_organization_id)


async def get_current_auth(
    session: SessionContext = Depends(get_current_session),
    tenant: TenantContext = Depends(get_tenant_context),
) -> AuthContext:
    """
    Pipeline: authenticated session -> tenant -> effective permissions.
    Support principals get the capability set of their bound session, read fresh from storage.
    """
    if session.impersonation is not None:
        support_session = get_active_support_session(session.impersonation.session_id)
        if support_session is None:
            raise SessionStateError("Support session is no longer active")
        permissions = resolve_support_permissions(support_session)
    else:
        permissions = resolve_permissions(session.subject_id)

    return AuthContext(
        user_id=session.subject_id,
        organization_id=tenant.organization_id,
        session_id=session.session_id,
        org_role=tenant.org_role,
        principal=session.principal_type,
        permissions=permissions,
        enabled_features=tenant.enabled_features,
        impersonation=session.impersonation,
    )


def require_permission(flag: str):
    validate_permission_flag(flag)

    async def _require(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if not auth.has_permission(flag):
            raise AuthorizationError(f"Permission required: {flag}")
        return auth

    return _require


def require_feature(feature: str):
    async def _require(tenant: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        if not is_feature_enabled(tenant, feature):
            raise AuthorizationError(f"Feature not enabled: {feature}")
        return tenant

    return _require


def _load_super_admin(super_admin_id: str) -> dict | None:
    result = supabase.table("super_admins").select("id, email").eq("id", super_admin_id).execute()
    if not result.data:
        return None
    return result.data[0]


async def get_current_super_admin(authorization: str | None = Header(None)) -> SuperAdminContext:
    """
    Super-admin JWT auth. Validates token type is 'super_admin' and user exists in super_admins table.
    """
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationError("Missing authorization header")

    payload = decode_super_admin_token(token)
    if not payload:
        raise AuthenticationError("Invalid or expired super-admin token")

    super_admin = _load_super_admin(payload["sub"])
    if super_admin is None:
        raise AuthenticationError("Super-admin not found")
    return SuperAdminContext(
        super_admin_id=super_admin["id"],
        email=super_admin["email"],
    )


async def get_support_operator(authorization: str | None = Header(None)) -> SupportOperatorContext:
    """Operator identity from a super-admin token or from a tenant session bound to a support session."""
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationError("Missing authorization header")

    payload = decode_super_admin_token(token)
    if payload:
        super_admin = _load_super_admin(payload["sub"])
        if super_admin is None:
            raise AuthenticationError("Super-admin not found")
        return SupportOperatorContext(super_admin_id=super_admin["id"], email=super_admin["email"])

    session = session_from_token(token)
    if session is None or not session.is_support:
        raise AuthenticationError("Invalid or expired session")
    return SupportOperatorContext(
        super_admin_id=session.subject_id,
        session_id=session.session_id,
        impersonation=session.impersonation,
    )


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
