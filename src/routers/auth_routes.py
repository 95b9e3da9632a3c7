from fastapi import APIRouter, Depends, Request

from src.auth import AuthContext, SessionContext
from src.auth.dependencies import client_ip, get_current_auth, get_current_session
from src.auth.jwt import create_access_token
from src.auth.passwords import verify_password
from src.auth.user_sessions import create_user_session, revoke_user_session
from src.db import supabase
from src.domain.errors import AuthenticationError
from src.models.auth import LoginRequest, LoginResponse, MeResponse, PermissionsResponse
from src.observability import incr_metric, log_event
from src.ratelimit import login_attempts

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, request: Request):
    """Login with email and password, returns a session JWT."""
    attempt_key = login_attempts.key_for(data.email, client_ip(request))
    login_attempts.attempt(attempt_key)

    result = supabase.table("users").select(
        "id, email, password_hash, is_active"
    ).eq("email", data.email).eq("is_active", True).execute()

    if not result.data or not verify_password(data.password, result.data[0].get("password_hash")):
        incr_metric("auth.login.failed")
        raise AuthenticationError("Invalid email or password")

    user = result.data[0]
    login_attempts.reset(attempt_key)
    session = create_user_session("user", user["id"])
    incr_metric("auth.login.succeeded")
    log_event("user_login", request_id=getattr(request.state, "request_id", None), user_id=user["id"])

    return LoginResponse(access_token=create_access_token(user["id"], session.session_id))


@router.post("/logout")
async def logout(session: SessionContext = Depends(get_current_session)):
    """Revoke the caller's server-side session."""
    revoke_user_session(session.session_id)
    return {"success": True}


@router.get("/me", response_model=MeResponse)
async def get_me(auth: AuthContext = Depends(get_current_auth)):
    """Get current identity, tenant and support-session binding."""
    return MeResponse(
        user_id=auth.user_id,
        organization_id=auth.organization_id,
        org_role=auth.org_role,
        principal=auth.principal,
        support_session_id=auth.impersonation.session_id if auth.impersonation else None,
        bound_mode=auth.impersonation.mode if auth.impersonation else None,
    )


@router.get("/me/permissions", response_model=PermissionsResponse)
async def get_my_permissions(auth: AuthContext = Depends(get_current_auth)):
    return PermissionsResponse(
        organization_id=auth.organization_id,
        permissions=auth.permissions,
        enabled_features=auth.enabled_features,
    )
