from fastapi import APIRouter, Depends, Query, Request, status

from src.auth import SessionContext, SuperAdminContext, SupportOperatorContext
from src.auth.dependencies import (
    client_ip,
    get_current_super_admin,
    get_optional_session,
    get_support_operator,
)
from src.domain.errors import AuthorizationError, InvalidRequestError, SessionStateError
from src.models.support import (
    ImpersonationBindRequest,
    ImpersonationBindResponse,
    ImpersonationTokenRequest,
    ImpersonationTokenResponse,
    SupportAuditLogResponse,
    SupportModeToggle,
    SupportNoteCreate,
    SupportSessionCreate,
    SupportSessionEndResponse,
    SupportSessionResponse,
)
from src.ratelimit import impersonation_limiter
from src.support.audit import AUDIT_FILTERS, list_audit_logs_for_filter, record_support_event
from src.support.binding import bind_impersonation
from src.support.sessions import (
    create_support_session,
    end_support_session,
    get_active_support_session,
    list_active_sessions,
    toggle_support_mode,
)
from src.support.tokens import issue_impersonation_token

router = APIRouter(prefix="/api/support", tags=["support"])


@router.post("/session", response_model=SupportSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_support_session(
    data: SupportSessionCreate,
    request: Request,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    """Open a time-boxed, audited support session for one organization."""
    return create_support_session(
        super_admin_id=ctx.super_admin_id,
        organization_id=data.organization_id,
        session_type=data.session_type,
        reason=data.reason,
        duration_minutes=data.duration,
        access_scopes=data.access_scopes.model_dump(by_alias=True),
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.get("/session", response_model=list[SupportSessionResponse])
async def get_active_sessions(ctx: SuperAdminContext = Depends(get_current_super_admin)):
    return list_active_sessions(ctx.super_admin_id)


@router.patch("/session/{session_id}/toggle-mode", response_model=SupportSessionResponse)
async def toggle_session_mode(
    session_id: str,
    data: SupportModeToggle,
    request: Request,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    return toggle_support_mode(
        session_id,
        ctx.super_admin_id,
        data.support_mode,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.patch("/session/{session_id}/end", response_model=SupportSessionEndResponse)
async def end_session(
    session_id: str,
    request: Request,
    operator: SupportOperatorContext = Depends(get_support_operator),
):
    """End a session with an operator token or from the tenant session bound to it."""
    end_support_session(
        session_id,
        operator.super_admin_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    return SupportSessionEndResponse(success=True)


@router.post("/impersonation/token", response_model=ImpersonationTokenResponse)
async def create_impersonation_token(
    data: ImpersonationTokenRequest,
    request: Request,
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    impersonation_limiter.check(f"token:{ctx.super_admin_id}")
    return issue_impersonation_token(
        super_admin_id=ctx.super_admin_id,
        session_id=data.session_id,
        organization_id=data.organization_id,
        mode=data.mode,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.post("/impersonation/bind", response_model=ImpersonationBindResponse)
async def bind_impersonation_token(
    data: ImpersonationBindRequest,
    request: Request,
    session: SessionContext | None = Depends(get_optional_session),
):
    """Exchange a handoff token for a new tenant-facing session bound to the support session."""
    ip_address = client_ip(request)
    impersonation_limiter.check(f"bind:{ip_address or 'unknown'}")
    return bind_impersonation(
        data.token,
        session.session_id if session else None,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )


@router.get("/audit-logs", response_model=list[SupportAuditLogResponse])
async def get_audit_logs(
    organization_id: str | None = Query(None, alias="organizationId"),
    session_id: str | None = Query(None, alias="sessionId"),
    filter_name: str = Query("all", alias="filter"),
    limit: int = Query(100, ge=1, le=500),
    ctx: SuperAdminContext = Depends(get_current_super_admin),
):
    if filter_name not in AUDIT_FILTERS:
        raise InvalidRequestError(f"filter must be one of: {', '.join(AUDIT_FILTERS)}")
    return list_audit_logs_for_filter(
        filter_name,
        organization_id=organization_id,
        session_id=session_id,
        limit=limit,
    )


@router.post("/audit-logs", response_model=SupportAuditLogResponse, status_code=status.HTTP_201_CREATED)
async def add_operator_note(
    data: SupportNoteCreate,
    request: Request,
    operator: SupportOperatorContext = Depends(get_support_operator),
):
    """Record an operator note against the support session bound to the caller."""
    if operator.impersonation is None:
        raise AuthorizationError("Notes can only be added from a bound support session")
    support_session = get_active_support_session(operator.impersonation.session_id)
    if support_session is None:
        raise SessionStateError("Support session is no longer active")
    return record_support_event(
        session_id=support_session["id"],
        super_admin_id=operator.super_admin_id,
        organization_id=support_session["organization_id"],
        action="operator_note",
        description=data.description,
        details=data.details,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
