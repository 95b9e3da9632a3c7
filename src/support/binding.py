from __future__ import annotations

import logging

from src.auth.context import ImpersonationState
from src.auth.jwt import create_access_token
from src.auth.user_sessions import regenerate_user_session
from src.config import settings
from src.db import supabase
from src.domain.errors import TokenValidationError
from src.domain.timestamps import utcnow
from src.observability import log_support_event
from src.support.audit import record_support_event
from src.support.sessions import get_active_support_session
from src.support.tokens import validate_impersonation_token


def _reject(reason: str) -> TokenValidationError:
    log_support_event(
        "impersonation_bind_rejected",
        metric="impersonation.bind_rejected",
        labels={"reason": reason},
        level=logging.WARNING,
        reason=reason,
    )
    return TokenValidationError()


def bind_impersonation(
    token: str,
    previous_session_id: str | None = None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    """Attach a validated support session to a freshly issued tenant-facing session."""
    payload = validate_impersonation_token(settings.impersonation_signing_secret(), token)
    if payload is None:
        raise _reject("invalid_token")

    support_session = get_active_support_session(payload.session_id)
    if support_session is None:
        raise _reject("session_inactive")
    if support_session.get("organization_id") != payload.organization_id:
        raise _reject("organization_mismatch")

    org_result = supabase.table("organizations").select("id").eq("id", payload.organization_id).execute()
    if not org_result.data:
        raise _reject("organization_missing")

    super_admin_id = support_session["super_admin_user_id"]
    impersonation = ImpersonationState(
        session_id=payload.session_id,
        organization_id=payload.organization_id,
        mode=payload.mode,
        scopes=dict(support_session.get("access_scopes") or {}),
        bound_at=utcnow().isoformat(),
    )
    user_session = regenerate_user_session(
        previous_session_id,
        principal_type="support",
        subject_id=super_admin_id,
        impersonation=impersonation,
    )
    access_token = create_access_token(super_admin_id, user_session.session_id, principal_type="support")

    record_support_event(
        session_id=payload.session_id,
        super_admin_id=super_admin_id,
        organization_id=payload.organization_id,
        action="impersonation_bound",
        description=f"Support session bound to tenant context ({payload.mode})",
        details={"mode": payload.mode},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    log_support_event(
        "impersonation_bound",
        metric="impersonation.bound",
        labels={"mode": payload.mode},
        session_id=payload.session_id,
        organization_id=payload.organization_id,
        user_session_id=user_session.session_id,
    )
    return {
        "organizationId": payload.organization_id,
        "mode": payload.mode,
        "sessionId": payload.session_id,
        "accessToken": access_token,
    }
