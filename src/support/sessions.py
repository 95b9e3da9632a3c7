from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from src.auth.permissions import ALL_SCOPES
from src.config import settings
from src.db import supabase
from src.domain.errors import InvalidRequestError, NotFoundError, SessionStateError
from src.domain.timestamps import parse_timestamp, utcnow
from src.observability import log_support_event
from src.support.audit import ACCESS_LEVEL_WRITE, record_support_event

SESSION_TYPE_READ_ONLY = "read_only"
SESSION_TYPE_SUPPORT_MODE = "support_mode"
SESSION_TYPES = (SESSION_TYPE_READ_ONLY, SESSION_TYPE_SUPPORT_MODE)

_SESSION_COLUMNS = (
    "id, super_admin_user_id, organization_id, session_type, reason, started_at, expires_at, "
    "ended_at, is_active, access_scopes, ip_address, user_agent, created_at, updated_at"
)


def is_session_active(session: dict[str, Any] | None, now: datetime | None = None) -> bool:
    if not session or session.get("is_active") is not True:
        return False
    expires_at = parse_timestamp(session.get("expires_at"))
    if expires_at is None:
        return False
    return (now or utcnow()) < expires_at


def load_support_session(session_id: str) -> dict | None:
    result = supabase.table("support_sessions").select(_SESSION_COLUMNS).eq("id", session_id).execute()
    if not result.data:
        return None
    return result.data[0]


def get_active_support_session(session_id: str) -> dict | None:
    """Read the session from storage and return it only while it is live."""
    session = load_support_session(session_id)
    if not is_session_active(session):
        return None
    return session


def _normalize_scopes(access_scopes: dict[str, Any] | None) -> dict[str, bool]:
    scopes = access_scopes or {}
    unknown = set(scopes) - set(ALL_SCOPES)
    if unknown:
        raise InvalidRequestError(f"Unknown access scopes: {', '.join(sorted(unknown))}")
    return {scope: scopes.get(scope) is True for scope in ALL_SCOPES}


def create_support_session(
    *,
    super_admin_id: str,
    organization_id: str,
    session_type: str = SESSION_TYPE_READ_ONLY,
    reason: str,
    duration_minutes: int = 60,
    access_scopes: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    reason = (reason or "").strip()
    if len(reason) < settings.support_reason_min_length:
        raise InvalidRequestError(
            f"Reason must be at least {settings.support_reason_min_length} characters"
        )
    if not settings.support_session_min_minutes <= duration_minutes <= settings.support_session_max_minutes:
        raise InvalidRequestError(
            f"Duration must be between {settings.support_session_min_minutes} and "
            f"{settings.support_session_max_minutes} minutes"
        )
    if session_type not in SESSION_TYPES:
        raise InvalidRequestError("Invalid session type")
    scopes = _normalize_scopes(access_scopes)

    org_result = supabase.table("organizations").select("id, name").eq("id", organization_id).execute()
    if not org_result.data:
        raise NotFoundError("Organization not found")

    now = utcnow()
    row = {
        "super_admin_user_id": super_admin_id,
        "organization_id": organization_id,
        "session_type": session_type,
        "reason": reason,
        "started_at": now.isoformat(),
        "expires_at": (now + timedelta(minutes=duration_minutes)).isoformat(),
        "ended_at": None,
        "is_active": True,
        "access_scopes": scopes,
        "ip_address": ip_address,
        "user_agent": user_agent,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    result = supabase.table("support_sessions").insert(row).execute()
    session = result.data[0]

    record_support_event(
        session_id=session["id"],
        super_admin_id=super_admin_id,
        organization_id=organization_id,
        action="session_started",
        description=f"Support session started ({session_type}): {reason}",
        details={
            "session_type": session_type,
            "duration_minutes": duration_minutes,
            "access_scopes": scopes,
        },
        ip_address=ip_address,
        user_agent=user_agent,
    )
    log_support_event(
        "support_session_started",
        metric="sessions.started",
        labels={"session_type": session_type},
        session_id=session["id"],
        organization_id=organization_id,
        session_type=session_type,
        duration_minutes=duration_minutes,
    )
    return session


def _load_owned_session(session_id: str, super_admin_id: str) -> dict:
    session = load_support_session(session_id)
    if session is None:
        raise NotFoundError("Support session not found")
    if session.get("super_admin_user_id") != super_admin_id:
        raise SessionStateError("Support session belongs to another operator")
    return session


def toggle_support_mode(
    session_id: str,
    super_admin_id: str,
    support_mode: bool,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    session = _load_owned_session(session_id, super_admin_id)
    if not is_session_active(session):
        raise SessionStateError("Support session is no longer active")

    session_type = SESSION_TYPE_SUPPORT_MODE if support_mode else SESSION_TYPE_READ_ONLY
    result = supabase.table("support_sessions").update({
        "session_type": session_type,
        "updated_at": utcnow().isoformat(),
    }).eq("id", session_id).execute()
    updated = result.data[0] if result.data else {**session, "session_type": session_type}

    action = "support_mode_enabled" if support_mode else "support_mode_disabled"
    record_support_event(
        session_id=session_id,
        super_admin_id=super_admin_id,
        organization_id=session["organization_id"],
        action=action,
        description=(
            "Support mode enabled: operator may modify organization data"
            if support_mode
            else "Support mode disabled: session is read-only"
        ),
        details={"previous_session_type": session.get("session_type"), "session_type": session_type},
        access_level=ACCESS_LEVEL_WRITE if support_mode else "read",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    log_support_event("support_session_mode_changed", session_id=session_id, session_type=session_type)
    return updated


def end_support_session(
    session_id: str,
    super_admin_id: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    session = _load_owned_session(session_id, super_admin_id)
    if session.get("is_active") is not True or session.get("ended_at"):
        raise NotFoundError("Support session not found or already ended")

    now = utcnow().isoformat()
    result = supabase.table("support_sessions").update({
        "is_active": False,
        "ended_at": now,
        "updated_at": now,
    }).eq("id", session_id).execute()
    ended = result.data[0] if result.data else {**session, "is_active": False, "ended_at": now}

    record_support_event(
        session_id=session_id,
        super_admin_id=super_admin_id,
        organization_id=session["organization_id"],
        action="session_ended",
        description="Support session ended",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    log_support_event(
        "support_session_ended",
        metric="sessions.ended",
        session_id=session_id,
        organization_id=session["organization_id"],
    )
    return ended


def list_active_sessions(super_admin_id: str) -> list[dict]:
    result = supabase.table("support_sessions").select(_SESSION_COLUMNS).eq(
        "super_admin_user_id", super_admin_id
    ).eq("is_active", True).order("started_at", desc=True).execute()
    now = utcnow()
    return [session for session in result.data or [] if is_session_active(session, now)]
