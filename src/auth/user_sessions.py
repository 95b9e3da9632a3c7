import secrets
from datetime import timedelta

from src.auth.context import ImpersonationState, SessionContext
from src.config import settings
from src.db import supabase
from src.domain.timestamps import parse_timestamp, utcnow
from src.observability import log_event


def _session_from_row(row: dict) -> SessionContext:
    return SessionContext(
        session_id=row["id"],
        principal_type=row["principal_type"],
        subject_id=row["subject_id"],
        impersonation=ImpersonationState.from_record(row.get("impersonation")),
    )


def create_user_session(
    principal_type: str,
    subject_id: str,
    impersonation: ImpersonationState | None = None,
) -> SessionContext:
    now = utcnow()
    row = {
        "id": secrets.token_urlsafe(32),
        "principal_type": principal_type,
        "subject_id": subject_id,
        "impersonation": impersonation.to_record() if impersonation else None,
        "created_at": now.isoformat(),
        "expires_at": (now + timedelta(minutes=settings.jwt_expiration_minutes)).isoformat(),
        "revoked_at": None,
    }
    result = supabase.table("user_sessions").insert(row).execute()
    return _session_from_row(result.data[0] if result.data else row)


def load_user_session(session_id: str) -> SessionContext | None:
    """Load a live session; revoked and expired sessions are treated as missing."""
    result = supabase.table("user_sessions").select(
        "id, principal_type, subject_id, impersonation, expires_at, revoked_at"
    ).eq("id", session_id).execute()
    if not result.data:
        return None
    row = result.data[0]
    if row.get("revoked_at"):
        return None
    expires_at = parse_timestamp(row.get("expires_at"))
    if expires_at is None or expires_at <= utcnow():
        return None
    return _session_from_row(row)


def revoke_user_session(session_id: str) -> None:
    supabase.table("user_sessions").update({
        "revoked_at": utcnow().isoformat(),
    }).eq("id", session_id).is_("revoked_at", "null").execute()


def regenerate_user_session(
    previous_session_id: str | None,
    *,
    principal_type: str,
    subject_id: str,
    impersonation: ImpersonationState | None = None,
) -> SessionContext:
    """Issue a fresh session identifier and revoke the one it replaces."""
    if previous_session_id:
        revoke_user_session(previous_session_id)
    session = create_user_session(principal_type, subject_id, impersonation)
    log_event(
        "user_session_regenerated",
        principal_type=principal_type,
        replaced=bool(previous_session_id),
    )
    return session


def clear_impersonation(session_id: str) -> None:
    supabase.table("user_sessions").update({"impersonation": None}).eq("id", session_id).execute()
