"""Read-only enforcement for tenant sessions bound to a support session.

Runs as HTTP middleware ahead of routing. The support session is read from
storage on every request, so a mode toggle or an ended session takes effect
on the very next call.
"""

from __future__ import annotations

import logging
import re

from fastapi import Request
from fastapi.responses import JSONResponse

from src.auth.dependencies import extract_bearer_token, client_ip, session_from_token
from src.auth.user_sessions import clear_impersonation
from src.observability import log_support_event
from src.support.audit import ACCESS_LEVEL_WRITE, record_support_event
from src.support.sessions import SESSION_TYPE_READ_ONLY, get_active_support_session

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

READ_ONLY_ALLOWED_PATHS = (
    re.compile(r"^/api/support/session/[^/]+/end$"),
    re.compile(r"^/api/support/audit-logs$"),
    re.compile(r"^/api/auth/logout$"),
    re.compile(r"^/api/support/impersonation/bind$"),
)


def is_allow_listed(path: str) -> bool:
    normalized = path.rstrip("/") or "/"
    return any(pattern.match(normalized) for pattern in READ_ONLY_ALLOWED_PATHS)


async def enforce_read_only(request: Request, call_next):
    session = session_from_token(extract_bearer_token(request.headers.get("Authorization")))
    if session is None or session.impersonation is None:
        return await call_next(request)

    impersonation = session.impersonation
    request_id = getattr(request.state, "request_id", None)
    support_session = get_active_support_session(impersonation.session_id)
    if support_session is None:
        clear_impersonation(session.session_id)
        log_support_event(
            "support_session_binding_cleared",
            metric="enforcement.session_inactive",
            level=logging.WARNING,
            request_id=request_id,
            session_id=impersonation.session_id,
        )
        return JSONResponse(status_code=403, content={"detail": "Support session is no longer active"})

    if (
        support_session.get("session_type") == SESSION_TYPE_READ_ONLY
        and request.method.upper() in MUTATING_METHODS
        and not is_allow_listed(request.url.path)
    ):
        ip_address = client_ip(request)
        user_agent = request.headers.get("User-Agent")
        record_support_event(
            session_id=impersonation.session_id,
            super_admin_id=support_session["super_admin_user_id"],
            organization_id=support_session["organization_id"],
            action="write_blocked",
            description=f"Blocked {request.method.upper()} {request.url.path} in read-only support session",
            details={
                "method": request.method.upper(),
                "path": request.url.path,
                "session_id": impersonation.session_id,
            },
            access_level=ACCESS_LEVEL_WRITE,
            ip_address=ip_address,
            user_agent=user_agent,
            resource=request.url.path,
        )
        log_support_event(
            "support_write_blocked",
            metric="enforcement.write_blocked",
            labels={"method": request.method.upper()},
            level=logging.WARNING,
            request_id=request_id,
            session_id=impersonation.session_id,
            method=request.method.upper(),
            path=request.url.path,
        )
        return JSONResponse(
            status_code=403,
            content={"detail": "Support session is read-only; enable support mode to make changes"},
        )

    return await call_next(request)
