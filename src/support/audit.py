"""Append-only audit trail for support-session activity.

Entries are never updated or deleted; corrections are new entries.
"""

from __future__ import annotations

from typing import Any

from src.db import supabase
from src.domain.timestamps import utcnow
from src.observability import log_support_event

ACCESS_LEVEL_READ = "read"
ACCESS_LEVEL_WRITE = "write"

FILTER_ALL = "all"
FILTER_CUSTOMER_VISIBLE = "customer_visible"
FILTER_WRITE_ACTIONS = "write_actions"
AUDIT_FILTERS = (FILTER_ALL, FILTER_CUSTOMER_VISIBLE, FILTER_WRITE_ACTIONS)

_AUDIT_COLUMNS = (
    "id, session_id, super_admin_user_id, organization_id, action, resource, resource_id, "
    "description, details, access_level, is_customer_visible, ip_address, user_agent, created_at"
)


def record_support_event(
    *,
    session_id: str | None,
    super_admin_id: str,
    organization_id: str,
    action: str,
    description: str,
    details: dict[str, Any] | None = None,
    access_level: str = ACCESS_LEVEL_READ,
    ip_address: str | None = None,
    user_agent: str | None = None,
    resource: str | None = None,
    resource_id: str | None = None,
    is_customer_visible: bool = True,
) -> dict:
    entry = {
        "session_id": session_id,
        "super_admin_user_id": super_admin_id,
        "organization_id": organization_id,
        "action": action,
        "resource": resource,
        "resource_id": resource_id,
        "description": description,
        "details": details or {},
        "access_level": access_level,
        "is_customer_visible": is_customer_visible,
        "ip_address": ip_address,
        "user_agent": user_agent,
        "created_at": utcnow().isoformat(),
    }
    result = supabase.table("support_audit_logs").insert(entry).execute()
    log_support_event(
        "support_audit_recorded",
        metric="audit.recorded",
        labels={"action": action},
        action=action,
        session_id=session_id,
        organization_id=organization_id,
        access_level=access_level,
    )
    return result.data[0] if result.data else entry


def list_audit_logs(
    *,
    organization_id: str | None = None,
    session_id: str | None = None,
    access_level: str | None = None,
    customer_visible_only: bool = False,
    limit: int = 100,
) -> list[dict]:
    query = supabase.table("support_audit_logs").select(_AUDIT_COLUMNS)
    if organization_id:
        query = query.eq("organization_id", organization_id)
    if session_id:
        query = query.eq("session_id", session_id)
    if access_level:
        query = query.eq("access_level", access_level)
    if customer_visible_only:
        query = query.eq("is_customer_visible", True)
    result = query.order("created_at", desc=True).limit(limit).execute()
    return result.data or []


def list_audit_logs_for_filter(
    filter_name: str,
    *,
    organization_id: str | None = None,
    session_id: str | None = None,
    limit: int = 100,
) -> list[dict]:
    """Operator console filters: all, customer-visible only, or write actions only."""
    if filter_name not in AUDIT_FILTERS:
        raise ValueError(f"Unknown audit filter: {filter_name}")
    return list_audit_logs(
        organization_id=organization_id,
        session_id=session_id,
        access_level=ACCESS_LEVEL_WRITE if filter_name == FILTER_WRITE_ACTIONS else None,
        customer_visible_only=filter_name == FILTER_CUSTOMER_VISIBLE,
        limit=limit,
    )
