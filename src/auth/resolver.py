"""Effective permission resolution.

For every known flag the effective value is, in order of precedence:
the user's individual override when it lists the flag, ``True`` when any
active group the user belongs to grants it, the value on the user's role,
and finally ``False``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from src.auth.context import ImpersonationState
from src.auth.permissions import (
    ALL_PERMISSION_FLAGS,
    flags_for_scopes,
    is_known_flag,
    is_mutating_flag,
)
from src.db import supabase
from src.observability import log_event
from src.support.sessions import SESSION_TYPE_SUPPORT_MODE, get_active_support_session


def _coerce_permission_map(raw: Any, *, source: str, source_id: str | None = None) -> dict[str, bool]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        log_event(
            "permission_map_malformed",
            level=logging.WARNING,
            source=source,
            source_id=source_id,
        )
        return {}
    permissions: dict[str, bool] = {}
    for flag, value in raw.items():
        if not is_known_flag(flag):
            log_event(
                "permission_flag_unknown",
                level=logging.WARNING,
                source=source,
                source_id=source_id,
                flag=flag,
            )
            continue
        if not isinstance(value, bool):
            log_event(
                "permission_value_not_boolean",
                level=logging.WARNING,
                source=source,
                source_id=source_id,
                flag=flag,
            )
            value = False
        permissions[flag] = value
    return permissions


def _load_active_user(user_id: str) -> dict | None:
    user_result = supabase.table("users").select("id, role_id, is_active").eq("id", user_id).execute()
    if not user_result.data:
        log_event("permission_user_missing", level=logging.WARNING, user_id=user_id)
        return None
    user = user_result.data[0]
    if user.get("is_active") is False:
        log_event("permission_user_inactive", level=logging.WARNING, user_id=user_id)
        return None
    return user


def _load_role(user: Mapping[str, Any]) -> dict | None:
    user_id = user["id"]
    role_id = user.get("role_id")
    if not role_id:
        return None

    role_result = supabase.table("roles").select(
        "id, name, permissions, is_active"
    ).eq("id", role_id).execute()
    if not role_result.data:
        log_event("permission_role_missing", level=logging.WARNING, user_id=user_id, role_id=role_id)
        return None
    role = role_result.data[0]
    if role.get("is_active") is not True:
        log_event("permission_role_inactive", level=logging.WARNING, user_id=user_id, role_id=role_id)
        return None
    return role


def _load_role_permissions(user: Mapping[str, Any]) -> dict[str, bool]:
    role = _load_role(user)
    if role is None:
        return {}
    return _coerce_permission_map(role.get("permissions"), source="role", source_id=role["id"])


def _load_layers(user_id: str) -> tuple[dict[str, bool], list[dict], dict[str, bool]]:
    # Missing or deactivated users hold nothing from any layer.
    user = _load_active_user(user_id)
    if user is None:
        return {}, [], {}
    return _load_role_permissions(user), _load_groups(user_id), _load_override(user_id)


def _load_groups(user_id: str) -> list[dict]:
    membership_result = supabase.table("user_group_memberships").select(
        "group_id"
    ).eq("user_id", user_id).execute()
    group_ids = [row["group_id"] for row in membership_result.data or [] if row.get("group_id")]
    if not group_ids:
        return []

    group_result = supabase.table("user_groups").select(
        "id, name, permissions, is_active"
    ).in_("id", group_ids).execute()
    groups = []
    for group in group_result.data or []:
        if group.get("is_active") is not True:
            continue
        groups.append({
            "id": group["id"],
            "name": group.get("name"),
            "permissions": _coerce_permission_map(
                group.get("permissions"), source="group", source_id=group["id"]
            ),
        })
    return groups


def _load_override(user_id: str) -> dict[str, bool]:
    result = supabase.table("user_permissions").select("id, permissions").eq("user_id", user_id).execute()
    if not result.data:
        return {}
    record = result.data[0]
    return _coerce_permission_map(record.get("permissions"), source="override", source_id=record.get("id"))


def merge_permission_layers(
    role: Mapping[str, bool],
    group_grants: Iterable[Mapping[str, bool]],
    override: Mapping[str, bool],
) -> dict[str, bool]:
    groups = list(group_grants)
    resolved: dict[str, bool] = {}
    for flag in ALL_PERMISSION_FLAGS:
        if flag in override:
            resolved[flag] = override[flag] is True
        elif any(grants.get(flag) is True for grants in groups):
            resolved[flag] = True
        else:
            resolved[flag] = role.get(flag) is True
    return resolved


def resolve_permissions(user_id: str) -> dict[str, bool]:
    role, groups, override = _load_layers(user_id)
    return merge_permission_layers(role, [group["permissions"] for group in groups], override)


def check_permission(user_id: str, flag: str) -> bool:
    if not is_known_flag(flag):
        log_event("permission_flag_unknown", level=logging.WARNING, source="check", flag=flag)
        return False
    return resolve_permissions(user_id)[flag]


def resolve_support_permissions(support_session: Mapping[str, Any]) -> dict[str, bool]:
    """Capability set for an operator acting through a bound support session."""
    allowed = flags_for_scopes(support_session.get("access_scopes"))
    read_only = support_session.get("session_type") != SESSION_TYPE_SUPPORT_MODE
    return {
        flag: flag in allowed and not (read_only and is_mutating_flag(flag))
        for flag in ALL_PERMISSION_FLAGS
    }


def check_enhanced_permission(
    user_id: str,
    flag: str,
    impersonation: ImpersonationState | None = None,
) -> bool:
    """The user's own permission check, narrowed by the caller's support session.

    The support session is read fresh from storage. An inactive session denies
    everything and a read-only one denies mutating flags.
    """
    if not is_known_flag(flag):
        log_event("permission_flag_unknown", level=logging.WARNING, source="enhanced_check", flag=flag)
        return False
    if impersonation is None:
        return check_permission(user_id, flag)

    support_session = get_active_support_session(impersonation.session_id)
    if support_session is None or support_session.get("organization_id") != impersonation.organization_id:
        return False
    if support_session.get("session_type") != SESSION_TYPE_SUPPORT_MODE and is_mutating_flag(flag):
        return False
    return check_permission(user_id, flag)


def permission_security_summary(user_id: str) -> dict[str, Any]:
    role, groups, override = _load_layers(user_id)
    return {
        "role_permissions": role,
        "group_permissions": [
            {"group_id": group["id"], "group_name": group["name"], "permissions": group["permissions"]}
            for group in groups
        ],
        "individual_permissions": override,
        "resolved_permissions": merge_permission_layers(
            role, [group["permissions"] for group in groups], override
        ),
    }
