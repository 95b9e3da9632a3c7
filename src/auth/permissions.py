from __future__ import annotations

from typing import Final, Iterable, Mapping

# Bump whenever a flag is added, renamed or removed; role seed data is versioned with it.
PERMISSION_SCHEMA_VERSION: Final[int] = 3

# User management
CAN_SEE_USERS: Final[str] = "canSeeUsers"
CAN_MODIFY_USERS: Final[str] = "canModifyUsers"
CAN_EDIT_USERS: Final[str] = "canEditUsers"
CAN_DELETE_USERS: Final[str] = "canDeleteUsers"

# Projects
CAN_SEE_PROJECTS: Final[str] = "canSeeProjects"
CAN_MODIFY_PROJECTS: Final[str] = "canModifyProjects"
CAN_EDIT_PROJECTS: Final[str] = "canEditProjects"
CAN_DELETE_PROJECTS: Final[str] = "canDeleteProjects"
CAN_SEE_ALL_PROJECTS: Final[str] = "canSeeAllProjects"
CAN_MODIFY_ALL_PROJECTS: Final[str] = "canModifyAllProjects"
CAN_EDIT_ALL_PROJECTS: Final[str] = "canEditAllProjects"
CAN_DELETE_ALL_PROJECTS: Final[str] = "canDeleteAllProjects"

# Tasks
CAN_SEE_TASKS: Final[str] = "canSeeTasks"
CAN_MODIFY_TASKS: Final[str] = "canModifyTasks"
CAN_EDIT_TASKS: Final[str] = "canEditTasks"
CAN_DELETE_TASKS: Final[str] = "canDeleteTasks"

# Stakeholders
CAN_SEE_STAKEHOLDERS: Final[str] = "canSeeStakeholders"
CAN_MODIFY_STAKEHOLDERS: Final[str] = "canModifyStakeholders"
CAN_EDIT_STAKEHOLDERS: Final[str] = "canEditStakeholders"
CAN_DELETE_STAKEHOLDERS: Final[str] = "canDeleteStakeholders"

# RAID logs
CAN_SEE_RAID_LOGS: Final[str] = "canSeeRaidLogs"
CAN_MODIFY_RAID_LOGS: Final[str] = "canModifyRaidLogs"
CAN_EDIT_RAID_LOGS: Final[str] = "canEditRaidLogs"
CAN_DELETE_RAID_LOGS: Final[str] = "canDeleteRaidLogs"

# Communications
CAN_SEE_COMMUNICATIONS: Final[str] = "canSeeCommunications"
CAN_MODIFY_COMMUNICATIONS: Final[str] = "canModifyCommunications"
CAN_EDIT_COMMUNICATIONS: Final[str] = "canEditCommunications"
CAN_DELETE_COMMUNICATIONS: Final[str] = "canDeleteCommunications"

# Meetings
CAN_SCHEDULE_MEETINGS: Final[str] = "canScheduleMeetings"
CAN_DELETE_MEETINGS: Final[str] = "canDeleteMeetings"
CAN_SEND_MEETING_INVITES: Final[str] = "canSendMeetingInvites"
CAN_GENERATE_MEETING_AGENDAS: Final[str] = "canGenerateMeetingAgendas"

# Surveys
CAN_SEE_SURVEYS: Final[str] = "canSeeSurveys"
CAN_MODIFY_SURVEYS: Final[str] = "canModifySurveys"
CAN_EDIT_SURVEYS: Final[str] = "canEditSurveys"
CAN_DELETE_SURVEYS: Final[str] = "canDeleteSurveys"

# Mind maps
CAN_SEE_MIND_MAPS: Final[str] = "canSeeMindMaps"
CAN_MODIFY_MIND_MAPS: Final[str] = "canModifyMindMaps"
CAN_EDIT_MIND_MAPS: Final[str] = "canEditMindMaps"
CAN_DELETE_MIND_MAPS: Final[str] = "canDeleteMindMaps"

# Process maps
CAN_SEE_PROCESS_MAPS: Final[str] = "canSeeProcessMaps"
CAN_MODIFY_PROCESS_MAPS: Final[str] = "canModifyProcessMaps"
CAN_EDIT_PROCESS_MAPS: Final[str] = "canEditProcessMaps"
CAN_DELETE_PROCESS_MAPS: Final[str] = "canDeleteProcessMaps"

# Gantt charts
CAN_SEE_GANTT_CHARTS: Final[str] = "canSeeGanttCharts"
CAN_MODIFY_GANTT_CHARTS: Final[str] = "canModifyGanttCharts"
CAN_EDIT_GANTT_CHARTS: Final[str] = "canEditGanttCharts"
CAN_DELETE_GANTT_CHARTS: Final[str] = "canDeleteGanttCharts"

# Checklist templates
CAN_SEE_CHECKLIST_TEMPLATES: Final[str] = "canSeeChecklistTemplates"
CAN_MODIFY_CHECKLIST_TEMPLATES: Final[str] = "canModifyChecklistTemplates"
CAN_EDIT_CHECKLIST_TEMPLATES: Final[str] = "canEditChecklistTemplates"
CAN_DELETE_CHECKLIST_TEMPLATES: Final[str] = "canDeleteChecklistTemplates"

# Reports
CAN_SEE_REPORTS: Final[str] = "canSeeReports"
CAN_MODIFY_REPORTS: Final[str] = "canModifyReports"
CAN_EDIT_REPORTS: Final[str] = "canEditReports"
CAN_DELETE_REPORTS: Final[str] = "canDeleteReports"

# Roles and groups
CAN_SEE_ROLES: Final[str] = "canSeeRoles"
CAN_MODIFY_ROLES: Final[str] = "canModifyRoles"
CAN_EDIT_ROLES: Final[str] = "canEditRoles"
CAN_DELETE_ROLES: Final[str] = "canDeleteRoles"
CAN_SEE_GROUPS: Final[str] = "canSeeGroups"
CAN_MODIFY_GROUPS: Final[str] = "canModifyGroups"
CAN_EDIT_GROUPS: Final[str] = "canEditGroups"
CAN_DELETE_GROUPS: Final[str] = "canDeleteGroups"

# Security settings
CAN_SEE_SECURITY_SETTINGS: Final[str] = "canSeeSecuritySettings"
CAN_MODIFY_SECURITY_SETTINGS: Final[str] = "canModifySecuritySettings"
CAN_EDIT_SECURITY_SETTINGS: Final[str] = "canEditSecuritySettings"
CAN_DELETE_SECURITY_SETTINGS: Final[str] = "canDeleteSecuritySettings"

# Email
CAN_SEND_EMAILS: Final[str] = "canSendEmails"
CAN_SEND_BULK_EMAILS: Final[str] = "canSendBulkEmails"
CAN_SEND_SYSTEM_EMAILS: Final[str] = "canSendSystemEmails"
CAN_SEE_EMAIL_LOGS: Final[str] = "canSeeEmailLogs"
CAN_MODIFY_EMAIL_TEMPLATES: Final[str] = "canModifyEmailTemplates"
CAN_EDIT_EMAIL_SETTINGS: Final[str] = "canEditEmailSettings"

# System administration
CAN_SEE_SYSTEM_SETTINGS: Final[str] = "canSeeSystemSettings"
CAN_MODIFY_SYSTEM_SETTINGS: Final[str] = "canModifySystemSettings"
CAN_EDIT_SYSTEM_SETTINGS: Final[str] = "canEditSystemSettings"
CAN_MANAGE_SYSTEM: Final[str] = "canManageSystem"

PERMISSION_CATEGORIES: Final[dict[str, tuple[str, ...]]] = {
    "users": (CAN_SEE_USERS, CAN_MODIFY_USERS, CAN_EDIT_USERS, CAN_DELETE_USERS),
    "projects": (
        CAN_SEE_PROJECTS,
        CAN_MODIFY_PROJECTS,
        CAN_EDIT_PROJECTS,
        CAN_DELETE_PROJECTS,
        CAN_SEE_ALL_PROJECTS,
        CAN_MODIFY_ALL_PROJECTS,
        CAN_EDIT_ALL_PROJECTS,
        CAN_DELETE_ALL_PROJECTS,
    ),
    "tasks": (CAN_SEE_TASKS, CAN_MODIFY_TASKS, CAN_EDIT_TASKS, CAN_DELETE_TASKS),
    "stakeholders": (
        CAN_SEE_STAKEHOLDERS,
        CAN_MODIFY_STAKEHOLDERS,
        CAN_EDIT_STAKEHOLDERS,
        CAN_DELETE_STAKEHOLDERS,
    ),
    "raid_logs": (CAN_SEE_RAID_LOGS, CAN_MODIFY_RAID_LOGS, CAN_EDIT_RAID_LOGS, CAN_DELETE_RAID_LOGS),
    "communications": (
        CAN_SEE_COMMUNICATIONS,
        CAN_MODIFY_COMMUNICATIONS,
        CAN_EDIT_COMMUNICATIONS,
        CAN_DELETE_COMMUNICATIONS,
    ),
    "meetings": (
        CAN_SCHEDULE_MEETINGS,
        CAN_DELETE_MEETINGS,
        CAN_SEND_MEETING_INVITES,
        CAN_GENERATE_MEETING_AGENDAS,
    ),
    "surveys": (CAN_SEE_SURVEYS, CAN_MODIFY_SURVEYS, CAN_EDIT_SURVEYS, CAN_DELETE_SURVEYS),
    "mind_maps": (CAN_SEE_MIND_MAPS, CAN_MODIFY_MIND_MAPS, CAN_EDIT_MIND_MAPS, CAN_DELETE_MIND_MAPS),
    "process_maps": (
        CAN_SEE_PROCESS_MAPS,
        CAN_MODIFY_PROCESS_MAPS,
        CAN_EDIT_PROCESS_MAPS,
        CAN_DELETE_PROCESS_MAPS,
    ),
    "gantt_charts": (
        CAN_SEE_GANTT_CHARTS,
        CAN_MODIFY_GANTT_CHARTS,
        CAN_EDIT_GANTT_CHARTS,
        CAN_DELETE_GANTT_CHARTS,
    ),
    "checklist_templates": (
        CAN_SEE_CHECKLIST_TEMPLATES,
        CAN_MODIFY_CHECKLIST_TEMPLATES,
        CAN_EDIT_CHECKLIST_TEMPLATES,
        CAN_DELETE_CHECKLIST_TEMPLATES,
    ),
    "reports": (CAN_SEE_REPORTS, CAN_MODIFY_REPORTS, CAN_EDIT_REPORTS, CAN_DELETE_REPORTS),
    "roles_groups": (
        CAN_SEE_ROLES,
        CAN_MODIFY_ROLES,
        CAN_EDIT_ROLES,
        CAN_DELETE_ROLES,
        CAN_SEE_GROUPS,
        CAN_MODIFY_GROUPS,
        CAN_EDIT_GROUPS,
        CAN_DELETE_GROUPS,
    ),
    "security": (
        CAN_SEE_SECURITY_SETTINGS,
        CAN_MODIFY_SECURITY_SETTINGS,
        CAN_EDIT_SECURITY_SETTINGS,
        CAN_DELETE_SECURITY_SETTINGS,
    ),
    "email": (
        CAN_SEND_EMAILS,
        CAN_SEND_BULK_EMAILS,
        CAN_SEND_SYSTEM_EMAILS,
        CAN_SEE_EMAIL_LOGS,
        CAN_MODIFY_EMAIL_TEMPLATES,
        CAN_EDIT_EMAIL_SETTINGS,
    ),
    "system": (
        CAN_SEE_SYSTEM_SETTINGS,
        CAN_MODIFY_SYSTEM_SETTINGS,
        CAN_EDIT_SYSTEM_SETTINGS,
        CAN_MANAGE_SYSTEM,
    ),
}

ALL_PERMISSION_FLAGS: Final[tuple[str, ...]] = tuple(
    flag for flags in PERMISSION_CATEGORIES.values() for flag in flags
)
_KNOWN_FLAGS: Final[frozenset[str]] = frozenset(ALL_PERMISSION_FLAGS)

MUTATING_FLAG_PREFIXES: Final[tuple[str, ...]] = (
    "canModify",
    "canDelete",
    "canSend",
    "canSchedule",
    "canEdit",
    "canManage",
)

# Organization feature categories; anything not explicitly enabled is off.
FEATURE_READINESS_SURVEYS: Final[str] = "readinessSurveys"
FEATURE_GPT_COACH: Final[str] = "gptCoach"
FEATURE_COMMUNICATIONS: Final[str] = "communications"
FEATURE_CHANGE_ARTIFACTS: Final[str] = "changeArtifacts"
FEATURE_REPORTS: Final[str] = "reports"

ALL_FEATURES: Final[tuple[str, ...]] = (
    FEATURE_READINESS_SURVEYS,
    FEATURE_GPT_COACH,
    FEATURE_COMMUNICATIONS,
    FEATURE_CHANGE_ARTIFACTS,
    FEATURE_REPORTS,
)

DEFAULT_ENABLED_FEATURES: Final[dict[str, bool]] = {feature: True for feature in ALL_FEATURES}

# Support-session access scopes granted by an operator when opening a session.
SCOPE_ORGANIZATION_SETTINGS: Final[str] = "organizationSettings"
SCOPE_USER_MANAGEMENT: Final[str] = "userManagement"
SCOPE_PROJECT_DATA: Final[str] = "projectData"
SCOPE_COMMUNICATIONS_DATA: Final[str] = "communicationsData"
SCOPE_SURVEY_DATA: Final[str] = "surveyData"
SCOPE_REPORTS_DATA: Final[str] = "reportsData"

SCOPE_CATEGORIES: Final[dict[str, tuple[str, ...]]] = {
    SCOPE_ORGANIZATION_SETTINGS: ("security", "system"),
    SCOPE_USER_MANAGEMENT: ("users", "roles_groups"),
    SCOPE_PROJECT_DATA: (
        "projects",
        "tasks",
        "stakeholders",
        "raid_logs",
        "mind_maps",
        "process_maps",
        "gantt_charts",
        "checklist_templates",
    ),
    SCOPE_COMMUNICATIONS_DATA: ("communications", "meetings", "email"),
    SCOPE_SURVEY_DATA: ("surveys",),
    SCOPE_REPORTS_DATA: ("reports",),
}

ALL_SCOPES: Final[tuple[str, ...]] = tuple(SCOPE_CATEGORIES)


def is_known_flag(flag: str) -> bool:
    return flag in _KNOWN_FLAGS


def validate_permission_flag(flag: str) -> str:
    if flag not in _KNOWN_FLAGS:
        raise ValueError(f"Unknown permission flag: {flag}")
    return flag


def is_mutating_flag(flag: str) -> bool:
    return flag.startswith(MUTATING_FLAG_PREFIXES)


def empty_permission_set() -> dict[str, bool]:
    return {flag: False for flag in ALL_PERMISSION_FLAGS}


def granted_flags(permissions: Mapping[str, bool]) -> list[str]:
    return [flag for flag in ALL_PERMISSION_FLAGS if permissions.get(flag) is True]


def flags_for_scopes(scopes: Mapping[str, bool] | None) -> set[str]:
    """Flags covered by the enabled access scopes of a support session."""
    flags: set[str] = set()
    for scope, enabled in (scopes or {}).items():
        if enabled is not True:
            continue
        for category in SCOPE_CATEGORIES.get(scope, ()):
            flags.update(PERMISSION_CATEGORIES[category])
    return flags


def _grant(flags: Iterable[str]) -> dict[str, bool]:
    granted = set(flags)
    return {flag: flag in granted for flag in ALL_PERMISSION_FLAGS}


_MEMBER_GRANTS: Final[tuple[str, ...]] = (
    CAN_SEE_PROJECTS,
    CAN_SEE_TASKS,
    CAN_MODIFY_TASKS,
    CAN_EDIT_TASKS,
    CAN_SEE_STAKEHOLDERS,
    CAN_SEE_RAID_LOGS,
    CAN_SEE_COMMUNICATIONS,
    CAN_SEE_SURVEYS,
    CAN_SEE_MIND_MAPS,
    CAN_SEE_PROCESS_MAPS,
    CAN_SEE_GANTT_CHARTS,
    CAN_SEE_CHECKLIST_TEMPLATES,
    CAN_SEE_REPORTS,
)

_MANAGER_EXCLUDED_CATEGORIES: Final[tuple[str, ...]] = ("roles_groups", "security", "system")

ROLE_DEFAULTS: Final[dict[str, dict[str, bool]]] = {
    "Admin": _grant(ALL_PERMISSION_FLAGS),
    "Manager": _grant(
        flag
        for category, flags in PERMISSION_CATEGORIES.items()
        if category not in _MANAGER_EXCLUDED_CATEGORIES
        for flag in flags
        if flag not in (CAN_SEND_SYSTEM_EMAILS, CAN_DELETE_USERS)
    ),
    "Member": _grant(_MEMBER_GRANTS),
}
