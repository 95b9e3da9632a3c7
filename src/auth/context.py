from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ImpersonationState:
    """Support-session binding stored on a tenant-facing session."""
    session_id: str
    organization_id: str
    mode: str  # "read" or "write" at bind time; enforcement always re-reads the session
    scopes: dict[str, bool] = field(default_factory=dict)
    bound_at: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> "ImpersonationState | None":
        if not record or not record.get("sessionId") or not record.get("organizationId"):
            return None
        return cls(
            session_id=record["sessionId"],
            organization_id=record["organizationId"],
            mode=record.get("mode") or "read",
            scopes=dict(record.get("scopes") or {}),
            bound_at=record.get("boundAt"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "organizationId": self.organization_id,
            "mode": self.mode,
            "scopes": dict(self.scopes),
            "boundAt": self.bound_at,
        }


@dataclass
class SessionContext:
    """A live tenant-facing session row, loaded for every request."""
    session_id: str
    principal_type: str  # "user" or "support"
    subject_id: str
    impersonation: ImpersonationState | None = None

    @property
    def is_support(self) -> bool:
        return self.principal_type == "support"


@dataclass
class TenantContext:
    organization_id: str
    org_role: str | None
    is_active: bool
    enabled_features: dict[str, bool] = field(default_factory=dict)


@dataclass
class AuthContext:
    """Identity context for authenticated tenant requests."""
    user_id: str
    organization_id: str
    session_id: str
    org_role: str | None = None
    principal: str = "user"  # "user" or "support"
    permissions: dict[str, bool] = field(default_factory=dict)
    enabled_features: dict[str, bool] = field(default_factory=dict)
    impersonation: ImpersonationState | None = None

    def has_permission(self, flag: str) -> bool:
        return self.permissions.get(flag) is True


@dataclass
class SuperAdminContext:
    """Identity context for super-admin requests. No organization_id - operates above tenant layer."""
    super_admin_id: str
    email: str


@dataclass
class SupportOperatorContext:
    """Operator acting either with a super-admin token or through a bound tenant session."""
    super_admin_id: str
    email: str | None = None
    session_id: str | None = None
    impersonation: ImpersonationState | None = None
