from src.auth.context import (
    AuthContext,
    ImpersonationState,
    SessionContext,
    SuperAdminContext,
    SupportOperatorContext,
    TenantContext,
)
from src.auth.jwt import create_access_token, create_super_admin_token

__all__ = [
    "AuthContext",
    "ImpersonationState",
    "SessionContext",
    "SuperAdminContext",
    "SupportOperatorContext",
    "TenantContext",
    "create_access_token",
    "create_super_admin_token",
]
