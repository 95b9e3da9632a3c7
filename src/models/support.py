from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccessScopes(CamelModel):
    organization_settings: bool = False
    user_management: bool = False
    project_data: bool = True
    communications_data: bool = False
    survey_data: bool = False
    reports_data: bool = False


class SupportSessionCreate(CamelModel):
    organization_id: str
    session_type: Literal["read_only", "support_mode"] = "read_only"
    reason: str = Field(max_length=500)
    duration: int = Field(60, ge=15, le=480)
    access_scopes: AccessScopes = Field(default_factory=AccessScopes)


class SupportModeToggle(CamelModel):
    support_mode: bool


class SupportSessionResponse(CamelModel):
    id: str
    super_admin_user_id: str
    organization_id: str
    session_type: str
    reason: str
    started_at: datetime
    expires_at: datetime
    ended_at: datetime | None = None
    is_active: bool
    access_scopes: dict[str, bool] | None = None


class SupportSessionEndResponse(CamelModel):
    success: bool = True


class ImpersonationTokenRequest(CamelModel):
    session_id: str
    organization_id: str
    mode: Literal["read", "write"] = "read"


class ImpersonationTokenResponse(CamelModel):
    token: str
    expires_in: int


class ImpersonationBindRequest(CamelModel):
    token: str


class ImpersonationBindResponse(CamelModel):
    organization_id: str
    mode: str
    session_id: str
    access_token: str


class SupportAuditLogResponse(CamelModel):
    id: str
    session_id: str | None = None
    super_admin_user_id: str
    organization_id: str
    action: str
    resource: str | None = None
    resource_id: str | None = None
    description: str
    details: dict[str, Any] | None = None
    access_level: str
    is_customer_visible: bool
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class SupportNoteCreate(CamelModel):
    description: str = Field(min_length=1, max_length=2000)
    details: dict[str, Any] | None = None
