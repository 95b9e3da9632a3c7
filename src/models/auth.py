from pydantic import BaseModel, EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    user_id: str
    organization_id: str
    org_role: str | None
    principal: str
    support_session_id: str | None = None
    bound_mode: str | None = None


class PermissionsResponse(BaseModel):
    organization_id: str
    permissions: dict[str, bool]
    enabled_features: dict[str, bool]
