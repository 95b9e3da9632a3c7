from datetime import datetime
from typing import Literal

from pydantic import BaseModel

ProjectStatus = Literal["planning", "active", "on_hold", "completed", "cancelled"]


class ProjectCreate(BaseModel):
    name: str
    description: str | None = None
    status: ProjectStatus = "planning"
    organization_id: str | None = None


class ProjectUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    organization_id: str | None = None


class ProjectResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    description: str | None = None
    status: str
    created_by_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectSummaryResponse(BaseModel):
    organization_id: str
    total: int
    by_status: dict[str, int]
