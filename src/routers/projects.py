from collections import Counter

from fastapi import APIRouter, Depends, status

from src.auth import AuthContext, TenantContext
from src.auth.dependencies import require_feature, require_permission
from src.auth.permissions import (
    CAN_DELETE_PROJECTS,
    CAN_EDIT_PROJECTS,
    CAN_MODIFY_PROJECTS,
    CAN_SEE_PROJECTS,
    CAN_SEE_REPORTS,
    FEATURE_REPORTS,
)
from src.auth.tenant import bind_tenant_payload, tenant_from_auth, tenant_get, tenant_query
from src.db import supabase
from src.domain.errors import InvalidRequestError, NotFoundError
from src.domain.timestamps import utcnow
from src.models.projects import ProjectCreate, ProjectResponse, ProjectSummaryResponse, ProjectUpdate

router = APIRouter(prefix="/api/projects", tags=["projects"])

_PROJECT_COLUMNS = "id, organization_id, name, description, status, created_by_id, created_at, updated_at"


@router.get("/", response_model=list[ProjectResponse])
async def list_projects(auth: AuthContext = Depends(require_permission(CAN_SEE_PROJECTS))):
    result = tenant_query("projects", tenant_from_auth(auth), _PROJECT_COLUMNS).order(
        "created_at", desc=True
    ).execute()
    return result.data


@router.get("/summary", response_model=ProjectSummaryResponse)
async def project_summary(
    tenant: TenantContext = Depends(require_feature(FEATURE_REPORTS)),
    auth: AuthContext = Depends(require_permission(CAN_SEE_REPORTS)),
):
    """Project counts by status; requires the reports feature and report access."""
    result = tenant_query("projects", tenant, "id, status").execute()
    rows = result.data or []
    return ProjectSummaryResponse(
        organization_id=tenant.organization_id,
        total=len(rows),
        by_status=dict(Counter(row.get("status") or "unknown" for row in rows)),
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, auth: AuthContext = Depends(require_permission(CAN_SEE_PROJECTS))):
    return tenant_get("projects", tenant_from_auth(auth), project_id, _PROJECT_COLUMNS, label="Project")


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    auth: AuthContext = Depends(require_permission(CAN_MODIFY_PROJECTS)),
):
    payload = bind_tenant_payload(data.model_dump(), tenant_from_auth(auth))
    now = utcnow().isoformat()
    payload.update({"created_by_id": auth.user_id, "created_at": now, "updated_at": now})
    result = supabase.table("projects").insert(payload).execute()
    return result.data[0]


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    auth: AuthContext = Depends(require_permission(CAN_EDIT_PROJECTS)),
):
    tenant = tenant_from_auth(auth)
    update_data = data.model_dump(exclude_unset=True)
    update_data = bind_tenant_payload(update_data, tenant)
    if set(update_data) == {"organization_id"}:
        raise InvalidRequestError("No fields to update")
    update_data["updated_at"] = utcnow().isoformat()

    result = supabase.table("projects").update(update_data).eq(
        "id", project_id
    ).eq("organization_id", tenant.organization_id).execute()
    if not result.data:
        raise NotFoundError("Project not found")
    return result.data[0]


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    auth: AuthContext = Depends(require_permission(CAN_DELETE_PROJECTS)),
):
    result = supabase.table("projects").delete().eq(
        "id", project_id
    ).eq("organization_id", auth.organization_id).execute()
    if not result.data:
        raise NotFoundError("Project not found")
    return None
