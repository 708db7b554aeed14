"""Project and approval workflow API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from themis.api.deps import get_approval_service, get_current_actor, get_db, raise_for_denial
from themis.core.approval import ApprovalService
from themis.core.outcomes import Denial
from themis.core.rbac import Actor, PermissionName, require_permission

router = APIRouter(prefix="/projects", tags=["projects"])


# Schemas
class ProjectResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    owner_id: str
    department_id: Optional[str]
    approval_status: str
    approval_step: int
    is_terminal: bool
    version: int
    created_at: Optional[str]
    updated_at: Optional[str]


class ProjectListResponse(BaseModel):
    items: List[ProjectResponse]
    page: int
    per_page: int


class ApprovalHistoryResponse(BaseModel):
    id: UUID
    from_state: str
    to_state: str
    action: str
    actor_id: Optional[str]
    actor_role: Optional[str]
    comment: Optional[str]
    created_at: Optional[str]


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    department_id: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    expected_version: Optional[int] = None


class ActionRequest(BaseModel):
    comment: Optional[str] = None
    expected_version: Optional[int] = None


class BatchActionRequest(BaseModel):
    project_ids: List[UUID] = Field(..., min_length=1)
    comment: Optional[str] = None


class BatchActionResponse(BaseModel):
    succeeded: List[str] = []
    failed: List[dict] = []


def _commit_or_raise(db: Session, result):
    """Commit a successful service result, or roll back and raise its denial."""
    if isinstance(result, Denial):
        db.rollback()
        raise_for_denial(result)
    db.commit()
    return result


# Endpoints
@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_permission(PermissionName.CREATE_PROJECT)),
    service: ApprovalService = Depends(get_approval_service),
):
    """Create a project in DRAFT, owned by the caller."""
    result = service.create_project(
        actor,
        payload.name,
        description=payload.description,
        department_id=payload.department_id,
    )
    return ProjectResponse(**_commit_or_raise(db, result))


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    approval_status: Optional[str] = Query(None, alias="status"),
):
    """List the projects visible to the caller."""
    items = service.list_projects(
        actor,
        status=approval_status,
        limit=per_page,
        offset=(page - 1) * per_page,
    )
    return ProjectListResponse(
        items=[ProjectResponse(**p) for p in items],
        page=page,
        per_page=per_page,
    )


@router.get("/pending", response_model=ProjectListResponse)
async def list_pending_reviews(
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    """List projects waiting on the caller's review decision."""
    items = service.list_pending_reviews(actor, limit=per_page, offset=(page - 1) * per_page)
    return ProjectListResponse(
        items=[ProjectResponse(**p) for p in items],
        page=page,
        per_page=per_page,
    )


@router.post("/batch/{action}", response_model=BatchActionResponse)
async def batch_action(
    action: str,
    batch: BatchActionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Apply one workflow action to several projects."""
    result = service.batch_transition(batch.project_ids, action, actor, comment=batch.comment)
    db.commit()
    return BatchActionResponse(**result)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Get a specific project."""
    result = service.view_project(project_id, actor)
    if isinstance(result, Denial):
        raise_for_denial(result)
    return ProjectResponse(**result)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Edit project details while the form is editable for the caller."""
    result = service.update_project(
        project_id,
        actor,
        name=payload.name,
        description=payload.description,
        expected_version=payload.expected_version,
    )
    return ProjectResponse(**_commit_or_raise(db, result))


@router.get("/{project_id}/history", response_model=List[ApprovalHistoryResponse])
async def get_project_history(
    project_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Get the approval history for a project."""
    visible = service.view_project(project_id, actor)
    if isinstance(visible, Denial):
        raise_for_denial(visible)
    return [ApprovalHistoryResponse(**h) for h in service.get_history(project_id)]


@router.get("/{project_id}/available-actions", response_model=List[str])
async def get_available_actions(
    project_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Workflow actions the caller can take on the project right now."""
    visible = service.view_project(project_id, actor)
    if isinstance(visible, Denial):
        raise_for_denial(visible)
    result = service.available_actions(project_id, actor)
    if isinstance(result, Denial):
        raise_for_denial(result)
    return result


@router.post("/{project_id}/actions/{action}", response_model=ProjectResponse)
async def perform_action(
    project_id: UUID,
    action: str,
    payload: Optional[ActionRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """Run a workflow action on a project."""
    payload = payload or ActionRequest()
    result = service.transition(
        project_id,
        action,
        actor,
        comment=payload.comment,
        expected_version=payload.expected_version,
    )
    return ProjectResponse(**_commit_or_raise(db, result))
