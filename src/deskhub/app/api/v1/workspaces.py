"""Workspace API endpoints.

The caller identity comes from the X-User-Id header, set by the
authenticating gateway in front of this service.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from deskhub.core.domain import WorkspaceStatus
from deskhub.core.errors import ForbiddenError, UnauthorizedError, WorkspaceNotFoundError
from deskhub.core.models import Workspace
from deskhub.services import WorkspaceOrchestrator, WorkspaceStats

router = APIRouter(prefix="/workspaces", tags=["workspaces"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Dependencies
# =============================================================================


def get_orchestrator(request: Request) -> WorkspaceOrchestrator:
    return request.app.state.orchestrator


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    if not x_user_id:
        raise UnauthorizedError()
    return x_user_id


def require_admin(
    x_user_role: Annotated[str | None, Header()] = None,
) -> None:
    if x_user_role != "admin":
        raise ForbiddenError("Admin role required")


Orchestrator = Annotated[WorkspaceOrchestrator, Depends(get_orchestrator)]
UserId = Annotated[str, Depends(get_user_id)]


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateWorkspaceRequest(BaseModel):
    """Create workspace request."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=500)


class UpdateStatusRequest(BaseModel):
    status: WorkspaceStatus


class WorkspaceResponse(BaseModel):
    """Workspace response.

    status distinguishes PROVISIONING from ERROR; error_message carries the
    last provisioning failure.
    """

    id: str
    user_id: str
    name: str
    description: str | None
    status: WorkspaceStatus
    container_id: str | None
    vnc_port: int | None
    desktop_url: str | None
    error_message: str | None
    last_accessed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ContainerResponse(BaseModel):
    container_id: str
    workspace_id: str | None
    name: str
    state: str
    status: str

    model_config = {"from_attributes": True}


# =============================================================================
# Helper
# =============================================================================


async def _get_owned_workspace(
    orchestrator: WorkspaceOrchestrator, workspace_id: str, user_id: str
) -> Workspace:
    workspace = await orchestrator.get_workspace_by_id(workspace_id)
    if workspace is None:
        raise WorkspaceNotFoundError()
    if workspace.user_id != user_id:
        raise ForbiddenError()
    return workspace


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=WorkspaceResponse, status_code=201)
async def create_workspace(
    request: CreateWorkspaceRequest,
    orchestrator: Orchestrator,
    user_id: UserId,
) -> WorkspaceResponse:
    """Create the caller's workspace. Provisioning continues in the background."""
    workspace = await orchestrator.create_workspace(
        user_id=user_id,
        name=request.name,
        description=request.description,
    )
    return WorkspaceResponse.model_validate(workspace)


@router.get("/me", response_model=WorkspaceResponse)
async def get_my_workspace(
    orchestrator: Orchestrator,
    user_id: UserId,
) -> WorkspaceResponse:
    workspace = await orchestrator.get_workspace(user_id)
    if workspace is None:
        raise WorkspaceNotFoundError()
    return WorkspaceResponse.model_validate(workspace)


@router.get("/{workspace_id}/stats", response_model=WorkspaceStats)
async def get_workspace_stats(
    workspace_id: str,
    orchestrator: Orchestrator,
    user_id: UserId,
) -> WorkspaceStats:
    await _get_owned_workspace(orchestrator, workspace_id, user_id)
    stats = await orchestrator.get_workspace_stats(workspace_id)
    if stats is None:
        raise WorkspaceNotFoundError()
    return stats


@router.post("/{workspace_id}/access", status_code=204)
async def touch_workspace(
    workspace_id: str,
    orchestrator: Orchestrator,
    user_id: UserId,
) -> None:
    """Record that the user opened the desktop."""
    await _get_owned_workspace(orchestrator, workspace_id, user_id)
    await orchestrator.update_last_accessed(workspace_id)


@router.post("/{workspace_id}/retry", response_model=WorkspaceResponse)
async def retry_provisioning(
    workspace_id: str,
    orchestrator: Orchestrator,
    user_id: UserId,
) -> WorkspaceResponse:
    """Re-run provisioning for a workspace in ERROR."""
    await _get_owned_workspace(orchestrator, workspace_id, user_id)
    workspace = await orchestrator.retry_provisioning(workspace_id)
    return WorkspaceResponse.model_validate(workspace)


@router.delete("/{workspace_id}", status_code=204)
async def delete_workspace(
    workspace_id: str,
    orchestrator: Orchestrator,
    user_id: UserId,
) -> None:
    await _get_owned_workspace(orchestrator, workspace_id, user_id)
    await orchestrator.delete_workspace(workspace_id)


# =============================================================================
# Admin Endpoints
# =============================================================================


@admin_router.get(
    "/workspaces/stats",
    response_model=list[WorkspaceStats],
    dependencies=[Depends(require_admin)],
)
async def get_all_workspaces_stats(orchestrator: Orchestrator) -> list[WorkspaceStats]:
    return await orchestrator.get_all_workspaces_stats()


@admin_router.put(
    "/workspaces/{workspace_id}/status",
    status_code=204,
    dependencies=[Depends(require_admin)],
)
async def update_workspace_status(
    workspace_id: str,
    request: UpdateStatusRequest,
    orchestrator: Orchestrator,
) -> None:
    await orchestrator.update_workspace_status(workspace_id, request.status)


@admin_router.get(
    "/containers",
    response_model=list[ContainerResponse],
    dependencies=[Depends(require_admin)],
)
async def list_workspace_containers(orchestrator: Orchestrator) -> list[ContainerResponse]:
    containers = await orchestrator.list_all_workspace_containers()
    return [ContainerResponse.model_validate(c) for c in containers]
