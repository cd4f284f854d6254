"""Projects API - per-user project registry."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from diffpilot.api.dependencies import get_project_registry, limiter, rate_limit
from diffpilot.application.projects.registry import ProjectRegistry
from diffpilot.domain.entities.project import ProjectEntry, ProjectView
from diffpilot.domain.errors import ProjectNotFoundError

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreate(BaseModel):
    """Request to register a project."""
    alias: str
    path: str


class ActiveProject(BaseModel):
    """Request to switch the active project."""
    alias: str


@router.get("/{user_id}")
@limiter.limit(rate_limit)
async def list_projects(
    request: Request,
    user_id: str,
    registry: ProjectRegistry = Depends(get_project_registry),
) -> list[ProjectView]:
    """List a user's projects, the active one flagged."""
    return registry.list(user_id)


@router.post("/{user_id}")
@limiter.limit(rate_limit)
async def register_project(
    request: Request,
    user_id: str,
    body: ProjectCreate,
    registry: ProjectRegistry = Depends(get_project_registry),
) -> ProjectEntry:
    """Add a project or overwrite the path of an existing alias."""
    try:
        return registry.register(user_id, body.alias, body.path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{user_id}/active")
@limiter.limit(rate_limit)
async def set_active_project(
    request: Request,
    user_id: str,
    body: ActiveProject,
    registry: ProjectRegistry = Depends(get_project_registry),
) -> ProjectEntry:
    """Select the project that new changes run against."""
    try:
        entry = registry.require(user_id, body.alias)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    registry.set_active(user_id, entry.alias)
    return entry
