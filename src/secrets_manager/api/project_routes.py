# Projects API - grouping of secrets
#
# Trashing or deleting a project detaches its secrets (they stay active and
# are not re-attached on restore).

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..store import ProjectRepository
from ..vault import VaultManager
from .security import verify_session_token
from .vault_routes import get_vault_manager

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
    dependencies=[Depends(verify_session_token)],
)


def get_project_repository(vault: VaultManager = Depends(get_vault_manager)) -> ProjectRepository:
    return ProjectRepository(vault)


class ProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


@router.get("")
def list_projects(repo: ProjectRepository = Depends(get_project_repository)):
    return [p.to_dict() for p in repo.list_active()]


@router.get("/trash")
def list_trashed_projects(repo: ProjectRepository = Depends(get_project_repository)):
    return [p.to_dict() for p in repo.list_deleted()]


@router.get("/{project_id}")
def get_project(project_id: int, repo: ProjectRepository = Depends(get_project_repository)):
    return repo.get(project_id).to_dict()


@router.post("", status_code=201)
def create_project(body: ProjectRequest, repo: ProjectRepository = Depends(get_project_repository)):
    project_id = repo.create(body.name, body.description)
    return repo.get(project_id).to_dict()


@router.put("/{project_id}")
def update_project(
    project_id: int,
    body: ProjectRequest,
    repo: ProjectRepository = Depends(get_project_repository),
):
    if not repo.update(project_id, body.name, body.description):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Project not found")
    return repo.get(project_id).to_dict()


@router.post("/{project_id}/trash")
def trash_project(project_id: int, repo: ProjectRepository = Depends(get_project_repository)):
    if not repo.soft_delete(project_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Project not found")
    return {"success": True, "message": "Moved to trash."}


@router.post("/{project_id}/restore")
def restore_project(project_id: int, repo: ProjectRepository = Depends(get_project_repository)):
    if not repo.restore(project_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Project not found")
    return {"success": True, "message": "Restored."}


@router.delete("/{project_id}")
def delete_project(project_id: int, repo: ProjectRepository = Depends(get_project_repository)):
    if not repo.delete(project_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Project not found")
    return {"success": True, "message": "Deleted permanently."}
