# Secrets API - CRUD and trash for stored credentials
#
# All routes require the session token and an unlocked vault (VaultClosed
# is rendered as 423 by the handler in main.py).

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..store import SecretRepository, TrashRepository
from ..vault import VaultManager
from .security import verify_session_token
from .vault_routes import get_vault_manager

router = APIRouter(
    prefix="/api/secrets",
    tags=["secrets"],
    dependencies=[Depends(verify_session_token)],
)

trash_router = APIRouter(
    prefix="/api/trash",
    tags=["trash"],
    dependencies=[Depends(verify_session_token)],
)


def get_secret_repository(vault: VaultManager = Depends(get_vault_manager)) -> SecretRepository:
    return SecretRepository(vault)


# ── Pydantic Models ──────────────────────────────────────────────────


class SecretRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    username: str = ""
    password: str
    project_id: Optional[int] = None


# ── Routes ───────────────────────────────────────────────────────────


@router.get("")
def list_secrets(repo: SecretRepository = Depends(get_secret_repository)):
    """Active secrets (not in the trash), oldest first."""
    return [s.to_dict() for s in repo.list_active()]


@router.get("/trash")
def list_trashed_secrets(repo: SecretRepository = Depends(get_secret_repository)):
    return [s.to_dict() for s in repo.list_deleted()]


@router.get("/{secret_id}")
def get_secret(secret_id: int, repo: SecretRepository = Depends(get_secret_repository)):
    return repo.get(secret_id).to_dict()


@router.post("", status_code=201)
def create_secret(body: SecretRequest, repo: SecretRepository = Depends(get_secret_repository)):
    secret = repo.create(body.title, body.username, body.password, body.project_id)
    return secret.to_dict()


@router.put("/{secret_id}")
def update_secret(
    secret_id: int,
    body: SecretRequest,
    repo: SecretRepository = Depends(get_secret_repository),
):
    """Replace the secret's fields. Omitting project_id leaves it unchanged."""
    if "project_id" in body.model_fields_set:
        secret = repo.update(secret_id, body.title, body.username, body.password, body.project_id)
    else:
        secret = repo.update(secret_id, body.title, body.username, body.password)
    return secret.to_dict()


@router.post("/{secret_id}/trash")
def trash_secret(secret_id: int, repo: SecretRepository = Depends(get_secret_repository)):
    if not repo.soft_delete(secret_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Secret not found")
    return {"success": True, "message": "Moved to trash."}


@router.post("/{secret_id}/restore")
def restore_secret(secret_id: int, repo: SecretRepository = Depends(get_secret_repository)):
    if not repo.restore(secret_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Secret not found")
    return {"success": True, "message": "Restored."}


@router.delete("/{secret_id}")
def delete_secret(secret_id: int, repo: SecretRepository = Depends(get_secret_repository)):
    """Delete permanently (attachments included)."""
    if not repo.delete(secret_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Secret not found")
    return {"success": True, "message": "Deleted permanently."}


@trash_router.post("/empty")
def empty_trash(vault: VaultManager = Depends(get_vault_manager)):
    """Permanently delete every trashed secret and project."""
    counts = TrashRepository(vault).empty()
    return {"success": True, "message": "Trash emptied.", "deleted": counts}
