# Vault API - lifecycle and backup endpoints
#
# - Status (unprotected), setup, unlock, lock
# - Export/import of encrypted backups
#
# Setup, unlock and lock rotate the session token (see security.py) and
# return the new one as "session_token".
#
# Errors raised by the vault are rendered by the VaultError handler in
# main.py; routes only translate request bodies into calls.

import threading
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..backup import export_vault, import_vault
from ..core.config import Settings, VaultPaths
from ..vault import VaultManager
from .security import rotate_session_token, verify_session_token

router = APIRouter(prefix="/api/vault", tags=["vault"])

# ── Singleton ────────────────────────────────────────────────────────

_vault_manager: Optional[VaultManager] = None
_vault_manager_lock = threading.Lock()


def get_vault_manager() -> VaultManager:
    """Lazy singleton, created from the environment on first use."""
    global _vault_manager
    if _vault_manager is None:
        with _vault_manager_lock:
            # One manager per process: a second one would own a second session
            if _vault_manager is None:
                _vault_manager = VaultManager(Settings.from_env().paths)
    return _vault_manager


def configure_vault_manager(paths: VaultPaths) -> VaultManager:
    """Point the API at the vault in ``paths`` (used by the CLI)."""
    global _vault_manager
    with _vault_manager_lock:
        if _vault_manager is not None:
            _vault_manager.lock()
        _vault_manager = VaultManager(paths)
        return _vault_manager


# ── Pydantic Models ──────────────────────────────────────────────────


class PasswordRequest(BaseModel):
    password: str


class BackupRequest(BaseModel):
    path: str = Field(..., min_length=1)
    password: str


class VaultStatusResponse(BaseModel):
    vault_exists: bool
    is_unlocked: bool


# ── Routes ───────────────────────────────────────────────────────────


@router.get("/status", response_model=VaultStatusResponse)
def get_vault_status(vault: VaultManager = Depends(get_vault_manager)):
    """Whether a vault exists and whether it is unlocked. No token needed."""
    return VaultStatusResponse(
        vault_exists=vault.check_status(),
        is_unlocked=vault.is_unlocked,
    )


@router.post("/setup", dependencies=[Depends(verify_session_token)])
def setup_vault(body: PasswordRequest, vault: VaultManager = Depends(get_vault_manager)):
    """Create the vault with a master password and unlock it."""
    message = vault.setup(body.password)
    return {"success": True, "message": message, "session_token": rotate_session_token()}


@router.post("/unlock", dependencies=[Depends(verify_session_token)])
def unlock_vault(body: PasswordRequest, vault: VaultManager = Depends(get_vault_manager)):
    """Unlock with the master password. The response carries the new session token."""
    message = vault.unlock(body.password)
    return {"success": True, "message": message, "session_token": rotate_session_token()}


@router.post("/lock", dependencies=[Depends(verify_session_token)])
def lock_vault(vault: VaultManager = Depends(get_vault_manager)):
    """Lock the vault and retire the token used while it was unlocked."""
    message = vault.lock()
    return {"success": True, "message": message, "session_token": rotate_session_token()}


@router.post("/export", dependencies=[Depends(verify_session_token)])
def export_backup(body: BackupRequest, vault: VaultManager = Depends(get_vault_manager)):
    """Write the active secrets to an encrypted file at ``path``."""
    count = export_vault(vault, body.path, body.password)
    return {"success": True, "message": f"Exported {count} secrets.", "count": count}


@router.post("/import", dependencies=[Depends(verify_session_token)])
def import_backup(body: BackupRequest, vault: VaultManager = Depends(get_vault_manager)):
    """Merge an encrypted backup into the vault, skipping duplicates."""
    result = import_vault(vault, body.path, body.password)
    return {
        "success": True,
        "message": f"Imported {result.inserted} secrets, skipped {result.skipped} duplicates.",
        "inserted": result.inserted,
        "skipped": result.skipped,
    }
