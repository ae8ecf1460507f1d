# Attachments API - files stored with a secret
#
# Uploads are multipart form data with a single "file" part; its filename and
# content type are stored with the bytes. Starlette spools large parts to a
# temporary file, and at most MAX_ATTACHMENT_SIZE + 1 bytes are read from it.
# Content lives in the encrypted vault database.

import re

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from ..store import AttachmentRepository
from ..vault import VaultManager
from .security import verify_session_token
from .vault_routes import get_vault_manager

MAX_ATTACHMENT_SIZE = 25 * 1024 * 1024  # 25 MB

router = APIRouter(tags=["attachments"], dependencies=[Depends(verify_session_token)])


def get_attachment_repository(
    vault: VaultManager = Depends(get_vault_manager),
) -> AttachmentRepository:
    return AttachmentRepository(vault)


@router.get("/api/secrets/{secret_id}/attachments")
def list_attachments(
    secret_id: int,
    repo: AttachmentRepository = Depends(get_attachment_repository),
):
    """Attachment metadata for a secret, newest first."""
    return [m.to_dict() for m in repo.list_metadata(secret_id)]


@router.post("/api/secrets/{secret_id}/attachments", status_code=201)
async def upload_attachment(
    secret_id: int,
    file: UploadFile = File(...),
    repo: AttachmentRepository = Depends(get_attachment_repository),
):
    """Store an uploaded file with a secret. Returns its metadata."""
    if file.size is not None and file.size > MAX_ATTACHMENT_SIZE:
        raise HTTPException(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File too large: {file.size} bytes (max {MAX_ATTACHMENT_SIZE})",
        )

    content = await file.read(MAX_ATTACHMENT_SIZE + 1)
    if len(content) > MAX_ATTACHMENT_SIZE:
        raise HTTPException(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File too large (max {MAX_ATTACHMENT_SIZE} bytes)",
        )

    filename = (file.filename or "").strip()
    if not filename:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Missing filename")
    mime_type = file.content_type or "application/octet-stream"

    # repo.add waits on the vault lock; keep it off the event loop
    metadata = await run_in_threadpool(repo.add, secret_id, filename[:255], mime_type, content)
    return metadata.to_dict()


@router.get("/api/attachments/{attachment_id}")
def download_attachment(
    attachment_id: int,
    repo: AttachmentRepository = Depends(get_attachment_repository),
):
    attachment = repo.get(attachment_id)

    # Sanitize filename for Content-Disposition header
    safe_filename = re.sub(r'[^\w\s\-.]', '_', attachment.metadata.filename).strip('. ')
    if not safe_filename:
        safe_filename = "download"

    return Response(
        content=attachment.content,
        media_type=attachment.metadata.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_filename}"'},
    )


@router.delete("/api/attachments/{attachment_id}")
def delete_attachment(
    attachment_id: int,
    repo: AttachmentRepository = Depends(get_attachment_repository),
):
    if not repo.delete(attachment_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Attachment not found")
    return {"success": True, "message": "Attachment deleted."}
