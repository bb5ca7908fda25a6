"""Authenticated download of files uploaded through public forms."""

from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from formrelay.core.deps import get_db, get_workspace_scope
from formrelay.services import file_service, storage_service

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{file_id}")
def download_file(
    file_id: UUID,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    upload = file_service.get_upload_for_workspace(db, workspace_id, file_id)
    if not upload:
        raise HTTPException(status_code=404, detail="File not found")

    try:
        content = file_service.read_upload(upload)
    except storage_service.StoredFileNotFound:
        raise HTTPException(status_code=404, detail="File not found")

    return Response(
        content=content,
        media_type=upload.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(upload.file_name)}",
        },
    )
