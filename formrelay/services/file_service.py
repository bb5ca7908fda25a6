"""Public form uploads and authenticated downloads."""

import logging
import uuid

from fastapi import UploadFile
from sqlalchemy.orm import Session

from formrelay.core.config import settings
from formrelay.db.models import FileUpload, Form
from formrelay.services import storage_service
from formrelay.utils.file_upload import file_extension, guess_content_type, safe_filename

logger = logging.getLogger(__name__)


class UploadTooLarge(ValueError):
    """Upload exceeds MAX_UPLOAD_SIZE_BYTES."""


def parse_file_url(file_url: str | None) -> uuid.UUID | None:
    """Extract the upload id from a '/api/files/{id}' reference."""
    if not file_url:
        return None
    tail = file_url.rstrip("/").rsplit("/", 1)[-1]
    try:
        return uuid.UUID(tail)
    except ValueError:
        return None


def store_public_upload(db: Session, form: Form, file: UploadFile, file_size: int) -> FileUpload:
    if not form.is_active:
        raise ValueError("This form is no longer accepting submissions")
    if file_size == 0:
        raise ValueError("No file uploaded")
    if file_size > settings.MAX_UPLOAD_SIZE_BYTES:
        max_mb = settings.MAX_UPLOAD_SIZE_BYTES / (1024 * 1024)
        raise UploadTooLarge(f"File exceeds {max_mb:.0f} MB limit")

    file_name = safe_filename(file.filename)
    upload_id = uuid.uuid4()
    storage_key = storage_service.build_storage_key(
        form.workspace_id, form.id, "uploads", upload_id, file_extension(file_name)
    )
    content_type = guess_content_type(file_name, file.content_type)
    storage_service.store_file(storage_key, file.file, content_type)

    upload = FileUpload(
        id=upload_id,
        form_id=form.id,
        file_name=file_name,
        content_type=content_type,
        size_bytes=file_size,
        storage_key=storage_key,
    )
    db.add(upload)
    db.commit()
    db.refresh(upload)
    logger.info("File uploaded", extra={"form_id": str(form.id)})
    return upload


def get_upload_for_workspace(
    db: Session, workspace_id: str, upload_id: uuid.UUID
) -> FileUpload | None:
    return (
        db.query(FileUpload)
        .join(Form, Form.id == FileUpload.form_id)
        .filter(Form.workspace_id == workspace_id, FileUpload.id == upload_id)
        .first()
    )


def get_upload_by_url(db: Session, form_id: uuid.UUID, file_url: str) -> FileUpload | None:
    """Resolve a submitted file reference; only uploads of the same form count."""
    upload_id = parse_file_url(file_url)
    if not upload_id:
        return None
    return (
        db.query(FileUpload)
        .filter(FileUpload.id == upload_id, FileUpload.form_id == form_id)
        .first()
    )


def read_upload(upload: FileUpload) -> bytes:
    return storage_service.load_file(upload.storage_key)
