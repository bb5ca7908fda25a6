"""Form builder service: CRUD, field/mapping validation and logos."""

import logging
import uuid

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from formrelay.core.config import settings
from formrelay.db.models import FileUpload, Form, Submission, User
from formrelay.schemas.forms import FormCreate, FormUpdate
from formrelay.services import storage_service
from formrelay.utils.file_upload import file_extension

logger = logging.getLogger(__name__)

FORM_LOGO_ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
FORM_LOGO_CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

# Columns copied from the request body as-is
_PLAIN_COLUMNS = (
    "description",
    "name_translations",
    "description_translations",
    "action_type",
    "awork_project_id",
    "awork_project_type_id",
    "awork_task_list_id",
    "awork_task_status_id",
    "awork_type_of_work_id",
    "awork_assignee_id",
    "awork_task_tag",
    "primary_color",
    "background_color",
)


# =============================================================================
# Queries
# =============================================================================

def list_forms(db: Session, workspace_id: str) -> list[tuple[Form, int]]:
    """Forms of a workspace (most recently updated first) with submission counts."""
    counts = (
        db.query(Submission.form_id, func.count(Submission.id).label("n"))
        .group_by(Submission.form_id)
        .subquery()
    )
    rows = (
        db.query(Form, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.form_id == Form.id)
        .filter(Form.workspace_id == workspace_id)
        .order_by(Form.updated_at.desc(), Form.created_at.desc())
        .all()
    )
    return [(form, int(count)) for form, count in rows]


def get_form(db: Session, workspace_id: str, form_id: uuid.UUID) -> Form | None:
    return (
        db.query(Form)
        .filter(Form.workspace_id == workspace_id, Form.id == form_id)
        .first()
    )


def get_form_by_public_id(db: Session, public_id: uuid.UUID) -> Form | None:
    return db.query(Form).filter(Form.public_id == public_id).first()


def count_submissions(db: Session, form_id: uuid.UUID) -> int:
    return db.query(func.count(Submission.id)).filter(Submission.form_id == form_id).scalar() or 0


# =============================================================================
# Validation
# =============================================================================

def _validate_fields(fields: list[dict]) -> None:
    seen: set[str] = set()
    for field in fields:
        field_id = field["id"].strip()
        if not field_id:
            raise ValueError("Field id is required")
        if field_id in seen:
            raise ValueError(f"Duplicate field id: {field_id}")
        seen.add(field_id)


def _validate_mappings(fields: list[dict], mappings: dict | None) -> None:
    if not mappings:
        return
    field_ids = {f["id"] for f in fields}
    for key in ("project_field_mappings", "task_field_mappings"):
        for mapping in mappings.get(key) or []:
            if mapping["form_field_id"] not in field_ids:
                raise ValueError(f"Mapping refers to unknown field: {mapping['form_field_id']}")


def _normalize_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise ValueError("Form name is required")
    return name.strip()


# =============================================================================
# Mutations
# =============================================================================

def create_form(db: Session, user: User, data: FormCreate) -> Form:
    payload = data.model_dump(exclude_unset=True, exclude={"name", "fields", "field_mappings"})
    fields = [f.model_dump(exclude_none=True) for f in data.fields or []]
    mappings = data.field_mappings.model_dump() if data.field_mappings else None

    name = _normalize_name(data.name)
    _validate_fields(fields)
    _validate_mappings(fields, mappings)

    form = Form(
        workspace_id=user.workspace_id,
        created_by_user_id=user.id,
        name=name,
        fields=fields,
        field_mappings=mappings,
        is_active=True if data.is_active is None else data.is_active,
        awork_task_is_priority=bool(data.awork_task_is_priority),
    )
    for column in _PLAIN_COLUMNS:
        if column in payload:
            setattr(form, column, payload[column])

    db.add(form)
    db.commit()
    db.refresh(form)
    logger.info("Form created", extra={"form_id": str(form.id), "workspace_id": form.workspace_id})
    return form


def update_form(db: Session, form: Form, data: FormUpdate) -> Form:
    """Partial update: only keys present in the request change."""
    provided = data.model_fields_set

    if "name" in provided:
        form.name = _normalize_name(data.name)

    fields = form.fields or []
    if "fields" in provided:
        fields = [f.model_dump(exclude_none=True) for f in data.fields or []]
        _validate_fields(fields)
        form.fields = fields

    if "field_mappings" in provided:
        form.field_mappings = data.field_mappings.model_dump() if data.field_mappings else None
    _validate_mappings(fields, form.field_mappings)

    payload = data.model_dump(include=provided)
    for column in _PLAIN_COLUMNS:
        if column in payload:
            setattr(form, column, payload[column])
    if "awork_task_is_priority" in provided:
        form.awork_task_is_priority = bool(data.awork_task_is_priority)
    if "is_active" in provided and data.is_active is not None:
        form.is_active = data.is_active

    db.commit()
    db.refresh(form)
    return form


def delete_form(db: Session, form: Form) -> None:
    """Delete a form with its submissions and uploads, then their stored files."""
    storage_keys = [u.storage_key for u in db.query(FileUpload).filter(FileUpload.form_id == form.id)]
    if form.logo_storage_key:
        storage_keys.append(form.logo_storage_key)

    db.delete(form)
    db.commit()
    storage_service.delete_files_quietly(storage_keys)


# =============================================================================
# Logo
# =============================================================================

def upload_form_logo(db: Session, form: Form, file: UploadFile) -> tuple[Form, int]:
    if not file.filename:
        raise ValueError("Logo filename is required")

    file.file.seek(0, 2)
    file_size = file.file.tell()
    file.file.seek(0)

    if file_size == 0:
        raise ValueError("Logo file is empty")
    if file_size > settings.MAX_LOGO_SIZE_BYTES:
        max_mb = settings.MAX_LOGO_SIZE_BYTES / (1024 * 1024)
        raise ValueError(f"Logo exceeds {max_mb:.0f} MB limit")

    ext = file_extension(file.filename)
    if ext not in FORM_LOGO_ALLOWED_EXTENSIONS:
        raise ValueError("Logo file type not allowed. Use jpg, jpeg, png, gif or webp")

    previous_key = form.logo_storage_key
    storage_key = storage_service.build_storage_key(
        form.workspace_id, form.id, "logo", uuid.uuid4(), ext
    )
    content_type = FORM_LOGO_CONTENT_TYPES[ext]
    storage_service.store_file(storage_key, file.file, content_type)

    form.logo_storage_key = storage_key
    form.logo_content_type = content_type
    db.commit()
    db.refresh(form)

    if previous_key:
        storage_service.delete_files_quietly([previous_key])
    return form, file_size


def delete_form_logo(db: Session, form: Form) -> Form:
    previous_key = form.logo_storage_key
    form.logo_storage_key = None
    form.logo_content_type = None
    db.commit()
    db.refresh(form)
    if previous_key:
        storage_service.delete_files_quietly([previous_key])
    return form


def load_form_logo(form: Form) -> tuple[bytes, str] | None:
    if not form.logo_storage_key:
        return None
    try:
        content = storage_service.load_file(form.logo_storage_key)
    except storage_service.StoredFileNotFound:
        logger.warning("Logo missing from storage", extra={"form_id": str(form.id)})
        return None
    return content, form.logo_content_type or "application/octet-stream"
