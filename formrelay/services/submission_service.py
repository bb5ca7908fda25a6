"""Submission intake, validation and listing."""

import logging
import math
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from formrelay.core.config import settings
from formrelay.db.enums import SubmissionStatus
from formrelay.db.models import Form, Submission
from formrelay.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


# =============================================================================
# Validation
# =============================================================================

def _label(field: dict) -> str:
    return field.get("label") or field["id"]


def _is_empty(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    return value is None or value == [] or value == {}


def _is_iso_date(value: str) -> bool:
    """A calendar date or a full ISO 8601 timestamp."""
    for parse in (date.fromisoformat, datetime.fromisoformat):
        try:
            parse(value.replace("Z", "+00:00"))
            return True
        except ValueError:
            continue
    return False


def _validate_field_value(field: dict, value: Any) -> None:
    field_type = field["type"]
    label = _label(field)

    if field_type in {"text", "textarea"}:
        if not isinstance(value, str):
            raise ValueError(f"Field '{label}' must be a string")
        return

    if field_type == "email":
        if not isinstance(value, str):
            raise ValueError(f"Field '{label}' must be a string")
        try:
            _email_adapter.validate_python(value.strip())
        except ValidationError as exc:
            raise ValueError(f"Field '{label}' must be a valid email address") from exc
        return

    if field_type == "number":
        if isinstance(value, bool):
            raise ValueError(f"Field '{label}' must be a number")
        if isinstance(value, int) or (isinstance(value, float) and math.isfinite(value)):
            return
        if isinstance(value, str):
            try:
                if math.isfinite(float(value)):
                    return
            except ValueError:
                pass
        raise ValueError(f"Field '{label}' must be a number")

    if field_type == "date":
        if isinstance(value, str):
            if _is_iso_date(value.strip()):
                return
        raise ValueError(f"Field '{label}' must be a date (YYYY-MM-DD)")

    if field_type == "select":
        if not isinstance(value, str):
            raise ValueError(f"Field '{label}' must be a string")
        options = field.get("options") or []
        if options and value not in options:
            raise ValueError(f"Invalid option for '{label}'")
        return

    if field_type == "checkbox":
        if not isinstance(value, bool):
            raise ValueError(f"Field '{label}' must be a boolean")
        return

    if field_type == "file":
        items = value if isinstance(value, list) else [value]
        for item in items:
            if not isinstance(item, dict) or not item.get("file_url"):
                raise ValueError(f"Field '{label}' must reference an uploaded file")


def validate_submission_data(fields: list[dict], data: dict[str, Any]) -> dict[str, Any]:
    """
    Validate answers against the form's fields.

    Returns the answers restricted to defined field ids. Raises ValueError
    with the first problem found.
    """
    if not isinstance(data, dict):
        raise ValueError("Submission data must be an object")

    cleaned: dict[str, Any] = {}
    for field in fields:
        value = data.get(field["id"])
        if field.get("required"):
            if _is_empty(value) or (field["type"] == "checkbox" and value is not True):
                raise ValueError(f"Missing required field: {_label(field)}")
        if _is_empty(value):
            continue
        _validate_field_value(field, value)
        cleaned[field["id"]] = value.strip() if isinstance(value, str) else value
    return cleaned


# =============================================================================
# Persistence
# =============================================================================

def create_submission(db: Session, form: Form, data: dict[str, Any]) -> Submission:
    if not form.is_active:
        raise ValueError("This form is no longer accepting submissions")

    cleaned = validate_submission_data(form.fields or [], data)
    submission = Submission(
        form_id=form.id,
        data=cleaned,
        status=SubmissionStatus.PENDING.value,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    logger.info(
        "Submission received",
        extra={"form_id": str(form.id), "submission_id": str(submission.id)},
    )
    return submission


def get_submission(
    db: Session, workspace_id: str, submission_id: uuid.UUID
) -> Submission | None:
    return (
        db.query(Submission)
        .join(Form, Form.id == Submission.form_id)
        .filter(Form.workspace_id == workspace_id, Submission.id == submission_id)
        .first()
    )


def list_submissions(
    db: Session,
    workspace_id: str,
    pagination: PaginationParams,
    *,
    form_id: uuid.UUID | None = None,
    status: str | None = None,
) -> tuple[list[Submission], int]:
    """Workspace submissions, newest first."""
    query = (
        db.query(Submission)
        .join(Form, Form.id == Submission.form_id)
        .filter(Form.workspace_id == workspace_id)
    )
    if form_id:
        query = query.filter(Submission.form_id == form_id)
    if status:
        query = query.filter(Submission.status == status)
    query = query.order_by(Submission.created_at.desc())
    return paginate_query(query, pagination)


def list_submissions_for_reprocessing(
    db: Session,
    *,
    statuses: list[str],
    form_id: uuid.UUID | None = None,
    limit: int = 100,
) -> list[Submission]:
    """Oldest first so a backlog is replayed in arrival order."""
    query = db.query(Submission).filter(Submission.status.in_(statuses))
    if form_id:
        query = query.filter(Submission.form_id == form_id)
    return query.order_by(Submission.created_at.asc()).limit(limit).all()


def claim_for_processing(db: Session, submission_id: uuid.UUID) -> bool:
    """
    Atomically move a submission to 'processing'.

    Pending and failed submissions can be claimed, as can a 'processing'
    claim older than SUBMISSION_CLAIM_TIMEOUT_MINUTES (its worker died).
    Returns False when another request holds the claim or the submission
    is already completed.
    """
    now = datetime.now(timezone.utc)
    abandoned_before = now - timedelta(minutes=settings.SUBMISSION_CLAIM_TIMEOUT_MINUTES)
    result = db.execute(
        update(Submission)
        .where(
            Submission.id == submission_id,
            or_(
                Submission.status.in_(
                    [SubmissionStatus.PENDING.value, SubmissionStatus.FAILED.value]
                ),
                and_(
                    Submission.status == SubmissionStatus.PROCESSING.value,
                    Submission.updated_at < abandoned_before,
                ),
            ),
        )
        .values(status=SubmissionStatus.PROCESSING.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1
