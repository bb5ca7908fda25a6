"""Public form endpoints for respondents (no authentication)."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from formrelay.core.config import settings
from formrelay.core.deps import get_db
from formrelay.core.rate_limit import limiter
from formrelay.db.enums import SubmissionStatus
from formrelay.db.models import Form
from formrelay.schemas.forms import FormPublicRead, PublicUploadRead
from formrelay.schemas.submissions import SubmissionCreate, SubmitResponse
from formrelay.services import file_service, form_service, submission_processor, submission_service
from formrelay.utils.file_upload import content_length_exceeds_limit, get_upload_file_size

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/f", tags=["forms-public"])

INACTIVE_DETAIL = "This form is no longer accepting submissions"
THANK_YOU_MESSAGE = "Thank you for your submission!"


def _get_public_form_or_404(db: Session, public_id: UUID) -> Form:
    form = form_service.get_form_by_public_id(db, public_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


@router.get("/{public_id}", response_model=FormPublicRead)
def get_public_form(public_id: UUID, db: Session = Depends(get_db)):
    """Form definition for rendering; integration settings are never exposed."""
    form = _get_public_form_or_404(db, public_id)
    if not form.is_active:
        raise HTTPException(status_code=404, detail=INACTIVE_DETAIL)

    return FormPublicRead(
        public_id=form.public_id,
        name=form.name,
        description=form.description,
        name_translations=form.name_translations,
        description_translations=form.description_translations,
        fields=form.fields or [],
        primary_color=form.primary_color,
        background_color=form.background_color,
        logo_url=form.logo_url,
    )


@router.get("/{public_id}/logo")
def get_public_logo(public_id: UUID, db: Session = Depends(get_db)):
    form = _get_public_form_or_404(db, public_id)
    logo = form_service.load_form_logo(form)
    if not logo:
        raise HTTPException(status_code=404, detail="Logo not found")

    content, content_type = logo
    return Response(
        content=content,
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=300"},
    )


@router.post("/{public_id}/submit", response_model=SubmitResponse, status_code=201)
@limiter.limit(settings.RATE_LIMIT_PUBLIC_SUBMIT)
async def submit_public_form(
    request: Request,
    public_id: UUID,
    body: SubmissionCreate,
    db: Session = Depends(get_db),
):
    """
    Store a submission and relay it to awork.

    The submission is kept even when the relay fails; the outcome is
    reported in integration_status / integration_error.
    """
    form = _get_public_form_or_404(db, public_id)
    try:
        submission = submission_service.create_submission(db, form, body.data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        result = await submission_processor.process_submission(db, submission)
    except submission_processor.SubmissionInProgress:
        # A reprocess run picked it up first and will record the outcome
        result = submission_processor.ProcessingResult(
            status=SubmissionStatus.PROCESSING.value
        )
    return SubmitResponse(
        success=True,
        message=THANK_YOU_MESSAGE,
        submission_id=submission.id,
        awork_project_id=result.awork_project_id,
        awork_task_id=result.awork_task_id,
        integration_status=result.status,
        integration_error=result.error_message,
    )


@router.post("/{public_id}/upload", response_model=PublicUploadRead)
@limiter.limit(settings.RATE_LIMIT_PUBLIC_UPLOAD)
async def upload_public_file(
    request: Request,
    public_id: UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Upload a file for a `file` field; the returned reference goes into the submission."""
    if content_length_exceeds_limit(
        request.headers.get("content-length"),
        max_size_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
    ):
        raise HTTPException(status_code=413, detail="File too large")

    form = _get_public_form_or_404(db, public_id)
    file_size = await get_upload_file_size(file)
    try:
        upload = file_service.store_public_upload(db, form, file, file_size)
    except file_service.UploadTooLarge as exc:
        raise HTTPException(status_code=413, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return PublicUploadRead(
        file_name=upload.file_name,
        file_url=upload.file_url,
        file_size=upload.size_bytes,
    )
