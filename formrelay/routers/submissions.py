"""Submission review endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from formrelay.core.deps import get_db, get_workspace_scope, require_csrf_header
from formrelay.db.enums import SubmissionStatus
from formrelay.db.models import Submission
from formrelay.schemas.submissions import SubmissionListResponse, SubmissionRead
from formrelay.services import submission_processor, submission_service
from formrelay.utils.pagination import PaginationParams, get_pagination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/submissions", tags=["submissions"])

StatusFilter = Query(None, pattern="^(pending|processing|completed|failed)$")


def submission_read(submission: Submission) -> SubmissionRead:
    return SubmissionRead(
        id=submission.id,
        form_id=submission.form_id,
        form_name=submission.form.name,
        data=submission.data or {},
        status=submission.status,
        awork_project_id=submission.awork_project_id,
        awork_task_id=submission.awork_task_id,
        error_message=submission.error_message,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
    )


def submission_page(
    items: list[Submission], total: int, pagination: PaginationParams
) -> SubmissionListResponse:
    return SubmissionListResponse(
        items=[submission_read(s) for s in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages_for(total),
    )


@router.get("", response_model=SubmissionListResponse)
def list_submissions(
    status: str | None = StatusFilter,
    pagination: PaginationParams = Depends(get_pagination),
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    """All submissions of the workspace, newest first."""
    items, total = submission_service.list_submissions(
        db, workspace_id, pagination, status=status
    )
    return submission_page(items, total, pagination)


@router.get("/{submission_id}", response_model=SubmissionRead)
def get_submission(
    submission_id: UUID,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    submission = submission_service.get_submission(db, workspace_id, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission_read(submission)


@router.post(
    "/{submission_id}/retry",
    response_model=SubmissionRead,
    dependencies=[Depends(require_csrf_header)],
)
async def retry_submission(
    submission_id: UUID,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    """
    Re-run the awork relay for a failed or stuck submission.

    Remote ids recorded by an earlier attempt are reused, and a submission
    another request is still relaying is rejected with 409, so a retry never
    creates a second project or task.
    """
    submission = submission_service.get_submission(db, workspace_id, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    if submission.status == SubmissionStatus.COMPLETED.value:
        raise HTTPException(status_code=409, detail="Submission already completed")

    try:
        await submission_processor.process_submission(db, submission)
    except submission_processor.SubmissionInProgress:
        raise HTTPException(status_code=409, detail="Submission is already being processed")
    db.refresh(submission)
    logger.info("Submission retried", extra={"submission_id": str(submission.id)})
    return submission_read(submission)
