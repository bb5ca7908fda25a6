"""Form builder endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from formrelay.core.deps import (
    get_current_user,
    get_db,
    get_workspace_scope,
    require_csrf_header,
)
from formrelay.db.models import Form, User
from formrelay.routers.submissions import submission_page
from formrelay.schemas.forms import (
    FormCreate,
    FormLogoRead,
    FormRead,
    FormSummary,
    FormUpdate,
)
from formrelay.schemas.submissions import SubmissionListResponse
from formrelay.services import form_service, submission_service
from formrelay.utils.pagination import PaginationParams, get_pagination

router = APIRouter(prefix="/forms", tags=["forms"])


def _form_summary(form: Form, submission_count: int) -> FormSummary:
    return FormSummary(
        id=form.id,
        public_id=form.public_id,
        name=form.name,
        description=form.description,
        action_type=form.action_type,
        is_active=form.is_active,
        submission_count=submission_count,
        field_count=len(form.fields or []),
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


def _form_read(form: Form, submission_count: int) -> FormRead:
    return FormRead(
        **_form_summary(form, submission_count).model_dump(),
        name_translations=form.name_translations,
        description_translations=form.description_translations,
        fields=form.fields or [],
        awork_project_id=form.awork_project_id,
        awork_project_type_id=form.awork_project_type_id,
        awork_task_list_id=form.awork_task_list_id,
        awork_task_status_id=form.awork_task_status_id,
        awork_type_of_work_id=form.awork_type_of_work_id,
        awork_assignee_id=form.awork_assignee_id,
        awork_task_is_priority=form.awork_task_is_priority,
        awork_task_tag=form.awork_task_tag,
        field_mappings=form.field_mappings,
        primary_color=form.primary_color,
        background_color=form.background_color,
        logo_url=form.logo_url,
    )


def _get_form_or_404(db: Session, workspace_id: str, form_id: UUID) -> Form:
    form = form_service.get_form(db, workspace_id, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


# =============================================================================
# Form CRUD
# =============================================================================

@router.get("", response_model=list[FormSummary])
def list_forms(
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    return [_form_summary(form, count) for form, count in form_service.list_forms(db, workspace_id)]


@router.post(
    "",
    response_model=FormRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_form(
    body: FormCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        form = form_service.create_form(db, user, body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _form_read(form, 0)


@router.get("/{form_id}", response_model=FormRead)
def get_form(
    form_id: UUID,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, workspace_id, form_id)
    return _form_read(form, form_service.count_submissions(db, form.id))


@router.put(
    "/{form_id}",
    response_model=FormRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_form(
    form_id: UUID,
    body: FormUpdate,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, workspace_id, form_id)
    try:
        form = form_service.update_form(db, form, body)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    return _form_read(form, form_service.count_submissions(db, form.id))


@router.delete(
    "/{form_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_form(
    form_id: UUID,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, workspace_id, form_id)
    form_service.delete_form(db, form)
    return Response(status_code=204)


# =============================================================================
# Logo
# =============================================================================

@router.post(
    "/{form_id}/logo",
    response_model=FormLogoRead,
    dependencies=[Depends(require_csrf_header)],
)
def upload_logo(
    form_id: UUID,
    logo: UploadFile = File(...),
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, workspace_id, form_id)
    try:
        form, file_size = form_service.upload_form_logo(db, form, logo)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return FormLogoRead(
        logo_url=form.logo_url,
        content_type=form.logo_content_type,
        file_size=file_size,
    )


@router.delete(
    "/{form_id}/logo",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_logo(
    form_id: UUID,
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, workspace_id, form_id)
    form_service.delete_form_logo(db, form)
    return Response(status_code=204)


# =============================================================================
# Submissions of a form
# =============================================================================

@router.get("/{form_id}/submissions", response_model=SubmissionListResponse)
def list_form_submissions(
    form_id: UUID,
    status: str | None = Query(None, pattern="^(pending|processing|completed|failed)$"),
    pagination: PaginationParams = Depends(get_pagination),
    workspace_id: str = Depends(get_workspace_scope),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, workspace_id, form_id)
    items, total = submission_service.list_submissions(
        db, workspace_id, pagination, form_id=form.id, status=status
    )
    return submission_page(items, total, pagination)
