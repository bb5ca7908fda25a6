"""Read-only awork lookups for the form builder, plus event tracking.

Every call uses the caller's own (refreshed) awork token. Auth failures
surface as 401 with code TOKEN_EXPIRED via the app-level handler.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from formrelay.core.deps import get_current_user, get_db, require_csrf_header
from formrelay.db.models import User
from formrelay.schemas.awork import TrackEventRequest, TrackEventResponse
from formrelay.services import awork_service
from formrelay.services.awork_client import AworkApiError, AworkClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/awork", tags=["awork"])

DEFAULT_LOCALE = "en"
DEFAULT_PAGE_TITLE = "awork Forms"


async def get_awork_client(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AworkClient:
    return await awork_service.client_for_user(db, user)


@router.get("/projects")
async def list_projects(client: AworkClient = Depends(get_awork_client)):
    return await client.list_projects()


@router.get("/projecttypes")
async def list_project_types(client: AworkClient = Depends(get_awork_client)):
    return await client.list_project_types()


@router.get("/projecttypes/{project_type_id}/projectstatuses")
async def list_project_statuses(
    project_type_id: str,
    client: AworkClient = Depends(get_awork_client),
):
    return await client.list_project_statuses(project_type_id)


@router.get("/users")
async def list_users(client: AworkClient = Depends(get_awork_client)):
    return await client.list_users()


@router.get("/projects/{project_id}/taskstatuses")
async def list_task_statuses(
    project_id: str,
    client: AworkClient = Depends(get_awork_client),
):
    return await client.list_task_statuses(project_id)


@router.get("/projects/{project_id}/tasklists")
async def list_task_lists(
    project_id: str,
    client: AworkClient = Depends(get_awork_client),
):
    return await client.list_task_lists(project_id)


@router.get("/typesofwork")
async def list_types_of_work(client: AworkClient = Depends(get_awork_client)):
    return await client.list_types_of_work()


@router.get("/customfields")
async def list_task_custom_fields(client: AworkClient = Depends(get_awork_client)):
    """Custom field definitions usable on tasks (mapping targets)."""
    return await client.list_task_custom_field_definitions()


@router.get("/projects/{project_id}/customfields")
async def list_project_custom_fields(
    project_id: str,
    client: AworkClient = Depends(get_awork_client),
):
    return await client.list_project_custom_field_definitions(project_id)


# =============================================================================
# Tracking
# =============================================================================

def build_track_payload(body: TrackEventRequest, user_agent: str) -> dict:
    context = body.context
    page = context.page if context else None
    return {
        "eventName": body.event_name,
        "data": body.data or {},
        "context": {
            "userAgent": (context.user_agent if context else None) or user_agent,
            "locale": (context.locale if context else None) or DEFAULT_LOCALE,
            "page": {
                "path": (page.path if page else None) or "/",
                "title": (page.title if page else None) or DEFAULT_PAGE_TITLE,
                "url": (page.url if page else None) or "",
                "referrer": (page.referrer if page else None) or "",
            },
        },
    }


@router.post(
    "/track",
    response_model=TrackEventResponse,
    dependencies=[Depends(require_csrf_header)],
)
async def track_event(
    body: TrackEventRequest,
    request: Request,
    client: AworkClient = Depends(get_awork_client),
):
    payload = build_track_payload(body, request.headers.get("user-agent", ""))
    try:
        await client.track_event(payload)
    except AworkApiError as exc:
        logger.warning("awork track event failed: %s", exc.status_code)
        return TrackEventResponse(success=False)
    return TrackEventResponse(success=True)
