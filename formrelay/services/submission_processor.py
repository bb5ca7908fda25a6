"""Relay a submission to awork as a project and/or task.

Field mappings are evaluated in list order. For a single-valued target the
first mapping that yields a non-empty value wins, so later mappings act as
fallbacks. Tags collect every mapped value.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from formrelay.core.structured_logging import build_log_context
from formrelay.db.enums import (
    CUSTOM_FIELD_PREFIX,
    ActionType,
    ProjectTarget,
    SubmissionStatus,
    TaskTarget,
)
from formrelay.db.models import Form, Submission
from formrelay.services import awork_service, file_service, storage_service, submission_service
from formrelay.services.awork_client import AworkApiError, AworkAuthError, AworkClient
from formrelay.utils.datetime_parsing import parse_datetime_value, to_awork_datetime

logger = logging.getLogger(__name__)

NO_INTEGRATION_USER = "No authenticated user available for this workspace"
NO_TARGET_PROJECT = "No target project configured for task creation"

_TRUE_VALUES = {"true", "yes", "1", "on"}
_FALSE_VALUES = {"false", "no", "0", "off"}


class SubmissionInProgress(Exception):
    """Another request is relaying this submission, or it already completed."""


@dataclass
class ProcessingResult:
    status: str
    awork_project_id: str | None = None
    awork_task_id: str | None = None
    error_message: str | None = None


# =============================================================================
# Mapping resolution
# =============================================================================

def render_value(value: Any) -> str | None:
    """Text form of an answer: bools as Yes/No, files by name, lists joined."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if value.get("file_name"):
            return str(value["file_name"])
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        parts = [render_value(item) for item in value]
        return ", ".join(p for p in parts if p)
    return str(value)


def _mapped_value(data: dict[str, Any], form_field_id: str) -> str | None:
    rendered = render_value(data.get(form_field_id))
    if rendered is None:
        return None
    rendered = rendered.strip()
    return rendered or None


def resolve_target(mappings: list[dict], target: str, data: dict[str, Any]) -> str | None:
    """First non-empty value among the mappings for target."""
    for mapping in mappings:
        if mapping.get("awork_field") != target:
            continue
        value = _mapped_value(data, mapping.get("form_field_id", ""))
        if value:
            return value
    return None


def collect_tags(mappings: list[dict], data: dict[str, Any], form_tag: str | None) -> list[str]:
    """Comma-split tag values plus the form's tag, de-duplicated case-insensitively."""
    raw: list[str] = []
    for mapping in mappings:
        if mapping.get("awork_field") != TaskTarget.TAGS.value:
            continue
        value = _mapped_value(data, mapping.get("form_field_id", ""))
        if value:
            raw.extend(value.split(","))
    if form_tag:
        raw.append(form_tag)

    tags: list[str] = []
    seen: set[str] = set()
    for tag in raw:
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return tags


def custom_field_id(awork_field: str) -> str | None:
    """Definition id of a 'custom:<uuid>' (or bare uuid) mapping target."""
    value = awork_field
    if value.startswith(CUSTOM_FIELD_PREFIX):
        value = value[len(CUSTOM_FIELD_PREFIX):]
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def build_answer_summary(fields: list[dict], data: dict[str, Any]) -> str | None:
    """'Label: value' lines for every answered field."""
    lines = []
    for field in fields:
        value = _mapped_value(data, field["id"])
        if value:
            lines.append(f"{field.get('label') or field['id']}: {value}")
    return "\n".join(lines) or None


def default_name(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"Form Submission {now:%Y-%m-%d %H:%M}"


def _date_value(value: str | None) -> str | None:
    if not value:
        return None
    parsed = parse_datetime_value(value)
    return to_awork_datetime(parsed) if parsed else None


def _planned_duration(value: str | None) -> int | None:
    if not value:
        return None
    try:
        seconds = int(float(value))
    except (ValueError, OverflowError):
        return None
    return seconds if seconds > 0 else None


def _mappings(form: Form, key: str) -> list[dict]:
    return list((form.field_mappings or {}).get(key) or [])


def build_project_payload(form: Form, data: dict[str, Any]) -> dict[str, Any]:
    mappings = _mappings(form, "project_field_mappings")
    payload: dict[str, Any] = {
        "name": resolve_target(mappings, ProjectTarget.NAME.value, data) or default_name(),
        "description": (
            resolve_target(mappings, ProjectTarget.DESCRIPTION.value, data)
            or build_answer_summary(form.fields or [], data)
        ),
    }
    start_date = _date_value(resolve_target(mappings, ProjectTarget.START_DATE.value, data))
    due_date = _date_value(resolve_target(mappings, ProjectTarget.DUE_DATE.value, data))
    if start_date:
        payload["startDate"] = start_date
    if due_date:
        payload["dueDate"] = due_date
    if form.awork_project_type_id:
        payload["projectTypeId"] = form.awork_project_type_id
    return payload


def build_task_payload(form: Form, data: dict[str, Any]) -> dict[str, Any]:
    mappings = _mappings(form, "task_field_mappings")
    payload: dict[str, Any] = {
        "name": resolve_target(mappings, TaskTarget.NAME.value, data) or default_name(),
        "description": (
            resolve_target(mappings, TaskTarget.DESCRIPTION.value, data)
            or build_answer_summary(form.fields or [], data)
        ),
        "isPriority": bool(form.awork_task_is_priority),
    }
    due_on = _date_value(resolve_target(mappings, TaskTarget.DUE_ON.value, data))
    start_on = _date_value(resolve_target(mappings, TaskTarget.START_ON.value, data))
    duration = _planned_duration(resolve_target(mappings, TaskTarget.PLANNED_DURATION.value, data))
    if due_on:
        payload["dueOn"] = due_on
    if start_on:
        payload["startOn"] = start_on
    if duration:
        payload["plannedDuration"] = duration
    if form.awork_task_status_id:
        payload["taskStatusId"] = form.awork_task_status_id
    if form.awork_type_of_work_id:
        payload["typeOfWorkId"] = form.awork_type_of_work_id
    if form.awork_task_list_id:
        payload["lists"] = [{"id": form.awork_task_list_id, "order": 0}]
    return payload


# =============================================================================
# Custom fields
# =============================================================================

def _resolve_selection_option(definition: dict, value: str) -> str | None:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        pass
    for option in definition.get("selectionOptions") or []:
        if str(option.get("value", "")).lower() == value.lower():
            return option.get("id")
    return None


def build_custom_field_value(definition: dict, value: str) -> dict[str, Any] | None:
    """Typed value for a custom field definition, or None if not convertible."""
    field_type = (definition.get("type") or "").strip().lower()
    result: dict[str, Any] = {"customFieldDefinitionId": definition["id"]}

    if field_type in ("text", "link"):
        result["textValue"] = value
    elif field_type == "number":
        try:
            result["numberValue"] = float(value.replace(",", "."))
        except ValueError:
            return None
    elif field_type in ("date", "datetime"):
        parsed = parse_datetime_value(value)
        if not parsed:
            return None
        result["dateValue"] = to_awork_datetime(parsed)
    elif field_type in ("select", "coloredselect"):
        option_id = _resolve_selection_option(definition, value)
        if not option_id:
            return None
        result["selectionOptionIdValue"] = option_id
    elif field_type == "boolean":
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            result["booleanValue"] = True
        elif normalized in _FALSE_VALUES:
            result["booleanValue"] = False
        else:
            return None
    elif field_type in ("user", "client"):
        try:
            result[f"{field_type}IdValue"] = str(uuid.UUID(value))
        except ValueError:
            return None
    else:
        result["textValue"] = value
    return result


async def _apply_custom_fields(
    client: AworkClient,
    form: Form,
    data: dict[str, Any],
    project_id: str,
    task_id: str,
    log_context: dict[str, Any],
) -> None:
    pending: list[tuple[str, str]] = []
    for mapping in _mappings(form, "task_field_mappings"):
        definition_id = custom_field_id(mapping.get("awork_field", ""))
        if not definition_id:
            continue
        value = _mapped_value(data, mapping.get("form_field_id", ""))
        if value:
            pending.append((definition_id, value))
    if not pending:
        return

    for definition_id in dict.fromkeys(d for d, _ in pending):
        try:
            await client.link_custom_field_to_project(project_id, definition_id)
        except AworkApiError as exc:
            # Already-linked definitions are rejected by awork
            logger.info("Custom field link skipped: %s", exc.status_code, extra=log_context)

    definitions = {
        str(d.get("id")): d
        for d in await client.list_project_custom_field_definitions(project_id)
    }
    values = []
    for definition_id, value in pending:
        definition = definitions.get(definition_id)
        if not definition:
            logger.warning("Custom field %s not available on project", definition_id, extra=log_context)
            continue
        built = build_custom_field_value(definition, value)
        if built is None:
            logger.warning("Custom field %s value not convertible", definition_id, extra=log_context)
            continue
        values.append(built)

    if values:
        await client.set_task_custom_fields(task_id, values)


# =============================================================================
# Files
# =============================================================================

def _file_references(value: Any) -> list[dict]:
    items = value if isinstance(value, list) else [value]
    return [i for i in items if isinstance(i, dict) and i.get("file_url")]


async def _attach_files(
    db: Session,
    client: AworkClient,
    form: Form,
    data: dict[str, Any],
    task_id: str,
    log_context: dict[str, Any],
) -> None:
    """Upload every referenced file to the task. Failures are logged only."""
    for field in form.fields or []:
        if field.get("type") != "file":
            continue
        for ref in _file_references(data.get(field["id"])):
            upload = file_service.get_upload_by_url(db, form.id, ref["file_url"])
            if not upload:
                logger.warning("Submitted file reference not found", extra=log_context)
                continue
            try:
                content = file_service.read_upload(upload)
                await client.upload_task_file(
                    task_id, upload.file_name, content, upload.content_type
                )
            except AworkAuthError:
                raise
            except (AworkApiError, storage_service.StoredFileNotFound, OSError) as exc:
                logger.warning("Attaching file to task failed: %s", exc, extra=log_context)


# =============================================================================
# Pipeline
# =============================================================================

def _finish(db: Session, submission: Submission, result: ProcessingResult) -> ProcessingResult:
    submission.status = result.status
    submission.error_message = result.error_message
    submission.awork_project_id = result.awork_project_id
    submission.awork_task_id = result.awork_task_id
    db.commit()
    return result


async def process_submission(db: Session, submission: Submission) -> ProcessingResult:
    """
    Relay one submission and persist its outcome.

    The submission is claimed first so concurrent retries cannot relay it
    twice; a lost claim raises SubmissionInProgress. awork errors never
    raise, they are recorded on the submission.
    """
    if not submission_service.claim_for_processing(db, submission.id):
        raise SubmissionInProgress(str(submission.id))

    form = submission.form
    data = dict(submission.data or {})
    log_context = build_log_context(
        workspace_id=form.workspace_id,
        form_id=str(form.id),
        submission_id=str(submission.id),
    )
    result = ProcessingResult(
        status=SubmissionStatus.PENDING.value,
        awork_project_id=submission.awork_project_id,
        awork_task_id=submission.awork_task_id,
    )

    user = awork_service.find_integration_user(db, form.workspace_id)
    if not user:
        result.status = SubmissionStatus.FAILED.value
        result.error_message = NO_INTEGRATION_USER
        return _finish(db, submission, result)

    if not form.action_type:
        result.status = SubmissionStatus.COMPLETED.value
        return _finish(db, submission, result)

    action = ActionType(form.action_type)
    if action is ActionType.TASK and not form.awork_project_id:
        result.status = SubmissionStatus.FAILED.value
        result.error_message = NO_TARGET_PROJECT
        return _finish(db, submission, result)

    try:
        client = await awork_service.client_for_user(db, user)

        project_id = form.awork_project_id
        if action.creates_project:
            if result.awork_project_id:
                # Retry: the project already exists remotely
                project_id = result.awork_project_id
            else:
                project = await client.create_project(build_project_payload(form, data))
                if not project or not project.get("id"):
                    raise ValueError("awork returned no project id")
                project_id = str(project["id"])
                result.awork_project_id = project_id

        if action.creates_task:
            task_id = result.awork_task_id
            if not task_id:
                task = await client.create_task(project_id, build_task_payload(form, data))
                if not task or not task.get("id"):
                    raise ValueError("awork returned no task id")
                task_id = str(task["id"])
                result.awork_task_id = task_id

            # Runs again on retry against the stored task id
            if form.awork_assignee_id:
                await client.set_task_assignees(task_id, [form.awork_assignee_id])
            tags = collect_tags(_mappings(form, "task_field_mappings"), data, form.awork_task_tag)
            if tags:
                await client.add_task_tags(task_id, tags)
            await _apply_custom_fields(client, form, data, project_id, task_id, log_context)
            await _attach_files(db, client, form, data, task_id, log_context)

        result.status = SubmissionStatus.COMPLETED.value
        result.error_message = None
        logger.info("Submission relayed to awork", extra=log_context)
    except AworkAuthError as exc:
        result.status = SubmissionStatus.FAILED.value
        result.error_message = f"awork authentication error: {exc}"
        logger.warning("Submission relay failed: awork authentication", extra=log_context)
    except Exception as exc:
        result.status = SubmissionStatus.FAILED.value
        result.error_message = f"Processing error: {exc}"
        logger.exception("Submission relay failed", extra=log_context)

    return _finish(db, submission, result)
