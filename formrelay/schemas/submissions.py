"""Schemas for form submissions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class SubmissionCreate(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)


class SubmitResponse(BaseModel):
    success: bool
    message: str
    submission_id: UUID
    awork_project_id: str | None = None
    awork_task_id: str | None = None
    integration_status: str
    integration_error: str | None = None


class SubmissionRead(BaseModel):
    id: UUID
    form_id: UUID
    form_name: str
    data: dict[str, Any]
    status: str
    awork_project_id: str | None
    awork_task_id: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime


class SubmissionListResponse(BaseModel):
    items: list[SubmissionRead]
    total: int
    page: int
    per_page: int
    pages: int
