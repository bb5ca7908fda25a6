"""Schemas for forms, field definitions and awork field mappings."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from formrelay.db.enums import CUSTOM_FIELD_PREFIX, ProjectTarget, TaskTarget


FieldType = Literal[
    "text",
    "email",
    "number",
    "textarea",
    "select",
    "checkbox",
    "date",
    "file",
]

ActionTypeValue = Literal["task", "project", "both"]

HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}){1,2}$"


class FieldTranslation(BaseModel):
    label: str | None = None
    placeholder: str | None = None
    options: list[str] | None = None


class FormFieldDefinition(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    type: FieldType
    label: str = Field("", max_length=500)
    placeholder: str | None = Field(None, max_length=500)
    required: bool = False
    options: list[str] | None = None
    translations: dict[str, FieldTranslation] | None = None
    accepted_file_types: list[str] | None = None
    max_file_size_mb: int | None = Field(None, ge=1, le=100)


class FieldMapping(BaseModel):
    form_field_id: str = Field(..., min_length=1, max_length=100)
    awork_field: str = Field(..., min_length=1, max_length=100)


def _is_custom_target(value: str) -> bool:
    target = value[len(CUSTOM_FIELD_PREFIX):] if value.startswith(CUSTOM_FIELD_PREFIX) else value
    try:
        UUID(target)
    except ValueError:
        return False
    return True


class FieldMappings(BaseModel):
    task_field_mappings: list[FieldMapping] = Field(default_factory=list)
    project_field_mappings: list[FieldMapping] = Field(default_factory=list)

    @field_validator("project_field_mappings")
    @classmethod
    def _known_project_targets(cls, mappings: list[FieldMapping]) -> list[FieldMapping]:
        allowed = {t.value for t in ProjectTarget}
        for mapping in mappings:
            if mapping.awork_field not in allowed:
                raise ValueError(f"Unknown project field: {mapping.awork_field}")
        return mappings

    @field_validator("task_field_mappings")
    @classmethod
    def _known_task_targets(cls, mappings: list[FieldMapping]) -> list[FieldMapping]:
        allowed = {t.value for t in TaskTarget}
        for mapping in mappings:
            if mapping.awork_field not in allowed and not _is_custom_target(mapping.awork_field):
                raise ValueError(f"Unknown task field: {mapping.awork_field}")
        return mappings


class FormBase(BaseModel):
    description: str | None = None
    name_translations: dict[str, str] | None = None
    description_translations: dict[str, str] | None = None
    fields: list[FormFieldDefinition] | None = None
    action_type: ActionTypeValue | None = None
    awork_project_id: str | None = Field(None, max_length=64)
    awork_project_type_id: str | None = Field(None, max_length=64)
    awork_task_list_id: str | None = Field(None, max_length=64)
    awork_task_status_id: str | None = Field(None, max_length=64)
    awork_type_of_work_id: str | None = Field(None, max_length=64)
    awork_assignee_id: str | None = Field(None, max_length=64)
    awork_task_is_priority: bool | None = None
    awork_task_tag: str | None = Field(None, max_length=100)
    field_mappings: FieldMappings | None = None
    primary_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    background_color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    is_active: bool | None = None


class FormCreate(FormBase):
    name: str | None = Field(None, max_length=200)


class FormUpdate(FormBase):
    name: str | None = Field(None, max_length=200)


class FormSummary(BaseModel):
    id: UUID
    public_id: UUID
    name: str
    description: str | None
    action_type: str | None
    is_active: bool
    submission_count: int = 0
    field_count: int = 0
    created_at: datetime
    updated_at: datetime


class FormRead(FormSummary):
    name_translations: dict[str, str] | None
    description_translations: dict[str, str] | None
    fields: list[FormFieldDefinition]
    awork_project_id: str | None
    awork_project_type_id: str | None
    awork_task_list_id: str | None
    awork_task_status_id: str | None
    awork_type_of_work_id: str | None
    awork_assignee_id: str | None
    awork_task_is_priority: bool
    awork_task_tag: str | None
    field_mappings: FieldMappings | None
    primary_color: str | None
    background_color: str | None
    logo_url: str | None


class FormPublicRead(BaseModel):
    public_id: UUID
    name: str
    description: str | None
    name_translations: dict[str, str] | None
    description_translations: dict[str, str] | None
    fields: list[FormFieldDefinition]
    primary_color: str | None
    background_color: str | None
    logo_url: str | None


class FormLogoRead(BaseModel):
    logo_url: str
    content_type: str
    file_size: int


class PublicUploadRead(BaseModel):
    file_name: str
    file_url: str
    file_size: int
