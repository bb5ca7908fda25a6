"""Enum definitions for application constants."""

from enum import Enum


class ActionType(str, Enum):
    """What a submission creates in awork."""

    TASK = "task"
    PROJECT = "project"
    BOTH = "both"

    @property
    def creates_project(self) -> bool:
        return self in (ActionType.PROJECT, ActionType.BOTH)

    @property
    def creates_task(self) -> bool:
        return self in (ActionType.TASK, ActionType.BOTH)


class SubmissionStatus(str, Enum):
    """Relay state of a submission."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProjectTarget(str, Enum):
    """awork project attributes a form field can map to."""

    NAME = "name"
    DESCRIPTION = "description"
    START_DATE = "start_date"
    DUE_DATE = "due_date"


class TaskTarget(str, Enum):
    """awork task attributes a form field can map to (besides custom fields)."""

    NAME = "name"
    DESCRIPTION = "description"
    DUE_ON = "due_on"
    START_ON = "start_on"
    PLANNED_DURATION = "planned_duration"
    TAGS = "tags"


CUSTOM_FIELD_PREFIX = "custom:"

# Keys in the app_settings table
SETTING_DCR_CLIENT_ID = "dcr_client_id"
