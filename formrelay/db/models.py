"""SQLAlchemy ORM models for users, forms, submissions and uploads."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, ForeignKey, Index, Integer, String, Text, Uuid, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formrelay.db.base import Base
from formrelay.db.enums import SubmissionStatus
from formrelay.db.types import EncryptedToken, JSONType


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Auth Models
# =============================================================================

class User(Base):
    """
    A person who linked their awork account.

    Users are grouped by awork workspace; every form belongs to a workspace
    and is visible to all of its users.
    """
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_workspace", "workspace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    awork_user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)
    workspace_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    workspace_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # awork OAuth tokens (Fernet-encrypted at rest)
    access_token: Mapped[str | None] = mapped_column(EncryptedToken, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(EncryptedToken, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Bumped to revoke all issued session tokens
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )


class OAuthState(Base):
    """Pending login: state parameter and PKCE verifier. Single use."""
    __tablename__ = "oauth_states"

    state: Mapped[str] = mapped_column(String(128), primary_key=True)
    code_verifier: Mapped[str] = mapped_column(String(128), nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )


class AppSetting(Base):
    """Process-wide key/value settings (e.g. the registered OAuth client)."""
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )


# =============================================================================
# Form Models
# =============================================================================

class Form(Base):
    """
    A form definition published under public_id.

    fields holds the ordered field definitions; field_mappings and the
    awork_* columns configure the relay of submissions to awork.
    """
    __tablename__ = "forms"
    __table_args__ = (
        Index("idx_forms_workspace", "workspace_id"),
        Index("idx_forms_workspace_updated", "workspace_id", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    public_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, default=uuid.uuid4, nullable=False
    )
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    name_translations: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    description_translations: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    fields: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # awork relay configuration
    action_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    awork_project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_project_type_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_task_list_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_task_status_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_type_of_work_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_assignee_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_task_is_priority: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    awork_task_tag: Mapped[str | None] = mapped_column(String(100), nullable=True)
    field_mappings: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Appearance
    primary_color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    background_color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    logo_storage_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    logo_content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )

    submissions: Mapped[list["Submission"]] = relationship(
        back_populates="form", cascade="all, delete-orphan"
    )
    uploads: Mapped[list["FileUpload"]] = relationship(
        back_populates="form", cascade="all, delete-orphan"
    )

    @property
    def logo_url(self) -> str | None:
        if not self.logo_storage_key:
            return None
        return f"/api/f/{self.public_id}/logo"


class Submission(Base):
    """One filled-in instance of a form and its awork relay outcome."""
    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_form_created", "form_id", "created_at"),
        Index("idx_submissions_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    data: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SubmissionStatus.PENDING.value, nullable=False
    )
    awork_project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awork_task_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )

    form: Mapped["Form"] = relationship(back_populates="submissions")


class FileUpload(Base):
    """A file uploaded through a public form, referenced by submission data."""
    __tablename__ = "file_uploads"
    __table_args__ = (
        Index("idx_file_uploads_form", "form_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )

    form: Mapped["Form"] = relationship(back_populates="uploads")

    @property
    def file_url(self) -> str:
        return f"/api/files/{self.id}"
