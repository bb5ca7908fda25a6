"""Initial schema: users, OAuth states, settings, forms, submissions, uploads.

Revision ID: 20261001_0900
Revises:
Create Date: 2026-10-01 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261001_0900"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("awork_user_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_name", sa.String(length=255), nullable=True),
        sa.Column("workspace_url", sa.String(length=500), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=1000), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="1"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("awork_user_id"),
    )
    op.create_index("idx_users_workspace", "users", ["workspace_id"])

    op.create_table(
        "oauth_states",
        sa.Column("state", sa.String(length=128), nullable=False),
        sa.Column("code_verifier", sa.String(length=128), nullable=False),
        sa.Column("client_id", sa.String(length=255), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("state"),
    )

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "forms",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("public_id", sa.Uuid(), nullable=False),
        sa.Column("workspace_id", sa.String(length=64), nullable=False),
        sa.Column("created_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("name_translations", JSON_TYPE, nullable=True),
        sa.Column("description_translations", JSON_TYPE, nullable=True),
        sa.Column("fields", JSON_TYPE, nullable=False),
        sa.Column("action_type", sa.String(length=20), nullable=True),
        sa.Column("awork_project_id", sa.String(length=64), nullable=True),
        sa.Column("awork_project_type_id", sa.String(length=64), nullable=True),
        sa.Column("awork_task_list_id", sa.String(length=64), nullable=True),
        sa.Column("awork_task_status_id", sa.String(length=64), nullable=True),
        sa.Column("awork_type_of_work_id", sa.String(length=64), nullable=True),
        sa.Column("awork_assignee_id", sa.String(length=64), nullable=True),
        sa.Column("awork_task_is_priority", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("awork_task_tag", sa.String(length=100), nullable=True),
        sa.Column("field_mappings", JSON_TYPE, nullable=True),
        sa.Column("primary_color", sa.String(length=7), nullable=True),
        sa.Column("background_color", sa.String(length=7), nullable=True),
        sa.Column("logo_storage_key", sa.String(length=500), nullable=True),
        sa.Column("logo_content_type", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("public_id"),
    )
    op.create_index("idx_forms_workspace", "forms", ["workspace_id"])
    op.create_index("idx_forms_workspace_updated", "forms", ["workspace_id", "updated_at"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("form_id", sa.Uuid(), nullable=False),
        sa.Column("data", JSON_TYPE, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("awork_project_id", sa.String(length=64), nullable=True),
        sa.Column("awork_task_id", sa.String(length=64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["form_id"], ["forms.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_submissions_form_created", "submissions", ["form_id", "created_at"])
    op.create_index("idx_submissions_status", "submissions", ["status"])

    op.create_table(
        "file_uploads",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("form_id", sa.Uuid(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("content_type", sa.String(length=100), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["form_id"], ["forms.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_file_uploads_form", "file_uploads", ["form_id"])


def downgrade() -> None:
    op.drop_index("idx_file_uploads_form", table_name="file_uploads")
    op.drop_table("file_uploads")
    op.drop_index("idx_submissions_status", table_name="submissions")
    op.drop_index("idx_submissions_form_created", table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("idx_forms_workspace_updated", table_name="forms")
    op.drop_index("idx_forms_workspace", table_name="forms")
    op.drop_table("forms")
    op.drop_table("app_settings")
    op.drop_table("oauth_states")
    op.drop_index("idx_users_workspace", table_name="users")
    op.drop_table("users")
