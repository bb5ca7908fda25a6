"""Schemas for awork account linking and session info."""

from uuid import UUID

from pydantic import BaseModel


class LoginResponse(BaseModel):
    authorization_url: str
    state: str


class UserRead(BaseModel):
    id: UUID
    awork_user_id: str
    email: str | None
    name: str | None
    avatar_url: str | None
    workspace_id: str
    workspace_name: str | None
    workspace_url: str | None


class CallbackResponse(BaseModel):
    token: str
    user: UserRead


class MessageResponse(BaseModel):
    message: str
