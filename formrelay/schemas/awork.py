"""Schemas for the awork proxy endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class TrackPage(BaseModel):
    path: str | None = None
    title: str | None = None
    url: str | None = None
    referrer: str | None = None


class TrackContext(BaseModel):
    user_agent: str | None = None
    locale: str | None = None
    page: TrackPage | None = None


class TrackEventRequest(BaseModel):
    event_name: str = Field(..., min_length=1, max_length=200)
    data: dict[str, Any] | None = None
    context: TrackContext | None = None


class TrackEventResponse(BaseModel):
    success: bool
