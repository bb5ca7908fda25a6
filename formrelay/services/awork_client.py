"""Async client for the awork REST API.

Lookups (GET) are retried with backoff; resource-creating calls are sent
once so a timeout never produces duplicate projects or tasks.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from formrelay.core.config import settings
from formrelay.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

TASK_CUSTOM_FIELDS_FILTER = "entityType eq 'tasks'"
MAX_ERROR_BODY_CHARS = 500


class AworkAuthError(Exception):
    """No usable awork access token (missing, expired or rejected)."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message or "No valid awork access token available. Please re-authenticate."
        )


class AworkApiError(Exception):
    """awork answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"awork API error: {status_code} - {body}")


class AworkClient:
    """Thin wrapper around httpx.AsyncClient with bearer auth."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        if not access_token:
            raise AworkAuthError()
        self.base_url = (base_url or settings.AWORK_API_URL).rstrip("/")
        self._access_token = access_token
        self._transport = transport
        self._timeout = httpx.Timeout(timeout or settings.AWORK_TIMEOUT_SECONDS)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Accept": "application/json",
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def _check(response: httpx.Response) -> None:
        if response.status_code == 401:
            raise AworkAuthError()
        if response.status_code >= 400:
            raise AworkApiError(response.status_code, response.text[:MAX_ERROR_BODY_CHARS])

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        async with self._client() as client:
            response = await request_with_retries(
                lambda: client.get(path, params=params)
            )
        self._check(response)
        return self._json(response)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        async with self._client() as client:
            response = await client.post(path, json=json, **kwargs)
        self._check(response)
        return self._json(response)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_me(self) -> dict:
        return await self.get("/me")

    async def list_projects(self) -> list[dict]:
        return await self.get("/projects") or []

    async def list_project_types(self) -> list[dict]:
        return await self.get("/projecttypes") or []

    async def list_project_statuses(self, project_type_id: str) -> list[dict]:
        return await self.get(f"/projecttypes/{project_type_id}/projectstatuses") or []

    async def list_users(self) -> list[dict]:
        return await self.get("/users") or []

    async def list_task_statuses(self, project_id: str) -> list[dict]:
        return await self.get(f"/projects/{project_id}/taskstatuses") or []

    async def list_task_lists(self, project_id: str) -> list[dict]:
        return await self.get(f"/projects/{project_id}/tasklists") or []

    async def list_types_of_work(self) -> list[dict]:
        return await self.get("/typeofwork") or []

    async def list_task_custom_field_definitions(self) -> list[dict]:
        return await self.get(
            "/customfielddefinitions", params={"filterby": TASK_CUSTOM_FIELDS_FILTER}
        ) or []

    async def list_project_custom_field_definitions(self, project_id: str) -> list[dict]:
        return await self.get(f"/projects/{project_id}/customfielddefinitions") or []

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_project(self, payload: dict) -> dict:
        return await self.post("/projects", json=payload)

    async def create_task(self, project_id: str, payload: dict) -> dict:
        body = dict(payload)
        body["baseType"] = "projecttask"
        body["entityId"] = project_id
        return await self.post("/tasks", json=body)

    async def set_task_assignees(self, task_id: str, user_ids: list[str]) -> None:
        await self.post(f"/tasks/{task_id}/setassignees", json=user_ids)

    async def add_task_tags(self, task_id: str, tags: list[str]) -> None:
        await self.post(f"/tasks/{task_id}/addtags", json=[{"name": t} for t in tags])

    async def link_custom_field_to_project(self, project_id: str, definition_id: str) -> None:
        await self.post(
            f"/projects/{project_id}/customfielddefinitions/link",
            json={"customFieldDefinitionIds": [definition_id]},
        )

    async def set_task_custom_fields(self, task_id: str, values: list[dict]) -> None:
        await self.post(f"/tasks/{task_id}/customfields", json=values)

    async def upload_task_file(
        self, task_id: str, file_name: str, content: bytes, content_type: str
    ) -> dict | None:
        return await self.post(
            f"/tasks/{task_id}/files",
            files={"file": (file_name, content, content_type)},
            data={"name": file_name},
        )

    async def track_event(self, payload: dict) -> None:
        await self.post("/track", json=payload)
