"""Tests for the awork lookup proxy and event tracking."""

import json

import httpx
import pytest


@pytest.mark.asyncio
async def test_projects_proxy_uses_callers_token(authed_client, fake_awork):
    fake_awork.routes["GET /projects"] = [{"id": "p1", "name": "Website"}]

    res = await authed_client.get("/api/awork/projects")
    assert res.status_code == 200
    assert res.json() == [{"id": "p1", "name": "Website"}]
    assert fake_awork.requests[0].headers["Authorization"] == "Bearer awork-access-token"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url,awork_path",
    [
        ("/api/awork/projecttypes", "/projecttypes"),
        ("/api/awork/projecttypes/t1/projectstatuses", "/projecttypes/t1/projectstatuses"),
        ("/api/awork/users", "/users"),
        ("/api/awork/projects/p1/taskstatuses", "/projects/p1/taskstatuses"),
        ("/api/awork/projects/p1/tasklists", "/projects/p1/tasklists"),
        ("/api/awork/typesofwork", "/typeofwork"),
        ("/api/awork/projects/p1/customfields", "/projects/p1/customfielddefinitions"),
    ],
)
async def test_lookup_routes(authed_client, fake_awork, url, awork_path):
    res = await authed_client.get(url)
    assert res.status_code == 200
    assert fake_awork.paths == [f"GET {awork_path}"]


@pytest.mark.asyncio
async def test_task_custom_fields_are_filtered(authed_client, fake_awork):
    await authed_client.get("/api/awork/customfields")
    request = fake_awork.calls("GET", "/customfielddefinitions")[0]
    assert request.url.params["filterby"] == "entityType eq 'tasks'"


@pytest.mark.asyncio
async def test_proxy_requires_login(client, fake_awork):
    res = await client.get("/api/awork/projects")
    assert res.status_code == 401
    assert fake_awork.requests == []


@pytest.mark.asyncio
async def test_rejected_awork_token_returns_token_expired(authed_client, fake_awork):
    fake_awork.routes["GET /projects"] = (401, {"error": "invalid_token"})

    res = await authed_client.get("/api/awork/projects")
    assert res.status_code == 401
    assert res.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
async def test_missing_awork_token_returns_token_expired(authed_client, db, test_user, fake_awork):
    test_user.access_token = None
    db.commit()

    res = await authed_client.get("/api/awork/users")
    assert res.status_code == 401
    assert res.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
async def test_awork_error_is_bad_gateway(authed_client, fake_awork):
    fake_awork.routes["GET /users"] = (403, {"error": "forbidden"})

    res = await authed_client.get("/api/awork/users")
    assert res.status_code == 502


# =============================================================================
# Tracking
# =============================================================================

@pytest.mark.asyncio
async def test_track_fills_context_defaults(authed_client, fake_awork):
    res = await authed_client.post(
        "/api/awork/track",
        json={"event_name": "form_created", "data": {"fields": 3}},
        headers={"User-Agent": "pytest-agent"},
    )
    assert res.status_code == 200
    assert res.json() == {"success": True}

    payload = fake_awork.json_of("POST", "/track")
    assert payload == {
        "eventName": "form_created",
        "data": {"fields": 3},
        "context": {
            "userAgent": "pytest-agent",
            "locale": "en",
            "page": {"path": "/", "title": "awork Forms", "url": "", "referrer": ""},
        },
    }


@pytest.mark.asyncio
async def test_track_forwards_given_context(authed_client, fake_awork):
    await authed_client.post(
        "/api/awork/track",
        json={
            "event_name": "form_published",
            "context": {
                "user_agent": "Browser/1.0",
                "locale": "de",
                "page": {"path": "/forms/1", "title": "Edit", "url": "http://x/forms/1"},
            },
        },
    )
    context = fake_awork.json_of("POST", "/track")["context"]
    assert context["userAgent"] == "Browser/1.0"
    assert context["locale"] == "de"
    assert context["page"]["path"] == "/forms/1"
    assert context["page"]["referrer"] == ""


@pytest.mark.asyncio
async def test_track_failure_is_not_an_error(authed_client, fake_awork):
    fake_awork.routes["POST /track"] = lambda request: httpx.Response(500, text="oops")

    res = await authed_client.post("/api/awork/track", json={"event_name": "x"})
    assert res.status_code == 200
    assert res.json() == {"success": False}
