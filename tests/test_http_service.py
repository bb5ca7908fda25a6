"""Tests for HTTP retry helper."""

import httpx
import pytest

from formrelay.services import http_service
from formrelay.services.http_service import request_with_retries


@pytest.mark.asyncio
async def test_request_with_retries_retries_on_status():
    req = httpx.Request("GET", "https://awork.test/api/v1/projects")
    responses = [
        httpx.Response(503, request=req),
        httpx.Response(200, json=[], request=req),
    ]
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return responses.pop(0)

    response = await request_with_retries(
        request_fn,
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_with_retries_retries_on_request_error():
    req = httpx.Request("GET", "https://awork.test/api/v1/users")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=req)
        return httpx.Response(200, json=[], request=req)

    response = await request_with_retries(
        request_fn,
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_with_retries_raises_after_max_attempts():
    req = httpx.Request("GET", "https://awork.test/api/v1/users")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        raise httpx.ConnectError("boom", request=req)

    with pytest.raises(httpx.RequestError):
        await request_with_retries(
            request_fn,
            max_attempts=2,
            base_delay=0,
            max_delay=0,
        )

    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_request_with_retries_returns_last_retryable_response():
    req = httpx.Request("GET", "https://awork.test/api/v1/users")

    async def request_fn():
        return httpx.Response(502, request=req)

    response = await request_with_retries(request_fn, max_attempts=3, base_delay=0, max_delay=0)
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_retry_after_header_sets_delay(monkeypatch):
    req = httpx.Request("GET", "https://awork.test/api/v1/users")
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}, request=req),
        httpx.Response(200, json=[], request=req),
    ]
    sleeps: list[float] = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    async def request_fn():
        return responses.pop(0)

    monkeypatch.setattr(http_service.asyncio, "sleep", fake_sleep)
    response = await request_with_retries(request_fn, max_attempts=2, base_delay=0.5, max_delay=4.0)

    assert response.status_code == 200
    assert sleeps == [2.0]
