"""
Test configuration and fixtures.

Provides:
- SQLite database (schema created once, rows cleared after each test)
- Session token minting for authenticated tests
- HTTPX AsyncClient with proper headers
- A fake awork API served through httpx.MockTransport
"""
import json
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Generator

from cryptography.fernet import Fernet

# Settings are read at import time
_TMP_DIR = tempfile.mkdtemp(prefix="formrelay-tests-")
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOCAL_STORAGE_PATH"] = os.path.join(_TMP_DIR, "storage")
os.environ["STORAGE_BACKEND"] = "local"
os.environ["TOKEN_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["AWORK_API_URL"] = "https://awork.test/api/v1"
os.environ["FRONTEND_URL"] = "http://forms.test"

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from formrelay.core.deps import COOKIE_NAME, get_db
from formrelay.core.security import create_session_token
from formrelay.db.base import Base
from formrelay.db.models import Form, User
from formrelay.db.session import SessionLocal, engine
from formrelay.main import app
from formrelay.services import auth_service, awork_service
from formrelay.services.awork_client import AworkClient

WORKSPACE_ID = "ws-test"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Database session for one test.

    App code commits freely; every table is emptied afterwards.
    """
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def _reset_client_registration_cache(monkeypatch):
    monkeypatch.setattr(auth_service, "_client_id_cache", None)


def _create_user(db: Session, *, workspace_id: str = WORKSPACE_ID, **overrides) -> User:
    values = {
        "id": uuid.uuid4(),
        "awork_user_id": f"awork-{uuid.uuid4().hex[:8]}",
        "workspace_id": workspace_id,
        "workspace_name": "Test Workspace",
        "email": "owner@example.com",
        "name": "Test Owner",
        "access_token": "awork-access-token",
        "refresh_token": "awork-refresh-token",
        "token_expires_at": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    values.update(overrides)
    user = User(**values)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _create_form(db: Session, user: User, **overrides) -> Form:
    values = {
        "workspace_id": user.workspace_id,
        "created_by_user_id": user.id,
        "name": "Contact",
        "fields": [
            {"id": "name", "type": "text", "label": "Name", "required": True},
            {"id": "email", "type": "email", "label": "Email", "required": True},
            {"id": "message", "type": "textarea", "label": "Message"},
        ],
        "is_active": True,
    }
    values.update(overrides)
    form = Form(**values)
    db.add(form)
    db.commit()
    db.refresh(form)
    return form


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Factory for extra users (e.g. in another workspace)."""
    return lambda **overrides: _create_user(db, **overrides)


@pytest.fixture
def make_form(db: Session) -> Callable[..., Form]:
    return lambda user, **overrides: _create_form(db, user, **overrides)


@pytest.fixture(scope="function")
def test_user(db: Session) -> User:
    return _create_user(db)


@pytest.fixture(scope="function")
def test_form(db: Session, test_user: User) -> Form:
    return _create_form(db, test_user)


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture(scope="function")
def test_auth(test_user: User) -> TestAuth:
    token = create_session_token(
        user_id=test_user.id,
        awork_user_id=test_user.awork_user_id,
        workspace_id=test_user.workspace_id,
        token_version=test_user.token_version,
    )
    return TestAuth(user=test_user, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated AsyncClient with session cookie and CSRF header."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# Fake awork API
# =============================================================================

@dataclass
class FakeAwork:
    """
    Records requests made through AworkClient and answers from `routes`.

    routes maps "METHOD /path" (path relative to the API root) to a JSON
    body, an (status, body) tuple, or a callable taking the request.
    Unrouted POSTs answer 200 with an empty body; unrouted GETs answer [].
    """
    routes: dict[str, object] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/v1")
        route = self.routes.get(f"{request.method} {path}")
        if callable(route):
            return route(request)
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, json=body)
        if route is None:
            return httpx.Response(200, json=[] if request.method == "GET" else None)
        return httpx.Response(200, json=route)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.removeprefix("/api/v1") == path
        ]

    def json_of(self, method: str, path: str, index: int = 0):
        return json.loads(self.calls(method, path)[index].content)

    @property
    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path.removeprefix('/api/v1')}" for r in self.requests]


@pytest.fixture(scope="function")
def fake_awork(monkeypatch) -> FakeAwork:
    fake = FakeAwork()

    def build_client(access_token: str) -> AworkClient:
        return AworkClient(access_token, transport=httpx.MockTransport(fake.handler))

    monkeypatch.setattr(awork_service, "build_client", build_client)
    return fake


def json_response(status: int, body) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=body)
