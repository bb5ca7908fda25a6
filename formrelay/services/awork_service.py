"""Resolve an authenticated awork client for a user or a workspace."""

from sqlalchemy.orm import Session

from formrelay.db.models import User
from formrelay.services import auth_service
from formrelay.services.awork_client import AworkAuthError, AworkClient


def build_client(access_token: str) -> AworkClient:
    """Factory for API clients (patched in tests)."""
    return AworkClient(access_token)


async def client_for_user(db: Session, user: User) -> AworkClient:
    """Client with a valid (refreshed if needed) token, or AworkAuthError."""
    token = await auth_service.get_valid_access_token(db, user)
    if not token:
        raise AworkAuthError()
    return build_client(token)


def find_integration_user(db: Session, workspace_id: str) -> User | None:
    """Most recently active workspace user that has linked an access token."""
    return (
        db.query(User)
        .filter(
            User.workspace_id == workspace_id,
            User.access_token.isnot(None),
            User.access_token != "",
        )
        .order_by(User.updated_at.desc())
        .first()
    )
