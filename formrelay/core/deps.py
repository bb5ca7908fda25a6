"""FastAPI dependencies: database session, current user, CSRF guard."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from formrelay.core.security import decode_session_token
from formrelay.db.models import User
from formrelay.db.session import SessionLocal

COOKIE_NAME = "formrelay_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolve the caller from a bearer token, falling back to the session cookie.

    A session is rejected (401) when the JWT fails verification, the user no
    longer exists, or the user's token_version was bumped after issue.
    """
    token = _bearer_token(request) or request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        claims = decode_session_token(token)
        user_id = UUID(claims["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.token_version != claims.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")
    return user


def get_workspace_scope(user: User = Depends(get_current_user)) -> str:
    """Every form, submission and file query filters on this value."""
    return user.workspace_id


def require_csrf_header(request: Request) -> None:
    # Bearer callers never send cookies, so only cookie sessions need the header
    if _bearer_token(request):
        return
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
