"""awork account linking (OAuth2 + PKCE) and session endpoints."""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from formrelay.core.config import settings
from formrelay.core.deps import COOKIE_NAME, get_current_user, get_db, require_csrf_header
from formrelay.core.rate_limit import limiter
from formrelay.db.models import User
from formrelay.schemas.auth import CallbackResponse, LoginResponse, MessageResponse, UserRead
from formrelay.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        awork_user_id=user.awork_user_id,
        email=user.email,
        name=user.name,
        avatar_url=user.avatar_url,
        workspace_id=user.workspace_id,
        workspace_name=user.workspace_name,
        workspace_url=user.workspace_url,
    )


# =============================================================================
# OAuth Endpoints
# =============================================================================

@router.get("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(request: Request, db: Session = Depends(get_db)):
    """
    Start linking an awork account.

    Registers this deployment with awork on first use, then returns the
    authorization URL carrying the state and S256 code challenge.
    """
    try:
        authorization_url, state = await auth_service.start_login(db)
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.error("awork client registration failed: %s", exc)
        raise HTTPException(status_code=502, detail="awork client registration failed")
    return LoginResponse(authorization_url=authorization_url, state=state)


@router.get("/callback", response_model=CallbackResponse)
@limiter.limit("10/minute")
async def callback(
    request: Request,
    response: Response,
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Finish the OAuth flow: exchange the code, upsert the user, open a session."""
    try:
        user, session_token = await auth_service.complete_login(db, code, state)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except httpx.HTTPError as exc:
        logger.warning("awork profile lookup failed: %s", exc)
        raise HTTPException(status_code=400, detail="Could not load awork profile")

    response.set_cookie(
        key=COOKIE_NAME,
        value=session_token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return CallbackResponse(token=session_token, user=_user_read(user))


# =============================================================================
# Session Endpoints
# =============================================================================

@router.get("/me", response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return _user_read(user)


@router.post(
    "/logout",
    response_model=MessageResponse,
    dependencies=[Depends(require_csrf_header)],
)
def logout(response: Response):
    """Clear the session cookie. Bearer tokens simply expire."""
    response.delete_cookie(COOKIE_NAME, path="/")
    return MessageResponse(message="Logged out")


@router.post(
    "/reset-dcr",
    response_model=MessageResponse,
    dependencies=[Depends(require_csrf_header)],
)
def reset_dcr(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Drop the cached OAuth client so the next login registers again."""
    auth_service.reset_client_registration(db)
    logger.info("OAuth client registration reset", extra={"user_id": str(user.id)})
    return MessageResponse(message="Client registration reset")
