"""awork account linking: dynamic client registration, PKCE login, tokens.

The OAuth client is registered once per deployment (RFC 7591) and cached in
app_settings. Each login stores a single-use state row holding the PKCE
verifier; the callback consumes it and upserts the user by awork identity.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from formrelay.core.config import settings
from formrelay.core.security import (
    code_challenge_for,
    create_session_token,
    generate_code_verifier,
    generate_oauth_state,
)
from formrelay.db.enums import SETTING_DCR_CLIENT_ID
from formrelay.db.models import AppSetting, OAuthState, User

logger = logging.getLogger(__name__)

# In-process cache of the registered client id
_client_id_cache: str | None = None


class OAuthStateError(ValueError):
    """Unknown, reused or expired login state."""


class TokenExchangeError(ValueError):
    """awork rejected the authorization code."""


def _now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.AWORK_TIMEOUT_SECONDS))


def _api_url(path: str) -> str:
    return f"{settings.AWORK_API_URL.rstrip('/')}/{path.lstrip('/')}"


# ============================================================================
# Dynamic Client Registration
# ============================================================================

async def register_client() -> str:
    """Register this deployment as a public (PKCE) OAuth client."""
    async with _http_client() as client:
        response = await client.post(
            _api_url("clientapplications/register"),
            json={
                "client_name": settings.AWORK_CLIENT_NAME,
                "redirect_uris": [settings.oauth_redirect_uri],
                "scope": settings.AWORK_SCOPES,
                "application_type": "native",
                "token_endpoint_auth_method": "none",
            },
        )
        response.raise_for_status()
        client_id = response.json().get("client_id")
    if not client_id:
        raise RuntimeError("Client registration returned no client_id")
    logger.info("Registered awork OAuth client")
    return client_id


async def get_client_id(db: Session) -> str:
    """Cached client id, else the persisted one, else register a new client."""
    global _client_id_cache
    if _client_id_cache:
        return _client_id_cache

    row = db.get(AppSetting, SETTING_DCR_CLIENT_ID)
    if row and row.value:
        _client_id_cache = row.value
        return row.value

    client_id = await register_client()
    if row:
        row.value = client_id
    else:
        db.add(AppSetting(key=SETTING_DCR_CLIENT_ID, value=client_id))
    db.commit()
    _client_id_cache = client_id
    return client_id


def reset_client_registration(db: Session) -> bool:
    """Forget the registered client so the next login registers again."""
    global _client_id_cache
    _client_id_cache = None
    row = db.get(AppSetting, SETTING_DCR_CLIENT_ID)
    if not row:
        return False
    db.delete(row)
    db.commit()
    logger.info("Cleared awork OAuth client registration")
    return True


# ============================================================================
# Login (authorization code + PKCE)
# ============================================================================

def purge_expired_states(db: Session) -> int:
    cutoff = _now_utc() - timedelta(minutes=settings.OAUTH_STATE_CLEANUP_MINUTES)
    deleted = (
        db.query(OAuthState)
        .filter(OAuthState.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def build_authorization_url(client_id: str, state: str, code_challenge: str) -> str:
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": settings.oauth_redirect_uri,
        "scope": settings.AWORK_SCOPES,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{_api_url('accounts/authorize')}?{urlencode(params)}"


async def start_login(db: Session) -> tuple[str, str]:
    """Create a login state and return (authorization_url, state)."""
    purge_expired_states(db)
    client_id = await get_client_id(db)

    state = generate_oauth_state()
    verifier = generate_code_verifier()
    db.add(OAuthState(state=state, code_verifier=verifier, client_id=client_id))
    db.commit()

    return build_authorization_url(client_id, state, code_challenge_for(verifier)), state


def consume_state(db: Session, state: str) -> tuple[str, str]:
    """Delete the state row and return (client_id, code_verifier).

    Raises OAuthStateError for unknown or expired states.
    """
    row = db.get(OAuthState, state) if state else None
    if not row:
        raise OAuthStateError("Invalid or expired state")

    client_id, verifier = row.client_id, row.code_verifier
    age = _now_utc() - _as_utc(row.created_at)
    db.delete(row)
    db.commit()

    if age > timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES):
        raise OAuthStateError("Invalid or expired state")
    return client_id, verifier


async def exchange_code_for_tokens(
    code: str, client_id: str, code_verifier: str
) -> dict[str, Any]:
    """Exchange authorization code for tokens."""
    async with _http_client() as client:
        response = await client.post(
            _api_url("accounts/token"),
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": settings.oauth_redirect_uri,
                "client_id": client_id,
                "code_verifier": code_verifier,
            },
        )
    if response.status_code >= 400:
        logger.warning("awork token exchange failed with %s", response.status_code)
        raise TokenExchangeError("Token exchange failed")
    return response.json()


async def refresh_access_token(refresh_token: str, client_id: str) -> dict[str, Any] | None:
    """Refresh awork access token. Returns None on failure."""
    try:
        async with _http_client() as client:
            response = await client.post(
                _api_url("accounts/token"),
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": client_id,
                },
            )
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        logger.error("awork token refresh failed: %s", e)
        return None


async def fetch_user_info(access_token: str) -> dict[str, Any]:
    """Get the authenticated awork user (with workspace)."""
    async with _http_client() as client:
        response = await client.get(
            _api_url("me"),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        return response.json()


def _apply_tokens(user: User, tokens: dict[str, Any]) -> None:
    user.access_token = tokens["access_token"]
    if tokens.get("refresh_token"):
        user.refresh_token = tokens["refresh_token"]
    expires_in = tokens.get("expires_in")
    user.token_expires_at = (
        _now_utc() + timedelta(seconds=int(expires_in)) if expires_in else None
    )


def upsert_user(db: Session, profile: dict[str, Any], tokens: dict[str, Any]) -> User:
    """Create or update the local user for an awork profile."""
    awork_user_id = str(profile["id"])
    workspace = profile.get("workspace") or {}
    workspace_id = str(profile.get("workspaceId") or workspace.get("id") or "")
    if not workspace_id:
        raise ValueError("awork profile has no workspace")

    user = db.query(User).filter(User.awork_user_id == awork_user_id).first()
    if not user:
        user = User(id=uuid.uuid4(), awork_user_id=awork_user_id, workspace_id=workspace_id)
        db.add(user)

    full_name = " ".join(
        part for part in (profile.get("firstName"), profile.get("lastName")) if part
    )
    user.workspace_id = workspace_id
    user.workspace_name = workspace.get("name")
    user.workspace_url = workspace.get("url")
    user.email = profile.get("email") or profile.get("userContactInfo", {}).get("email")
    user.name = full_name or None
    user.avatar_url = profile.get("profileImage")
    _apply_tokens(user, tokens)
    user.updated_at = _now_utc()

    db.commit()
    db.refresh(user)
    return user


async def complete_login(db: Session, code: str, state: str) -> tuple[User, str]:
    """Finish the OAuth callback. Returns (user, session_token)."""
    client_id, verifier = consume_state(db, state)
    tokens = await exchange_code_for_tokens(code, client_id, verifier)
    profile = await fetch_user_info(tokens["access_token"])
    user = upsert_user(db, profile, tokens)

    session_token = create_session_token(
        user_id=user.id,
        awork_user_id=user.awork_user_id,
        workspace_id=user.workspace_id,
        token_version=user.token_version,
    )
    logger.info("awork account linked", extra={"user_id": str(user.id)})
    return user, session_token


# ============================================================================
# Access Tokens
# ============================================================================

def _needs_refresh(expires_at: datetime | None) -> bool:
    if expires_at is None:
        return False
    margin = timedelta(minutes=settings.TOKEN_REFRESH_MARGIN_MINUTES)
    return _as_utc(expires_at) <= _now_utc() + margin


async def get_valid_access_token(db: Session, user: User) -> str | None:
    """Decrypted access token, refreshed when it expires within the margin."""
    if not user.access_token:
        return None
    if not _needs_refresh(user.token_expires_at):
        return user.access_token
    if not user.refresh_token:
        return None

    client_id = await get_client_id(db)
    tokens = await refresh_access_token(user.refresh_token, client_id)
    if not tokens or not tokens.get("access_token"):
        return None

    _apply_tokens(user, tokens)
    user.updated_at = _now_utc()
    db.commit()
    return user.access_token


def revoke_sessions(db: Session, user: User) -> int:
    """Invalidate every session token issued to the user."""
    user.token_version += 1
    db.commit()
    return user.token_version
