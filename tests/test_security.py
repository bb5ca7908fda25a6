"""Tests for session tokens and token encryption."""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from formrelay.core import encryption
from formrelay.core.config import settings
from formrelay.core.security import (
    create_session_token,
    decode_session_token,
    generate_code_verifier,
    generate_oauth_state,
)


def test_session_token_round_trip():
    user_id = uuid.uuid4()
    token = create_session_token(user_id, "awork-1", "ws-1", 3)
    payload = decode_session_token(token)
    assert payload["sub"] == str(user_id)
    assert payload["workspace_id"] == "ws-1"
    assert payload["token_version"] == 3
    assert payload["iss"] == settings.JWT_ISSUER


def test_previous_secret_still_verifies(monkeypatch):
    token = create_session_token(uuid.uuid4(), "awork-1", "ws-1", 1)
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret-with-enough-length-for-hs256")
    assert decode_session_token(token)["awork_user_id"] == "awork-1"


def test_expired_token_is_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "iss": settings.JWT_ISSUER,
            "aud": settings.JWT_AUDIENCE,
            "iat": now - timedelta(days=10),
            "exp": now - timedelta(days=1),
        },
        settings.JWT_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_session_token(token)


def test_wrong_audience_is_rejected():
    token = jwt.encode(
        {"sub": "x", "iss": settings.JWT_ISSUER, "aud": "someone-else"},
        settings.JWT_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(jwt.InvalidAudienceError):
        decode_session_token(token)


def test_pkce_values_are_random_and_long_enough():
    verifier = generate_code_verifier()
    assert 43 <= len(verifier) <= 128
    assert generate_code_verifier() != verifier
    assert generate_oauth_state() != generate_oauth_state()


def test_token_encryption_round_trip():
    encrypted = encryption.encrypt_token("secret-access-token")
    assert encrypted != "secret-access-token"
    assert encryption.decrypt_token(encrypted) == "secret-access-token"


def test_tampered_ciphertext_raises_value_error():
    with pytest.raises(ValueError, match="Invalid or corrupted"):
        encryption.decrypt_token("not-a-fernet-token")


def test_tokens_are_encrypted_at_rest(db, test_user):
    from sqlalchemy import text

    stored = db.execute(
        text("SELECT access_token FROM users WHERE awork_user_id = :id"),
        {"id": test_user.awork_user_id},
    ).scalar_one()
    assert stored != "awork-access-token"
    assert encryption.decrypt_token(stored) == "awork-access-token"


def test_missing_encryption_key_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(encryption, "_cipher", None)
    monkeypatch.setattr(settings, "TOKEN_ENCRYPTION_KEY", "")
    with pytest.raises(RuntimeError, match="TOKEN_ENCRYPTION_KEY"):
        encryption.encrypt_token("x")


def test_rotated_key_still_decrypts_old_tokens(monkeypatch):
    from cryptography.fernet import Fernet

    old_ciphertext = encryption.encrypt_token("legacy-token")
    new_key = Fernet.generate_key().decode()
    monkeypatch.setattr(encryption, "_cipher", None)
    monkeypatch.setattr(
        settings, "TOKEN_ENCRYPTION_KEY", f"{new_key},{settings.TOKEN_ENCRYPTION_KEY}"
    )

    assert encryption.decrypt_token(old_ciphertext) == "legacy-token"
    fresh = encryption.encrypt_token("new-token")
    assert Fernet(new_key.encode()).decrypt(fresh.encode()) == b"new-token"
