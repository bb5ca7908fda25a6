"""Custom SQLAlchemy types shared by the models."""

from __future__ import annotations

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator, Text

from formrelay.core.encryption import decrypt_token, encrypt_token

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class EncryptedToken(TypeDecorator):
    """Encrypt/decrypt OAuth tokens transparently."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value == "":
            return ""
        return encrypt_token(value)

    def process_result_value(self, value, dialect):
        if value is None or value == "":
            return value
        return decrypt_token(value)
