"""
At-rest encryption for stored awork OAuth tokens.

TOKEN_ENCRYPTION_KEY holds one or more comma-separated Fernet keys. The
first key encrypts; every key is tried on decrypt, so a new key can be
prepended and old rows re-encrypted lazily on the next token refresh.
"""

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from formrelay.core.config import settings

_cipher: MultiFernet | None = None


def _load_keys(raw: str) -> list[Fernet]:
    keys = [part.strip() for part in raw.split(",") if part.strip()]
    if not keys:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY not configured. Generate one with "
            "cryptography.fernet.Fernet.generate_key()"
        )
    return [Fernet(key.encode()) for key in keys]


def get_cipher() -> MultiFernet:
    global _cipher
    if _cipher is None:
        _cipher = MultiFernet(_load_keys(settings.TOKEN_ENCRYPTION_KEY))
    return _cipher


def encrypt_token(token: str) -> str:
    if not token:
        return ""
    return get_cipher().encrypt(token.encode()).decode()


def decrypt_token(encrypted: str) -> str:
    if not encrypted:
        return ""
    try:
        return get_cipher().decrypt(encrypted.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("Invalid or corrupted encrypted token") from exc
