"""Rate limiting configuration for the public form endpoints."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from formrelay.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://" if IS_TESTING else settings.RATE_LIMIT_STORAGE_URI,
    enabled=not IS_TESTING,
)
