"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./formrelay.db"
    DB_AUTO_MIGRATE: bool = False

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 168
    JWT_ISSUER: str = "formrelay"
    JWT_AUDIENCE: str = "formrelay-client"

    # Fernet key for stored awork tokens
    TOKEN_ENCRYPTION_KEY: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Frontend (OAuth redirect target)
    FRONTEND_URL: str = "http://localhost:5173"

    # awork API
    AWORK_API_URL: str = "https://api.awork.com/api/v1"
    AWORK_CLIENT_NAME: str = "awork Forms"
    AWORK_SCOPES: str = "full_access offline_access"
    AWORK_TIMEOUT_SECONDS: float = 30.0

    # OAuth login state
    OAUTH_STATE_TTL_MINUTES: int = 10
    OAUTH_STATE_CLEANUP_MINUTES: int = 15
    TOKEN_REFRESH_MARGIN_MINUTES: int = 5

    # A "processing" claim older than this is treated as abandoned
    SUBMISSION_CLAIM_TIMEOUT_MINUTES: int = 15

    # File storage
    STORAGE_BACKEND: str = "local"  # local | s3
    LOCAL_STORAGE_PATH: str = "./storage"
    S3_BUCKET: str = ""
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024
    MAX_LOGO_SIZE_BYTES: int = 5 * 1024 * 1024

    # Rate Limiting (public endpoints)
    RATE_LIMIT_PUBLIC_SUBMIT: str = "10/minute"
    RATE_LIMIT_PUBLIC_UPLOAD: str = "20/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def oauth_redirect_uri(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}/auth/callback"

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only outside dev/test."""
        return self.ENV not in ("dev", "test")


settings = Settings()
