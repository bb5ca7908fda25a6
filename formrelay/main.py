"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from formrelay.core.config import settings
from formrelay.core.structured_logging import configure_logging
from formrelay.db.session import engine
from formrelay.services.awork_client import AworkApiError, AworkAuthError

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Submissions carry respondent data
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from formrelay.core.rate_limit import limiter


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_AUTO_MIGRATE:
        from formrelay.core.migrations import ensure_migrations

        state = ensure_migrations(engine, auto_migrate=True)
        logger.info("Database schema at %s", ", ".join(sorted(state.applied)))
    yield


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="formrelay API",
    description="Form builder with awork project and task relay",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)


# ============================================================================
# awork Error Handling
# ============================================================================

@app.exception_handler(AworkAuthError)
async def awork_auth_error_handler(request: Request, exc: AworkAuthError):
    """The frontend re-runs the OAuth flow on TOKEN_EXPIRED."""
    return JSONResponse(
        status_code=401,
        content={"detail": str(exc), "code": "TOKEN_EXPIRED"},
    )


@app.exception_handler(AworkApiError)
async def awork_api_error_handler(request: Request, exc: AworkApiError):
    logger.warning("awork API error %s on %s", exc.status_code, request.url.path)
    return JSONResponse(
        status_code=502,
        content={"detail": f"awork API error: {exc.status_code}"},
    )


@app.exception_handler(httpx.HTTPError)
async def awork_transport_error_handler(request: Request, exc: httpx.HTTPError):
    logger.warning("awork request failed on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "awork is unreachable"})


# ============================================================================
# Routers
# ============================================================================

from formrelay.routers import auth, awork, files, forms, forms_public, submissions

API_PREFIX = "/api"

app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(forms.router, prefix=API_PREFIX)
app.include_router(submissions.router, prefix=API_PREFIX)
app.include_router(files.router, prefix=API_PREFIX)
app.include_router(awork.router, prefix=API_PREFIX)

# Public form endpoints (unauthenticated, rate limited)
app.include_router(forms_public.router, prefix=API_PREFIX)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/api/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check failed")
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
