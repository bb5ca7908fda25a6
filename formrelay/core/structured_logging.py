"""Structured logging helpers (token- and answer-safe)."""

import logging
from typing import Any

from formrelay.core.config import settings

NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3")


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the API process and the CLI."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_log_context(
    *,
    user_id: str | None = None,
    workspace_id: str | None = None,
    form_id: str | None = None,
    submission_id: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict without tokens or submitted answers."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if workspace_id:
        context["workspace_id"] = str(workspace_id)
    if form_id:
        context["form_id"] = str(form_id)
    if submission_id:
        context["submission_id"] = str(submission_id)
    if request_id:
        context["request_id"] = request_id
    return context
