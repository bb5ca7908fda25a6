"""Alembic helpers for startup schema checks and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from formrelay.core.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class MigrationError(RuntimeError):
    """The schema could not be brought to the latest revision."""


@dataclass(frozen=True)
class SchemaState:
    applied: frozenset[str]
    heads: frozenset[str]

    @property
    def is_current(self) -> bool:
        return self.applied == self.heads


def alembic_config(database_url: str | None = None) -> Config:
    ini_path = PROJECT_ROOT / "alembic.ini"
    if not ini_path.is_file():
        raise FileNotFoundError(f"alembic.ini not found at {ini_path}")
    config = Config(str(ini_path))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", database_url or settings.DATABASE_URL)
    return config


def schema_state(engine: Engine, config: Config | None = None) -> SchemaState:
    """Applied revisions (empty for a fresh database) against script heads."""
    script = ScriptDirectory.from_config(config or alembic_config())
    with engine.connect() as connection:
        applied = MigrationContext.configure(connection).get_current_heads()
    return SchemaState(applied=frozenset(applied), heads=frozenset(script.get_heads()))


def ensure_migrations(engine: Engine, auto_migrate: bool) -> SchemaState:
    """
    Upgrade to head when auto_migrate is set; otherwise only report.

    Raises MigrationError if an upgrade ran but the schema is still behind.
    """
    config = alembic_config(engine.url.render_as_string(hide_password=False))
    state = schema_state(engine, config)
    if state.is_current:
        return state
    if not auto_migrate:
        logger.warning(
            "Database schema is behind (applied=%s, heads=%s)",
            sorted(state.applied), sorted(state.heads),
        )
        return state

    logger.info("Upgrading database schema to %s", ", ".join(sorted(state.heads)))
    command.upgrade(config, "heads")
    state = schema_state(engine, config)
    if not state.is_current:
        raise MigrationError("Database schema did not reach head after upgrade")
    return state
