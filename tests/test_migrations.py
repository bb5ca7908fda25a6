"""Tests for the alembic schema against a fresh database."""

from sqlalchemy import create_engine, inspect

from formrelay.core.migrations import ensure_migrations, schema_state
from formrelay.db.base import Base


def test_fresh_database_is_behind_until_upgraded(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}")

    state = ensure_migrations(engine, auto_migrate=False)
    assert not state.is_current
    assert state.applied == frozenset()

    state = ensure_migrations(engine, auto_migrate=True)
    assert state.is_current
    assert schema_state(engine).is_current

    tables = set(inspect(engine).get_table_names())
    assert set(Base.metadata.tables) <= tables
    engine.dispose()


def test_migration_columns_match_models(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'cols.db'}")
    ensure_migrations(engine, auto_migrate=True)

    inspector = inspect(engine)
    for table in Base.metadata.sorted_tables:
        migrated = {c["name"] for c in inspector.get_columns(table.name)}
        assert migrated == set(table.columns.keys()), table.name
    engine.dispose()
