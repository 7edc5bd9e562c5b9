import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import orderbot.models  # noqa: F401
from orderbot.core import startup_checks
from orderbot.core.database import Base


def _memory_engine():
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_sqlite_is_forbidden_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./orderbot.db")

    with pytest.raises(RuntimeError):
        startup_checks.validate_database_environment()


def test_postgres_is_allowed_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "postgresql://bot@db/orders")

    startup_checks.validate_database_environment()


def test_ensure_tables_exist_reports_missing_schema():
    engine = _memory_engine()

    with pytest.raises(RuntimeError):
        startup_checks.ensure_tables_exist(engine=engine)

    Base.metadata.create_all(bind=engine)
    startup_checks.ensure_tables_exist(engine=engine)


def test_migration_check_requires_alembic_state(monkeypatch, tmp_path):
    monkeypatch.setattr(startup_checks, "ENV_NORMALIZED", "prod")

    with pytest.raises(RuntimeError):
        startup_checks.ensure_migrations_applied(engine=_memory_engine(), alembic_config_path=tmp_path / "missing.ini")
