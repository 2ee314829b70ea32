"""Tests for engine setup and database initialization."""

import pytest
from sqlalchemy import inspect, text

from src.services import database
from src.utils.config import reset_config


@pytest.fixture
def file_database(tmp_path, monkeypatch):
    """Point the global engine at a throwaway SQLite file."""
    db_path = tmp_path / "ledger.db"
    monkeypatch.setenv("JERKY_LEDGER_DATABASE_URL", f"sqlite:///{db_path}")
    reset_config()
    database.close_connections()
    yield db_path
    database.close_connections()


def test_init_database_creates_ledger_tables(file_database):
    database.init_database()

    tables = inspect(database.get_engine()).get_table_names()
    for table in ("materials", "lots", "lot_events", "batch_lot_usage", "lot_recalls"):
        assert table in tables
    assert database.verify_database() is True


def test_sqlite_pragmas(file_database):
    engine = database.get_engine()
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"


def test_reset_requires_confirmation(file_database):
    with pytest.raises(ValueError):
        database.reset_database()


def test_reset_database_drops_rows(file_database):
    from src.models import Material

    database.init_database()
    with database.session_scope() as session:
        session.add(Material(name="Salt", material_code="SALT", category="spice", unit="g"))

    database.reset_database(confirm=True)

    with database.session_scope() as session:
        assert session.query(Material).count() == 0


def test_session_scope_rolls_back(file_database):
    from src.models import Material

    database.init_database()
    with pytest.raises(RuntimeError):
        with database.session_scope() as session:
            session.add(Material(name="Salt", material_code="SALT", category="spice", unit="g"))
            session.flush()
            raise RuntimeError("abort")

    with database.session_scope() as session:
        assert session.query(Material).count() == 0


def test_initialize_app_database_creates_user_database(tmp_path, monkeypatch):
    monkeypatch.delenv("JERKY_LEDGER_DATABASE_URL", raising=False)
    monkeypatch.delenv("JERKY_LEDGER_ENV", raising=False)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)
    reset_config()
    database.close_connections()
    try:
        database.initialize_app_database()

        assert (tmp_path / ".jerky_ledger" / "jerky_ledger.db").exists()
        assert database.verify_database() is True
    finally:
        database.close_connections()
