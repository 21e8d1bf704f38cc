"""Test Alembic migrations: upgrade, downgrade, and structural checks.

Runs against a throwaway SQLite file so no database server is needed.
"""

import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text

from assethub.db.base import Base
import assethub.db.models  # noqa: F401


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ALEMBIC_INI = os.path.join(os.path.dirname(__file__), "..", "..", "alembic.ini")

EXPECTED_TABLES = {
    "roles",
    "asset_action_configs",
    "assets",
    "asset_operations",
    "asset_borrow_records",
    "consumables",
    "consumable_operations",
    "asset_approval_requests",
    "asset_approval_history",
    "asset_approval_cc_recipients",
}


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'migrations.db'}"


@pytest.fixture
def cfg(database_url):
    config = Config(ALEMBIC_INI)
    config.set_main_option("sqlalchemy.url", database_url)
    config.attributes["configure_logger"] = False
    return config


def _tables(database_url):
    engine = create_engine(database_url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestMigrations:
    """Run upgrade → verify → downgrade → verify cycle."""

    def test_upgrade_creates_all_tables(self, cfg, database_url):
        command.upgrade(cfg, "head")

        tables = _tables(database_url)
        for table in EXPECTED_TABLES:
            assert table in tables, f"Table {table!r} not created by upgrade"
        assert "alembic_version" in tables

    def test_upgrade_is_idempotent(self, cfg):
        """Running upgrade twice should not fail."""
        command.upgrade(cfg, "head")
        command.upgrade(cfg, "head")

    def test_columns_match_models(self, cfg, database_url):
        """Every mapped column exists in the migrated schema."""
        command.upgrade(cfg, "head")

        engine = create_engine(database_url)
        inspector = inspect(engine)
        for table in Base.metadata.sorted_tables:
            migrated = {c["name"] for c in inspector.get_columns(table.name)}
            assert migrated == {c.name for c in table.columns}, table.name
        engine.dispose()

    def test_foreign_keys(self, cfg, database_url):
        command.upgrade(cfg, "head")

        engine = create_engine(database_url)
        inspector = inspect(engine)
        referred = {fk["referred_table"] for fk in inspector.get_foreign_keys("asset_approval_requests")}
        engine.dispose()

        assert referred == {"assets", "consumables", "asset_operations", "consumable_operations"}

    def test_current_revision_after_upgrade(self, cfg, database_url):
        command.upgrade(cfg, "head")

        engine = create_engine(database_url)
        with engine.connect() as conn:
            row = conn.execute(text("SELECT version_num FROM alembic_version")).fetchone()
        engine.dispose()

        assert row is not None
        assert row[0] == "0002"

    def test_downgrade_removes_all_tables(self, cfg, database_url):
        command.upgrade(cfg, "head")
        command.downgrade(cfg, "base")

        tables = _tables(database_url)
        for table in EXPECTED_TABLES:
            assert table not in tables, f"Table {table!r} still present after downgrade"

    def test_upgrade_after_downgrade(self, cfg, database_url):
        """Full round-trip: upgrade → downgrade → upgrade."""
        command.upgrade(cfg, "head")
        command.downgrade(cfg, "base")
        command.upgrade(cfg, "head")

        assert EXPECTED_TABLES <= _tables(database_url)
