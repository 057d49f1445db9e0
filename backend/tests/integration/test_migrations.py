"""Integration tests for Alembic migrations."""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

MIGRATION = (
    Path(__file__).resolve().parents[2] / "alembic" / "versions" / "001_create_placement_tables.py"
)


def load_migration():
    spec = importlib.util.spec_from_file_location("placement_migration_001", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migrated_engine(tmp_path):
    """SQLite database upgraded with the placement migration."""
    engine = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
    migration = load_migration()
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
    yield engine
    engine.dispose()


@pytest.mark.integration
class TestMigrations:
    """Tests for database migrations."""

    def test_tables_created(self, migrated_engine) -> None:
        tables = set(inspect(migrated_engine).get_table_names())

        assert {"shard_metadata", "tenant_assignments", "tenant_collections"} <= tables

    def test_partial_unique_indexes_created(self, migrated_engine) -> None:
        inspector = inspect(migrated_engine)

        assignment_indexes = {i["name"]: i for i in inspector.get_indexes("tenant_assignments")}
        collection_indexes = {i["name"]: i for i in inspector.get_indexes("tenant_collections")}

        assert assignment_indexes["uq_tenant_assignments_active_tenant"]["unique"]
        assert collection_indexes["uq_tenant_collections_root"]["unique"]

    def test_one_active_assignment_per_tenant(self, migrated_engine) -> None:
        insert = text(
            "INSERT INTO tenant_assignments (id, tenant_id, shard_id, is_active) "
            "VALUES (:id, 't1', :shard, :active)"
        )
        with migrated_engine.begin() as conn:
            conn.execute(insert, {"id": "a" * 32, "shard": "lib-1", "active": False})
            conn.execute(insert, {"id": "b" * 32, "shard": "lib-2", "active": True})

        with pytest.raises(IntegrityError):
            with migrated_engine.begin() as conn:
                conn.execute(insert, {"id": "c" * 32, "shard": "lib-3", "active": True})

    def test_downgrade_drops_tables(self, migrated_engine) -> None:
        migration = load_migration()
        with migrated_engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                migration.downgrade()

        assert inspect(migrated_engine).get_table_names() == []
