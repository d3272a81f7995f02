# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the master database migration runner."""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext

from omsms.infrastructure.database.migrations import runner
from omsms.infrastructure.database.migrations.runner import (
    MASTER_MIGRATIONS,
    MigrationStatus,
    get_migration_status,
    get_pending_migrations,
    load_upgrade,
    run_master_migrations,
)

from .conftest import make_db_error


class TestGetPendingMigrations:
    """Tests for pending migration calculation."""

    def test_fresh_database(self) -> None:
        assert get_pending_migrations(None) == MASTER_MIGRATIONS

    def test_up_to_date(self) -> None:
        assert get_pending_migrations(MASTER_MIGRATIONS[-1]) == []

    def test_unknown_current_version(self) -> None:
        assert get_pending_migrations("999_from_the_future") == []

    def test_target_revision(self) -> None:
        assert get_pending_migrations(None, "001_create_tenants") == ["001_create_tenants"]

    def test_unknown_target(self) -> None:
        assert get_pending_migrations(None, "nope") == []


class TestLoadUpgrade:
    """Tests for migration module loading."""

    def test_loads_upgrade_function(self) -> None:
        upgrade = load_upgrade("001_create_tenants")

        assert callable(upgrade)
        assert upgrade.__name__ == "upgrade"

    def test_missing_module(self) -> None:
        with pytest.raises(ImportError, match="Cannot import migration"):
            load_upgrade("002_does_not_exist")

    def test_module_without_upgrade(self) -> None:
        with patch.object(runner.importlib, "import_module", return_value=object()):
            with pytest.raises(ValueError, match="has no upgrade"):
                load_upgrade("001_create_tenants")


class TestCreateTenantsMigration:
    """Renders the migration offline against the PostgreSQL dialect."""

    @pytest.fixture
    def rendered_sql(self) -> str:
        buffer = io.StringIO()
        context = MigrationContext.configure(
            dialect_name="postgresql",
            opts={"as_sql": True, "output_buffer": buffer},
        )
        with Operations.context(context):
            load_upgrade("001_create_tenants")()
        return buffer.getvalue()

    def test_creates_tenants_table(self, rendered_sql) -> None:
        assert "CREATE TABLE tenants" in rendered_sql
        assert "subdomain VARCHAR(63) NOT NULL" in rendered_sql
        assert "UNIQUE (subdomain)" in rendered_sql

    def test_status_constraint(self, rendered_sql) -> None:
        assert "CONSTRAINT valid_tenant_status CHECK (status IN ('active', 'inactive', 'suspended'))" in rendered_sql

    def test_status_index(self, rendered_sql) -> None:
        assert "CREATE INDEX idx_tenants_status ON tenants (status)" in rendered_sql


class TestRunMasterMigrations:
    """Tests for run_master_migrations with the database calls patched out."""

    @pytest.fixture
    def engine(self):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        return engine

    @pytest.mark.asyncio
    async def test_applies_pending(self, engine) -> None:
        with (
            patch.object(runner, "create_async_engine", return_value=engine),
            patch.object(runner, "_ensure_version_table", AsyncMock()),
            patch.object(runner, "_get_current_version", AsyncMock(return_value=None)),
            patch.object(runner, "_apply_migration", AsyncMock()) as apply_migration,
        ):
            applied = await run_master_migrations("postgresql+asyncpg://u:p@h/db")

        assert applied == MASTER_MIGRATIONS
        assert apply_migration.await_count == len(MASTER_MIGRATIONS)
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_pending(self, engine) -> None:
        with (
            patch.object(runner, "create_async_engine", return_value=engine),
            patch.object(runner, "_ensure_version_table", AsyncMock()),
            patch.object(runner, "_get_current_version", AsyncMock(return_value=MASTER_MIGRATIONS[-1])),
            patch.object(runner, "_apply_migration", AsyncMock()) as apply_migration,
        ):
            applied = await run_master_migrations("postgresql+asyncpg://u:p@h/db")

        assert applied == []
        apply_migration.assert_not_awaited()
        engine.dispose.assert_awaited_once()


class TestMigrationStatus:
    """Tests for the migration status report."""

    def test_up_to_date(self) -> None:
        status = MigrationStatus(current_version=MASTER_MIGRATIONS[-1])

        assert status.is_up_to_date
        assert status.latest_version == MASTER_MIGRATIONS[-1]

    @pytest.mark.asyncio
    async def test_fresh_database(self) -> None:
        engine = MagicMock()
        engine.dispose = AsyncMock()

        with (
            patch.object(runner, "create_async_engine", return_value=engine),
            patch.object(runner, "_ensure_version_table", AsyncMock()),
            patch.object(runner, "_get_current_version", AsyncMock(return_value=None)),
        ):
            status = await get_migration_status("postgresql+asyncpg://u:p@h/db")

        assert status.current_version is None
        assert status.pending_migrations == MASTER_MIGRATIONS
        assert not status.is_up_to_date
        engine.dispose.assert_awaited_once()


class TestMain:
    """Tests for the command-line entry point."""

    @pytest.fixture
    def settings(self):
        settings = MagicMock()
        settings.master_db.url = "postgresql+asyncpg://u:p@h/master"
        return settings

    def test_applies_migrations(self, settings) -> None:
        with (
            patch.object(runner, "get_settings", return_value=settings),
            patch.object(runner, "setup_logging") as setup_logging,
            patch.object(runner, "run_master_migrations", AsyncMock(return_value=MASTER_MIGRATIONS)) as migrate,
        ):
            assert runner.main() == 0

        setup_logging.assert_called_once_with(settings)
        migrate.assert_awaited_once_with("postgresql+asyncpg://u:p@h/master")

    def test_failure_exit_code(self, settings) -> None:
        failing = AsyncMock(side_effect=make_db_error())

        with (
            patch.object(runner, "get_settings", return_value=settings),
            patch.object(runner, "setup_logging"),
            patch.object(runner, "run_master_migrations", failing),
        ):
            assert runner.main() == 1
