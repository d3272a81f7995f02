# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Master database migration runner.

The master database holds a single table (the tenant registry), so its
migrations are applied in-process at gateway startup or from a deployment
script instead of through the alembic CLI. Each migration is an ordinary
alembic ``op``-based module under ``migrations/master``; the applied revision
is stored in ``alembic_version`` so the CLI can take over later.

Example:
    from omsms.infrastructure.database.migrations.runner import run_master_migrations

    applied = await run_master_migrations(settings.master_db.url)

From a shell, with MASTER_DB_* or MASTER_DATABASE_URL set:

    omsms-migrate-master
"""

import asyncio
import importlib
import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

from sqlalchemy import Column, MetaData, PrimaryKeyConstraint, String, Table, delete, insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from omsms.core.config import get_settings
from omsms.utils.logging import setup_logging

logger = logging.getLogger(__name__)

MIGRATIONS_PACKAGE = "omsms.infrastructure.database.migrations.master"

# Applied in list order; append new revisions at the end.
MASTER_MIGRATIONS = [
    "001_create_tenants",
]

# Same layout alembic itself creates.
_version_table = Table(
    "alembic_version",
    MetaData(),
    Column("version_num", String(32), nullable=False),
    PrimaryKeyConstraint("version_num", name="alembic_version_pkc"),
)


@dataclass
class MigrationStatus:
    """Snapshot of the master database's migration state."""

    current_version: str | None
    pending_migrations: list[str] = field(default_factory=list)

    @property
    def latest_version(self) -> str | None:
        return MASTER_MIGRATIONS[-1] if MASTER_MIGRATIONS else None

    @property
    def is_up_to_date(self) -> bool:
        return not self.pending_migrations


@asynccontextmanager
async def _master_engine(db_url: str) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(db_url, echo=False)
    try:
        yield engine
    finally:
        await engine.dispose()


async def run_master_migrations(
    db_url: str,
    target_revision: str | None = None,
) -> list[str]:
    """Bring the master database schema up to date.

    Each revision runs in its own transaction together with its version
    bump, so a failure leaves the database at the last good revision.

    Args:
        db_url: Master database URL (asyncpg driver).
        target_revision: Stop after this revision. None applies everything.

    Returns:
        Revisions applied by this call, in order.

    Raises:
        ImportError: If a migration module cannot be imported.
        ValueError: If a migration module has no upgrade() function.
        SQLAlchemyError: If a migration fails to apply.
    """
    async with _master_engine(db_url) as engine:
        await _ensure_version_table(engine)
        current = await _get_current_version(engine)

        pending = get_pending_migrations(current, target_revision)
        if not pending:
            logger.info("Master schema is current (version=%s)", current)
            return []

        logger.info("Master schema at %s, applying %s", current, ", ".join(pending))
        for revision in pending:
            await _apply_migration(engine, revision)
            logger.info("Applied master migration %s", revision)

        return list(pending)


def get_pending_migrations(
    current_version: str | None,
    target_revision: str | None = None,
) -> list[str]:
    """Work out which revisions still have to run.

    An unrecognised current or target revision yields an empty list rather
    than guessing where to resume.
    """
    start = _position_after(current_version) if current_version else 0
    stop = _position_after(target_revision) if target_revision else len(MASTER_MIGRATIONS)

    if start is None:
        logger.warning("Master database is at unknown revision %s", current_version)
        return []
    if stop is None:
        logger.warning("Unknown target revision %s", target_revision)
        return []
    return MASTER_MIGRATIONS[start:stop]


async def get_migration_status(db_url: str) -> MigrationStatus:
    """Report the current revision and what is still pending."""
    async with _master_engine(db_url) as engine:
        await _ensure_version_table(engine)
        current = await _get_current_version(engine)

    return MigrationStatus(
        current_version=current,
        pending_migrations=get_pending_migrations(current),
    )


def load_upgrade(revision: str) -> Callable[[], None]:
    """Import a migration module and return its upgrade() function.

    Raises:
        ImportError: If the module cannot be imported.
        ValueError: If the module has no upgrade() function.
    """
    try:
        module = importlib.import_module(f"{MIGRATIONS_PACKAGE}.{revision}")
    except ImportError as e:
        raise ImportError(f"Cannot import migration {revision}: {e}") from e

    upgrade = getattr(module, "upgrade", None)
    if upgrade is None:
        raise ValueError(f"Migration {revision} has no upgrade() function")
    return upgrade


def _position_after(revision: str) -> int | None:
    try:
        return MASTER_MIGRATIONS.index(revision) + 1
    except ValueError:
        return None


async def _ensure_version_table(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(_version_table.create, checkfirst=True)


async def _get_current_version(engine: AsyncEngine) -> str | None:
    async with engine.connect() as conn:
        result = await conn.execute(select(_version_table.c.version_num).limit(1))
        return result.scalar_one_or_none()


async def _apply_migration(engine: AsyncEngine, revision: str) -> None:
    upgrade = load_upgrade(revision)

    async with engine.begin() as conn:
        await conn.run_sync(_run_upgrade_sync, upgrade)
        await conn.execute(delete(_version_table))
        await conn.execute(insert(_version_table).values(version_num=revision))


def _run_upgrade_sync(connection, upgrade: Callable[[], None]) -> None:
    # op.* resolves its target through the proxy installed by Operations.context
    from alembic.operations import Operations
    from alembic.runtime.migration import MigrationContext

    context = MigrationContext.configure(connection)
    with context.begin_transaction():
        with Operations.context(context):
            upgrade()


def main() -> int:
    """Apply pending master migrations using the configured master database.

    Returns:
        Process exit code: 0 when the schema is current, 1 on failure.
    """
    settings = get_settings()
    setup_logging(settings)

    try:
        applied = asyncio.run(run_master_migrations(settings.master_db.url))
    except Exception:
        logger.exception("Master migrations failed")
        return 1

    logger.info("Master migrations complete (%d applied)", len(applied))
    return 0


if __name__ == "__main__":
    sys.exit(main())
