# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant connection routing.

The router hands out one ready-to-use AsyncEngine per tenant. Engines are
created lazily on the first request for a tenant, verified with a round-trip
before being cached, and then reused for the lifetime of the process (or until
evicted, or until the optional TTL elapses).

Concurrent first requests for the same tenant share a single in-flight
connection attempt, so no more than one engine is ever created per key.

Example:
    router = TenantConnectionRouter(registry, master_engine, settings.tenant_db)

    engine = await router.get_connection("acme")
    async with engine.connect() as conn:
        await conn.execute(text("SELECT count(*) FROM vehicles"))

    # On shutdown
    await router.close_all()
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from omsms.infrastructure.database.connection import ping
from omsms.infrastructure.database.exceptions import TenantConnectionError
from omsms.infrastructure.database.registry import (
    TenantRecord,
    TenantRegistry,
    normalize_subdomain,
)

if TYPE_CHECKING:
    from omsms.core.config.settings import TenantDatabaseSettings

logger = logging.getLogger(__name__)

EngineFactory = Callable[..., AsyncEngine]


@dataclass
class _CachedEngine:
    engine: AsyncEngine
    cached_at: float


class TenantConnectionRouter:
    """Resolves tenant routing keys to cached database engines.

    The router owns every engine it caches as well as the master engine; no
    other component may dispose them while they are cached.

    Attributes:
        registry: Tenant registry client used on cache misses.
        master_engine: Master database engine, closed by close_all().
    """

    def __init__(
        self,
        registry: TenantRegistry,
        master_engine: AsyncEngine,
        settings: "TenantDatabaseSettings",
        engine_factory: EngineFactory = create_async_engine,
        debug: bool = False,
    ) -> None:
        """Initialize the router.

        Args:
            registry: Tenant registry client.
            master_engine: Master database engine.
            settings: Tenant database settings (pool sizing, timeouts, TTL).
            engine_factory: Callable creating an AsyncEngine from a URL.
            debug: Echo SQL on tenant engines.
        """
        self.registry = registry
        self.master_engine = master_engine
        self._settings = settings
        self._engine_factory = engine_factory
        self._debug = debug
        self._engines: dict[str, _CachedEngine] = {}
        self._pending: dict[str, asyncio.Task[AsyncEngine]] = {}
        # Bumped by evict(); an attempt that sees a newer generation discards its engine.
        self._generations: dict[str, int] = {}

    async def get_connection(self, subdomain: str) -> AsyncEngine:
        """Get the database engine for a tenant.

        A cache hit returns the cached engine without any round-trip and
        without re-checking the tenant status.

        Args:
            subdomain: Tenant routing key.

        Returns:
            AsyncEngine bound to the tenant's database.

        Raises:
            TenantNotFoundError: If no tenant matches the key.
            TenantSuspendedError: If the tenant is not active.
            TenantConnectionError: If the tenant database cannot be reached.
        """
        key = normalize_subdomain(subdomain)

        cached = self._engines.get(key)
        if cached is not None:
            if not self._is_expired(cached):
                return cached.engine
            logger.info("Cached connection for tenant %s expired, re-validating", key)
            await self.evict(key)

        task = self._pending.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._connect(key))
            self._pending[key] = task
            task.add_done_callback(lambda t, key=key: self._clear_pending(key, t))

        # Shielded so that a cancelled caller does not abort the attempt
        # other callers are waiting on.
        return await asyncio.shield(task)

    async def evict(self, subdomain: str) -> bool:
        """Remove and dispose the cached engine of a tenant.

        A connection attempt still in flight for the tenant is invalidated as
        well: it re-resolves the tenant instead of caching its engine, so a
        status change made before the eviction is always observed.

        Args:
            subdomain: Tenant routing key.

        Returns:
            True if an engine was cached and has been disposed.
        """
        key = normalize_subdomain(subdomain)
        self._generations[key] = self._generations.get(key, 0) + 1
        cached = self._engines.pop(key, None)
        if cached is None:
            return False

        try:
            await cached.engine.dispose()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Error disposing connection for tenant %s: %s", key, e)

        logger.info("Evicted cached connection for tenant %s", key)
        return True

    def is_cached(self, subdomain: str) -> bool:
        """Check whether a tenant currently has a cached engine."""
        return normalize_subdomain(subdomain) in self._engines

    def cached_connections(self) -> dict[str, AsyncEngine]:
        """Return a snapshot of the cached engines keyed by subdomain."""
        return {key: cached.engine for key, cached in self._engines.items()}

    async def close_all(self) -> None:
        """Close the master engine and every cached tenant engine.

        Intended for process shutdown. Safe to call more than once.
        """
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()

        for key in list(self._engines.keys()):
            await self.evict(key)

        try:
            await self.master_engine.dispose()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Error disposing master database engine: %s", e)

        logger.info("All database connections closed")

    async def _connect(self, key: str) -> AsyncEngine:
        while True:
            generation = self._generations.get(key, 0)
            record = await self.registry.resolve(key)
            engine = await self._open_engine(key, record)

            if self._generations.get(key, 0) == generation:
                break
            logger.info("Tenant %s was evicted while connecting, re-resolving", key)
            await self._dispose_quietly(engine, key)

        self._engines[key] = _CachedEngine(engine=engine, cached_at=time.monotonic())
        logger.info("Tenant connection established for %s", key)
        return engine

    async def _open_engine(self, key: str, record: TenantRecord) -> AsyncEngine:
        try:
            engine = self._engine_factory(
                record.database_url,
                pool_size=self._settings.pool_size,
                max_overflow=self._settings.max_overflow,
                pool_pre_ping=True,
                pool_recycle=1800,
                echo=self._debug,
            )
        except (SQLAlchemyError, ValueError) as e:
            logger.error(
                "Invalid database URL registered for tenant %s (tenant_id=%s): %s",
                key,
                record.tenant_id,
                e,
            )
            raise TenantConnectionError(key, e) from e

        try:
            await asyncio.wait_for(ping(engine), timeout=self._settings.connect_timeout)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(
                "Failed to connect to tenant database for %s (tenant_id=%s): %s",
                key,
                record.tenant_id,
                e or type(e).__name__,
            )
            await self._dispose_quietly(engine, key)
            raise TenantConnectionError(key, e) from e
        except BaseException:
            await self._dispose_quietly(engine, key)
            raise

        return engine

    def _is_expired(self, cached: _CachedEngine) -> bool:
        ttl = self._settings.cache_ttl_seconds
        if ttl is None:
            return False
        return time.monotonic() - cached.cached_at >= ttl

    def _clear_pending(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the outcome as retrieved when every waiter has gone away.
        if not task.cancelled():
            task.exception()

    @staticmethod
    async def _dispose_quietly(engine: AsyncEngine, key: str) -> None:
        try:
            await engine.dispose()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Error disposing failed connection for tenant %s: %s", key, e)
