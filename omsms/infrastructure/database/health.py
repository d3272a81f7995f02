# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database health reporting.

Probes the master database and every tenant database that currently has a
cached connection. Probes are read-only: a failing tenant is reported, never
evicted, and the check itself never raises.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncEngine

from omsms.infrastructure.database.connection import ping

if TYPE_CHECKING:
    from omsms.infrastructure.database.router import TenantConnectionRouter

logger = logging.getLogger(__name__)


@dataclass
class DatabaseHealth:
    """Health snapshot of the master and cached tenant databases.

    Attributes:
        master: Whether the master database answered the probe.
        tenants: Probe result per cached tenant subdomain.
    """

    master: bool
    tenants: dict[str, bool] = field(default_factory=dict)

    @property
    def is_healthy(self) -> bool:
        """True when the master and every cached tenant database are reachable."""
        return self.master and all(self.tenants.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "master": self.master,
            "tenants": dict(self.tenants),
            "healthy": self.is_healthy,
        }


class HealthReporter:
    """Reports reachability of the master and cached tenant databases."""

    def __init__(
        self,
        master_engine: AsyncEngine,
        router: "TenantConnectionRouter",
        probe_timeout: float = 5.0,
    ) -> None:
        self.master_engine = master_engine
        self.router = router
        self.probe_timeout = probe_timeout

    async def check_health(self) -> DatabaseHealth:
        """Probe the master database and every cached tenant database.

        Returns:
            DatabaseHealth with one entry per cached tenant.
        """
        master = await self._probe(self.master_engine, "master")

        tenants: dict[str, bool] = {}
        for subdomain, engine in self.router.cached_connections().items():
            tenants[subdomain] = await self._probe(engine, f"tenant {subdomain}")

        return DatabaseHealth(master=master, tenants=tenants)

    async def _probe(self, engine: AsyncEngine, label: str) -> bool:
        try:
            await asyncio.wait_for(ping(engine), timeout=self.probe_timeout)
            return True
        except asyncio.TimeoutError:
            logger.error("Health check timed out for %s after %.1fs", label, self.probe_timeout)
        except Exception as e:
            logger.error("Health check failed for %s: %s", label, e)
        return False
