# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for database health reporting."""

import pytest

from omsms.infrastructure.database.health import DatabaseHealth, HealthReporter

from .conftest import make_db_error


@pytest.fixture
def reporter(master_engine, router, tenant_settings) -> HealthReporter:
    return HealthReporter(master_engine, router, probe_timeout=tenant_settings.probe_timeout)


class TestDatabaseHealth:
    """Tests for the DatabaseHealth snapshot."""

    def test_healthy(self) -> None:
        health = DatabaseHealth(master=True, tenants={"acme": True})

        assert health.is_healthy is True
        assert health.to_dict() == {"master": True, "tenants": {"acme": True}, "healthy": True}

    def test_unhealthy_master(self) -> None:
        assert DatabaseHealth(master=False).is_healthy is False

    def test_unhealthy_tenant(self) -> None:
        assert DatabaseHealth(master=True, tenants={"acme": True, "umbrella": False}).is_healthy is False


class TestHealthReporter:
    """Tests for HealthReporter.check_health."""

    @pytest.mark.asyncio
    async def test_only_master_when_nothing_cached(self, reporter, master_engine) -> None:
        health = await reporter.check_health()

        assert health.master is True
        assert health.tenants == {}
        assert master_engine.sql == ["SELECT 1"]

    @pytest.mark.asyncio
    async def test_probes_cached_tenants(self, reporter, router, registry) -> None:
        registry.add("umbrella")
        await router.get_connection("acme")
        await router.get_connection("umbrella")

        health = await reporter.check_health()

        assert health.tenants == {"acme": True, "umbrella": True}
        assert health.is_healthy

    @pytest.mark.asyncio
    async def test_failing_tenant_is_reported_not_evicted(self, reporter, router) -> None:
        engine = await router.get_connection("acme")
        engine.fail_with = make_db_error("server closed the connection")

        health = await reporter.check_health()

        assert health.tenants == {"acme": False}
        assert health.is_healthy is False
        assert router.is_cached("acme")
        assert not engine.disposed

    @pytest.mark.asyncio
    async def test_master_failure_does_not_raise(self, reporter, master_engine) -> None:
        master_engine.fail_with = make_db_error()

        health = await reporter.check_health()

        assert health.master is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self, reporter, master_engine) -> None:
        master_engine.fail_with = RuntimeError("driver bug")

        health = await reporter.check_health()

        assert health.master is False

    @pytest.mark.asyncio
    async def test_probe_timeout(self, reporter, router) -> None:
        engine = await router.get_connection("acme")
        engine.delay = 5.0

        health = await reporter.check_health()

        assert health.master is True
        assert health.tenants == {"acme": False}
