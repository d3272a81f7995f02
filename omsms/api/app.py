# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from omsms import __version__
from omsms.api.dependencies import close_gateway, init_gateway
from omsms.api.routes import health
from omsms.core.config import get_settings
from omsms.infrastructure.database.migrations.runner import run_master_migrations
from omsms.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Configures logging, optionally applies pending master migrations and
    opens the tenant database gateway on startup, and closes every database
    connection on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting OMSMS tenant gateway (environment=%s)", settings.environment)

    if settings.master_db.migrate_on_startup:
        applied = await run_master_migrations(settings.master_db.url)
        logger.info("Master migrations applied on startup: %s", applied or "none")

    await init_gateway()
    logger.info("Tenant database gateway initialized")

    try:
        yield
    finally:
        await close_gateway()
        logger.info("Tenant database gateway closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="OMSMS Tenant Gateway",
        description="Multi-tenant database gateway for OMSMS",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.include_router(health.router, tags=["Health"])

    return app
