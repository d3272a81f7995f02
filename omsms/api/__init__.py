# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP adapter for the tenant database gateway.

Provides the FastAPI dependency that routes a request to its tenant database
and the database health endpoint.
"""

from omsms.api.app import create_app

__all__ = ["create_app"]
