# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database seed package.

Seed data applied to every new tenant database: roles, permissions, default
location and department, workflows and system configuration.
"""

from omsms.infrastructure.database.seeds.tenant import seed_tenant_database

__all__ = ["seed_tenant_database"]
