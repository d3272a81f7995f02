# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Master database models."""

from omsms.infrastructure.database.models.master.tenant import Tenant, TenantStatus

__all__ = ["Tenant", "TenantStatus"]
