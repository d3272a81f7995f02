# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models.

- master: Tenant registry stored in the master database
"""

from omsms.infrastructure.database.models.base import Base, utc_now
from omsms.infrastructure.database.models.master import Tenant, TenantStatus

__all__ = ["Base", "utc_now", "Tenant", "TenantStatus"]
