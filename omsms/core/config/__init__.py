# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the OMSMS tenant gateway.

Example:
    >>> from omsms.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.tenant_db.database_prefix)
    'omsms_tenant_'
"""

from omsms.core.config.settings import (
    MasterDatabaseSettings,
    Settings,
    TenantDatabaseSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "MasterDatabaseSettings",
    "TenantDatabaseSettings",
]
