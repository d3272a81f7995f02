"""OMSMS Tenant Database Gateway.

Multi-tenant database routing and provisioning for the OMSMS vehicle-accessory
installation platform: one master registry database, one dedicated PostgreSQL
database per tenant.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
