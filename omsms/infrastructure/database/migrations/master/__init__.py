# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Master database migrations.

Contains migrations for the tenant registry:
- tenants: One row per tenant with its subdomain, database URL and status
"""
