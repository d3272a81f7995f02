# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Contains the migrations of the master database (the tenant registry). Tenant
databases are not migrated here; their schema is applied in full at
provisioning time.
"""
