# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the OMSMS tenant gateway.

This package contains shared application concerns:
- config: Application configuration and settings
"""
