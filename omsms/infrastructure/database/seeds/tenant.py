# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database seed data.

This module provides the baseline rows every new tenant database starts with:
- Admin and User system roles with their permissions
- A default location and department
- Installation and payment workflows
- Organization and system configuration

Seeds run on the provisioning connection, inside the same transaction as the
schema DDL, so a failure here rolls back the whole tenant database.
"""

import logging
from typing import Any
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection

from omsms.infrastructure.database.schema import (
    departments,
    locations,
    role_permissions,
    roles,
    system_config,
    workflows,
)

logger = logging.getLogger(__name__)

INSTALLATION_STAGES: list[dict[str, Any]] = [
    {"key": "order_confirmed", "label": "Order Confirmed", "order": 1, "required": True},
    {"key": "start_installation", "label": "Start Installation", "order": 2, "required": True},
    {"key": "quality_checked", "label": "Quality Checked", "order": 3, "required": True},
    {"key": "delivered", "label": "Delivered", "order": 4, "required": True},
]

PAYMENT_STAGES: list[dict[str, Any]] = [
    {"key": "draft", "label": "Draft", "order": 1, "required": True},
    {"key": "invoice", "label": "Invoice", "order": 2, "required": True},
    {"key": "payment", "label": "Payment", "order": 3, "required": True},
]


def new_id(prefix: str) -> str:
    """Generate a prefixed, globally unique text identifier."""
    return f"{prefix}_{uuid4().hex}"


def _insert(table: sa.Table, touch: bool = True) -> sa.Insert:
    stmt = sa.insert(table).values(created_at=sa.func.current_timestamp())
    if touch:
        stmt = stmt.values(updated_at=sa.func.current_timestamp())
    return stmt


async def seed_roles(conn: AsyncConnection) -> dict[str, str]:
    """Seed the Admin and User system roles.

    Args:
        conn: Connection to the tenant database.

    Returns:
        Mapping of role name to role_id.
    """
    roles_data = [
        {
            "role_id": new_id("role"),
            "role_name": "Admin",
            "role_description": "System Administrator with full access",
            "role_level": 100,
            "is_system_role": True,
        },
        {
            "role_id": new_id("role"),
            "role_name": "User",
            "role_description": "Standard user with basic access",
            "role_level": 10,
            "is_system_role": True,
        },
    ]

    await conn.execute(_insert(roles), roles_data)
    logger.info("Seeded %d roles", len(roles_data))
    return {row["role_name"]: row["role_id"] for row in roles_data}


async def seed_role_permissions(conn: AsyncConnection, role_ids: dict[str, str]) -> int:
    """Seed permissions for the system roles.

    Admin gets the wildcard grant, User gets read access to vehicles and the
    dashboard.

    Args:
        conn: Connection to the tenant database.
        role_ids: Mapping of role name to role_id from seed_roles().

    Returns:
        Number of permissions created.
    """
    grants = [
        ("Admin", "*", "*"),
        ("User", "vehicles", "read"),
        ("User", "dashboard", "read"),
    ]
    permissions_data = [
        {
            "role_permission_id": new_id("perm"),
            "role_id": role_ids[role_name],
            "resource": resource,
            "action": action,
        }
        for role_name, resource, action in grants
    ]

    await conn.execute(_insert(role_permissions, touch=False), permissions_data)
    logger.info("Seeded %d role permissions", len(permissions_data))
    return len(permissions_data)


async def seed_location(conn: AsyncConnection) -> str:
    """Seed the default location and return its id."""
    location_id = new_id("location")
    await conn.execute(
        _insert(locations),
        [
            {
                "location_id": location_id,
                "location_name": "Main Office",
                "address": "Default Location",
                "city": "City",
                "status": "active",
            }
        ],
    )
    logger.info("Seeded default location")
    return location_id


async def seed_department(conn: AsyncConnection) -> str:
    """Seed the default department and return its id."""
    department_id = new_id("dept")
    await conn.execute(
        _insert(departments),
        [
            {
                "department_id": department_id,
                "department_name": "General",
                "color_code": "#3B82F6",
                "description": "General Department",
                "status": "active",
            }
        ],
    )
    logger.info("Seeded default department")
    return department_id


async def seed_workflows(conn: AsyncConnection) -> dict[str, str]:
    """Seed the vehicle installation and payment workflows.

    Args:
        conn: Connection to the tenant database.

    Returns:
        Mapping of workflow type to workflow_id.
    """
    workflows_data = [
        {
            "workflow_id": new_id("workflow"),
            "workflow_name": "Vehicle Installation Process",
            "workflow_type": "installation",
            "stages": INSTALLATION_STAGES,
            "rules": {"allowSkipping": False, "requireNotes": True, "notifyOnCompletion": True},
            "notifications": {"onStart": True, "onComplete": True, "emailNotifications": False},
            "status": "active",
        },
        {
            "workflow_id": new_id("workflow"),
            "workflow_name": "Vehicle Payment Process",
            "workflow_type": "payment",
            "stages": PAYMENT_STAGES,
            "rules": {"allowSkipping": False, "requireApproval": True, "notifyOnCompletion": True},
            "notifications": {"onStart": True, "onComplete": True, "emailNotifications": True},
            "status": "active",
        },
    ]

    await conn.execute(_insert(workflows), workflows_data)
    logger.info("Seeded %d workflows", len(workflows_data))
    return {row["workflow_type"]: row["workflow_id"] for row in workflows_data}


def organization_name(subdomain: str) -> str:
    """Default organization display name derived from a subdomain."""
    return f"{subdomain[:1].upper()}{subdomain[1:]} Organization"


async def seed_system_config(conn: AsyncConnection, subdomain: str) -> int:
    """Seed organization and system configuration.

    Values are stored as JSON scalars (e.g. the JSON string "UTC").

    Args:
        conn: Connection to the tenant database.
        subdomain: Tenant subdomain, used for the organization name.

    Returns:
        Number of configuration entries created.
    """
    config_data = [
        {
            "config_id": new_id("config"),
            "config_category": "organization",
            "config_key": "name",
            "config_value": organization_name(subdomain),
            "description": "Organization name",
        },
        {
            "config_id": new_id("config"),
            "config_category": "system",
            "config_key": "timezone",
            "config_value": "UTC",
            "description": "System timezone",
        },
        {
            "config_id": new_id("config"),
            "config_category": "system",
            "config_key": "currency",
            "config_value": "USD",
            "description": "Default currency",
        },
    ]

    await conn.execute(_insert(system_config), config_data)
    logger.info("Seeded %d system config entries", len(config_data))
    return len(config_data)


async def seed_tenant_database(conn: AsyncConnection, subdomain: str) -> dict[str, Any]:
    """Seed a freshly created tenant database.

    Does not commit; the caller owns the transaction.

    Args:
        conn: Connection to the tenant database, inside a transaction.
        subdomain: Tenant subdomain.

    Returns:
        Dictionary with the ids and counts of the seeded rows.
    """
    logger.info("Seeding tenant database for %s", subdomain)

    role_ids = await seed_roles(conn)
    permission_count = await seed_role_permissions(conn, role_ids)
    location_id = await seed_location(conn)
    department_id = await seed_department(conn)
    workflow_ids = await seed_workflows(conn)
    config_count = await seed_system_config(conn, subdomain)

    logger.info("Tenant database seeding complete for %s", subdomain)

    return {
        "roles": role_ids,
        "permissions": permission_count,
        "location": location_id,
        "department": department_id,
        "workflows": workflow_ids,
        "system_config": config_count,
    }
