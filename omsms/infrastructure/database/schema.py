# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database schema.

Every tenant database carries the same 17 tables. They are declared here once
as SQLAlchemy Core tables and turned into an ordered list of DDL steps by
build_schema_steps():

1. CREATE TABLE for every table, in declaration order, without foreign keys
2. CREATE INDEX for every index, in declaration order
3. ALTER TABLE ... ADD CONSTRAINT for every foreign key, in declaration order

Foreign keys are added last so that tables can be created regardless of
reference cycles (departments.head_user_id -> users -> departments).

Example:
    for step in build_schema_steps():
        await conn.execute(step.statement)
"""

from dataclasses import dataclass

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import AddConstraint, CreateIndex, CreateTable, DDLElement

tenant_metadata = sa.MetaData()


def _timestamp(name: str, nullable: bool = True, now: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(precision=3),
        nullable=nullable,
        server_default=sa.text("CURRENT_TIMESTAMP") if now else None,
    )


def _created_at() -> sa.Column:
    return _timestamp("created_at", nullable=False, now=True)


def _updated_at() -> sa.Column:
    # Set by the application on every write; no server default.
    return _timestamp("updated_at", nullable=False)


def _jsonb(name: str, default: str | None = "'{}'", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB,
        nullable=nullable,
        server_default=sa.text(default) if default is not None else None,
    )


def _status(default: str) -> sa.Column:
    return sa.Column("status", sa.Text, nullable=False, server_default=sa.text(f"'{default}'"))


# =========================================================================
# ACCESS CONTROL
# =========================================================================

roles = sa.Table(
    "roles",
    tenant_metadata,
    sa.Column("role_id", sa.Text, nullable=False),
    sa.Column("role_name", sa.Text, nullable=False),
    sa.Column("role_description", sa.Text),
    sa.Column("role_color", sa.Text),
    sa.Column("role_level", sa.Integer, nullable=False, server_default=sa.text("0")),
    sa.Column("is_system_role", sa.Boolean, nullable=False, server_default=sa.text("false")),
    _status("active"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("role_id", name="roles_pkey"),
)

role_permissions = sa.Table(
    "role_permissions",
    tenant_metadata,
    sa.Column("role_permission_id", sa.Text, nullable=False),
    sa.Column("role_id", sa.Text, nullable=False),
    sa.Column("resource", sa.Text, nullable=False),
    sa.Column("action", sa.Text, nullable=False),
    _jsonb("conditions"),
    _created_at(),
    sa.PrimaryKeyConstraint("role_permission_id", name="role_permissions_pkey"),
)

# =========================================================================
# ORGANIZATION
# =========================================================================

locations = sa.Table(
    "locations",
    tenant_metadata,
    sa.Column("location_id", sa.Text, nullable=False),
    sa.Column("location_name", sa.Text, nullable=False),
    sa.Column("address", sa.Text),
    sa.Column("city", sa.Text),
    sa.Column("state", sa.Text),
    sa.Column("country", sa.Text),
    sa.Column("postal_code", sa.Text),
    sa.Column("contact_person", sa.Text),
    sa.Column("contact_mobile", sa.Text),
    sa.Column("contact_email", sa.Text),
    _status("active"),
    _jsonb("settings"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("location_id", name="locations_pkey"),
)

departments = sa.Table(
    "departments",
    tenant_metadata,
    sa.Column("department_id", sa.Text, nullable=False),
    sa.Column("department_name", sa.Text, nullable=False),
    sa.Column("color_code", sa.Text),
    sa.Column("description", sa.Text),
    sa.Column("head_user_id", sa.Text),
    _status("active"),
    _jsonb("config"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("department_id", name="departments_pkey"),
)

users = sa.Table(
    "users",
    tenant_metadata,
    sa.Column("user_id", sa.Text, nullable=False),
    sa.Column("email", sa.Text, nullable=False),
    sa.Column("password_hash", sa.Text, nullable=False),
    sa.Column("first_name", sa.Text),
    sa.Column("last_name", sa.Text),
    sa.Column("mobile_number", sa.Text),
    sa.Column("address", sa.Text),
    sa.Column("role_id", sa.Text, nullable=False),
    sa.Column("department_id", sa.Text),
    sa.Column("location_id", sa.Text),
    _jsonb("permissions"),
    _jsonb("preferences"),
    _status("active"),
    _timestamp("last_login_at"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("user_id", name="users_pkey"),
)

sales_persons = sa.Table(
    "sales_persons",
    tenant_metadata,
    sa.Column("salesperson_id", sa.Text, nullable=False),
    sa.Column("user_id", sa.Text, nullable=False),
    sa.Column("employee_code", sa.Text),
    sa.Column("territory", sa.Text),
    sa.Column("commission_rate", sa.Numeric(5, 2)),
    sa.Column("target_amount", sa.Numeric(12, 2)),
    sa.Column("manager_id", sa.Text),
    _status("active"),
    _jsonb("performance_metrics"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("salesperson_id", name="sales_persons_pkey"),
)

# =========================================================================
# VEHICLES AND WORKFLOWS
# =========================================================================

vehicles = sa.Table(
    "vehicles",
    tenant_metadata,
    sa.Column("vehicle_id", sa.Text, nullable=False),
    sa.Column("car_number", sa.Text, nullable=False),
    sa.Column("owner_name", sa.Text, nullable=False),
    sa.Column("owner_mobile", sa.Text),
    sa.Column("owner_email", sa.Text),
    sa.Column("owner_address", sa.Text),
    sa.Column("model_name", sa.Text),
    sa.Column("brand_name", sa.Text),
    sa.Column("vehicle_type", sa.Text),
    sa.Column("location_id", sa.Text),
    sa.Column("salesperson_id", sa.Text),
    sa.Column("coordinator_id", sa.Text),
    sa.Column("supervisor_id", sa.Text),
    sa.Column("inward_date", sa.Date),
    sa.Column("expected_delivery_date", sa.Date),
    sa.Column("actual_delivery_date", sa.Date),
    _status("pending"),
    _jsonb("vehicle_details"),
    _jsonb("custom_fields"),
    sa.Column("created_by", sa.Text),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("vehicle_id", name="vehicles_pkey"),
)

workflows = sa.Table(
    "workflows",
    tenant_metadata,
    sa.Column("workflow_id", sa.Text, nullable=False),
    sa.Column("workflow_name", sa.Text, nullable=False),
    sa.Column("workflow_type", sa.Text, nullable=False),
    _jsonb("stages", default="'[]'"),
    _jsonb("rules"),
    _jsonb("notifications"),
    _status("active"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("workflow_id", name="workflows_pkey"),
)

workflow_instances = sa.Table(
    "workflow_instances",
    tenant_metadata,
    sa.Column("instance_id", sa.Text, nullable=False),
    sa.Column("workflow_id", sa.Text),
    sa.Column("entity_type", sa.Text, nullable=False),
    sa.Column("entity_id", sa.Text, nullable=False),
    sa.Column("current_stage", sa.Text, nullable=False),
    _jsonb("stage_data"),
    _jsonb("stage_history", default="'[]'"),
    _status("in_progress"),
    sa.Column("assigned_to", sa.Text),
    _timestamp("started_at", nullable=False, now=True),
    _timestamp("completed_at"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("instance_id", name="workflow_instances_pkey"),
)

# =========================================================================
# CATALOG AND INSTALLATIONS
# =========================================================================

product_categories = sa.Table(
    "product_categories",
    tenant_metadata,
    sa.Column("category_id", sa.Text, nullable=False),
    sa.Column("category_name", sa.Text, nullable=False),
    sa.Column("parent_category_id", sa.Text),
    sa.Column("description", sa.Text),
    _status("active"),
    _created_at(),
    sa.PrimaryKeyConstraint("category_id", name="product_categories_pkey"),
)

products = sa.Table(
    "products",
    tenant_metadata,
    sa.Column("product_id", sa.Text, nullable=False),
    sa.Column("product_name", sa.Text, nullable=False),
    sa.Column("brand_name", sa.Text),
    sa.Column("category_id", sa.Text),
    sa.Column("price", sa.Numeric(10, 2)),
    sa.Column("installation_time_hours", sa.Integer),
    _jsonb("specifications"),
    _status("active"),
    _created_at(),
    sa.PrimaryKeyConstraint("product_id", name="products_pkey"),
)

installations = sa.Table(
    "installations",
    tenant_metadata,
    sa.Column("installation_id", sa.Text, nullable=False),
    sa.Column("vehicle_id", sa.Text),
    sa.Column("product_id", sa.Text),
    sa.Column("quantity", sa.Integer, nullable=False, server_default=sa.text("1")),
    sa.Column("amount", sa.Numeric(10, 2)),
    sa.Column("installation_date", sa.Date),
    sa.Column("installer_id", sa.Text),
    sa.Column("quality_checked_by", sa.Text),
    sa.Column("quality_check_date", sa.Date),
    _status("pending"),
    sa.Column("installation_notes", sa.Text),
    _jsonb("installation_details"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("installation_id", name="installations_pkey"),
)

# =========================================================================
# MEDIA, AUDIT AND NOTIFICATIONS
# =========================================================================

media_files = sa.Table(
    "media_files",
    tenant_metadata,
    sa.Column("file_id", sa.Text, nullable=False),
    sa.Column("entity_type", sa.Text, nullable=False),
    sa.Column("entity_id", sa.Text, nullable=False),
    sa.Column("file_category", sa.Text, nullable=False),
    sa.Column("file_subcategory", sa.Text),
    sa.Column("original_filename", sa.Text, nullable=False),
    sa.Column("stored_filename", sa.Text, nullable=False),
    sa.Column("file_path", sa.Text, nullable=False),
    sa.Column("file_size", sa.BigInteger, nullable=False),
    sa.Column("mime_type", sa.Text, nullable=False),
    sa.Column("file_extension", sa.Text, nullable=False),
    sa.Column("width", sa.Integer),
    sa.Column("height", sa.Integer),
    sa.Column("duration", sa.Integer),
    sa.Column("storage_provider", sa.Text, nullable=False, server_default=sa.text("'local'")),
    sa.Column("cdn_url", sa.Text),
    sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.text("false")),
    sa.Column("workflow_stage", sa.Text),
    _jsonb("metadata"),
    _jsonb("tags", default="'[]'"),
    sa.Column("uploaded_by", sa.Text),
    _created_at(),
    _updated_at(),
    _timestamp("deleted_at"),
    sa.PrimaryKeyConstraint("file_id", name="media_files_pkey"),
)

audit_logs = sa.Table(
    "audit_logs",
    tenant_metadata,
    sa.Column("log_id", sa.Text, nullable=False),
    sa.Column("user_id", sa.Text),
    sa.Column("action", sa.Text, nullable=False),
    sa.Column("entity_type", sa.Text),
    sa.Column("entity_id", sa.Text),
    _jsonb("old_values", default=None, nullable=True),
    _jsonb("new_values", default=None, nullable=True),
    _jsonb("details", default=None, nullable=True),
    sa.Column("ip_address", sa.Text),
    sa.Column("user_agent", sa.Text),
    _created_at(),
    sa.PrimaryKeyConstraint("log_id", name="audit_logs_pkey"),
)

notifications = sa.Table(
    "notifications",
    tenant_metadata,
    sa.Column("id", sa.Integer, nullable=False, autoincrement=True),
    sa.Column("notification_id", sa.Text, nullable=False),
    sa.Column("user_id", sa.Text, nullable=False),
    sa.Column("type", sa.Text, nullable=False),
    sa.Column("title", sa.Text, nullable=False),
    sa.Column("message", sa.Text, nullable=False),
    sa.Column("action_label", sa.Text),
    sa.Column("action_url", sa.Text),
    sa.Column("entity_type", sa.Text),
    sa.Column("entity_id", sa.Text),
    _timestamp("read_at"),
    sa.Column("created_by", sa.Text),
    _timestamp("expires_at"),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("id", name="notifications_pkey"),
)

# =========================================================================
# PAYMENTS AND CONFIGURATION
# =========================================================================

payments = sa.Table(
    "payments",
    tenant_metadata,
    sa.Column("payment_id", sa.Text, nullable=False),
    sa.Column("vehicle_id", sa.Text, nullable=False),
    sa.Column("amount", sa.Numeric(10, 2), nullable=False),
    sa.Column("paid_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
    sa.Column("outstanding_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
    sa.Column("payment_method", sa.Text),
    sa.Column("transaction_id", sa.Text),
    sa.Column("reference_number", sa.Text),
    _jsonb("bank_details", nullable=True),
    _timestamp("payment_date"),
    _timestamp("due_date"),
    _status("pending"),
    sa.Column("notes", sa.Text),
    sa.Column("invoice_number", sa.Text),
    sa.Column("workflow_stage", sa.Text),
    sa.Column("created_by", sa.Text),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("payment_id", name="payments_pkey"),
)

system_config = sa.Table(
    "system_config",
    tenant_metadata,
    sa.Column("config_id", sa.Text, nullable=False),
    sa.Column("config_category", sa.Text, nullable=False),
    sa.Column("config_key", sa.Text, nullable=False),
    sa.Column("config_value", postgresql.JSONB, nullable=False),
    sa.Column("description", sa.Text),
    _created_at(),
    _updated_at(),
    sa.PrimaryKeyConstraint("config_id", name="system_config_pkey"),
)

TENANT_TABLES: tuple[sa.Table, ...] = (
    roles,
    role_permissions,
    locations,
    departments,
    users,
    sales_persons,
    vehicles,
    workflows,
    workflow_instances,
    product_categories,
    products,
    installations,
    media_files,
    audit_logs,
    notifications,
    payments,
    system_config,
)

# =========================================================================
# INDEXES
# =========================================================================

TENANT_INDEXES: tuple[sa.Index, ...] = (
    sa.Index("roles_role_name_key", roles.c.role_name, unique=True),
    sa.Index(
        "role_permissions_role_id_resource_action_key",
        role_permissions.c.role_id,
        role_permissions.c.resource,
        role_permissions.c.action,
        unique=True,
    ),
    sa.Index("users_email_key", users.c.email, unique=True),
    sa.Index("sales_persons_user_id_key", sales_persons.c.user_id, unique=True),
    sa.Index("vehicles_car_number_key", vehicles.c.car_number, unique=True),
    sa.Index("idx_vehicles_status", vehicles.c.status),
    sa.Index("idx_vehicles_location", vehicles.c.location_id),
    sa.Index("idx_vehicles_salesperson", vehicles.c.salesperson_id),
    sa.Index(
        "idx_workflow_instances_entity",
        workflow_instances.c.entity_type,
        workflow_instances.c.entity_id,
    ),
    sa.Index("idx_workflow_instances_status", workflow_instances.c.status),
    sa.Index("idx_media_entity", media_files.c.entity_type, media_files.c.entity_id),
    sa.Index(
        "idx_media_category",
        media_files.c.file_category,
        media_files.c.file_subcategory,
    ),
    sa.Index("idx_audit_logs_user", audit_logs.c.user_id, audit_logs.c.created_at),
    sa.Index("idx_audit_logs_entity", audit_logs.c.entity_type, audit_logs.c.entity_id),
    sa.Index("idx_notifications_user_read", notifications.c.user_id, notifications.c.read_at),
    sa.Index("idx_notifications_notification_id", notifications.c.notification_id),
    sa.Index(
        "idx_notifications_entity",
        notifications.c.entity_type,
        notifications.c.entity_id,
    ),
    sa.Index("idx_payments_vehicle", payments.c.vehicle_id),
    sa.Index("idx_payments_status", payments.c.status),
    sa.Index(
        "system_config_config_category_config_key_key",
        system_config.c.config_category,
        system_config.c.config_key,
        unique=True,
    ),
)

# =========================================================================
# FOREIGN KEYS
# =========================================================================


def _foreign_key(
    table: sa.Table,
    column: str,
    target: str,
    on_delete: str = "SET NULL",
) -> sa.ForeignKeyConstraint:
    constraint = sa.ForeignKeyConstraint(
        [column],
        [target],
        name=f"{table.name}_{column}_fkey",
        ondelete=on_delete,
        onupdate="CASCADE",
    )
    table.append_constraint(constraint)
    return constraint


TENANT_FOREIGN_KEYS: tuple[sa.ForeignKeyConstraint, ...] = (
    _foreign_key(role_permissions, "role_id", "roles.role_id", on_delete="CASCADE"),
    _foreign_key(departments, "head_user_id", "users.user_id"),
    _foreign_key(users, "role_id", "roles.role_id", on_delete="RESTRICT"),
    _foreign_key(users, "department_id", "departments.department_id"),
    _foreign_key(users, "location_id", "locations.location_id"),
    _foreign_key(sales_persons, "user_id", "users.user_id", on_delete="CASCADE"),
    _foreign_key(sales_persons, "manager_id", "users.user_id"),
    _foreign_key(vehicles, "location_id", "locations.location_id"),
    _foreign_key(vehicles, "salesperson_id", "users.user_id"),
    _foreign_key(vehicles, "coordinator_id", "users.user_id"),
    _foreign_key(vehicles, "supervisor_id", "users.user_id"),
    _foreign_key(vehicles, "created_by", "users.user_id"),
    _foreign_key(workflow_instances, "workflow_id", "workflows.workflow_id"),
    _foreign_key(workflow_instances, "assigned_to", "users.user_id"),
    _foreign_key(workflow_instances, "entity_id", "vehicles.vehicle_id", on_delete="CASCADE"),
    _foreign_key(product_categories, "parent_category_id", "product_categories.category_id"),
    _foreign_key(products, "category_id", "product_categories.category_id"),
    _foreign_key(installations, "vehicle_id", "vehicles.vehicle_id"),
    _foreign_key(installations, "product_id", "products.product_id"),
    _foreign_key(installations, "installer_id", "users.user_id"),
    _foreign_key(installations, "quality_checked_by", "users.user_id"),
    _foreign_key(media_files, "uploaded_by", "users.user_id"),
    _foreign_key(media_files, "entity_id", "vehicles.vehicle_id", on_delete="CASCADE"),
    _foreign_key(audit_logs, "user_id", "users.user_id"),
    _foreign_key(notifications, "user_id", "users.user_id", on_delete="CASCADE"),
    _foreign_key(notifications, "created_by", "users.user_id"),
    _foreign_key(payments, "vehicle_id", "vehicles.vehicle_id", on_delete="CASCADE"),
    _foreign_key(payments, "created_by", "users.user_id"),
)


@dataclass(frozen=True)
class SchemaStep:
    """A single DDL statement of the tenant schema.

    Attributes:
        kind: One of "table", "index" or "foreign_key".
        name: Name of the table, index or constraint created by the step.
        statement: Executable DDL element.
    """

    kind: str
    name: str
    statement: DDLElement

    def __str__(self) -> str:
        return str(self.statement.compile(dialect=postgresql.dialect()))


def build_schema_steps() -> list[SchemaStep]:
    """Build the ordered DDL steps that create a tenant database schema.

    Returns:
        Table steps, then index steps, then foreign key steps.
    """
    steps = [
        SchemaStep(
            kind="table",
            name=table.name,
            statement=CreateTable(table, include_foreign_key_constraints=[]),
        )
        for table in TENANT_TABLES
    ]
    steps.extend(
        SchemaStep(kind="index", name=index.name, statement=CreateIndex(index))
        for index in TENANT_INDEXES
    )
    steps.extend(
        SchemaStep(kind="foreign_key", name=fk.name, statement=AddConstraint(fk))
        for fk in TENANT_FOREIGN_KEYS
    )
    return steps
