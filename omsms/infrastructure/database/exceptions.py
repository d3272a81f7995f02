# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant gateway exceptions.

Every failure surfaced by the gateway is a TenantGatewayError subclass so that
callers can tell a bad tenant identity (client error) from an infrastructure
problem (server error) without matching on messages:

- TenantNotFoundError: no tenant matches the routing key (client)
- TenantSuspendedError: tenant exists but is not active (client)
- TenantAlreadyExistsError: signup for a subdomain that is taken (client)
- TenantConnectionError: tenant or registry database unreachable (server)
- TenantProvisioningError: schema or seed application failed (server)
"""


class TenantGatewayError(Exception):
    """Base exception for tenant gateway operations.

    Attributes:
        subdomain: The tenant routing key involved in the failure.
        is_client_error: True when the caller supplied a bad tenant identity.
    """

    is_client_error: bool = False

    def __init__(self, subdomain: str, message: str) -> None:
        """Initialize the error.

        Args:
            subdomain: The tenant routing key.
            message: Human-readable error description.
        """
        super().__init__(message)
        self.subdomain = subdomain


class TenantNotFoundError(TenantGatewayError):
    """Raised when no tenant is registered for a routing key."""

    is_client_error = True

    def __init__(self, subdomain: str) -> None:
        super().__init__(subdomain, f"Tenant not found: {subdomain}")


class TenantSuspendedError(TenantGatewayError):
    """Raised when a tenant exists but is not active.

    Attributes:
        status: The tenant's current status (inactive or suspended).
    """

    is_client_error = True

    def __init__(self, subdomain: str, status: str) -> None:
        super().__init__(subdomain, f"Tenant is not active: {subdomain} (status={status})")
        self.status = status


class TenantAlreadyExistsError(TenantGatewayError):
    """Raised when provisioning a subdomain that is already registered."""

    is_client_error = True

    def __init__(self, subdomain: str) -> None:
        super().__init__(subdomain, f"Tenant with subdomain '{subdomain}' already exists")


class TenantConnectionError(TenantGatewayError):
    """Raised when a database needed to serve a tenant cannot be reached.

    Attributes:
        cause: The underlying exception (driver error or timeout).
    """

    def __init__(self, subdomain: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(subdomain, f"Failed to connect to tenant database: {subdomain}{detail}")
        self.cause = cause


class TenantProvisioningError(TenantGatewayError):
    """Raised when tenant database provisioning fails.

    Attributes:
        database_name: The physical database that was being provisioned.
        reason: Short description of the failed step.
        cause: The underlying exception.
    """

    def __init__(
        self,
        subdomain: str,
        reason: str,
        database_name: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(subdomain, f"Failed to provision tenant {subdomain}: {reason}")
        self.database_name = database_name
        self.reason = reason
        self.cause = cause
