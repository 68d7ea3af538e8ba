"""Authorization errors and internal fault values.

Only AuthorizationError, TenantAccessError and RegistryLoadError are ever
raised to callers. ConfigurationFault and StoreFault describe why a decision
was denied; the engine routes them to logs and the audit sink and returns
False instead.
"""

from __future__ import annotations


class RBACError(Exception):
    """Base class for authorization package errors."""

    def __init__(self, message: str, code: str = "rbac_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class AuthorizationError(RBACError):
    """Raised by the decision guard when a required permission is denied."""

    def __init__(
        self,
        module: str,
        action: str,
        resource_id: str | int | None = None,
    ):
        self.module = module
        self.action = action
        self.resource_id = resource_id
        super().__init__(
            f"Access denied: insufficient permissions for {module}.{action}",
            "forbidden",
        )


class TenantAccessError(RBACError):
    """Raised by the tenant guard when an actor may not act within a tenant."""

    def __init__(self, tenant_id: int, reason: str = "tenant"):
        self.tenant_id = tenant_id
        self.reason = reason
        super().__init__(
            f"Access denied: insufficient {reason} permissions",
            "tenant_forbidden",
        )


class RegistryLoadError(RBACError):
    """Raised when a permission registry definition cannot be loaded."""

    def __init__(self, reason: str):
        super().__init__(f"Invalid permission registry: {reason}", "registry_invalid")


class ConfigurationFault(RBACError):
    """A role definition violates a registry invariant."""

    def __init__(self, role: str, reason: str):
        self.role = role
        super().__init__(f"Role {role!r} misconfigured: {reason}", "configuration_fault")


class StoreFault(RBACError):
    """The tenant store failed while answering an ownership or membership query."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {type(cause).__name__}" if cause is not None else ""
        super().__init__(f"Store query failed during {operation}{detail}", "store_fault")
