"""Multi-tenant RBAC authorization package.

Decides whether an authenticated actor may perform an action on a module,
optionally narrowed to a single tenant-owned resource. Fail-secure: any
unknown role, misconfiguration or store failure resolves to denied.

Usage:
    from packages.authz import ActorContext, PermissionRequest, get_authz_engine

    engine = get_authz_engine()
    ctx = ActorContext(user_id="u1", tenant_id=7, role="FirmAdmin")

    if await engine.has_permission(ctx, PermissionRequest(module="clients", action="view")):
        # Allowed
        pass
"""

from packages.authz.models import (
    WILDCARD,
    Action,
    ActorContext,
    AuthorizationDecision,
    DecisionFault,
    Module,
    PermissionRequest,
    RoleDefinition,
    RoleId,
)
from packages.authz.exceptions import (
    AuthorizationError,
    ConfigurationFault,
    RegistryLoadError,
    StoreFault,
    TenantAccessError,
)
from packages.authz.registry import (
    DEFAULT_PERMISSION_MATRIX,
    PermissionRegistry,
    get_permission_registry,
    reload_permission_registry,
)
from packages.authz.store import InMemoryTenantStore, SqlAlchemyTenantStore, TenantMembership, TenantStore
from packages.authz.resources import ResourceOwnershipChecker, ResourceOwnershipResolver
from packages.authz.membership import TenantMembershipValidator
from packages.authz.engine import (
    AuthzEngine,
    configure_authz_engine,
    get_authz_engine,
    reset_authz_engine,
)
from packages.authz.guard import (
    assert_permission,
    authorization_error_handler,
    permission_dependency,
    require_permission,
    require_tenant_access,
)

__all__ = [
    "WILDCARD",
    "Action",
    "ActorContext",
    "AuthorizationDecision",
    "DecisionFault",
    "Module",
    "PermissionRequest",
    "RoleDefinition",
    "RoleId",
    "AuthorizationError",
    "ConfigurationFault",
    "RegistryLoadError",
    "StoreFault",
    "TenantAccessError",
    "DEFAULT_PERMISSION_MATRIX",
    "PermissionRegistry",
    "get_permission_registry",
    "reload_permission_registry",
    "InMemoryTenantStore",
    "SqlAlchemyTenantStore",
    "TenantMembership",
    "TenantStore",
    "ResourceOwnershipChecker",
    "ResourceOwnershipResolver",
    "TenantMembershipValidator",
    "AuthzEngine",
    "configure_authz_engine",
    "get_authz_engine",
    "reset_authz_engine",
    "assert_permission",
    "authorization_error_handler",
    "permission_dependency",
    "require_permission",
    "require_tenant_access",
]
