"""Resource ownership checks.

One checker per module decides whether a specific resource instance is
visible to the actor's tenant. The resolver dispatches on module name and
turns any checker failure into a denial.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Protocol

from packages.authz.exceptions import StoreFault
from packages.authz.models import (
    ActorContext,
    AuthorizationDecision,
    DecisionFault,
    Module,
    PermissionRequest,
    RoleId,
)
from packages.authz.store import TenantStore

logger = logging.getLogger(__name__)


class ResourceOwnershipChecker(Protocol):
    """Decides whether ``resource_id`` belongs to the actor's tenant."""

    async def check(self, ctx: ActorContext, resource_id: str | int) -> bool:
        ...


def _numeric_id(resource_id: str | int) -> int:
    """Coerce a resource id to int; malformed ids raise ValueError."""
    if isinstance(resource_id, bool):
        raise ValueError("boolean is not a resource id")
    return int(resource_id)


class ClientOwnershipChecker:
    """Client must be owned by the actor's tenant."""

    def __init__(self, store: TenantStore):
        self.store = store

    async def check(self, ctx: ActorContext, resource_id: str | int) -> bool:
        return await self.store.client_exists(_numeric_id(resource_id), ctx.tenant_id)


class DocumentOwnershipChecker:
    """Document's client must be owned by the actor's tenant."""

    def __init__(self, store: TenantStore):
        self.store = store

    async def check(self, ctx: ActorContext, resource_id: str | int) -> bool:
        return await self.store.document_exists(_numeric_id(resource_id), ctx.tenant_id)


class FilingOwnershipChecker:
    """Filing's client must be owned by the actor's tenant."""

    def __init__(self, store: TenantStore):
        self.store = store

    async def check(self, ctx: ActorContext, resource_id: str | int) -> bool:
        return await self.store.filing_exists(_numeric_id(resource_id), ctx.tenant_id)


class ServiceOwnershipChecker:
    """Service type must be defined by the actor's tenant."""

    def __init__(self, store: TenantStore):
        self.store = store

    async def check(self, ctx: ActorContext, resource_id: str | int) -> bool:
        return await self.store.service_exists(_numeric_id(resource_id), ctx.tenant_id)


class UserOwnershipChecker:
    """Users may act on themselves; managers may act on users of their tenant.

    The self-service branch is only reachable once the role already holds
    module-level access to ``users`` for the requested action.
    """

    def __init__(self, store: TenantStore, manager_roles: Iterable[str] = (RoleId.FIRM_ADMIN.value,)):
        self.store = store
        self.manager_roles = frozenset(manager_roles)

    async def check(self, ctx: ActorContext, resource_id: str | int) -> bool:
        if str(resource_id) == ctx.user_id:
            return True

        if ctx.role not in self.manager_roles:
            return False

        return await self.store.is_member(str(resource_id), ctx.tenant_id)


class ResourceOwnershipResolver:
    """Dispatches resource-level checks to per-module checkers.

    Modules without a registered checker carry no constraint beyond
    module-level access and resolve to granted.

    Usage:
        resolver = ResourceOwnershipResolver.with_defaults(store)
        resolver.register("invoices", InvoiceOwnershipChecker(store))
        decision = await resolver.resolve(ctx, request)
    """

    def __init__(
        self,
        checkers: Mapping[str, ResourceOwnershipChecker] | None = None,
        superuser_role: str = RoleId.SUPER_ADMIN.value,
    ):
        self._checkers: dict[str, ResourceOwnershipChecker] = dict(checkers or {})
        self.superuser_role = superuser_role

    @classmethod
    def with_defaults(
        cls,
        store: TenantStore,
        manager_roles: Iterable[str] = (RoleId.FIRM_ADMIN.value,),
        superuser_role: str = RoleId.SUPER_ADMIN.value,
    ) -> "ResourceOwnershipResolver":
        """Resolver with the standard client/document/filing/service/user checkers."""
        return cls(
            {
                Module.CLIENTS.value: ClientOwnershipChecker(store),
                Module.DOCUMENTS.value: DocumentOwnershipChecker(store),
                Module.FILINGS.value: FilingOwnershipChecker(store),
                Module.SERVICES.value: ServiceOwnershipChecker(store),
                Module.USERS.value: UserOwnershipChecker(store, manager_roles),
            },
            superuser_role=superuser_role,
        )

    def register(self, module: str, checker: ResourceOwnershipChecker) -> None:
        """Attach a checker for a module (done during wiring, not per request)."""
        self._checkers[str(getattr(module, "value", module))] = checker
        logger.debug("Registered resource checker for module: %s", module)

    def checker_for(self, module: str) -> ResourceOwnershipChecker | None:
        return self._checkers.get(module)

    @property
    def modules(self) -> tuple[str, ...]:
        return tuple(self._checkers)

    async def resolve(self, ctx: ActorContext, request: PermissionRequest) -> AuthorizationDecision:
        """Resource-level decision for a request that already has module access."""
        if not request.has_resource:
            return AuthorizationDecision.allow(request, "No resource constraint")

        if ctx.role == self.superuser_role:
            return AuthorizationDecision.allow(request, "Superuser bypasses tenant scoping")

        checker = self._checkers.get(request.module)
        if checker is None:
            return AuthorizationDecision.allow(
                request, f"No resource checker for module {request.module}"
            )

        try:
            owned = await checker.check(ctx, request.resource_id)
        except Exception as e:
            fault = StoreFault(f"{request.module} ownership lookup", e)
            logger.error(
                "Resource check failed, denying: user=%s tenant=%s module=%s resource=%s error=%s",
                ctx.user_id,
                ctx.tenant_id,
                request.module,
                request.resource_id,
                fault.message,
            )
            return AuthorizationDecision.deny(request, fault.message, fault=DecisionFault.STORE)

        if owned:
            return AuthorizationDecision.allow(
                request, f"Resource {request.resource_id} is in tenant {ctx.tenant_id}"
            )
        return AuthorizationDecision.deny(
            request, f"Resource {request.resource_id} is not accessible from tenant {ctx.tenant_id}"
        )
