"""Authorization engine.

Resolves a role's grants against the permission registry and, for
instance-level requests, the resource ownership resolver. Every fault on
the decision path resolves to a denial.
"""

from __future__ import annotations

import logging
from typing import Iterable

from packages.audit.models import AuditRecord
from packages.audit.sinks import AuditSink, emit
from packages.authz.exceptions import ConfigurationFault
from packages.authz.models import (
    ActorContext,
    AuthorizationDecision,
    DecisionFault,
    PermissionRequest,
)
from packages.authz.registry import PermissionRegistry
from packages.authz.resources import ResourceOwnershipResolver

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("rbac.security")


class AuthzEngine:
    """Role-based authorization engine with tenant-scoped resource checks.

    Evaluation order:
    1. Superuser role is granted immediately
    2. Unknown role is denied
    3. Non-superuser role carrying the global flag is denied
    4. Module/action match, including wildcards
    5. Inherited roles, each visited at most once
    6. Resource ownership check, only once module access is granted

    Usage:
        engine = AuthzEngine(registry, ResourceOwnershipResolver.with_defaults(store))

        if await engine.has_permission(ctx, PermissionRequest(module="clients", action="view")):
            # Proceed
    """

    def __init__(
        self,
        registry: PermissionRegistry,
        resolver: ResourceOwnershipResolver,
        audit_sink: AuditSink | None = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.audit_sink = audit_sink

        logger.info(
            "AuthzEngine initialized: registry=%s roles=%d resource_modules=%s",
            registry.version,
            len(registry),
            ",".join(resolver.modules) or "-",
        )

    @property
    def superuser_role(self) -> str:
        return self.registry.superuser_role

    def role_permissions(self, role: str) -> list[PermissionRequest]:
        """Module/action pairs declared directly on a role."""
        return self.registry.role_permissions(role)

    def module_access(self, role: str, request: PermissionRequest) -> AuthorizationDecision:
        """Module-level decision for a role, following inheritance."""
        return self._module_access(role, request, set())

    def _module_access(
        self,
        role: str,
        request: PermissionRequest,
        visited: set[str],
    ) -> AuthorizationDecision:
        if role in visited:
            security_logger.warning(
                "Inheritance cycle through role %s while checking %s", role, request.key
            )
            return AuthorizationDecision.deny(
                request,
                f"Role {role} already visited",
                fault=DecisionFault.INHERITANCE_CYCLE,
            )
        visited.add(role)

        if role == self.superuser_role:
            return AuthorizationDecision.allow(request, "Superuser", matched_role=role)

        definition = self.registry.get(role)
        if definition is None:
            return AuthorizationDecision.deny(
                request, f"Unknown role: {role}", fault=DecisionFault.UNKNOWN_ROLE
            )

        if definition.global_access:
            fault = ConfigurationFault(role, f"global access is reserved for {self.superuser_role}")
            security_logger.warning("%s; denying %s", fault.message, request.key)
            return AuthorizationDecision.deny(
                request, fault.message, fault=DecisionFault.CONFIGURATION
            )

        if definition.allows(request.module, request.action):
            return AuthorizationDecision.allow(
                request, f"Granted by role: {role}", matched_role=role
            )

        for parent in definition.inherits:
            inherited = self._module_access(parent, request, visited)
            if inherited.granted:
                return inherited

        return AuthorizationDecision.deny(request, f"Role {role} has no grant for {request.key}")

    async def _evaluate(self, ctx: ActorContext, request: PermissionRequest) -> AuthorizationDecision:
        if ctx.role == self.superuser_role:
            return AuthorizationDecision.allow(request, "Superuser", matched_role=ctx.role)

        module_decision = self.module_access(ctx.role, request)
        if not module_decision.granted or not request.has_resource:
            return module_decision

        # Inherited grants still resolve ownership against the actor's own context
        resource_decision = await self.resolver.resolve(ctx, request)
        return resource_decision.model_copy(
            update={"matched_role": module_decision.matched_role}
        )

    async def check(self, ctx: ActorContext, request: PermissionRequest) -> AuthorizationDecision:
        """Evaluate a request and return the full decision.

        Never raises; unexpected errors produce a denial.
        """
        try:
            decision = await self._evaluate(ctx, request)
        except Exception:
            logger.exception(
                "Authorization check failed, denying: user=%s role=%s permission=%s",
                ctx.user_id,
                ctx.role,
                request.key,
            )
            decision = AuthorizationDecision.deny(
                request, "Internal authorization error", fault=DecisionFault.INTERNAL
            )

        if decision.granted:
            logger.debug(
                "Access GRANTED: user=%s tenant=%s role=%s permission=%s resource=%s",
                ctx.user_id, ctx.tenant_id, ctx.role, request.key, request.resource_id,
            )
        else:
            logger.info(
                "Access DENIED: user=%s tenant=%s role=%s permission=%s resource=%s reason=%s",
                ctx.user_id, ctx.tenant_id, ctx.role, request.key, request.resource_id,
                decision.reason,
            )

        await emit(self.audit_sink, AuditRecord.from_decision(ctx, decision))
        return decision

    async def has_permission(self, ctx: ActorContext, request: PermissionRequest) -> bool:
        """True iff ``ctx`` may perform ``request``."""
        decision = await self.check(ctx, request)
        return decision.granted

    async def has_all_permissions(
        self, ctx: ActorContext, requests: Iterable[PermissionRequest]
    ) -> bool:
        """True iff every request is granted; stops at the first denial."""
        for request in requests:
            if not await self.has_permission(ctx, request):
                return False
        return True

    async def has_any_permission(
        self, ctx: ActorContext, requests: Iterable[PermissionRequest]
    ) -> bool:
        """True on the first granted request; False if none is granted."""
        for request in requests:
            if await self.has_permission(ctx, request):
                return True
        return False


# Singleton instance
_authz_engine: AuthzEngine | None = None


def get_authz_engine() -> AuthzEngine:
    """Get the process-wide engine, building it from settings on first use."""
    global _authz_engine
    if _authz_engine is None:
        from packages.authz.config import AuthzSettings, build_authz_engine

        _authz_engine = build_authz_engine(AuthzSettings())
    return _authz_engine


def configure_authz_engine(engine: AuthzEngine) -> AuthzEngine:
    """Install an explicitly built engine as the process-wide instance."""
    global _authz_engine
    _authz_engine = engine
    return engine


def reset_authz_engine() -> None:
    """Drop the process-wide engine so the next lookup rebuilds it."""
    global _authz_engine
    _authz_engine = None
