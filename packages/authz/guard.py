"""Decision guard.

Turns a denied decision into a raised AuthorizationError for call sites
that must fail loudly, and exposes the same check as a FastAPI dependency.
The tenant guard does the same for tenant membership.
"""

import logging
from typing import Awaitable, Callable, Iterable

from packages.audit.models import AuditRecord
from packages.audit.sinks import emit
from packages.authz.engine import AuthzEngine, get_authz_engine
from packages.authz.exceptions import AuthorizationError, TenantAccessError
from packages.authz.membership import TenantMembershipValidator
from packages.authz.models import ActorContext, PermissionRequest

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("rbac.security")

Guard = Callable[[ActorContext], Awaitable[None]]
TenantGuard = Callable[..., Awaitable[None]]


async def assert_permission(
    engine: AuthzEngine,
    ctx: ActorContext,
    request: PermissionRequest,
) -> None:
    """Raise AuthorizationError unless ``ctx`` may perform ``request``."""
    if not await engine.has_permission(ctx, request):
        raise AuthorizationError(request.module, request.action, request.resource_id)


def require_permission(request: PermissionRequest, engine: AuthzEngine | None = None) -> Guard:
    """Build a guard for one permission.

    Usage:
        guard = require_permission(PermissionRequest(module="filings", action="submit"))
        await guard(ctx)  # raises AuthorizationError when denied
    """

    async def guard(ctx: ActorContext) -> None:
        await assert_permission(engine or get_authz_engine(), ctx, request)

    return guard


def require_tenant_access(
    validator: TenantMembershipValidator,
    allowed_roles: Iterable[str] = (),
) -> TenantGuard:
    """Build a guard requiring membership of a tenant, optionally limited to roles.

    The guard checks ``target_tenant_id`` when given, otherwise the actor's
    own tenant. The superuser role passes without a lookup or role check.

    Usage:
        guard = require_tenant_access(validator, allowed_roles=["FirmAdmin"])
        await guard(ctx, target_tenant_id=9)  # raises TenantAccessError when denied
    """
    allowed = frozenset(getattr(role, "value", role) for role in allowed_roles)

    async def guard(ctx: ActorContext, target_tenant_id: int | None = None) -> None:
        tenant_id = ctx.tenant_id if target_tenant_id is None else target_tenant_id

        if ctx.role == validator.superuser_role:
            return

        # Denials here are audited by the validator
        if not await validator.validate_tenant_access(ctx.user_id, tenant_id):
            raise TenantAccessError(tenant_id, "tenant")

        if allowed and ctx.role not in allowed:
            security_logger.warning(
                "Tenant access denied by role restriction: user=%s tenant=%s role=%s",
                ctx.user_id,
                tenant_id,
                ctx.role,
            )
            await emit(
                validator.audit_sink,
                AuditRecord.for_tenant_access(
                    ctx.user_id,
                    tenant_id,
                    False,
                    role=ctx.role,
                    reason=f"Role {ctx.role} not allowed",
                ),
            )
            raise TenantAccessError(tenant_id, "role")

    return guard


# FastAPI integration
def permission_dependency(
    module: str,
    action: str,
    resource_param: str | None = None,
    engine: AuthzEngine | None = None,
):
    """FastAPI dependency requiring ``module.action``.

    The authentication layer must have stored an ActorContext on
    ``request.state.actor``. ``resource_param`` names a path parameter
    whose value becomes the resource id; a route without that parameter
    is denied rather than checked module-wide.

    Usage:
        @app.get("/clients/{client_id}")
        async def get_client(
            client_id: int,
            actor: ActorContext = Depends(permission_dependency("clients", "view", "client_id")),
        ):
            pass
    """
    from fastapi import HTTPException, Request, status

    def forbidden(permission_key: str, code: str = "forbidden") -> HTTPException:
        # Internal fault detail stays in logs and audit, never in the response
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": code,
                "message": "Insufficient permissions",
                "permission": permission_key,
            },
        )

    async def check(request: Request) -> ActorContext:
        ctx = getattr(request.state, "actor", None)
        if not isinstance(ctx, ActorContext):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "unauthenticated", "message": "Authentication required"},
            )

        resource_id = None
        if resource_param:
            if resource_param not in request.path_params:
                logger.error(
                    "Route %s has no path parameter %r for %s.%s; denying",
                    request.url.path,
                    resource_param,
                    module,
                    action,
                )
                raise forbidden(f"{module}.{action}")
            resource_id = request.path_params[resource_param]

        permission = PermissionRequest(module=module, action=action, resource_id=resource_id)

        try:
            await require_permission(permission, engine)(ctx)
        except AuthorizationError as e:
            raise forbidden(permission.key, e.code) from e

        return ctx

    return check


def authorization_error_handler(request, exc: AuthorizationError):
    """FastAPI exception handler mapping AuthorizationError to 403.

    Usage:
        app.add_exception_handler(AuthorizationError, authorization_error_handler)
    """
    from fastapi import status
    from fastapi.responses import JSONResponse

    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "error": exc.code,
            "message": "Insufficient permissions",
            "permission": f"{exc.module}.{exc.action}",
        },
    )
