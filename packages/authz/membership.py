"""Tenant membership validation.

Answers "may this user act within this tenant at all", independent of any
module permission. Store failures resolve to False.
"""

from __future__ import annotations

import logging

from packages.audit.models import AuditRecord
from packages.audit.sinks import AuditSink, emit
from packages.authz.exceptions import StoreFault
from packages.authz.models import RoleId
from packages.authz.store import TenantMembership, TenantStore

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("rbac.security")


class TenantMembershipValidator:
    """Validates that a user belongs to a tenant (or holds the superuser role).

    Usage:
        validator = TenantMembershipValidator(store)
        if not await validator.validate_tenant_access("user-1", 7):
            ...
    """

    def __init__(
        self,
        store: TenantStore,
        superuser_role: str = RoleId.SUPER_ADMIN.value,
        audit_sink: AuditSink | None = None,
    ):
        self.store = store
        self.superuser_role = superuser_role
        self.audit_sink = audit_sink

    async def get_user_tenant_info(self, user_id: str) -> TenantMembership | None:
        """The user's primary membership, or None if absent or unavailable."""
        try:
            return await self.store.get_membership(user_id)
        except Exception as e:
            logger.error(
                "Membership lookup failed: user=%s error=%s",
                user_id,
                StoreFault("membership lookup", e).message,
            )
            return None

    async def validate_tenant_access(self, user_id: str, tenant_id: int) -> bool:
        """True iff the user is a superuser or a member of ``tenant_id``."""
        try:
            membership = await self.store.get_membership(user_id)
            if membership is not None and membership.role == self.superuser_role:
                await self._audit(user_id, tenant_id, True, membership, "Superuser")
                return True

            is_member = await self.store.is_member(user_id, tenant_id)
        except Exception as e:
            fault = StoreFault("tenant membership check", e)
            logger.error(
                "Tenant access check failed, denying: user=%s tenant=%s error=%s",
                user_id,
                tenant_id,
                fault.message,
            )
            await emit(
                self.audit_sink,
                AuditRecord.for_tenant_access(
                    user_id, tenant_id, False, reason=fault.message, fault="store"
                ),
            )
            return False

        if is_member:
            await self._audit(user_id, tenant_id, True, membership, "Member of tenant")
            return True

        await self._audit(user_id, tenant_id, False, membership, "Not a member of tenant")
        return False

    async def _audit(
        self,
        user_id: str,
        tenant_id: int,
        granted: bool,
        membership: TenantMembership | None,
        reason: str,
    ) -> None:
        actual_tenant = membership.tenant_id if membership else None
        if not granted and actual_tenant is not None and actual_tenant != tenant_id:
            security_logger.warning(
                "Cross-tenant access attempt: user=%s requested_tenant=%s actual_tenant=%s",
                user_id,
                tenant_id,
                actual_tenant,
            )

        await emit(
            self.audit_sink,
            AuditRecord.for_tenant_access(
                user_id,
                tenant_id,
                granted,
                role=membership.role if membership else None,
                actual_tenant_id=actual_tenant,
                reason=reason,
            ),
        )
