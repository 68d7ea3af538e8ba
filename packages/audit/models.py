"""Audit data models.

One append-only record per authorization or tenant-access decision.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from packages.authz.models import ActorContext, AuthorizationDecision, PermissionRequest


class AuditEventType(str, Enum):
    """Types of auditable decisions."""

    AUTHZ_GRANTED = "authz_granted"
    AUTHZ_DENIED = "authz_denied"
    TENANT_ACCESS_GRANTED = "tenant_access_granted"
    TENANT_ACCESS_DENIED = "tenant_access_denied"
    CONFIGURATION_FAULT = "configuration_fault"


class AuditRecord(BaseModel):
    """Structured record of a single decision.

    Records are never updated after creation; sinks only append them.
    """

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this record",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the decision was made",
    )
    event_type: AuditEventType = Field(description="Kind of decision")

    # Actor
    user_id: str = Field(description="Actor the decision was made for")
    tenant_id: int = Field(description="Tenant the actor acted within")
    role: str | None = Field(default=None, description="Actor role at decision time")

    # Request
    module: str | None = Field(default=None)
    action: str | None = Field(default=None)
    resource_id: str | int | None = Field(default=None)

    # Outcome
    granted: bool = Field(description="Whether access was granted")
    reason: str = Field(default="", description="Explanation of the decision")
    fault: str | None = Field(default=None, description="Fault that forced a denial")
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_permission(
        cls,
        ctx: ActorContext,
        request: PermissionRequest | AuthorizationDecision,
        granted: bool,
        **extra: Any,
    ) -> "AuditRecord":
        """Record for a module/action check."""
        return cls(
            event_type=AuditEventType.AUTHZ_GRANTED if granted else AuditEventType.AUTHZ_DENIED,
            user_id=ctx.user_id,
            tenant_id=ctx.tenant_id,
            role=ctx.role,
            module=request.module,
            action=request.action,
            resource_id=request.resource_id,
            granted=granted,
            **extra,
        )

    @classmethod
    def from_decision(cls, ctx: ActorContext, decision: AuthorizationDecision) -> "AuditRecord":
        """Record for a decision produced by the engine (decision carries the request)."""
        fault = decision.fault.value if decision.fault else None
        record = cls.for_permission(
            ctx,
            decision,
            decision.granted,
            reason=decision.reason,
            fault=fault,
            details={"matched_role": decision.matched_role} if decision.matched_role else {},
        )
        if fault == "configuration":
            return record.model_copy(update={"event_type": AuditEventType.CONFIGURATION_FAULT})
        return record

    @classmethod
    def for_tenant_access(
        cls,
        user_id: str,
        requested_tenant_id: int,
        granted: bool,
        role: str | None = None,
        actual_tenant_id: int | None = None,
        reason: str = "",
        fault: str | None = None,
    ) -> "AuditRecord":
        """Record for a tenant membership validation."""
        cross_tenant = actual_tenant_id is not None and actual_tenant_id != requested_tenant_id
        return cls(
            event_type=(
                AuditEventType.TENANT_ACCESS_GRANTED if granted
                else AuditEventType.TENANT_ACCESS_DENIED
            ),
            user_id=user_id,
            tenant_id=requested_tenant_id,
            role=role,
            granted=granted,
            reason=reason,
            fault=fault,
            details={
                "actual_tenant_id": actual_tenant_id,
                "cross_tenant_attempt": cross_tenant,
            },
        )

    def to_log_fields(self) -> dict[str, Any]:
        """Flat, JSON-safe view used by logging sinks."""
        return self.model_dump(mode="json", exclude_none=True)
