"""Authorization configuration via pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from packages.audit.sinks import AuditSink, BackgroundAuditSink, FileAuditSink, LoggingAuditSink
from packages.authz.engine import AuthzEngine
from packages.authz.membership import TenantMembershipValidator
from packages.authz.models import RoleId
from packages.authz.registry import PermissionRegistry
from packages.authz.resources import ResourceOwnershipResolver
from packages.authz.store import InMemoryTenantStore, SqlAlchemyTenantStore, TenantStore


class AuthzSettings(BaseSettings):
    """Authorization settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Registry (None = shipped permission matrix); a registry file's own
    # superuser_role takes precedence over the setting below
    registry_path: str | None = None
    superuser_role: str = RoleId.SUPER_ADMIN.value

    # Roles allowed to manage other users of their tenant
    user_manager_roles: list[str] = [RoleId.FIRM_ADMIN.value]

    # Store
    database_url: str | None = None

    # === AUDIT SETTINGS ===
    audit_enabled: bool = True
    audit_storage_type: Literal["log", "file"] = "log"
    audit_storage_path: str = "data/audit"
    audit_background: bool = False

    def load_registry(self) -> PermissionRegistry:
        if self.registry_path:
            return PermissionRegistry.from_yaml(self.registry_path)
        registry = PermissionRegistry.default()
        if registry.superuser_role != self.superuser_role:
            return PermissionRegistry(
                {role: registry.get(role) for role in registry},
                superuser_role=self.superuser_role,
                version=registry.version,
            )
        return registry

    def build_audit_sink(self) -> AuditSink | None:
        if not self.audit_enabled:
            return None
        if self.audit_storage_type == "file":
            sink: AuditSink = FileAuditSink(self.audit_storage_path)
        else:
            sink = LoggingAuditSink()
        if self.audit_background:
            sink = BackgroundAuditSink(sink)
        return sink

    def build_store(self) -> TenantStore:
        if self.database_url:
            from sqlalchemy.ext.asyncio import create_async_engine

            return SqlAlchemyTenantStore.from_engine(create_async_engine(self.database_url))
        # No database configured: every ownership and membership lookup misses
        return InMemoryTenantStore()


def build_authz_engine(
    settings: AuthzSettings,
    store: TenantStore | None = None,
    audit_sink: AuditSink | None = None,
) -> AuthzEngine:
    """Wire registry, resolver and audit sink into an engine."""
    registry = settings.load_registry()
    resolver = ResourceOwnershipResolver.with_defaults(
        store if store is not None else settings.build_store(),
        manager_roles=settings.user_manager_roles,
        superuser_role=registry.superuser_role,
    )
    return AuthzEngine(
        registry,
        resolver,
        audit_sink=audit_sink if audit_sink is not None else settings.build_audit_sink(),
    )


def build_membership_validator(
    settings: AuthzSettings,
    store: TenantStore | None = None,
    audit_sink: AuditSink | None = None,
) -> TenantMembershipValidator:
    """Validator sharing the engine's store and superuser role."""
    return TenantMembershipValidator(
        store if store is not None else settings.build_store(),
        superuser_role=settings.load_registry().superuser_role,
        audit_sink=audit_sink if audit_sink is not None else settings.build_audit_sink(),
    )
