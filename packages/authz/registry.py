"""Permission registry.

Immutable role -> module -> actions mapping, loaded once at startup from
the shipped matrix or a versioned YAML definition. There is no mutation
API: a reload builds a new registry and swaps the module-level reference.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import yaml
from pydantic import ValidationError

from packages.authz.exceptions import RegistryLoadError
from packages.authz.models import PermissionRequest, RoleDefinition, RoleId, WILDCARD

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_VERSION = "2024.1"

ROLE_DESCRIPTIONS: dict[str, str] = {
    RoleId.SUPER_ADMIN.value: "Full system access across all tenants",
    RoleId.FIRM_ADMIN.value: "Full access within tenant, can manage users and settings",
    RoleId.COMPLIANCE_MANAGER.value: "Manage compliance, filings, and client oversight",
    RoleId.COMPLIANCE_OFFICER.value: "Handle client filings and document review",
    RoleId.DOCUMENT_OFFICER.value: "Manage document uploads and organization",
    RoleId.FILING_CLERK.value: "Prepare and submit filings",
    RoleId.CLIENT_PORTAL_USER.value: "Client portal access for end users",
    RoleId.VIEWER.value: "Read-only access to client information",
}

# Plain-data form, identical in shape to the YAML definition's ``roles`` key
DEFAULT_PERMISSION_MATRIX: dict[str, dict[str, Any]] = {
    "SuperAdmin": {
        "global": True,
        "modules": {WILDCARD: [WILDCARD]},
    },
    "FirmAdmin": {
        "modules": {
            "clients": ["view", "create", "edit", "delete"],
            "documents": ["view", "create", "edit", "delete"],
            "filings": ["view", "create", "edit", "delete"],
            "services": ["view", "create", "edit", "delete"],
            "users": ["view", "create", "edit", "delete"],
            "settings": ["view", "edit"],
            "analytics": ["view", "export"],
            "compliance": ["view", "create", "edit"],
            "tasks": ["view", "create", "edit", "delete"],
            "notifications": ["view", "create", "edit", "delete"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
            "reports": ["view", "create", "export"],
        },
    },
    "ComplianceManager": {
        "modules": {
            "clients": ["view", "create", "edit"],
            "documents": ["view", "create", "edit"],
            "filings": ["view", "create", "edit"],
            "services": ["view", "create", "edit"],
            "users": ["view"],
            "settings": ["view"],
            "analytics": ["view"],
            "compliance": ["view", "create", "edit"],
            "tasks": ["view", "create", "edit"],
            "notifications": ["view", "create"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
            "reports": ["view", "create"],
        },
    },
    "ComplianceOfficer": {
        "modules": {
            "clients": ["view", "create", "edit"],
            "documents": ["view", "create", "edit"],
            "filings": ["view", "create", "edit"],
            "services": ["view", "create"],
            "users": ["view"],
            "analytics": ["view"],
            "compliance": ["view", "create"],
            "tasks": ["view", "create", "edit"],
            "notifications": ["view"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
            "reports": ["view"],
        },
    },
    "DocumentOfficer": {
        "modules": {
            "clients": ["view", "create", "edit"],
            "documents": ["view", "create", "edit"],
            "filings": ["view", "create", "edit"],
            "services": ["view"],
            "analytics": ["view"],
            "compliance": ["view"],
            "tasks": ["view", "create", "edit"],
            "notifications": ["view"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
            "reports": ["view"],
        },
    },
    "FilingClerk": {
        "modules": {
            "clients": ["view", "create", "edit"],
            "documents": ["view", "create"],
            "filings": ["view", "create"],
            "services": ["view"],
            "compliance": ["view"],
            "tasks": ["view", "create"],
            "notifications": ["view"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
            "reports": ["view"],
        },
    },
    "ClientPortalUser": {
        "modules": {
            "clients": ["view"],
            "documents": ["view"],
            "filings": ["view"],
            "services": ["view"],
            "tasks": ["view", "create"],
            "notifications": ["view"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
        },
    },
    "Viewer": {
        "modules": {
            "clients": ["view"],
            "documents": ["view"],
            "filings": ["view"],
            "services": ["view"],
            "analytics": ["view"],
            "compliance": ["view"],
            "tasks": ["view"],
            "notifications": ["view"],
            "profile": ["view", "edit"],
            "dashboard": ["view"],
        },
    },
}


class PermissionRegistry:
    """Read-only mapping of role id to RoleDefinition.

    Safe to share between concurrent checks: nothing on the instance can be
    changed after construction.

    Usage:
        registry = PermissionRegistry.from_yaml("config/permissions.yaml")
        definition = registry.get("FirmAdmin")
    """

    __slots__ = ("_definitions", "_superuser_role", "_version")

    def __init__(
        self,
        definitions: Mapping[str, RoleDefinition],
        superuser_role: str = RoleId.SUPER_ADMIN.value,
        version: str = DEFAULT_REGISTRY_VERSION,
    ):
        object.__setattr__(self, "_definitions", MappingProxyType(dict(definitions)))
        object.__setattr__(self, "_superuser_role", superuser_role)
        object.__setattr__(self, "_version", version)

        for role, definition in self._definitions.items():
            if definition.global_access and role != superuser_role:
                # Denied at check time; surfaced here so operators see it at startup
                logger.warning(
                    "Role %s declares global access but is not the superuser role; "
                    "all checks for it will be denied",
                    role,
                )

        logger.info(
            "PermissionRegistry %s loaded with %d roles",
            version,
            len(self._definitions),
        )

    def __setattr__(self, name, value):
        raise AttributeError("PermissionRegistry is read-only")

    def __delattr__(self, name):
        raise AttributeError("PermissionRegistry is read-only")

    @property
    def superuser_role(self) -> str:
        return self._superuser_role

    @property
    def version(self) -> str:
        return self._version

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(self._definitions)

    def get(self, role: str) -> RoleDefinition | None:
        """Look up a role definition; unknown roles return None."""
        return self._definitions.get(role)

    def __contains__(self, role: object) -> bool:
        return role in self._definitions

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def role_permissions(self, role: str) -> list[PermissionRequest]:
        """Flatten a role's own module grants into module/action requests."""
        definition = self.get(role)
        if definition is None:
            return []

        permissions = []
        for module in sorted(definition.modules):
            for action in sorted(definition.modules[module]):
                permissions.append(PermissionRequest(module=module, action=action))
        return permissions

    @classmethod
    def from_mapping(
        cls,
        roles: Mapping[str, Mapping[str, Any]],
        superuser_role: str = RoleId.SUPER_ADMIN.value,
        version: str = DEFAULT_REGISTRY_VERSION,
    ) -> "PermissionRegistry":
        """Build a registry from the plain ``role -> {global, modules, inherits}`` form."""
        definitions: dict[str, RoleDefinition] = {}
        for role, raw in roles.items():
            if not isinstance(raw, Mapping):
                raise RegistryLoadError(f"role {role!r} must be a mapping")
            data = dict(raw)
            data.setdefault("description", ROLE_DESCRIPTIONS.get(role, ""))
            try:
                definitions[str(role)] = RoleDefinition.model_validate(data)
            except ValidationError as e:
                raise RegistryLoadError(f"role {role!r}: {e.errors()[0]['msg']}") from e

        for role, definition in definitions.items():
            missing = [parent for parent in definition.inherits if parent not in definitions]
            if missing:
                logger.warning("Role %s inherits unknown roles: %s", role, ", ".join(missing))

        return cls(definitions, superuser_role=superuser_role, version=version)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PermissionRegistry":
        """Load a versioned registry definition from YAML.

        Expected layout::

            version: "2024.1"
            superuser_role: SuperAdmin
            roles:
              FirmAdmin:
                modules:
                  clients: [view, create, edit, delete]
                inherits: [Viewer]
        """
        file_path = Path(path)
        try:
            data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise RegistryLoadError(f"cannot read {file_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("roles"), dict):
            raise RegistryLoadError(f"{file_path} has no 'roles' mapping")

        return cls.from_mapping(
            data["roles"],
            superuser_role=str(data.get("superuser_role", RoleId.SUPER_ADMIN.value)),
            version=str(data.get("version", DEFAULT_REGISTRY_VERSION)),
        )

    @classmethod
    def default(cls) -> "PermissionRegistry":
        """Registry built from the shipped permission matrix."""
        return cls.from_mapping(DEFAULT_PERMISSION_MATRIX)


# Process-wide registry
_registry: PermissionRegistry | None = None


def get_permission_registry() -> PermissionRegistry:
    """Get the process-wide registry, loading the default matrix on first use."""
    global _registry
    if _registry is None:
        _registry = PermissionRegistry.default()
    return _registry


def reload_permission_registry(path: str | Path | None = None) -> PermissionRegistry:
    """Replace the process-wide registry with a freshly loaded one.

    The previous registry object is left untouched, so checks already
    holding it finish against a consistent view.
    """
    global _registry
    registry = PermissionRegistry.from_yaml(path) if path else PermissionRegistry.default()
    _registry = registry
    return registry
