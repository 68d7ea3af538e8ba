"""Authorization data models.

Defines roles, modules, actions, the actor and request shapes, and the
decision produced by a permission check.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_validator

WILDCARD = "*"


class RoleId(str, Enum):
    """Roles known to the shipped permission matrix."""

    SUPER_ADMIN = "SuperAdmin"
    FIRM_ADMIN = "FirmAdmin"
    COMPLIANCE_MANAGER = "ComplianceManager"
    COMPLIANCE_OFFICER = "ComplianceOfficer"
    DOCUMENT_OFFICER = "DocumentOfficer"
    FILING_CLERK = "FilingClerk"
    CLIENT_PORTAL_USER = "ClientPortalUser"
    VIEWER = "Viewer"


class Module(str, Enum):
    """Functional areas over which actions are granted."""

    CLIENTS = "clients"
    DOCUMENTS = "documents"
    FILINGS = "filings"
    SERVICES = "services"
    USERS = "users"
    SETTINGS = "settings"
    ANALYTICS = "analytics"
    COMPLIANCE = "compliance"
    TASKS = "tasks"
    NOTIFICATIONS = "notifications"
    PROFILE = "profile"
    DASHBOARD = "dashboard"
    REPORTS = "reports"
    SYSTEM = "system"
    CLIENT_PORTAL = "client_portal"


class Action(str, Enum):
    """Operations within a module."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    SUBMIT = "submit"
    EXPORT = "export"
    SEND = "send"
    ASSIGN = "assign"
    MANAGE = "manage"
    UPLOAD = "upload"
    MESSAGE = "message"


def _plain(value: str | Enum) -> str:
    return value.value if isinstance(value, Enum) else value


def _names(values, field: str) -> list[str]:
    """Validate a list of role/action names; bare strings and nulls are rejected."""
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise ValueError(f"{field} must be a list of names, got {type(values).__name__}")
    if not all(isinstance(v, str) for v in values):
        raise ValueError(f"{field} must contain only strings")
    return [_plain(v) for v in values]


class ActorContext(BaseModel):
    """Already-authenticated actor on whose behalf a check runs.

    The role is kept as a plain string so that roles missing from the
    registry can still be represented (and denied).
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="Authenticated user identifier")
    tenant_id: int = Field(description="Tenant the actor is acting within")
    role: str = Field(description="Role assigned to the actor in this tenant")

    @field_validator("role", mode="before")
    @classmethod
    def _role_value(cls, value):
        return _plain(value)

    def with_role(self, role: str) -> "ActorContext":
        """Copy of this context with a different role."""
        return self.model_copy(update={"role": _plain(role)})


class PermissionRequest(BaseModel):
    """A module/action pair, optionally narrowed to one resource instance."""

    model_config = ConfigDict(frozen=True)

    module: str = Field(description="Module the action targets")
    action: str = Field(description="Action requested within the module")
    resource_id: str | int | None = Field(
        default=None,
        description="Specific resource instance (None for a module-wide check)",
    )

    @field_validator("module", "action", mode="before")
    @classmethod
    def _enum_value(cls, value):
        return _plain(value)

    @classmethod
    def parse(cls, permission: str, resource_id: str | int | None = None) -> "PermissionRequest":
        """Build a request from ``module.action`` notation."""
        module, sep, action = permission.partition(".")
        if not sep or not module or not action:
            raise ValueError(f"Expected 'module.action', got {permission!r}")
        return cls(module=module, action=action, resource_id=resource_id)

    @property
    def key(self) -> str:
        return f"{self.module}.{self.action}"

    @property
    def has_resource(self) -> bool:
        # 0 is a valid identifier; only None and "" mean "no resource"
        return self.resource_id is not None and self.resource_id != ""


class RoleDefinition(BaseModel):
    """Capabilities declared for a single role."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: str = Field(default="", description="Role description")
    global_access: bool = Field(
        default=False,
        alias="global",
        description="Cross-tenant access; valid only for the superuser role",
    )
    modules: Mapping[str, frozenset[str]] = Field(
        default_factory=dict,
        validate_default=True,
        description="Module name -> allowed actions",
    )
    inherits: tuple[str, ...] = Field(
        default=(),
        description="Roles whose grants apply when this role has no match",
    )

    @field_validator("modules", mode="before")
    @classmethod
    def _freeze_actions(cls, value):
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("modules must map module names to action lists")
        return {
            _plain(module): frozenset(_names(actions, f"actions for module {module!r}"))
            for module, actions in value.items()
        }

    @field_validator("modules", mode="after")
    @classmethod
    def _read_only_modules(cls, value):
        # Definitions are shared by every check reading the registry
        return MappingProxyType(value)

    @field_validator("inherits", mode="before")
    @classmethod
    def _inherits_values(cls, value):
        if value is None:
            return ()
        return tuple(_names(value, "inherits"))

    def allows(self, module: str, action: str) -> bool:
        """Module-level match for this role alone (no inheritance)."""
        actions = self.modules.get(module, frozenset())
        if action in actions or WILDCARD in actions:
            return True
        wildcard_actions = self.modules.get(WILDCARD, frozenset())
        return action in wildcard_actions or WILDCARD in wildcard_actions


class DecisionFault(str, Enum):
    """Why a check was denied for a reason other than a missing grant."""

    UNKNOWN_ROLE = "unknown_role"
    CONFIGURATION = "configuration"
    INHERITANCE_CYCLE = "inheritance_cycle"
    STORE = "store"
    INTERNAL = "internal"


class AuthorizationDecision(BaseModel):
    """Result of one permission check.

    The public API collapses this to ``granted``; the remaining fields feed
    logs and the audit sink only.
    """

    granted: bool = Field(description="Whether access is granted")
    module: str = Field(description="Module that was checked")
    action: str = Field(description="Action that was checked")
    resource_id: str | int | None = Field(default=None)
    reason: str = Field(default="", description="Explanation of the decision")
    matched_role: str | None = Field(
        default=None,
        description="Role whose definition granted module access",
    )
    fault: DecisionFault | None = Field(
        default=None,
        description="Fault that forced a denial, if any",
    )

    @classmethod
    def allow(cls, request: PermissionRequest, reason: str, matched_role: str | None = None):
        return cls(
            granted=True,
            module=request.module,
            action=request.action,
            resource_id=request.resource_id,
            reason=reason,
            matched_role=matched_role,
        )

    @classmethod
    def deny(cls, request: PermissionRequest, reason: str, fault: DecisionFault | None = None):
        return cls(
            granted=False,
            module=request.module,
            action=request.action,
            resource_id=request.resource_id,
            reason=reason,
            fault=fault,
        )
