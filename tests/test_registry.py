"""Tests for the permission registry."""

import pytest
import yaml

from packages.authz import registry as registry_module
from packages.authz.exceptions import RegistryLoadError
from packages.authz.models import PermissionRequest, RoleDefinition, RoleId, WILDCARD
from packages.authz.registry import (
    DEFAULT_PERMISSION_MATRIX,
    PermissionRegistry,
    get_permission_registry,
    reload_permission_registry,
)


class TestRoleDefinition:
    """RoleDefinition parsing and matching."""

    def test_global_alias(self):
        """Test the ``global`` key populates global_access."""
        definition = RoleDefinition.model_validate({"global": True, "modules": {"*": ["*"]}})

        assert definition.global_access is True
        assert definition.modules[WILDCARD] == frozenset({WILDCARD})

    def test_defaults(self):
        definition = RoleDefinition()

        assert definition.global_access is False
        assert definition.modules == {}
        assert definition.inherits == ()

    def test_allows(self):
        definition = RoleDefinition(modules={"clients": ["view", "edit"], "tasks": ["*"]})

        assert definition.allows("clients", "view")
        assert not definition.allows("clients", "delete")
        assert definition.allows("tasks", "assign")
        assert not definition.allows("documents", "view")

    def test_frozen(self):
        """Test role definitions cannot be reassigned."""
        definition = RoleDefinition(modules={"clients": ["view"]})

        with pytest.raises(Exception):
            definition.global_access = True


class TestPermissionRegistry:
    """Registry construction, lookup and immutability."""

    def test_default_registry_roles(self):
        registry = PermissionRegistry.default()

        assert set(registry.roles) == set(DEFAULT_PERMISSION_MATRIX)
        assert {role.value for role in RoleId} == set(registry.roles)
        assert registry.superuser_role == "SuperAdmin"
        assert registry.get("SuperAdmin").global_access
        assert registry.get("FirmAdmin").description.startswith("Full access within tenant")

    def test_unknown_role_absent(self):
        registry = PermissionRegistry.default()

        assert registry.get("Nonexistent") is None
        assert "Nonexistent" not in registry
        assert "Viewer" in registry

    def test_read_only(self):
        """Test no public path mutates a registry."""
        registry = PermissionRegistry.default()

        with pytest.raises(AttributeError):
            registry.version = "hacked"

        with pytest.raises(TypeError):
            registry._definitions["Intruder"] = RoleDefinition(modules={"*": ["*"]})

        assert "Intruder" not in registry

    def test_role_modules_read_only(self):
        """Test grants cannot be rewritten through a looked-up definition."""
        registry = PermissionRegistry.default()

        with pytest.raises(TypeError):
            registry.get("Viewer").modules["settings"] = frozenset({"edit"})

        assert not registry.get("Viewer").allows("settings", "edit")

    def test_source_mapping_not_shared(self):
        """Test later changes to the source mapping do not leak in."""
        source = {"Viewer": RoleDefinition(modules={"clients": ["view"]})}
        registry = PermissionRegistry(source)

        source["Intruder"] = RoleDefinition(modules={"*": ["*"]})

        assert "Intruder" not in registry

    def test_role_permissions(self):
        registry = PermissionRegistry.from_mapping(
            {"Clerk": {"modules": {"filings": ["view", "create"], "clients": ["view"]}}}
        )

        assert registry.role_permissions("Clerk") == [
            PermissionRequest(module="clients", action="view"),
            PermissionRequest(module="filings", action="create"),
            PermissionRequest(module="filings", action="view"),
        ]
        assert registry.role_permissions("Nobody") == []

    def test_from_mapping_rejects_bad_role(self):
        with pytest.raises(RegistryLoadError):
            PermissionRegistry.from_mapping({"Broken": ["clients"]})

    def test_from_mapping_rejects_bad_modules(self):
        with pytest.raises(RegistryLoadError):
            PermissionRegistry.from_mapping({"Broken": {"modules": "clients"}})

    @pytest.mark.parametrize(
        "raw",
        [
            {"modules": {"clients": "view"}},
            {"modules": {"clients": None}},
            {"modules": {"clients": ["view", 3]}},
            {"inherits": "Viewer"},
        ],
        ids=["scalar-actions", "null-actions", "non-string-action", "scalar-inherits"],
    )
    def test_from_mapping_rejects_malformed_lists(self, raw):
        with pytest.raises(RegistryLoadError):
            PermissionRegistry.from_mapping({"Broken": raw})

    def test_global_flag_on_other_role_is_loaded(self):
        """Test a misconfigured global flag loads (and is denied at check time)."""
        registry = PermissionRegistry.from_mapping({"Rogue": {"global": True, "modules": {}}})

        assert registry.get("Rogue").global_access


class TestRegistryYaml:
    """Loading a versioned YAML definition."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "permissions.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "version": "2025.2",
                    "superuser_role": "Root",
                    "roles": {
                        "Root": {"global": True, "modules": {"*": ["*"]}},
                        "Staff": {"modules": {"clients": ["view"]}, "inherits": ["Viewer"]},
                        "Viewer": {"modules": {"dashboard": ["view"]}},
                    },
                }
            )
        )

        registry = PermissionRegistry.from_yaml(path)

        assert registry.version == "2025.2"
        assert registry.superuser_role == "Root"
        assert registry.get("Staff").inherits == ("Viewer",)

    def test_default_matrix_yaml_round_trip(self, tmp_path):
        path = tmp_path / "permissions.yaml"
        path.write_text(yaml.safe_dump({"roles": DEFAULT_PERMISSION_MATRIX}))

        loaded = PermissionRegistry.from_yaml(path)
        default = PermissionRegistry.default()

        for role in default:
            assert loaded.get(role) == default.get(role)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryLoadError, match="cannot read"):
            PermissionRegistry.from_yaml(tmp_path / "missing.yaml")

    def test_missing_roles_key(self, tmp_path):
        path = tmp_path / "permissions.yaml"
        path.write_text("version: '1'\n")

        with pytest.raises(RegistryLoadError, match="roles"):
            PermissionRegistry.from_yaml(path)

    def test_scalar_action_in_yaml(self, tmp_path):
        """Test ``clients: view`` is rejected instead of split into characters."""
        path = tmp_path / "permissions.yaml"
        path.write_text("roles:\n  Viewer:\n    modules:\n      clients: view\n")

        with pytest.raises(RegistryLoadError, match="Viewer"):
            PermissionRegistry.from_yaml(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "permissions.yaml"
        path.write_text("roles: [unclosed\n")

        with pytest.raises(RegistryLoadError):
            PermissionRegistry.from_yaml(path)


class TestRegistryReload:
    """Process-wide registry holder."""

    @pytest.fixture(autouse=True)
    def _reset(self, monkeypatch):
        monkeypatch.setattr(registry_module, "_registry", None)

    def test_lazy_default(self):
        registry = get_permission_registry()

        assert registry is get_permission_registry()
        assert "FirmAdmin" in registry

    def test_reload_swaps_instance(self, tmp_path):
        before = get_permission_registry()
        path = tmp_path / "permissions.yaml"
        path.write_text(yaml.safe_dump({"version": "2", "roles": {"Only": {"modules": {}}}}))

        after = reload_permission_registry(path)

        assert after is get_permission_registry()
        assert after is not before
        assert after.roles == ("Only",)
        # Old instance is untouched
        assert "FirmAdmin" in before
