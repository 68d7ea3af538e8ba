"""Tests for tenant membership validation."""

import logging

import pytest

from packages.audit.models import AuditEventType
from packages.authz.membership import TenantMembershipValidator
from packages.authz.store import TenantMembership


class TestValidateTenantAccess:
    """validate_tenant_access outcomes and audit trail."""

    @pytest.mark.asyncio
    async def test_member_granted(self, store, audit_sink):
        validator = TenantMembershipValidator(store, audit_sink=audit_sink)

        assert await validator.validate_tenant_access("u1", 7)

        record = audit_sink.records[-1]
        assert record.event_type == AuditEventType.TENANT_ACCESS_GRANTED
        assert record.role == "ComplianceOfficer"

    @pytest.mark.asyncio
    async def test_superuser_any_tenant(self, store):
        validator = TenantMembershipValidator(store)

        assert await validator.validate_tenant_access("root", 7)
        assert await validator.validate_tenant_access("root", 9)
        assert "is_member" not in store.calls

    @pytest.mark.asyncio
    async def test_custom_superuser_role(self, store):
        validator = TenantMembershipValidator(store, superuser_role="FirmAdmin")

        assert await validator.validate_tenant_access("admin-7", 9)

    @pytest.mark.asyncio
    async def test_unknown_user_denied(self, store, audit_sink):
        validator = TenantMembershipValidator(store, audit_sink=audit_sink)

        assert not await validator.validate_tenant_access("ghost", 7)

        record = audit_sink.records[-1]
        assert record.event_type == AuditEventType.TENANT_ACCESS_DENIED
        assert record.details["cross_tenant_attempt"] is False

    @pytest.mark.asyncio
    async def test_cross_tenant_attempt(self, store, audit_sink, caplog):
        validator = TenantMembershipValidator(store, audit_sink=audit_sink)

        with caplog.at_level(logging.WARNING, logger="rbac.security"):
            assert not await validator.validate_tenant_access("u9", 7)

        record = audit_sink.records[-1]
        assert not record.granted
        assert record.tenant_id == 7
        assert record.details == {"actual_tenant_id": 9, "cross_tenant_attempt": True}
        assert "Cross-tenant access attempt" in caplog.text

    @pytest.mark.asyncio
    async def test_store_failure_denies(self, failing_store, audit_sink):
        validator = TenantMembershipValidator(failing_store, audit_sink=audit_sink)

        assert not await validator.validate_tenant_access("u1", 7)

        record = audit_sink.records[-1]
        assert record.fault == "store"
        assert "ConnectionError" in record.reason


class TestGetUserTenantInfo:
    """Primary membership lookup."""

    @pytest.mark.asyncio
    async def test_found(self, store):
        validator = TenantMembershipValidator(store)

        assert await validator.get_user_tenant_info("u2") == TenantMembership("u2", 7, "Viewer")

    @pytest.mark.asyncio
    async def test_missing(self, store):
        validator = TenantMembershipValidator(store)

        assert await validator.get_user_tenant_info("ghost") is None

    @pytest.mark.asyncio
    async def test_store_failure(self, failing_store):
        validator = TenantMembershipValidator(failing_store)

        assert await validator.get_user_tenant_info("u1") is None
