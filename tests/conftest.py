"""Shared fixtures for authorization tests."""

import pytest

from packages.audit.sinks import MemoryAuditSink
from packages.authz.engine import AuthzEngine
from packages.authz.models import ActorContext
from packages.authz.registry import PermissionRegistry
from packages.authz.resources import ResourceOwnershipResolver
from packages.authz.store import InMemoryTenantStore


class RecordingStore(InMemoryTenantStore):
    """In-memory store that counts queries."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: list[str] = []

    async def client_exists(self, client_id, tenant_id):
        self.calls.append("client_exists")
        return await super().client_exists(client_id, tenant_id)

    async def document_exists(self, document_id, tenant_id):
        self.calls.append("document_exists")
        return await super().document_exists(document_id, tenant_id)

    async def filing_exists(self, filing_id, tenant_id):
        self.calls.append("filing_exists")
        return await super().filing_exists(filing_id, tenant_id)

    async def service_exists(self, service_id, tenant_id):
        self.calls.append("service_exists")
        return await super().service_exists(service_id, tenant_id)

    async def is_member(self, user_id, tenant_id):
        self.calls.append("is_member")
        return await super().is_member(user_id, tenant_id)

    async def get_membership(self, user_id):
        self.calls.append("get_membership")
        return await super().get_membership(user_id)


class FailingStore(InMemoryTenantStore):
    """Store whose every query raises, standing in for a lost connection."""

    async def client_exists(self, client_id, tenant_id):
        raise ConnectionError("database unavailable")

    async def document_exists(self, document_id, tenant_id):
        raise ConnectionError("database unavailable")

    async def filing_exists(self, filing_id, tenant_id):
        raise ConnectionError("database unavailable")

    async def service_exists(self, service_id, tenant_id):
        raise ConnectionError("database unavailable")

    async def is_member(self, user_id, tenant_id):
        raise ConnectionError("database unavailable")

    async def get_membership(self, user_id):
        raise ConnectionError("database unavailable")


@pytest.fixture
def store():
    """Two tenants (7 and 9) with clients, documents, filings and users."""
    s = RecordingStore()
    s.add_membership("admin-7", 7, "FirmAdmin")
    s.add_membership("u1", 7, "ComplianceOfficer")
    s.add_membership("u2", 7, "Viewer")
    s.add_membership("u9", 9, "Viewer")
    s.add_membership("root", 1, "SuperAdmin")

    s.add_client(100, 7)
    s.add_client(900, 9)
    s.add_document(1000, 100)
    s.add_document(9000, 900)
    s.add_filing(2000, 100)
    s.add_filing(9900, 900)
    s.add_service(30, 7)
    s.add_service(39, 9)
    return s


@pytest.fixture
def registry():
    return PermissionRegistry.default()


@pytest.fixture
def audit_sink():
    return MemoryAuditSink()


@pytest.fixture
def engine(registry, store, audit_sink):
    return AuthzEngine(
        registry,
        ResourceOwnershipResolver.with_defaults(store),
        audit_sink=audit_sink,
    )


@pytest.fixture
def make_ctx():
    def _make(role: str, user_id: str = "u1", tenant_id: int = 7) -> ActorContext:
        return ActorContext(user_id=user_id, tenant_id=tenant_id, role=role)

    return _make


@pytest.fixture
def failing_store():
    return FailingStore()
