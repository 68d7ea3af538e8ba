"""Tenant-aware data store queries used by resource and membership checks.

The authorization engine only ever reads. Every resource query is filtered
by tenant; documents and filings are tenant-scoped through their client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, and_, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantMembership:
    """Link between a user and a tenant, with the role held there."""

    user_id: str
    tenant_id: int
    role: str


class TenantStore(Protocol):
    """Existence queries the authorization engine needs from the data layer."""

    async def client_exists(self, client_id: int, tenant_id: int) -> bool:
        ...

    async def document_exists(self, document_id: int, tenant_id: int) -> bool:
        ...

    async def filing_exists(self, filing_id: int, tenant_id: int) -> bool:
        ...

    async def service_exists(self, service_id: int, tenant_id: int) -> bool:
        ...

    async def is_member(self, user_id: str, tenant_id: int) -> bool:
        ...

    async def get_membership(self, user_id: str) -> TenantMembership | None:
        """First membership for a user, or None."""
        ...


@dataclass
class InMemoryTenantStore:
    """Dict-backed store for tests and local development."""

    memberships: list[TenantMembership] = field(default_factory=list)
    clients: dict[int, int] = field(default_factory=dict)  # client_id -> tenant_id
    documents: dict[int, int] = field(default_factory=dict)  # document_id -> client_id
    filings: dict[int, int] = field(default_factory=dict)  # filing_id -> client_id
    services: dict[int, int] = field(default_factory=dict)  # service_id -> tenant_id

    def add_membership(self, user_id: str, tenant_id: int, role: str) -> None:
        self.memberships.append(TenantMembership(user_id, tenant_id, role))

    def add_client(self, client_id: int, tenant_id: int) -> None:
        self.clients[client_id] = tenant_id

    def add_document(self, document_id: int, client_id: int) -> None:
        self.documents[document_id] = client_id

    def add_filing(self, filing_id: int, client_id: int) -> None:
        self.filings[filing_id] = client_id

    def add_service(self, service_id: int, tenant_id: int) -> None:
        self.services[service_id] = tenant_id

    async def client_exists(self, client_id: int, tenant_id: int) -> bool:
        return self.clients.get(client_id) == tenant_id

    async def document_exists(self, document_id: int, tenant_id: int) -> bool:
        client_id = self.documents.get(document_id)
        return client_id is not None and self.clients.get(client_id) == tenant_id

    async def filing_exists(self, filing_id: int, tenant_id: int) -> bool:
        client_id = self.filings.get(filing_id)
        return client_id is not None and self.clients.get(client_id) == tenant_id

    async def service_exists(self, service_id: int, tenant_id: int) -> bool:
        return self.services.get(service_id) == tenant_id

    async def is_member(self, user_id: str, tenant_id: int) -> bool:
        return any(
            m.user_id == user_id and m.tenant_id == tenant_id for m in self.memberships
        )

    async def get_membership(self, user_id: str) -> TenantMembership | None:
        for membership in self.memberships:
            if membership.user_id == user_id:
                return membership
        return None


# =============================================================================
# SQLAlchemy schema
# =============================================================================

metadata = MetaData()

tenant_users = Table(
    "tenant_users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("tenant_id", Integer, nullable=False, index=True),
    Column("role", String(64), nullable=False),
)

clients = Table(
    "clients",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("tenant_id", Integer, nullable=False, index=True),
    Column("name", String(255), nullable=False, default=""),
)

documents = Table(
    "documents",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
)

filings = Table(
    "filings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
)

service_types = Table(
    "service_types",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("tenant_id", Integer, nullable=False, index=True),
)


class SqlAlchemyTenantStore:
    """TenantStore backed by SQLAlchemy async sessions.

    Usage:
        engine = create_async_engine("postgresql+asyncpg://...")
        store = SqlAlchemyTenantStore.from_engine(engine)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> "SqlAlchemyTenantStore":
        return cls(async_sessionmaker(engine, expire_on_commit=False))

    async def _exists(self, stmt) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(stmt.limit(1))
            return result.first() is not None

    async def client_exists(self, client_id: int, tenant_id: int) -> bool:
        stmt = select(clients.c.id).where(
            and_(clients.c.id == client_id, clients.c.tenant_id == tenant_id)
        )
        return await self._exists(stmt)

    async def document_exists(self, document_id: int, tenant_id: int) -> bool:
        stmt = (
            select(documents.c.id)
            .join(clients, documents.c.client_id == clients.c.id)
            .where(and_(documents.c.id == document_id, clients.c.tenant_id == tenant_id))
        )
        return await self._exists(stmt)

    async def filing_exists(self, filing_id: int, tenant_id: int) -> bool:
        stmt = (
            select(filings.c.id)
            .join(clients, filings.c.client_id == clients.c.id)
            .where(and_(filings.c.id == filing_id, clients.c.tenant_id == tenant_id))
        )
        return await self._exists(stmt)

    async def service_exists(self, service_id: int, tenant_id: int) -> bool:
        stmt = select(service_types.c.id).where(
            and_(service_types.c.id == service_id, service_types.c.tenant_id == tenant_id)
        )
        return await self._exists(stmt)

    async def is_member(self, user_id: str, tenant_id: int) -> bool:
        stmt = select(tenant_users.c.id).where(
            and_(tenant_users.c.user_id == user_id, tenant_users.c.tenant_id == tenant_id)
        )
        return await self._exists(stmt)

    async def get_membership(self, user_id: str) -> TenantMembership | None:
        stmt = (
            select(tenant_users.c.user_id, tenant_users.c.tenant_id, tenant_users.c.role)
            .where(tenant_users.c.user_id == user_id)
            .order_by(tenant_users.c.id)
            .limit(1)
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return TenantMembership(user_id=row.user_id, tenant_id=row.tenant_id, role=row.role)
