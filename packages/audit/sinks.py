"""Audit sinks.

Append-only destinations for AuditRecord writes. A sink failure is logged
and swallowed by ``emit``; it never reaches the caller of a
permission check.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Protocol

from packages.audit.models import AuditRecord

if TYPE_CHECKING:
    from packages.authz.models import ActorContext, PermissionRequest

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Append-only destination for audit records."""

    async def record(self, record: AuditRecord) -> None:
        ...


class LoggingAuditSink:
    """Writes each record as one structured line on the ``rbac.audit`` logger."""

    def __init__(self, logger_name: str = "rbac.audit"):
        self._logger = logging.getLogger(logger_name)

    async def record(self, record: AuditRecord) -> None:
        level = logging.INFO if record.granted else logging.WARNING
        self._logger.log(
            level,
            "%s %s",
            record.event_type.value,
            json.dumps(record.to_log_fields(), sort_keys=True),
        )


class FileAuditSink:
    """JSONL audit sink, one file per tenant.

    WARNING: not suitable for high-volume production use; point a
    deployment at a log pipeline instead.
    """

    def __init__(self, storage_path: str | Path):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        logger.info("FileAuditSink initialized at %s", self.storage_path)

    def _tenant_file(self, tenant_id: int | str) -> Path:
        """Get the file path for a tenant's audit log."""
        # Sanitize tenant id to prevent path traversal
        safe_id = "".join(c for c in str(tenant_id) if c.isalnum() or c in "-_")
        return self.storage_path / f"audit_{safe_id}.jsonl"

    async def record(self, record: AuditRecord) -> None:
        file_path = self._tenant_file(record.tenant_id)
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")

    def read_all(self, tenant_id: int | str) -> list[AuditRecord]:
        """All records for a tenant, in write order."""
        file_path = self._tenant_file(tenant_id)
        if not file_path.exists():
            return []

        records = []
        with open(file_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    records.append(AuditRecord.model_validate_json(line))
        return records


class MemoryAuditSink:
    """Keeps records in a list. Intended for tests."""

    def __init__(self):
        self.records: list[AuditRecord] = []

    async def record(self, record: AuditRecord) -> None:
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()


class CompositeAuditSink:
    """Fans each record out to several sinks; one failing sink does not block the rest."""

    def __init__(self, sinks: Iterable[AuditSink]):
        self.sinks = list(sinks)

    async def record(self, record: AuditRecord) -> None:
        for sink in self.sinks:
            try:
                await sink.record(record)
            except Exception:
                logger.exception("Audit sink %s failed", type(sink).__name__)


class BackgroundAuditSink:
    """Schedules writes on the running loop and returns immediately.

    Ordering between records is not guaranteed. Call ``drain()`` on
    shutdown to wait for pending writes.
    """

    def __init__(self, sink: AuditSink):
        self.sink = sink
        self._pending: set[asyncio.Task] = set()

    async def record(self, record: AuditRecord) -> None:
        task = asyncio.create_task(self._write(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, record: AuditRecord) -> None:
        try:
            await self.sink.record(record)
        except Exception:
            logger.exception("Background audit write failed: record=%s", record.record_id)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all scheduled writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def emit(sink: AuditSink | None, record: AuditRecord) -> None:
    """Deliver a record, logging and swallowing any sink failure."""
    if sink is None:
        return
    try:
        await sink.record(record)
    except Exception:
        logger.exception(
            "Audit write failed: event=%s user=%s tenant=%s",
            record.event_type.value,
            record.user_id,
            record.tenant_id,
        )


async def record_decision(
    sink: AuditSink | None,
    ctx: ActorContext,
    request: PermissionRequest,
    granted: bool,
) -> None:
    """Record a permission decision for ``ctx``/``request``."""
    await emit(sink, AuditRecord.for_permission(ctx, request, granted))
