"""Authorization audit package.

Append-only records of every permission and tenant-access decision.
Delivery failures are logged and never change a decision.

Usage:
    from packages.audit import AuditRecord, FileAuditSink, record_decision

    sink = FileAuditSink("data/audit")
    await record_decision(sink, ctx, request, granted=True)
"""

from packages.audit.models import AuditEventType, AuditRecord
from packages.audit.sinks import (
    AuditSink,
    BackgroundAuditSink,
    CompositeAuditSink,
    FileAuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
    emit,
    record_decision,
)

__all__ = [
    "AuditEventType",
    "AuditRecord",
    "AuditSink",
    "BackgroundAuditSink",
    "CompositeAuditSink",
    "FileAuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "emit",
    "record_decision",
]
