from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import insert, select

from ..common.serialization import to_jsonable
from ..database.connection import DatabaseConnection
from ..database.session import db_session, read_session, run_in_transaction
from ..database.tables import AuditLogRow
from .model import AuditLogEntry, AuditMetadata
from .repository import AuditLogRepository


class SqlAuditLogRepository(AuditLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        values = {
            "id": entry.id,
            "action": entry.action,
            "performed_by": entry.performed_by,
            "target_employee": entry.target_employee,
            "collection": entry.collection,
            "document_id": entry.document_id,
            "changes": to_jsonable(entry.changes) if entry.changes is not None else None,
            "ip_address": entry.metadata.ip_address,
            "user_agent": entry.metadata.user_agent,
            "timestamp": entry.timestamp,
        }
        # Never joins the caller's transaction.
        run_in_transaction(self._conn_factory, lambda s: s.execute(insert(AuditLogRow).values(**values)), join=False)
        return entry

    def list_by_performer(self, performed_by: str, *, limit: int = 200) -> Sequence[AuditLogEntry]:
        stmt = (
            select(AuditLogRow)
            .where(AuditLogRow.performed_by == performed_by)
            .order_by(AuditLogRow.timestamp.desc())
            .limit(int(limit))
        )
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_by_target(self, target_employee: str, *, limit: int = 200) -> Sequence[AuditLogEntry]:
        stmt = (
            select(AuditLogRow)
            .where(AuditLogRow.target_employee == target_employee)
            .order_by(AuditLogRow.timestamp.desc())
            .limit(int(limit))
        )
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_recent(
        self,
        *,
        since: Optional[datetime] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[AuditLogEntry]:
        stmt = select(AuditLogRow)
        if since is not None:
            stmt = stmt.where(AuditLogRow.timestamp >= since)
        stmt = stmt.order_by(AuditLogRow.timestamp.desc()).limit(int(limit))
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    @staticmethod
    def _to_entity(r: AuditLogRow) -> AuditLogEntry:
        return AuditLogEntry(
            id=r.id,
            action=r.action,
            performed_by=r.performed_by,
            target_employee=r.target_employee,
            collection=r.collection,
            document_id=r.document_id,
            changes=r.changes,
            metadata=AuditMetadata(ip_address=r.ip_address, user_agent=r.user_agent),
            timestamp=r.timestamp,
        )
