"""Audit trail.

Services call :meth:`AuditTrail.record` after their own transaction has
committed. A failed audit write never fails the primary operation; it is
logged and queued in :attr:`AuditTrail.failures` so the caller can report it
separately.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.serialization import to_jsonable
from ..common.validators import optional_text, require_non_empty
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.exceptions import DomainError
from ..database.records import new_id
from .model import AuditFailure, AuditLogEntry, AuditMetadata
from .repository import AuditLogRepository

logger = logging.getLogger(__name__)


class AuditTrail:
    def __init__(
        self,
        entries: AuditLogRepository,
        *,
        on_failure: Optional[Callable[[AuditFailure], None]] = None,
    ):
        self._entries = entries
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self.failures: List[AuditFailure] = []

    def append(
        self,
        *,
        action: str,
        performed_by: str,
        target_employee: Optional[str] = None,
        collection: Optional[str] = None,
        document_id: Optional[str] = None,
        changes: Optional[Mapping[str, Any]] = None,
        metadata: Optional[AuditMetadata] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Write one entry; raises on invalid input or storage failure."""
        entry = AuditLogEntry(
            id=new_id(),
            action=require_non_empty(action, "action"),
            performed_by=require_non_empty(performed_by, "performed_by"),
            target_employee=optional_text(target_employee),
            collection=optional_text(collection),
            document_id=optional_text(document_id),
            changes=to_jsonable(changes) if changes is not None else None,
            metadata=metadata or AuditMetadata(),
            timestamp=timestamp or now_local(),
        )
        return self._entries.append(entry)

    def record(
        self,
        *,
        action: str,
        performed_by: Optional[str],
        target_employee: Optional[str] = None,
        collection: Optional[str] = None,
        document_id: Optional[str] = None,
        changes: Optional[Mapping[str, Any]] = None,
        metadata: Optional[AuditMetadata] = None,
    ) -> Optional[AuditLogEntry]:
        """Best-effort variant of :meth:`append` used after a primary write."""
        try:
            return self.append(
                action=action,
                performed_by=performed_by or "",
                target_employee=target_employee,
                collection=collection,
                document_id=document_id,
                changes=changes,
                metadata=metadata,
            )
        except DomainError as exc:
            failure = AuditFailure(
                action=action,
                performed_by=performed_by,
                collection=collection,
                document_id=document_id,
                error=exc,
                occurred_at=now_local(),
                changes=dict(to_jsonable(changes) or {}),
            )
            logger.error("audit write failed: action=%s document=%s/%s: %s", action, collection, document_id, exc)
            with self._lock:
                self.failures.append(failure)
            if self._on_failure is not None:
                self._on_failure(failure)
            return None

    def drain_failures(self) -> List[AuditFailure]:
        with self._lock:
            out, self.failures = self.failures, []
        return out

    def by_performer(self, performed_by: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[AuditLogEntry]:
        return self._entries.list_by_performer(performed_by, limit=limit)

    def by_target(self, target_employee: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[AuditLogEntry]:
        return self._entries.list_by_target(target_employee, limit=limit)

    def recent(
        self,
        *,
        since: Optional[datetime] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        timeout: Optional[float] = None,
    ) -> Sequence[AuditLogEntry]:
        return self._entries.list_recent(since=since, limit=limit, timeout=timeout)


def audit_write(
    audit: Optional[AuditTrail],
    actor: Optional[str],
    *,
    action: str,
    collection: str,
    document_id: str,
    target_employee: Optional[str] = None,
    changes: Optional[Mapping[str, Any]] = None,
    metadata: Optional[AuditMetadata] = None,
) -> None:
    """Record a change when both a trail and an acting employee are known."""
    if audit is None or actor is None:
        return
    audit.record(
        action=action,
        performed_by=actor,
        target_employee=target_employee,
        collection=collection,
        document_id=document_id,
        changes=changes,
        metadata=metadata,
    )
