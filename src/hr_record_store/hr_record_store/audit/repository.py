from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AuditLogEntry


class AuditLogRepository(Protocol):
    """Append and query only: the trail has no update or delete path."""

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        raise NotImplementedError

    def list_by_performer(self, performed_by: str, *, limit: int = 200) -> Sequence[AuditLogEntry]:
        raise NotImplementedError

    def list_by_target(self, target_employee: str, *, limit: int = 200) -> Sequence[AuditLogEntry]:
        raise NotImplementedError

    def list_recent(
        self,
        *,
        since: Optional[datetime] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[AuditLogEntry]:
        raise NotImplementedError
