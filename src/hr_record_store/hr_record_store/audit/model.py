from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class AuditMetadata:
    """Where a change came from."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only trail entry. Never updated or deleted once written."""

    id: str
    action: str
    performed_by: str
    target_employee: Optional[str]
    collection: Optional[str]
    document_id: Optional[str]
    changes: Optional[Mapping[str, Any]]
    metadata: AuditMetadata
    timestamp: datetime


@dataclass(frozen=True)
class AuditFailure:
    """An audit entry that could not be written, kept for the caller to surface."""

    action: str
    performed_by: Optional[str]
    collection: Optional[str]
    document_id: Optional[str]
    error: Exception
    occurred_at: datetime
    changes: Mapping[str, Any] = field(default_factory=dict)
