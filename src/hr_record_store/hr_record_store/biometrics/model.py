from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from ..core.enums import BiometricLogType


@dataclass(frozen=True)
class BiometricLog:
    """Raw device event. Processed exactly once by reconciliation."""

    id: str
    biometric_id: str
    employee: Optional[str]
    log_type: BiometricLogType
    timestamp: datetime
    device_id: Optional[str]
    device_location: Optional[str]
    processed: bool
    processed_at: Optional[datetime]
    attendance_record: Optional[str]
    raw_data: Optional[Mapping[str, Any]]
    created_at: datetime


@dataclass(frozen=True)
class NewBiometricLog:
    biometric_id: str
    log_type: BiometricLogType
    timestamp: datetime
    device_id: Optional[str] = None
    device_location: Optional[str] = None
    employee: Optional[str] = None  # resolved from biometric_id when omitted
    raw_data: Optional[Mapping[str, Any]] = field(default=None)


@dataclass(frozen=True)
class ReconcileResult:
    log_id: str
    attendance_id: Optional[str]
    applied: bool  # False when the log was already processed or the event changed nothing
    skipped: Optional[str] = None
