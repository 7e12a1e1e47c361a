"""Biometric device events and their reconciliation into Attendance.

Devices deliver at least once, so the same event may arrive or be reconciled
more than once. Reconciliation claims the log (``processed`` false -> true) and
mutates the day's Attendance in one transaction; a log that is already
processed is never applied again.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence

from ..attendance.service import AttendanceService
from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import optional_text, require_enum, require_non_empty
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import BiometricLogType
from ..core.exceptions import (
    ConcurrencyConflictError,
    DuplicateKeyError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from ..database.connection import DatabaseConnection
from ..database.records import new_id
from ..database.session import run_in_transaction
from ..employees.repository import EmployeeRepository
from .model import BiometricLog, NewBiometricLog, ReconcileResult
from .repository import BiometricLogRepository

logger = logging.getLogger(__name__)

COLLECTION = "biometric_logs"

_READ_ONLY = ("processed", "processed_at", "attendance_record")

# Two logs of the same employee and day may race to create the Attendance row.
RECONCILE_ATTEMPTS = 3


class BiometricService:
    def __init__(
        self,
        logs: BiometricLogRepository,
        employees: EmployeeRepository,
        attendance: AttendanceService,
        conn_factory: DatabaseConnection,
        *,
        audit: Optional[AuditTrail] = None,
    ):
        self._logs = logs
        self._employees = employees
        self._attendance = attendance
        self._conn_factory = conn_factory
        self._audit = audit

    def ingest(self, draft: NewBiometricLog, *, actor: Optional[str] = None) -> BiometricLog:
        """Store a raw event, unprocessed. Unknown biometric ids are accepted."""
        biometric_id = require_non_empty(draft.biometric_id, "biometric_id")
        if not isinstance(draft.timestamp, datetime):
            raise ValidationError("timestamp must be a datetime")

        employee_id = optional_text(draft.employee)
        if employee_id:
            if not self._employees.get_by_id(employee_id):
                raise InvalidReferenceError(f"Employee does not exist: {employee_id}")
        else:
            owner = self._employees.get_by_biometric_id(biometric_id)
            employee_id = owner.id if owner else None

        log = BiometricLog(
            id=new_id(),
            biometric_id=biometric_id,
            employee=employee_id,
            log_type=require_enum(BiometricLogType, draft.log_type, "log_type"),
            timestamp=draft.timestamp,
            device_id=optional_text(draft.device_id),
            device_location=optional_text(draft.device_location),
            processed=False,
            processed_at=None,
            attendance_record=None,
            raw_data=to_jsonable(dict(draft.raw_data)) if draft.raw_data is not None else None,
            created_at=now_local(),
        )
        created = self._logs.create(log)
        logger.debug("biometric log ingested: %s %s at %s", biometric_id, created.log_type.value, created.timestamp)
        audit_write(
            self._audit, actor, action="biometric.ingest", collection=COLLECTION,
            document_id=created.id, target_employee=employee_id, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, log_id: str) -> BiometricLog:
        log = self._logs.get_by_id(log_id)
        if not log:
            raise NotFoundError("BiometricLog", log_id)
        return log

    def unprocessed(self, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[BiometricLog]:
        return self._logs.list_unprocessed(limit=limit)

    def by_biometric_id(self, biometric_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[BiometricLog]:
        return self._logs.list_by_biometric_id(biometric_id, limit=limit)

    def for_employee(
        self, employee_id: str, *, limit: int = DEFAULT_LIST_LIMIT, timeout: Optional[float] = None
    ) -> Sequence[BiometricLog]:
        return self._logs.list_for_employee(employee_id, limit=limit, timeout=timeout)

    def update(self, log_id: str, changes: Mapping[str, Any], *, actor: Optional[str] = None) -> BiometricLog:
        """Correct a log before it is reconciled; processed logs are immutable."""
        current = self.get_by_id(log_id)
        if current.processed:
            raise ValidationError(f"Biometric log {log_id} is already processed")

        candidate = apply_changes(current, changes, read_only=_READ_ONLY)
        employee_id = optional_text(candidate.employee)
        if employee_id and employee_id != current.employee and not self._employees.get_by_id(employee_id):
            raise InvalidReferenceError(f"Employee does not exist: {employee_id}")
        if not isinstance(candidate.timestamp, datetime):
            raise ValidationError("timestamp must be a datetime")
        candidate = dataclasses.replace(
            candidate,
            biometric_id=require_non_empty(candidate.biometric_id, "biometric_id"),
            employee=employee_id,
            log_type=require_enum(BiometricLogType, candidate.log_type, "log_type"),
            device_id=optional_text(candidate.device_id),
            device_location=optional_text(candidate.device_location),
            raw_data=to_jsonable(dict(candidate.raw_data)) if candidate.raw_data is not None else None,
        )

        if not self._logs.update_unprocessed(candidate):
            raise ConcurrencyConflictError(f"Biometric log {log_id} was processed concurrently")
        updated = self.get_by_id(log_id)
        audit_write(
            self._audit, actor, action="biometric.update", collection=COLLECTION,
            document_id=updated.id, target_employee=updated.employee, changes=diff(current, updated),
        )
        return updated

    def mark_processed(self, log_id: str, attendance_id: Optional[str] = None) -> BiometricLog:
        """Claim a log for a reconciler working outside this service. Idempotent."""
        current = self.get_by_id(log_id)
        if not current.processed and self._logs.claim(log_id, at=now_local(), attendance_id=attendance_id):
            logger.info("biometric log %s marked processed", log_id)
        return self.get_by_id(log_id)

    def reconcile(self, log_id: str) -> ReconcileResult:
        for attempt in range(1, RECONCILE_ATTEMPTS + 1):
            try:
                return run_in_transaction(self._conn_factory, lambda session: self._reconcile_once(log_id))
            except (DuplicateKeyError, ConcurrencyConflictError) as exc:
                if attempt >= RECONCILE_ATTEMPTS:
                    raise
                logger.warning("reconcile %s lost a race (%s), retrying", log_id, exc)
        raise AssertionError("unreachable")

    def reconcile_pending(self, *, limit: int = DEFAULT_LIST_LIMIT) -> List[ReconcileResult]:
        """Reconcile unprocessed logs oldest first.

        Logs that cannot be applied (unknown biometric id, separated employee,
        an event contradicting the day's punches) stay unprocessed and are
        reported with ``skipped`` set.
        """
        results = []
        for log in self._logs.list_unprocessed(limit=limit):
            try:
                results.append(self.reconcile(log.id))
            except (InvalidReferenceError, ValidationError) as exc:
                logger.warning("biometric log %s skipped: %s", log.id, exc)
                results.append(ReconcileResult(log_id=log.id, attendance_id=None, applied=False, skipped=str(exc)))
        applied = sum(1 for r in results if r.applied)
        logger.info("reconciled %s biometric logs (%s applied)", len(results), applied)
        return results

    def _reconcile_once(self, log_id: str) -> ReconcileResult:
        log = self.get_by_id(log_id)
        if log.processed:
            return ReconcileResult(log_id=log.id, attendance_id=log.attendance_record, applied=False)

        employee_id = log.employee
        if not employee_id:
            owner = self._employees.get_by_biometric_id(log.biometric_id)
            if not owner:
                raise InvalidReferenceError(f"No employee registered for biometric id {log.biometric_id}")
            employee_id = owner.id

        if not self._logs.claim(log.id, at=now_local(), employee_id=employee_id):
            # Another reconciler got there first.
            done = self.get_by_id(log_id)
            return ReconcileResult(log_id=done.id, attendance_id=done.attendance_record, applied=False)

        record, changed = self._attendance.apply_biometric_event(
            employee_id, log.log_type, log.timestamp, location=log.device_location
        )
        self._logs.link_attendance(log.id, record.id)
        logger.info(
            "biometric log %s -> attendance %s (%s%s)",
            log.id, record.id, log.log_type.value, "" if changed else ", no change",
        )
        return ReconcileResult(log_id=log.id, attendance_id=record.id, applied=changed)
