from __future__ import annotations

import dataclasses
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import as_date, now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import optional_text, require_enum, require_non_empty, to_non_negative_number
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import LeaveStatus, LeaveType
from ..core.exceptions import (
    ConcurrencyConflictError,
    InvalidReferenceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..database.records import new_id
from ..employees.repository import EmployeeRepository
from .model import BLOCKING_STATUSES, LEAVE_TRANSITIONS, Leave, NewLeave, SupportingDocument
from .repository import LeaveRepository

logger = logging.getLogger(__name__)

COLLECTION = "leaves"

HALF_DAY = Decimal("0.5")


class WorkingDayCalendar(Protocol):
    def count_working_days(self, start: date, end: date) -> int:
        raise NotImplementedError


class LeaveService:
    """Use case: leave requests and their approval flow.

    ``number_of_days`` must equal the working days in the range (weekends and
    holidays excluded); a single-day leave may also be a half day. Without a
    calendar every date in the range counts.
    """

    def __init__(
        self,
        leaves: LeaveRepository,
        employees: EmployeeRepository,
        *,
        calendar: Optional[WorkingDayCalendar] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self._leaves = leaves
        self._employees = employees
        self._calendar = calendar
        self._audit = audit

    def apply(self, draft: NewLeave, *, actor: Optional[str] = None) -> Leave:
        now = now_local()
        leave = self._validated(
            Leave(
                id=new_id(),
                employee=draft.employee,
                leave_type=draft.leave_type,
                start_date=draft.start_date,
                end_date=draft.end_date,
                number_of_days=draft.number_of_days,
                reason=draft.reason,
                status=LeaveStatus.PENDING,
                applied_on=now,
                approved_by=None,
                approved_on=None,
                rejection_reason=None,
                supporting_documents=tuple(draft.supporting_documents),
                created_at=now,
                updated_at=now,
                version=1,
            ),
            previous=None,
        )
        created = self._leaves.create(leave)
        logger.info(
            "leave applied: employee=%s %s %s..%s (%s days)",
            created.employee, created.leave_type.value, created.start_date, created.end_date, created.number_of_days,
        )
        audit_write(
            self._audit, actor or created.employee, action="leave.apply", collection=COLLECTION,
            document_id=created.id, target_employee=created.employee, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, leave_id: str) -> Leave:
        leave = self._leaves.get_by_id(leave_id)
        if not leave:
            raise NotFoundError("Leave", leave_id)
        return leave

    def history(self, employee_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Leave]:
        return self._leaves.list_for_employee(employee_id, limit=limit)

    def list_by_status(
        self, status: LeaveStatus, *, limit: int = DEFAULT_LIST_LIMIT, timeout: Optional[float] = None
    ) -> Sequence[Leave]:
        return self._leaves.list_by_status(require_enum(LeaveStatus, status, "status"), limit=limit, timeout=timeout)

    def overlapping(self, employee_id: str, start_date: date, end_date: date) -> Sequence[Leave]:
        """Pending or approved leaves of the employee touching [start_date, end_date]."""
        start_date, end_date = _valid_range(start_date, end_date)
        return self._leaves.find_overlapping(employee_id, start_date, end_date, statuses=BLOCKING_STATUSES)

    def list_in_range(
        self,
        start_date: date,
        end_date: date,
        *,
        status: Optional[LeaveStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        timeout: Optional[float] = None,
    ) -> Sequence[Leave]:
        start_date, end_date = _valid_range(start_date, end_date)
        if status is not None:
            status = require_enum(LeaveStatus, status, "status")
        return self._leaves.list_in_range(start_date, end_date, status=status, limit=limit, timeout=timeout)

    def update(
        self,
        leave_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Leave:
        """Edit a request while it is still Pending."""
        current = self.get_by_id(leave_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Leave {leave_id} changed (version {current.version})")
        if current.status != LeaveStatus.PENDING:
            raise ValidationError(f"Only pending leaves can be edited (status is {current.status.value})")
        candidate = apply_changes(
            current,
            changes,
            read_only=("employee", "status", "applied_on", "approved_by", "approved_on", "rejection_reason"),
        )
        if "number_of_days" not in changes and (
            candidate.start_date != current.start_date or candidate.end_date != current.end_date
        ):
            candidate = dataclasses.replace(candidate, number_of_days=None)
        candidate = self._validated(candidate, previous=current)
        dates_changed = (candidate.start_date, candidate.end_date) != (current.start_date, current.end_date)
        return self._save(current, candidate, actor=actor, action="leave.update", check_overlap=dates_changed)

    def add_supporting_document(
        self,
        leave_id: str,
        *,
        document_name: str,
        document_url: str,
        actor: Optional[str] = None,
    ) -> Leave:
        current = self.get_by_id(leave_id)
        document = SupportingDocument(
            document_name=require_non_empty(document_name, "document_name"),
            document_url=require_non_empty(document_url, "document_url"),
            uploaded_at=now_local(),
        )
        candidate = dataclasses.replace(current, supporting_documents=current.supporting_documents + (document,))
        return self._save(current, candidate, actor=actor, action="leave.add_document")

    # -------- Approval flow --------
    def approve(self, leave_id: str, approver_id: str, *, expected_version: Optional[int] = None) -> Leave:
        current = self._transition(leave_id, LeaveStatus.APPROVED, expected_version)
        self._require_employee(approver_id, "Approver")
        candidate = dataclasses.replace(
            current, status=LeaveStatus.APPROVED, approved_by=approver_id, approved_on=now_local()
        )
        return self._save(current, candidate, actor=approver_id, action="leave.approve")

    def reject(
        self,
        leave_id: str,
        approver_id: str,
        *,
        reason: str,
        expected_version: Optional[int] = None,
    ) -> Leave:
        reason = require_non_empty(reason, "rejection_reason")
        current = self._transition(leave_id, LeaveStatus.REJECTED, expected_version)
        self._require_employee(approver_id, "Approver")
        candidate = dataclasses.replace(
            current,
            status=LeaveStatus.REJECTED,
            approved_by=approver_id,
            approved_on=now_local(),
            rejection_reason=reason,
        )
        return self._save(current, candidate, actor=approver_id, action="leave.reject")

    def cancel(self, leave_id: str, *, actor: Optional[str] = None, expected_version: Optional[int] = None) -> Leave:
        current = self._transition(leave_id, LeaveStatus.CANCELLED, expected_version)
        candidate = dataclasses.replace(current, status=LeaveStatus.CANCELLED)
        return self._save(current, candidate, actor=actor or current.employee, action="leave.cancel")

    # -------- Internals --------
    def _transition(self, leave_id: str, target: LeaveStatus, expected_version: Optional[int]) -> Leave:
        current = self.get_by_id(leave_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Leave {leave_id} changed (version {current.version})")
        if target not in LEAVE_TRANSITIONS[current.status]:
            raise InvalidTransitionError("Leave", current.status, target)
        return current

    def _save(
        self,
        current: Leave,
        candidate: Leave,
        *,
        actor: Optional[str],
        action: str,
        check_overlap: bool = False,
    ) -> Leave:
        updated = self._leaves.update(
            candidate,
            expected_version=current.version,
            expected_status=current.status,
            check_overlap=check_overlap,
        )
        if updated is None:
            raise ConcurrencyConflictError(f"Leave {current.id} was modified concurrently")
        if updated.status != current.status:
            logger.info("leave %s: %s -> %s", updated.id, current.status.value, updated.status.value)
        audit_write(
            self._audit, actor, action=action, collection=COLLECTION,
            document_id=updated.id, target_employee=updated.employee, changes=diff(current, updated),
        )
        return updated

    def _require_employee(self, employee_id: str, label: str):
        employee = self._employees.get_by_id(require_non_empty(employee_id, label.lower()))
        if not employee:
            raise InvalidReferenceError(f"{label} does not exist: {employee_id}")
        return employee

    def _validated(self, l: Leave, *, previous: Optional[Leave]) -> Leave:
        if previous is None:
            employee = self._require_employee(l.employee, "Employee")
            if employee.status.is_separated:
                raise InvalidReferenceError(f"Employee is no longer employed: {employee.employee_id}")

        start_date, end_date = _valid_range(l.start_date, l.end_date)
        days = self._checked_days(l.number_of_days, start_date, end_date)
        return dataclasses.replace(
            l,
            leave_type=require_enum(LeaveType, l.leave_type, "leave_type"),
            start_date=start_date,
            end_date=end_date,
            number_of_days=days,
            reason=require_non_empty(l.reason, "reason"),
            rejection_reason=optional_text(l.rejection_reason),
        )

    def _checked_days(self, given, start_date: date, end_date: date) -> Decimal:
        if self._calendar is not None:
            working = Decimal(self._calendar.count_working_days(start_date, end_date))
        else:
            working = Decimal((end_date - start_date).days + 1)
        if working == 0:
            raise ValidationError("The leave covers no working days")
        if given is None:
            return working
        days = to_non_negative_number(given, "number_of_days")
        if days == working or (start_date == end_date and days == HALF_DAY):
            return days
        raise ValidationError(f"number_of_days is {days} but the range has {working} working days")


def _valid_range(start_date, end_date):
    start_date = as_date(start_date, "start_date")
    end_date = as_date(end_date, "end_date")
    if end_date < start_date:
        raise ValidationError("end_date must be >= start_date")
    return start_date, end_date
