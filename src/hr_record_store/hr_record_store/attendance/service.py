from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import as_date, now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import (
    optional_text,
    require_enum,
    require_non_empty,
    require_non_negative_int,
    to_non_negative_number,
)
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import AttendanceStatus, BiometricLogType, PunchSource, WorkType
from ..core.exceptions import ConcurrencyConflictError, InvalidReferenceError, NotFoundError, ValidationError
from ..database.records import new_id
from ..employees.repository import EmployeeRepository
from .model import (
    Attendance,
    BreakInterval,
    EarlyDeparture,
    LateArrival,
    NewAttendance,
    Overtime,
    Punch,
    with_derived_totals,
)
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

COLLECTION = "attendance"

Mutation = Callable[[Attendance], Optional[Attendance]]


class AttendanceService:
    """Use case: daily attendance records.

    The first event of a day creates the record, later events update it.
    Status, late/early flags and overtime are written by the caller; the store
    only derives break durations and worked hours from the punches.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        employees: EmployeeRepository,
        *,
        audit: Optional[AuditTrail] = None,
    ):
        self._attendance = attendance
        self._employees = employees
        self._audit = audit

    def create(self, draft: NewAttendance, *, actor: Optional[str] = None) -> Attendance:
        now = now_local()
        record = Attendance(
            id=new_id(),
            employee=draft.employee,
            date=draft.date,
            check_in=draft.check_in,
            check_out=draft.check_out,
            breaks=tuple(draft.breaks),
            total_work_hours=None,
            total_break_time=0,
            work_type=draft.work_type,
            status=draft.status,
            late_arrival=draft.late_arrival,
            early_departure=draft.early_departure,
            overtime=draft.overtime,
            remarks=draft.remarks,
            approved_by=draft.approved_by,
            created_at=now,
            updated_at=now,
            version=1,
        )
        created = self._attendance.create(self._validated(record, previous=None))
        audit_write(
            self._audit, actor, action="attendance.create", collection=COLLECTION,
            document_id=created.id, target_employee=created.employee, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, attendance_id: str) -> Attendance:
        record = self._attendance.get_by_id(attendance_id)
        if not record:
            raise NotFoundError("Attendance", attendance_id)
        return record

    def get_for_day(self, employee_id: str, work_date: date) -> Attendance:
        work_date = as_date(work_date, "date")
        record = self._attendance.get_for_employee_and_date(employee_id, work_date)
        if not record:
            raise NotFoundError("Attendance", f"{employee_id}@{work_date.isoformat()}")
        return record

    def history(
        self,
        employee_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        timeout: Optional[float] = None,
    ) -> Sequence[Attendance]:
        """Records of one employee, newest date first."""
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must be >= start_date")
        return self._attendance.list_for_employee(
            employee_id, start_date=start_date, end_date=end_date, limit=limit, timeout=timeout
        )

    def list_by_date(
        self,
        work_date: date,
        *,
        status: Optional[AttendanceStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        timeout: Optional[float] = None,
    ) -> Sequence[Attendance]:
        if status is not None:
            status = require_enum(AttendanceStatus, status, "status")
        return self._attendance.list_by_date(as_date(work_date, "date"), status=status, limit=limit, timeout=timeout)

    def update(
        self,
        attendance_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Attendance:
        current = self.get_by_id(attendance_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Attendance {attendance_id} changed (version {current.version})")
        candidate = apply_changes(
            current, changes, read_only=("employee", "date", "total_work_hours", "total_break_time")
        )
        return self._save(current, candidate, actor=actor, action="attendance.update")

    # -------- Punch events --------
    def record_check_in(
        self,
        employee_id: str,
        *,
        at: Optional[datetime] = None,
        source: PunchSource = PunchSource.MANUAL,
        location: Optional[str] = None,
        ip_address: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Attendance:
        at = at or now_local()
        punch = Punch(time=at, location=location, source=source, ip_address=ip_address)
        record, _ = self._apply(employee_id, at.date(), _check_in(punch), actor=actor, action="attendance.check_in")
        return record

    def record_check_out(
        self,
        employee_id: str,
        *,
        at: Optional[datetime] = None,
        source: PunchSource = PunchSource.MANUAL,
        location: Optional[str] = None,
        ip_address: Optional[str] = None,
        work_date: Optional[date] = None,
        actor: Optional[str] = None,
    ) -> Attendance:
        at = at or now_local()
        punch = Punch(time=at, location=location, source=source, ip_address=ip_address)
        record, _ = self._apply(
            employee_id, work_date or at.date(), _check_out(punch), actor=actor, action="attendance.check_out"
        )
        return record

    def start_break(
        self,
        employee_id: str,
        *,
        at: Optional[datetime] = None,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Attendance:
        at = at or now_local()
        record, changed = self._apply(employee_id, at.date(), _break_in(at, reason), actor=actor, action="attendance.break_in")
        if not changed:
            raise ValidationError("A break is already open or already started at this time")
        return record

    def end_break(self, employee_id: str, *, at: Optional[datetime] = None, actor: Optional[str] = None) -> Attendance:
        at = at or now_local()
        record, changed = self._apply(employee_id, at.date(), _break_out(at), actor=actor, action="attendance.break_out")
        if not changed:
            raise ValidationError("No open break to end")
        return record

    def approve_overtime(
        self,
        attendance_id: str,
        approver_id: str,
        *,
        hours=None,
        actor: Optional[str] = None,
    ) -> Attendance:
        current = self.get_by_id(attendance_id)
        overtime = Overtime(
            hours=current.overtime.hours if hours is None else to_non_negative_number(hours, "overtime.hours"),
            approved=True,
        )
        candidate = dataclasses.replace(current, overtime=overtime, approved_by=approver_id)
        return self._save(current, candidate, actor=actor or approver_id, action="attendance.approve_overtime")

    def apply_biometric_event(
        self,
        employee_id: str,
        log_type: BiometricLogType,
        at: datetime,
        *,
        location: Optional[str] = None,
    ) -> Tuple[Attendance, bool]:
        """Apply one device event to the day's record.

        Returns the record and whether it changed. Runs inside the caller's
        transaction when one is active.
        """
        log_type = require_enum(BiometricLogType, log_type, "log_type")
        punch = Punch(time=at, location=location, source=PunchSource.BIOMETRIC)
        mutation = {
            BiometricLogType.CHECK_IN: lambda: _check_in(punch),
            BiometricLogType.CHECK_OUT: lambda: _check_out(punch),
            BiometricLogType.BREAK_IN: lambda: _break_in(at, None),
            BiometricLogType.BREAK_OUT: lambda: _break_out(at),
        }[log_type]()
        return self._apply(employee_id, at.date(), mutation, actor=None, action=f"attendance.{log_type.value}")

    # -------- Internals --------
    def _apply(
        self,
        employee_id: str,
        work_date: date,
        mutation: Mutation,
        *,
        actor: Optional[str],
        action: str,
    ) -> Tuple[Attendance, bool]:
        current = self._attendance.get_for_employee_and_date(employee_id, work_date)
        if current is None:
            now = now_local()
            blank = Attendance(
                id=new_id(),
                employee=employee_id,
                date=work_date,
                check_in=None,
                check_out=None,
                breaks=(),
                total_work_hours=None,
                total_break_time=0,
                work_type=WorkType.OFFICE,
                status=AttendanceStatus.PRESENT,
                late_arrival=LateArrival(),
                early_departure=EarlyDeparture(),
                overtime=Overtime(),
                remarks=None,
                approved_by=None,
                created_at=now,
                updated_at=now,
                version=1,
            )
            opened = mutation(blank)
            if opened is None:
                raise ValidationError(f"No attendance on {work_date.isoformat()} for this event")
            created = self._attendance.create(self._validated(opened, previous=None))
            logger.info("attendance opened: employee=%s date=%s", employee_id, work_date.isoformat())
            audit_write(
                self._audit, actor, action=action, collection=COLLECTION,
                document_id=created.id, target_employee=employee_id, changes=to_jsonable(created),
            )
            return created, True

        candidate = mutation(current)
        if candidate is None:
            return current, False
        return self._save(current, candidate, actor=actor, action=action), True

    def _save(self, current: Attendance, candidate: Attendance, *, actor: Optional[str], action: str) -> Attendance:
        updated = self._attendance.update(self._validated(candidate, previous=current), expected_version=current.version)
        if updated is None:
            raise ConcurrencyConflictError(f"Attendance {current.id} was modified concurrently")
        audit_write(
            self._audit, actor, action=action, collection=COLLECTION,
            document_id=updated.id, target_employee=updated.employee, changes=diff(current, updated),
        )
        return updated

    def _validated(self, a: Attendance, *, previous: Optional[Attendance]) -> Attendance:
        employee_id = require_non_empty(a.employee, "employee")
        if previous is None:
            employee = self._employees.get_by_id(employee_id)
            if not employee:
                raise InvalidReferenceError(f"Employee does not exist: {employee_id}")
            if employee.status.is_separated:
                raise InvalidReferenceError(f"Employee is no longer employed: {employee.employee_id}")

        approver = optional_text(a.approved_by)
        if approver and (previous is None or approver != previous.approved_by):
            if not self._employees.get_by_id(approver):
                raise InvalidReferenceError(f"Approver does not exist: {approver}")

        check_in = _valid_punch(a.check_in, "check_in")
        check_out = _valid_punch(a.check_out, "check_out")
        if check_in and check_out and check_out.time < check_in.time:
            raise ValidationError("check_out cannot be earlier than check_in")

        for interval in a.breaks:
            if not isinstance(interval.break_in, datetime):
                raise ValidationError("break_in time is required")
            if interval.break_out is not None and interval.break_out < interval.break_in:
                raise ValidationError("A break cannot end before it starts")

        late = a.late_arrival
        early = a.early_departure
        record = dataclasses.replace(
            a,
            employee=employee_id,
            date=as_date(a.date, "date"),
            check_in=check_in,
            check_out=check_out,
            work_type=require_enum(WorkType, a.work_type, "work_type"),
            status=require_enum(AttendanceStatus, a.status, "status"),
            late_arrival=LateArrival(
                is_late=bool(late.is_late),
                late_by_minutes=require_non_negative_int(late.late_by_minutes, "late_by_minutes"),
            ),
            early_departure=EarlyDeparture(
                is_early=bool(early.is_early),
                early_by_minutes=require_non_negative_int(early.early_by_minutes, "early_by_minutes"),
            ),
            overtime=Overtime(
                hours=to_non_negative_number(a.overtime.hours, "overtime.hours"),
                approved=bool(a.overtime.approved),
            ),
            remarks=optional_text(a.remarks),
            approved_by=approver,
        )
        return with_derived_totals(record)


def _valid_punch(punch: Optional[Punch], field_name: str) -> Optional[Punch]:
    if punch is None:
        return None
    if not isinstance(punch.time, datetime):
        raise ValidationError(f"{field_name}.time must be a datetime")
    return dataclasses.replace(
        punch,
        source=require_enum(PunchSource, punch.source, f"{field_name}.source"),
        location=optional_text(punch.location),
        ip_address=optional_text(punch.ip_address),
    )


def _check_in(punch: Punch) -> Mutation:
    # Earliest punch wins.
    def mutate(record: Attendance) -> Optional[Attendance]:
        if record.check_in is not None and record.check_in.time <= punch.time:
            return None
        return dataclasses.replace(record, check_in=punch)

    return mutate


def _check_out(punch: Punch) -> Mutation:
    # Latest punch wins.
    def mutate(record: Attendance) -> Optional[Attendance]:
        if record.check_out is not None and record.check_out.time >= punch.time:
            return None
        return dataclasses.replace(record, check_out=punch)

    return mutate


def _break_in(at: datetime, reason: Optional[str]) -> Mutation:
    def mutate(record: Attendance) -> Optional[Attendance]:
        if record.open_break is not None or any(b.break_in == at for b in record.breaks):
            return None
        return dataclasses.replace(record, breaks=record.breaks + (BreakInterval(break_in=at, reason=reason),))

    return mutate


def _break_out(at: datetime) -> Mutation:
    def mutate(record: Attendance) -> Optional[Attendance]:
        # A redelivered event finds its break already closed.
        if any(b.break_out == at for b in record.breaks):
            return None
        open_break = record.open_break
        if open_break is None or at < open_break.break_in:
            return None
        breaks = list(record.breaks)
        index = len(breaks) - 1 - breaks[::-1].index(open_break)
        breaks[index] = dataclasses.replace(open_break, break_out=at)
        return dataclasses.replace(record, breaks=tuple(breaks))

    return mutate
