from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import (
    optional_text,
    require_enum,
    require_month,
    require_non_empty,
    require_year,
    to_money,
    to_non_negative_number,
)
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.defaults import EntityDefaults
from ..core.enums import PaymentMethod, PaymentStatus
from ..core.exceptions import (
    ConcurrencyConflictError,
    InvalidReferenceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..database.records import new_id
from ..employees.model import Employee
from ..employees.repository import EmployeeRepository
from .model import PAYMENT_TRANSITIONS, AttendanceSummary, Deductions, Earnings, NewSalary, Salary
from .repository import SalaryRepository

logger = logging.getLogger(__name__)

COLLECTION = "salaries"

_EDITABLE_STATUSES = (PaymentStatus.PENDING, PaymentStatus.ON_HOLD)
_TOTALS = ("gross_salary", "total_deductions", "net_salary")


class SalaryService:
    """Use case: monthly salary records and their payment flow.

    Totals always reconcile: gross is the sum of earnings, total deductions the
    sum of deductions and net their difference.
    """

    def __init__(
        self,
        salaries: SalaryRepository,
        employees: EmployeeRepository,
        *,
        defaults: Optional[EntityDefaults] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self._salaries = salaries
        self._employees = employees
        self._defaults = defaults or EntityDefaults()
        self._audit = audit

    def create(self, draft: NewSalary, *, actor: Optional[str] = None) -> Salary:
        employee = self._employees.get_by_id(require_non_empty(draft.employee, "employee"))
        if not employee:
            raise InvalidReferenceError(f"Employee does not exist: {draft.employee}")

        earnings = draft.earnings or self._earnings_from(employee)
        deductions = draft.deductions or self._deductions_from(employee)
        now = now_local()
        salary = Salary(
            id=new_id(),
            employee=employee.id,
            month=draft.month,
            year=draft.year,
            earnings=earnings,
            deductions=deductions,
            attendance=draft.attendance,
            gross_salary=draft.gross_salary,
            total_deductions=draft.total_deductions,
            net_salary=draft.net_salary,
            payment_status=PaymentStatus.PENDING,
            payment_date=None,
            payment_method=None,
            transaction_id=None,
            remarks=draft.remarks,
            generated_by=draft.generated_by,
            created_at=now,
            updated_at=now,
            version=1,
        )
        created = self._salaries.create(self._validated(salary, previous=None))
        logger.info(
            "salary created: employee=%s period=%s net=%s", employee.employee_id, created.period, created.net_salary
        )
        audit_write(
            self._audit, actor or created.generated_by, action="salary.create", collection=COLLECTION,
            document_id=created.id, target_employee=created.employee, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, salary_id: str) -> Salary:
        salary = self._salaries.get_by_id(salary_id)
        if not salary:
            raise NotFoundError("Salary", salary_id)
        return salary

    def get_for_period(self, employee_id: str, month: int, year: int) -> Salary:
        month, year = require_month(month), require_year(year)
        salary = self._salaries.get_for_period(employee_id, month, year)
        if not salary:
            raise NotFoundError("Salary", f"{employee_id}@{year:04d}-{month:02d}")
        return salary

    def history(self, employee_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Salary]:
        return self._salaries.list_for_employee(employee_id, limit=limit)

    def list_for_period(
        self,
        year: int,
        month: Optional[int] = None,
        *,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        timeout: Optional[float] = None,
    ) -> Sequence[Salary]:
        year = require_year(year)
        if month is not None:
            month = require_month(month)
        if payment_status is not None:
            payment_status = require_enum(PaymentStatus, payment_status, "payment_status")
        return self._salaries.list_for_period(
            year, month, payment_status=payment_status, limit=limit, timeout=timeout
        )

    def list_by_payment_status(
        self, payment_status: PaymentStatus, *, limit: int = DEFAULT_LIST_LIMIT, timeout: Optional[float] = None
    ) -> Sequence[Salary]:
        payment_status = require_enum(PaymentStatus, payment_status, "payment_status")
        return self._salaries.list_by_payment_status(payment_status, limit=limit, timeout=timeout)

    def update(
        self,
        salary_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Salary:
        """Correct amounts or the attendance summary of a Pending or On Hold salary."""
        current = self.get_by_id(salary_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Salary {salary_id} changed (version {current.version})")
        if current.payment_status not in _EDITABLE_STATUSES:
            raise ValidationError(f"Salary cannot be edited while {current.payment_status.value}")
        candidate = apply_changes(
            current,
            changes,
            read_only=("employee", "month", "year", "payment_status", "payment_date", "payment_method", "transaction_id"),
        )
        # Totals not given explicitly follow the new amounts.
        given = {name.partition(".")[0] for name in changes}
        candidate = dataclasses.replace(candidate, **{name: None for name in _TOTALS if name not in given})
        return self._save(current, self._validated(candidate, previous=current), actor=actor, action="salary.update")

    # -------- Payment flow --------
    def mark_processing(self, salary_id: str, *, actor: Optional[str] = None) -> Salary:
        current = self._transition(salary_id, PaymentStatus.PROCESSING)
        return self._save(
            current, dataclasses.replace(current, payment_status=PaymentStatus.PROCESSING),
            actor=actor, action="salary.processing",
        )

    def mark_paid(
        self,
        salary_id: str,
        *,
        method: PaymentMethod,
        transaction_id: Optional[str] = None,
        paid_on: Optional[datetime] = None,
        actor: Optional[str] = None,
    ) -> Salary:
        method = require_enum(PaymentMethod, method, "payment_method")
        transaction_id = optional_text(transaction_id)
        if method == PaymentMethod.BANK_TRANSFER and not transaction_id:
            raise ValidationError("transaction_id is required for bank transfers")
        current = self._transition(salary_id, PaymentStatus.PAID)
        candidate = dataclasses.replace(
            current,
            payment_status=PaymentStatus.PAID,
            payment_method=method,
            transaction_id=transaction_id,
            payment_date=paid_on or now_local(),
        )
        return self._save(current, candidate, actor=actor, action="salary.paid")

    def hold(self, salary_id: str, *, reason: Optional[str] = None, actor: Optional[str] = None) -> Salary:
        current = self._transition(salary_id, PaymentStatus.ON_HOLD)
        candidate = dataclasses.replace(
            current, payment_status=PaymentStatus.ON_HOLD, remarks=optional_text(reason) or current.remarks
        )
        return self._save(current, candidate, actor=actor, action="salary.hold")

    def resume(
        self,
        salary_id: str,
        *,
        to: PaymentStatus = PaymentStatus.PENDING,
        actor: Optional[str] = None,
    ) -> Salary:
        to = require_enum(PaymentStatus, to, "payment_status")
        current = self.get_by_id(salary_id)
        if current.payment_status != PaymentStatus.ON_HOLD:
            raise InvalidTransitionError("Salary", current.payment_status, to)
        current = self._transition(salary_id, to)
        return self._save(current, dataclasses.replace(current, payment_status=to), actor=actor, action="salary.resume")

    # -------- Internals --------
    def _transition(self, salary_id: str, target: PaymentStatus) -> Salary:
        current = self.get_by_id(salary_id)
        if target not in PAYMENT_TRANSITIONS[current.payment_status]:
            raise InvalidTransitionError("Salary", current.payment_status, target)
        return current

    def _save(self, current: Salary, candidate: Salary, *, actor: Optional[str], action: str) -> Salary:
        updated = self._salaries.update(
            candidate, expected_version=current.version, expected_status=current.payment_status
        )
        if updated is None:
            raise ConcurrencyConflictError(f"Salary {current.id} was modified concurrently")
        if updated.payment_status != current.payment_status:
            logger.info(
                "salary %s: %s -> %s", updated.id, current.payment_status.value, updated.payment_status.value
            )
        audit_write(
            self._audit, actor, action=action, collection=COLLECTION,
            document_id=updated.id, target_employee=updated.employee, changes=diff(current, updated),
        )
        return updated

    def _earnings_from(self, employee: Employee) -> Earnings:
        info = employee.salary_info
        if info is None:
            raise ValidationError("earnings are required when the employee has no salary information")
        return Earnings(
            basic_salary=info.basic_salary,
            house_rent_allowance=info.allowances.house_rent,
            medical_allowance=info.allowances.medical,
            transport_allowance=info.allowances.transport,
            other_allowances=info.allowances.other,
        )

    def _deductions_from(self, employee: Employee) -> Deductions:
        info = employee.salary_info
        if info is None:
            return Deductions(provident_fund=self._defaults.provident_fund)
        d = info.deductions
        provident_fund = d.provident_fund if d.provident_fund is not None else self._defaults.provident_fund
        return Deductions(tax=d.tax, provident_fund=provident_fund, insurance=d.insurance, other_deductions=d.other)

    def _validated(self, s: Salary, *, previous: Optional[Salary]) -> Salary:
        generated_by = optional_text(s.generated_by)
        if generated_by and (previous is None or generated_by != previous.generated_by):
            if not self._employees.get_by_id(generated_by):
                raise InvalidReferenceError(f"Employee does not exist: {generated_by}")

        earnings = Earnings(
            **{f.name: to_money(getattr(s.earnings, f.name), f.name) for f in dataclasses.fields(Earnings)}
        )
        deductions = Deductions(
            **{f.name: to_money(getattr(s.deductions, f.name), f.name) for f in dataclasses.fields(Deductions)}
        )
        gross = _reconciled(s.gross_salary, earnings.total, "gross_salary")
        total_deductions = _reconciled(s.total_deductions, deductions.total, "total_deductions")
        net = _reconciled(s.net_salary, gross - total_deductions, "net_salary")
        if net < 0:
            raise ValidationError("Deductions exceed gross salary")

        return dataclasses.replace(
            s,
            month=require_month(s.month),
            year=require_year(s.year),
            earnings=earnings,
            deductions=deductions,
            attendance=_valid_attendance(s.attendance),
            gross_salary=gross,
            total_deductions=total_deductions,
            net_salary=net,
            payment_status=require_enum(PaymentStatus, s.payment_status, "payment_status"),
            remarks=optional_text(s.remarks),
            generated_by=generated_by,
        )


def _reconciled(given, expected: Decimal, field_name: str) -> Decimal:
    if given is None:
        return expected
    amount = to_money(given, field_name, allow_negative=True)
    if amount != expected:
        raise ValidationError(f"{field_name} is {amount} but the components add up to {expected}")
    return amount


def _valid_attendance(a: AttendanceSummary) -> AttendanceSummary:
    if a is None:
        raise ValidationError("attendance summary is required")
    values = {f.name: to_non_negative_number(getattr(a, f.name), f.name) for f in dataclasses.fields(AttendanceSummary)}
    total = values["total_working_days"]
    for name, value in values.items():
        if value > total:
            raise ValidationError(f"{name} ({value}) exceeds total_working_days ({total})")
    return AttendanceSummary(**values)
