from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import as_date, now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import (
    normalize_email,
    optional_enum,
    optional_text,
    require_enum,
    require_non_empty,
    require_non_negative_int,
    require_upper_code,
    to_money,
    to_non_negative_number,
)
from ..core.constants import DEFAULT_LIST_LIMIT, MAX_REPORTING_CHAIN_DEPTH
from ..core.defaults import EntityDefaults
from ..core.enums import DocumentType, EmployeeStatus, EmployeeType, Gender, LeaveType, WorkLocation
from ..core.exceptions import (
    ConcurrencyConflictError,
    DependentRecordsError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from ..database.records import new_id
from ..departments.repository import DepartmentRepository
from .model import (
    BALANCE_FIELDS,
    Allowances,
    Employee,
    EmployeeDocument,
    EmploymentDetails,
    LeaveBalance,
    NewEmployee,
    PersonalInfo,
    SalaryDeductions,
    SalaryInfo,
    TerminationDetails,
)
from .repository import EmployeeRepository

logger = logging.getLogger(__name__)

COLLECTION = "employees"

# Salary slip numbers embed the code, so it is fixed once assigned.
_READ_ONLY = ("employee_id",)


class EmployeeService:
    """Use case: maintain personnel records.

    Delete policy is RESTRICT while attendance, leave, payroll or biometric
    records reference the employee; :meth:`terminate` is the soft delete.
    """

    def __init__(
        self,
        employees: EmployeeRepository,
        departments: DepartmentRepository,
        *,
        defaults: Optional[EntityDefaults] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self._employees = employees
        self._departments = departments
        self._defaults = defaults or EntityDefaults()
        self._audit = audit

    # -------- Create / read --------
    def create(self, draft: NewEmployee, *, actor: Optional[str] = None) -> Employee:
        now = now_local()
        employment = draft.employment_details
        if employment.probation_period is None:
            employment = dataclasses.replace(employment, probation_period=self._defaults.probation_period_months)

        salary = draft.salary_info
        if salary.deductions.provident_fund is None:
            salary = dataclasses.replace(
                salary,
                deductions=dataclasses.replace(salary.deductions, provident_fund=self._defaults.provident_fund),
            )

        balance = draft.leave_balance or LeaveBalance(
            **{name: Decimal(str(self._defaults.leave_balance.get(name, 0))) for name in ("casual", "sick", "annual", "unpaid")}
        )

        employee = Employee(
            id=new_id(),
            employee_id=draft.employee_id,
            personal_info=draft.personal_info,
            employment_details=employment,
            salary_info=salary,
            biometric_info=draft.biometric_info,
            status=draft.status,
            termination_details=None,
            documents=tuple(draft.documents),
            leave_balance=balance,
            created_at=now,
            updated_at=now,
            version=1,
        )
        employee = self._validated(employee, previous=None)
        created = self._employees.create(employee)
        logger.info("employee created: %s (%s)", created.employee_id, created.id)
        audit_write(
            self._audit, actor, action="employee.create", collection=COLLECTION,
            document_id=created.id, target_employee=created.id, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, employee_id: str) -> Employee:
        employee = self._employees.get_by_id(employee_id)
        if not employee:
            raise NotFoundError("Employee", employee_id)
        return employee

    def get_by_code(self, code: str) -> Employee:
        employee = self._employees.get_by_code(require_upper_code(code, "employee_id"))
        if not employee:
            raise NotFoundError("Employee", code)
        return employee

    def get_by_email(self, email: str) -> Employee:
        employee = self._employees.get_by_email(normalize_email(email))
        if not employee:
            raise NotFoundError("Employee", email)
        return employee

    def get_by_biometric_id(self, biometric_id: str) -> Employee:
        employee = self._employees.get_by_biometric_id(require_non_empty(biometric_id, "biometric_id"))
        if not employee:
            raise NotFoundError("Employee", biometric_id)
        return employee

    def list_by_department(
        self,
        department_id: str,
        *,
        status: Optional[EmployeeStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[Employee]:
        status = optional_enum(EmployeeStatus, status, "status")
        return self._employees.list_by_department(department_id, status=status, limit=limit)

    def list_by_status(self, status: EmployeeStatus, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Employee]:
        return self._employees.list_by_status(require_enum(EmployeeStatus, status, "status"), limit=limit)

    def direct_reports(self, manager_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Employee]:
        return self._employees.list_direct_reports(manager_id, limit=limit)

    # -------- Update --------
    def update(
        self,
        employee_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
        action: str = "employee.update",
    ) -> Employee:
        current = self.get_by_id(employee_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Employee {employee_id} changed (version {current.version})")

        candidate = self._validated(apply_changes(current, changes, read_only=_READ_ONLY), previous=current)
        updated = self._employees.update(candidate, expected_version=current.version)
        if updated is None:
            raise ConcurrencyConflictError(f"Employee {employee_id} was modified concurrently")

        audit_write(
            self._audit, actor, action=action, collection=COLLECTION,
            document_id=updated.id, target_employee=updated.id, changes=diff(current, updated),
        )
        return updated

    def terminate(
        self,
        employee_id: str,
        details: TerminationDetails,
        *,
        status: EmployeeStatus = EmployeeStatus.TERMINATED,
        actor: Optional[str] = None,
    ) -> Employee:
        status = require_enum(EmployeeStatus, status, "status")
        if not status.is_separated:
            raise ValidationError("status must be Terminated or Resigned")
        employee = self.update(
            employee_id,
            {"status": status, "termination_details": details},
            actor=actor,
            action="employee.terminate",
        )
        logger.info("employee %s: %s", employee.employee_id, status.value)
        return employee

    def add_document(self, employee_id: str, document: EmployeeDocument, *, actor: Optional[str] = None) -> Employee:
        current = self.get_by_id(employee_id)
        if document.uploaded_at is None:
            document = dataclasses.replace(document, uploaded_at=now_local())
        return self.update(
            employee_id,
            {"documents": current.documents + (document,)},
            expected_version=current.version,
            actor=actor,
            action="employee.add_document",
        )

    def register_biometric(self, employee_id: str, biometric_id: str, *, actor: Optional[str] = None) -> Employee:
        return self.update(
            employee_id,
            {
                "biometric_info.biometric_id": require_non_empty(biometric_id, "biometric_id"),
                "biometric_info.fingerprint_registered": True,
            },
            actor=actor,
            action="employee.register_biometric",
        )

    def mark_biometric_synced(self, employee_id: str, *, at: Optional[datetime] = None) -> Employee:
        return self.update(employee_id, {"biometric_info.last_synced_at": at or now_local()})

    def adjust_leave_balance(
        self,
        employee_id: str,
        leave_type: LeaveType,
        delta,
        *,
        actor: Optional[str] = None,
    ) -> Employee:
        leave_type = require_enum(LeaveType, leave_type, "leave_type")
        field_name = BALANCE_FIELDS.get(leave_type)
        if field_name is None:
            raise ValidationError(f"{leave_type.value} leave has no tracked balance")
        current = self.get_by_id(employee_id)
        new_value = current.leave_balance.get(leave_type) + Decimal(str(delta))
        if new_value < 0:
            raise ValidationError(f"{leave_type.value} leave balance cannot go below zero")
        return self.update(
            employee_id,
            {f"leave_balance.{field_name}": new_value},
            expected_version=current.version,
            actor=actor,
            action="employee.adjust_leave_balance",
        )

    # -------- Delete --------
    def delete(self, employee_id: str, *, actor: Optional[str] = None) -> None:
        employee = self.get_by_id(employee_id)
        dependents = self._employees.count_dependents(employee.id)
        if dependents:
            summary = ", ".join(f"{name}={n}" for name, n in sorted(dependents.items()))
            raise DependentRecordsError(f"Employee {employee.employee_id} is still referenced ({summary}); terminate instead")
        if not self._employees.delete(employee.id):
            raise NotFoundError("Employee", employee_id)
        logger.info("employee deleted: %s", employee.employee_id)
        audit_write(
            self._audit, actor, action="employee.delete", collection=COLLECTION,
            document_id=employee.id, target_employee=employee.id, changes=to_jsonable(employee),
        )

    # -------- Validation --------
    def _validated(self, e: Employee, *, previous: Optional[Employee]) -> Employee:
        personal = self._valid_personal(e.personal_info)
        employment = self._valid_employment(e, previous)
        salary = self._valid_salary(e.salary_info)

        bio = e.biometric_info
        bio = dataclasses.replace(
            bio,
            biometric_id=optional_text(bio.biometric_id),
            fingerprint_registered=bool(bio.fingerprint_registered),
        )

        status = require_enum(EmployeeStatus, e.status, "status")
        termination = e.termination_details
        if termination is not None:
            termination = dataclasses.replace(
                termination,
                termination_date=as_date(termination.termination_date, "termination_date"),
                reason=optional_text(termination.reason),
                last_working_day=(
                    as_date(termination.last_working_day, "last_working_day") if termination.last_working_day else None
                ),
                remarks=optional_text(termination.remarks),
            )
        if status.is_separated and termination is None:
            raise ValidationError(f"termination_details are required when status is {status.value}")

        documents = tuple(
            dataclasses.replace(
                d,
                document_type=require_enum(DocumentType, d.document_type, "document_type"),
                document_name=require_non_empty(d.document_name, "document_name"),
                document_url=require_non_empty(d.document_url, "document_url"),
            )
            for d in e.documents
        )

        lb = e.leave_balance
        balance = LeaveBalance(
            casual=to_non_negative_number(lb.casual, "leave_balance.casual"),
            sick=to_non_negative_number(lb.sick, "leave_balance.sick"),
            annual=to_non_negative_number(lb.annual, "leave_balance.annual"),
            unpaid=to_non_negative_number(lb.unpaid, "leave_balance.unpaid"),
        )

        return dataclasses.replace(
            e,
            employee_id=require_upper_code(e.employee_id, "employee_id"),
            personal_info=personal,
            employment_details=employment,
            salary_info=salary,
            biometric_info=bio,
            status=status,
            termination_details=termination,
            documents=documents,
            leave_balance=balance,
        )

    @staticmethod
    def _valid_personal(p: PersonalInfo) -> PersonalInfo:
        if p is None:
            raise ValidationError("personal_info is required")
        dob = as_date(p.date_of_birth, "date_of_birth") if p.date_of_birth else None
        if dob and dob > date.today():
            raise ValidationError("date_of_birth cannot be in the future")
        return dataclasses.replace(
            p,
            first_name=require_non_empty(p.first_name, "first_name"),
            last_name=require_non_empty(p.last_name, "last_name"),
            email=normalize_email(p.email),
            phone=require_non_empty(p.phone, "phone"),
            alternate_phone=optional_text(p.alternate_phone),
            date_of_birth=dob,
            gender=optional_enum(Gender, p.gender, "gender"),
            blood_group=optional_text(p.blood_group),
        )

    def _valid_employment(self, e: Employee, previous: Optional[Employee]) -> EmploymentDetails:
        job = e.employment_details
        if job is None:
            raise ValidationError("employment_details are required")
        before = previous.employment_details if previous else None

        department = require_non_empty(job.department, "department")
        if before is None or department != before.department:
            found = self._departments.get_by_id(department)
            if not found:
                raise InvalidReferenceError(f"Department does not exist: {department}")
            if not found.is_active:
                raise InvalidReferenceError(f"Department is inactive: {found.department_id}")

        joining = as_date(job.joining_date, "joining_date")
        confirmation = as_date(job.confirmation_date, "confirmation_date") if job.confirmation_date else None
        if confirmation and confirmation < joining:
            raise ValidationError("confirmation_date cannot precede joining_date")

        manager = optional_text(job.reporting_manager)
        if manager and (before is None or manager != before.reporting_manager):
            self._check_manager(e.id, manager)

        return dataclasses.replace(
            job,
            department=department,
            designation=require_non_empty(job.designation, "designation"),
            employee_type=require_enum(EmployeeType, job.employee_type, "employee_type"),
            joining_date=joining,
            confirmation_date=confirmation,
            probation_period=(
                require_non_negative_int(job.probation_period, "probation_period")
                if job.probation_period is not None
                else None
            ),
            reporting_manager=manager,
            work_location=require_enum(WorkLocation, job.work_location or WorkLocation.OFFICE, "work_location"),
        )

    def _check_manager(self, employee_id: str, manager_id: str) -> None:
        if manager_id == employee_id:
            raise ValidationError("An employee cannot report to themselves")
        manager = self._employees.get_by_id(manager_id)
        if not manager:
            raise InvalidReferenceError(f"Reporting manager does not exist: {manager_id}")
        if manager.status.is_separated:
            raise InvalidReferenceError(f"Reporting manager is no longer employed: {manager.employee_id}")

        seen = {manager_id}
        cursor = manager.employment_details.reporting_manager
        for _ in range(MAX_REPORTING_CHAIN_DEPTH):
            if not cursor:
                return
            if cursor == employee_id:
                raise ValidationError(f"Reporting manager {manager.employee_id} would create a reporting cycle")
            if cursor in seen:
                return
            seen.add(cursor)
            upper = self._employees.get_by_id(cursor)
            cursor = upper.employment_details.reporting_manager if upper else None
        raise ValidationError("Reporting chain is too deep")

    @staticmethod
    def _valid_salary(s: SalaryInfo) -> SalaryInfo:
        if s is None:
            raise ValidationError("salary_info is required")
        if s.basic_salary is None:
            raise ValidationError("basic_salary is required")
        a = s.allowances
        d = s.deductions
        return dataclasses.replace(
            s,
            basic_salary=to_money(s.basic_salary, "basic_salary"),
            allowances=Allowances(
                house_rent=to_money(a.house_rent, "allowances.house_rent"),
                medical=to_money(a.medical, "allowances.medical"),
                transport=to_money(a.transport, "allowances.transport"),
                other=to_money(a.other, "allowances.other"),
            ),
            deductions=SalaryDeductions(
                tax=to_money(d.tax, "deductions.tax"),
                provident_fund=to_money(d.provident_fund, "deductions.provident_fund"),
                insurance=to_money(d.insurance, "deductions.insurance"),
                other=to_money(d.other, "deductions.other"),
            ),
        )
