from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional, Sequence

from sqlalchemy import func, insert, or_, select

from ..common.datetime_utils import now_local
from ..common.serialization import read_date, read_datetime, to_jsonable
from ..core.enums import DocumentType, EmployeeStatus, EmployeeType, Gender, WorkLocation
from ..database.connection import DatabaseConnection
from ..database.records import delete_by_id, versioned_update
from ..database.session import db_session, run_in_transaction
from ..database.tables import (
    AttendanceRow,
    BiometricLogRow,
    DepartmentRow,
    EmployeeRow,
    LeaveRow,
    SalaryRow,
    SalarySlipRow,
    SettingsRow,
)
from .model import (
    Address,
    Allowances,
    BankDetails,
    BiometricInfo,
    EmergencyContact,
    Employee,
    EmployeeDocument,
    EmploymentDetails,
    LeaveBalance,
    PersonalInfo,
    SalaryDeductions,
    SalaryInfo,
    TerminationDetails,
)
from .repository import EmployeeRepository


class SqlEmployeeRepository(EmployeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, employee_id: str) -> Optional[Employee]:
        return self._first(EmployeeRow.id == employee_id)

    def get_by_code(self, code: str) -> Optional[Employee]:
        return self._first(EmployeeRow.employee_id == code.strip().upper())

    def get_by_email(self, email: str) -> Optional[Employee]:
        return self._first(EmployeeRow.email == email.strip().lower())

    def get_by_biometric_id(self, biometric_id: str) -> Optional[Employee]:
        return self._first(EmployeeRow.biometric_id == biometric_id.strip())

    def list_by_department(
        self,
        department_id: str,
        *,
        status: Optional[EmployeeStatus] = None,
        limit: int = 200,
    ) -> Sequence[Employee]:
        stmt = select(EmployeeRow).where(EmployeeRow.department_id == department_id)
        if status is not None:
            stmt = stmt.where(EmployeeRow.status == status.value)
        return self._all(stmt.order_by(EmployeeRow.employee_id.asc()).limit(int(limit)))

    def list_by_status(self, status: EmployeeStatus, *, limit: int = 200) -> Sequence[Employee]:
        stmt = select(EmployeeRow).where(EmployeeRow.status == status.value)
        return self._all(stmt.order_by(EmployeeRow.employee_id.asc()).limit(int(limit)))

    def list_direct_reports(self, manager_id: str, *, limit: int = 200) -> Sequence[Employee]:
        stmt = select(EmployeeRow).where(EmployeeRow.reporting_manager_id == manager_id)
        return self._all(stmt.order_by(EmployeeRow.employee_id.asc()).limit(int(limit)))

    def create(self, employee: Employee) -> Employee:
        def work(session):
            session.execute(insert(EmployeeRow).values(**self._to_values(employee)))
            return employee

        return run_in_transaction(self._conn_factory, work)

    def update(self, employee: Employee, *, expected_version: int) -> Optional[Employee]:
        def work(session):
            ok = versioned_update(
                session,
                EmployeeRow,
                entity_id=employee.id,
                expected_version=expected_version,
                values=self._to_values(employee),
                now=now_local(),
            )
            return self.get_by_id(employee.id) if ok else None

        return run_in_transaction(self._conn_factory, work)

    def delete(self, employee_id: str) -> bool:
        return run_in_transaction(self._conn_factory, lambda s: delete_by_id(s, EmployeeRow, employee_id))

    def count_dependents(self, employee_id: str) -> Dict[str, int]:
        checks = {
            "attendance": select(func.count(AttendanceRow.id)).where(
                or_(AttendanceRow.employee_id == employee_id, AttendanceRow.approved_by == employee_id)
            ),
            "leaves": select(func.count(LeaveRow.id)).where(
                or_(LeaveRow.employee_id == employee_id, LeaveRow.approved_by == employee_id)
            ),
            "salaries": select(func.count(SalaryRow.id)).where(
                or_(SalaryRow.employee_id == employee_id, SalaryRow.generated_by == employee_id)
            ),
            "salary_slips": select(func.count(SalarySlipRow.id)).where(SalarySlipRow.employee_id == employee_id),
            "biometric_logs": select(func.count(BiometricLogRow.id)).where(BiometricLogRow.employee_id == employee_id),
            "direct_reports": select(func.count(EmployeeRow.id)).where(EmployeeRow.reporting_manager_id == employee_id),
            "department_heads": select(func.count(DepartmentRow.id)).where(
                DepartmentRow.head_of_department == employee_id
            ),
            "settings": select(func.count(SettingsRow.id)).where(SettingsRow.updated_by == employee_id),
        }
        with db_session(self._conn_factory) as session:
            counts = {name: int(session.scalar(stmt) or 0) for name, stmt in checks.items()}
        return {name: n for name, n in counts.items() if n}

    def _first(self, clause) -> Optional[Employee]:
        with db_session(self._conn_factory) as session:
            r = session.scalars(select(EmployeeRow).where(clause)).first()
            return self._to_entity(r) if r else None

    def _all(self, stmt) -> Sequence[Employee]:
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    @staticmethod
    def _to_values(e: Employee) -> dict:
        p = e.personal_info
        job = e.employment_details
        pay = e.salary_info
        bio = e.biometric_info
        return {
            "id": e.id,
            "employee_id": e.employee_id,
            "first_name": p.first_name,
            "last_name": p.last_name,
            "email": p.email,
            "phone": p.phone,
            "alternate_phone": p.alternate_phone,
            "date_of_birth": p.date_of_birth,
            "gender": p.gender.value if p.gender else None,
            "blood_group": p.blood_group,
            "address": to_jsonable(p.address),
            "emergency_contact": to_jsonable(p.emergency_contact),
            "department_id": job.department,
            "designation": job.designation,
            "employee_type": job.employee_type.value,
            "joining_date": job.joining_date,
            "confirmation_date": job.confirmation_date,
            "probation_period": job.probation_period,
            "reporting_manager_id": job.reporting_manager,
            "work_location": job.work_location.value,
            "basic_salary": pay.basic_salary,
            "allowance_house_rent": pay.allowances.house_rent,
            "allowance_medical": pay.allowances.medical,
            "allowance_transport": pay.allowances.transport,
            "allowance_other": pay.allowances.other,
            "deduction_tax": pay.deductions.tax,
            "deduction_provident_fund": pay.deductions.provident_fund or Decimal("0"),
            "deduction_insurance": pay.deductions.insurance,
            "deduction_other": pay.deductions.other,
            "bank_details": to_jsonable(pay.bank_details),
            "biometric_id": bio.biometric_id,
            "fingerprint_registered": bool(bio.fingerprint_registered),
            "biometric_last_synced_at": bio.last_synced_at,
            "status": e.status.value,
            "termination": to_jsonable(e.termination_details) if e.termination_details else None,
            "documents": to_jsonable(e.documents),
            "leave_casual": e.leave_balance.casual,
            "leave_sick": e.leave_balance.sick,
            "leave_annual": e.leave_balance.annual,
            "leave_unpaid": e.leave_balance.unpaid,
            "created_at": e.created_at,
            "updated_at": e.updated_at,
            "version": e.version,
        }

    @staticmethod
    def _to_entity(r: EmployeeRow) -> Employee:
        termination = r.termination or None
        return Employee(
            id=r.id,
            employee_id=r.employee_id,
            personal_info=PersonalInfo(
                first_name=r.first_name,
                last_name=r.last_name,
                email=r.email,
                phone=r.phone,
                alternate_phone=r.alternate_phone,
                date_of_birth=r.date_of_birth,
                gender=Gender(r.gender) if r.gender else None,
                blood_group=r.blood_group,
                address=Address(**(r.address or {})),
                emergency_contact=EmergencyContact(**(r.emergency_contact or {})),
            ),
            employment_details=EmploymentDetails(
                department=r.department_id,
                designation=r.designation,
                employee_type=EmployeeType(r.employee_type),
                joining_date=r.joining_date,
                confirmation_date=r.confirmation_date,
                probation_period=r.probation_period,
                reporting_manager=r.reporting_manager_id,
                work_location=WorkLocation(r.work_location),
            ),
            salary_info=SalaryInfo(
                basic_salary=Decimal(r.basic_salary),
                allowances=Allowances(
                    house_rent=Decimal(r.allowance_house_rent),
                    medical=Decimal(r.allowance_medical),
                    transport=Decimal(r.allowance_transport),
                    other=Decimal(r.allowance_other),
                ),
                deductions=SalaryDeductions(
                    tax=Decimal(r.deduction_tax),
                    provident_fund=Decimal(r.deduction_provident_fund),
                    insurance=Decimal(r.deduction_insurance),
                    other=Decimal(r.deduction_other),
                ),
                bank_details=BankDetails(**(r.bank_details or {})),
            ),
            biometric_info=BiometricInfo(
                biometric_id=r.biometric_id,
                fingerprint_registered=bool(r.fingerprint_registered),
                last_synced_at=r.biometric_last_synced_at,
            ),
            status=EmployeeStatus(r.status),
            termination_details=(
                TerminationDetails(
                    termination_date=read_date(termination["termination_date"]),
                    reason=termination.get("reason"),
                    last_working_day=read_date(termination.get("last_working_day")),
                    remarks=termination.get("remarks"),
                )
                if termination
                else None
            ),
            documents=tuple(
                EmployeeDocument(
                    document_type=DocumentType(d["document_type"]),
                    document_name=d["document_name"],
                    document_url=d["document_url"],
                    uploaded_at=read_datetime(d.get("uploaded_at")),
                )
                for d in (r.documents or [])
            ),
            leave_balance=LeaveBalance(
                casual=Decimal(r.leave_casual),
                sick=Decimal(r.leave_sick),
                annual=Decimal(r.leave_annual),
                unpaid=Decimal(r.leave_unpaid),
            ),
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )
