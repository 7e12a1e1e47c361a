from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from ..core.enums import DocumentType, EmployeeStatus, EmployeeType, Gender, LeaveType, WorkLocation

ZERO = Decimal("0")


@dataclass(frozen=True)
class Address:
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None


@dataclass(frozen=True)
class EmergencyContact:
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class PersonalInfo:
    first_name: str
    last_name: str
    email: str
    phone: str
    alternate_phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    blood_group: Optional[str] = None
    address: Address = field(default_factory=Address)
    emergency_contact: EmergencyContact = field(default_factory=EmergencyContact)


@dataclass(frozen=True)
class EmploymentDetails:
    department: str
    designation: str
    employee_type: EmployeeType
    joining_date: date
    confirmation_date: Optional[date] = None
    probation_period: Optional[int] = None  # months
    reporting_manager: Optional[str] = None
    work_location: WorkLocation = WorkLocation.OFFICE


@dataclass(frozen=True)
class Allowances:
    house_rent: Decimal = ZERO
    medical: Decimal = ZERO
    transport: Decimal = ZERO
    other: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.house_rent + self.medical + self.transport + self.other


@dataclass(frozen=True)
class SalaryDeductions:
    tax: Decimal = ZERO
    provident_fund: Optional[Decimal] = None  # None: use the configured default
    insurance: Decimal = ZERO
    other: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.tax + (self.provident_fund or ZERO) + self.insurance + self.other


@dataclass(frozen=True)
class BankDetails:
    account_holder_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    ifsc_code: Optional[str] = None


@dataclass(frozen=True)
class SalaryInfo:
    basic_salary: Decimal
    allowances: Allowances = field(default_factory=Allowances)
    deductions: SalaryDeductions = field(default_factory=SalaryDeductions)
    bank_details: BankDetails = field(default_factory=BankDetails)


@dataclass(frozen=True)
class BiometricInfo:
    biometric_id: Optional[str] = None
    fingerprint_registered: bool = False
    last_synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class TerminationDetails:
    termination_date: date
    reason: Optional[str] = None
    last_working_day: Optional[date] = None
    remarks: Optional[str] = None


@dataclass(frozen=True)
class EmployeeDocument:
    document_type: DocumentType
    document_name: str
    document_url: str
    uploaded_at: Optional[datetime] = None


@dataclass(frozen=True)
class LeaveBalance:
    casual: Decimal = ZERO
    sick: Decimal = ZERO
    annual: Decimal = ZERO
    unpaid: Decimal = ZERO

    def get(self, leave_type: LeaveType) -> Decimal:
        return getattr(self, BALANCE_FIELDS[leave_type])


# Leave types that draw from a tracked balance.
BALANCE_FIELDS = {
    LeaveType.CASUAL: "casual",
    LeaveType.SICK: "sick",
    LeaveType.ANNUAL: "annual",
    LeaveType.UNPAID: "unpaid",
}


@dataclass(frozen=True)
class Employee:
    """Domain entity: Employee with its owned sub-records.

    References (department, reporting manager) are plain ids.
    """

    id: str
    employee_id: str
    personal_info: PersonalInfo
    employment_details: EmploymentDetails
    salary_info: SalaryInfo
    biometric_info: BiometricInfo
    status: EmployeeStatus
    termination_details: Optional[TerminationDetails]
    documents: Tuple[EmployeeDocument, ...]
    leave_balance: LeaveBalance
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.personal_info.first_name} {self.personal_info.last_name}"


@dataclass(frozen=True)
class NewEmployee:
    employee_id: str
    personal_info: PersonalInfo
    employment_details: EmploymentDetails
    salary_info: SalaryInfo
    biometric_info: BiometricInfo = field(default_factory=BiometricInfo)
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    documents: Tuple[EmployeeDocument, ...] = ()
    leave_balance: Optional[LeaveBalance] = None  # None: use the configured defaults
