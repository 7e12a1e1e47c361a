from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from ..core.enums import EmailStatus, PaymentMethod, PaymentStatus

ZERO = Decimal("0.00")

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.ON_HOLD}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.PAID, PaymentStatus.ON_HOLD}),
    PaymentStatus.ON_HOLD: frozenset({PaymentStatus.PENDING, PaymentStatus.PROCESSING}),
    PaymentStatus.PAID: frozenset(),
}

EMAIL_TRANSITIONS = {
    EmailStatus.NOT_SENT: frozenset({EmailStatus.SENT}),
    EmailStatus.SENT: frozenset({EmailStatus.FAILED, EmailStatus.BOUNCED}),
    EmailStatus.FAILED: frozenset(),
    EmailStatus.BOUNCED: frozenset(),
}


def _sum(record) -> Decimal:
    return sum((getattr(record, f.name) for f in dataclasses.fields(record)), ZERO)


@dataclass(frozen=True)
class Earnings:
    basic_salary: Decimal
    house_rent_allowance: Decimal = ZERO
    medical_allowance: Decimal = ZERO
    transport_allowance: Decimal = ZERO
    other_allowances: Decimal = ZERO
    overtime: Decimal = ZERO
    bonus: Decimal = ZERO
    incentives: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return _sum(self)


@dataclass(frozen=True)
class Deductions:
    tax: Decimal = ZERO
    provident_fund: Decimal = ZERO
    insurance: Decimal = ZERO
    loan_deduction: Decimal = ZERO
    late_deduction: Decimal = ZERO
    absent_deduction: Decimal = ZERO
    other_deductions: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return _sum(self)


@dataclass(frozen=True)
class AttendanceSummary:
    total_working_days: Decimal
    present_days: Decimal
    absent_days: Decimal = Decimal("0")
    leave_days: Decimal = Decimal("0")
    half_days: Decimal = Decimal("0")
    paid_leave_days: Decimal = Decimal("0")


@dataclass(frozen=True)
class Salary:
    """Domain entity: one employee's pay for one month."""

    id: str
    employee: str
    month: int
    year: int
    earnings: Earnings
    deductions: Deductions
    attendance: AttendanceSummary
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    payment_status: PaymentStatus
    payment_date: Optional[datetime]
    payment_method: Optional[PaymentMethod]
    transaction_id: Optional[str]
    remarks: Optional[str]
    generated_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def period(self) -> str:
        return f"{self.year:04d}{self.month:02d}"


@dataclass(frozen=True)
class NewSalary:
    """Draft of a Salary.

    Omitted earnings and deductions are taken from the employee's salary
    information; omitted totals are derived.
    """

    employee: str
    month: int
    year: int
    attendance: AttendanceSummary
    earnings: Optional[Earnings] = None
    deductions: Optional[Deductions] = None
    gross_salary: Optional[Decimal] = None
    total_deductions: Optional[Decimal] = None
    net_salary: Optional[Decimal] = None
    remarks: Optional[str] = None
    generated_by: Optional[str] = None


@dataclass(frozen=True)
class SalarySlip:
    """Generated pay slip of a Salary, 1:1."""

    id: str
    salary: str
    employee: str
    month: int
    year: int
    slip_number: str
    generated_at: datetime
    pdf_url: Optional[str]
    email_sent: bool
    email_sent_at: Optional[datetime]
    email_status: EmailStatus
    downloaded_at: Tuple[datetime, ...] = field(default=())
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    @property
    def download_count(self) -> int:
        return len(self.downloaded_at)
