from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import EmailStatus, PaymentStatus
from .model import Salary, SalarySlip


class SalaryRepository(Protocol):
    def get_by_id(self, salary_id: str) -> Optional[Salary]:
        raise NotImplementedError

    def get_for_period(self, employee_id: str, month: int, year: int) -> Optional[Salary]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: str, *, limit: int = 200) -> Sequence[Salary]:
        """Newest period first."""

        raise NotImplementedError

    def list_for_period(
        self,
        year: int,
        month: Optional[int] = None,
        *,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Salary]:
        raise NotImplementedError

    def list_by_payment_status(
        self, payment_status: PaymentStatus, *, limit: int = 200, timeout: Optional[float] = None
    ) -> Sequence[Salary]:
        """Newest period first."""

        raise NotImplementedError

    def create(self, salary: Salary) -> Salary:
        raise NotImplementedError

    def update(
        self, salary: Salary, *, expected_version: int, expected_status: PaymentStatus
    ) -> Optional[Salary]:
        raise NotImplementedError


class SalarySlipRepository(Protocol):
    def get_by_id(self, slip_id: str) -> Optional[SalarySlip]:
        raise NotImplementedError

    def get_by_slip_number(self, slip_number: str) -> Optional[SalarySlip]:
        raise NotImplementedError

    def get_by_salary(self, salary_id: str) -> Optional[SalarySlip]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: str, *, limit: int = 200) -> Sequence[SalarySlip]:
        """Newest period first."""

        raise NotImplementedError

    def list_by_email_sent(self, email_sent: bool, *, limit: int = 200) -> Sequence[SalarySlip]:
        raise NotImplementedError

    def create(self, slip: SalarySlip) -> SalarySlip:
        raise NotImplementedError

    def update(
        self, slip: SalarySlip, *, expected_version: int, expected_status: EmailStatus
    ) -> Optional[SalarySlip]:
        raise NotImplementedError

    def record_download(self, slip_id: str, at: datetime) -> Optional[SalarySlip]:
        """Append a download timestamp and bump the counter in one transaction."""

        raise NotImplementedError
