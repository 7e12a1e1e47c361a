from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import Attendance


class AttendanceRepository(Protocol):
    def get_by_id(self, attendance_id: str) -> Optional[Attendance]:
        raise NotImplementedError

    def get_for_employee_and_date(self, employee_id: str, work_date: date) -> Optional[Attendance]:
        raise NotImplementedError

    def list_for_employee(
        self,
        employee_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Attendance]:
        """Newest date first."""

        raise NotImplementedError

    def list_by_date(
        self,
        work_date: date,
        *,
        status: Optional[AttendanceStatus] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Attendance]:
        raise NotImplementedError

    def create(self, record: Attendance) -> Attendance:
        """Raises DuplicateKeyError when the (employee, date) pair already exists."""

        raise NotImplementedError

    def update(self, record: Attendance, *, expected_version: int) -> Optional[Attendance]:
        raise NotImplementedError
