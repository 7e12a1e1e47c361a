from __future__ import annotations

from typing import Dict, Optional, Protocol, Sequence

from ..core.enums import EmployeeStatus
from .model import Employee


class EmployeeRepository(Protocol):
    def get_by_id(self, employee_id: str) -> Optional[Employee]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Employee]:
        """Lookup by the business ``employee_id``."""

        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[Employee]:
        raise NotImplementedError

    def get_by_biometric_id(self, biometric_id: str) -> Optional[Employee]:
        raise NotImplementedError

    def list_by_department(
        self,
        department_id: str,
        *,
        status: Optional[EmployeeStatus] = None,
        limit: int = 200,
    ) -> Sequence[Employee]:
        raise NotImplementedError

    def list_by_status(self, status: EmployeeStatus, *, limit: int = 200) -> Sequence[Employee]:
        raise NotImplementedError

    def list_direct_reports(self, manager_id: str, *, limit: int = 200) -> Sequence[Employee]:
        raise NotImplementedError

    def create(self, employee: Employee) -> Employee:
        raise NotImplementedError

    def update(self, employee: Employee, *, expected_version: int) -> Optional[Employee]:
        raise NotImplementedError

    def delete(self, employee_id: str) -> bool:
        raise NotImplementedError

    def count_dependents(self, employee_id: str) -> Dict[str, int]:
        """Records in other collections that reference the employee, by collection."""

        raise NotImplementedError
