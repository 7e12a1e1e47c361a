from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Department


class DepartmentRepository(Protocol):
    def get_by_id(self, department_id: str) -> Optional[Department]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Department]:
        """Lookup by the business ``department_id`` (stored uppercase)."""

        raise NotImplementedError

    def list_all(self, *, is_active: Optional[bool] = None, limit: int = 200) -> Sequence[Department]:
        raise NotImplementedError

    def create(self, department: Department) -> Department:
        raise NotImplementedError

    def update(self, department: Department, *, expected_version: int) -> Optional[Department]:
        """Returns None when ``expected_version`` is stale or the row is gone."""

        raise NotImplementedError

    def delete(self, department_id: str) -> bool:
        raise NotImplementedError

    def count_employees(self, department_id: str) -> int:
        """All employees referencing the department, whatever their status."""

        raise NotImplementedError
