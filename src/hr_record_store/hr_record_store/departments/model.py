from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import DepartmentName


@dataclass(frozen=True)
class Department:
    """Domain entity: organizational unit.

    ``employee_count`` is derived on read and never written.
    """

    id: str
    department_id: str
    name: DepartmentName
    custom_name: Optional[str]
    description: Optional[str]
    head_of_department: Optional[str]
    employee_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def display_name(self) -> str:
        if self.name == DepartmentName.OTHER and self.custom_name:
            return self.custom_name
        return self.name.value


@dataclass(frozen=True)
class NewDepartment:
    department_id: str
    name: DepartmentName
    custom_name: Optional[str] = None
    description: Optional[str] = None
    head_of_department: Optional[str] = None
    is_active: bool = True
