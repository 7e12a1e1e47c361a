from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping, Optional, Sequence

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import optional_text, require_enum, require_upper_code
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import DepartmentName
from ..core.exceptions import (
    ConcurrencyConflictError,
    DependentRecordsError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from ..database.records import new_id
from ..employees.repository import EmployeeRepository
from .model import Department, NewDepartment
from .repository import DepartmentRepository

logger = logging.getLogger(__name__)

COLLECTION = "departments"


class DepartmentService:
    """Use case: maintain organizational units.

    Delete policy is RESTRICT: a department that any employee still references
    cannot be deleted; :meth:`deactivate` is the soft alternative.
    """

    def __init__(
        self,
        departments: DepartmentRepository,
        employees: Optional[EmployeeRepository] = None,
        *,
        audit: Optional[AuditTrail] = None,
    ):
        self._departments = departments
        self._employees = employees
        self._audit = audit

    def create(self, draft: NewDepartment, *, actor: Optional[str] = None) -> Department:
        now = now_local()
        department = self._validated(
            Department(
                id=new_id(),
                department_id=draft.department_id,
                name=draft.name,
                custom_name=draft.custom_name,
                description=draft.description,
                head_of_department=draft.head_of_department,
                employee_count=0,
                is_active=bool(draft.is_active),
                created_at=now,
                updated_at=now,
                version=1,
            ),
            previous=None,
        )
        created = self._departments.create(department)
        logger.info("department created: %s (%s)", created.department_id, created.id)
        audit_write(
            self._audit, actor, action="department.create", collection=COLLECTION,
            document_id=created.id, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, department_id: str) -> Department:
        department = self._departments.get_by_id(department_id)
        if not department:
            raise NotFoundError("Department", department_id)
        return department

    def get_by_code(self, code: str) -> Department:
        department = self._departments.get_by_code(require_upper_code(code, "department_id"))
        if not department:
            raise NotFoundError("Department", code)
        return department

    def list_departments(self, *, is_active: Optional[bool] = None, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Department]:
        return self._departments.list_all(is_active=is_active, limit=limit)

    def update(
        self,
        department_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Department:
        current = self.get_by_id(department_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Department {department_id} changed (version {current.version})")

        candidate = self._validated(apply_changes(current, changes, read_only=("employee_count",)), previous=current)
        updated = self._departments.update(candidate, expected_version=current.version)
        if updated is None:
            raise ConcurrencyConflictError(f"Department {department_id} was modified concurrently")

        audit_write(
            self._audit, actor, action="department.update", collection=COLLECTION,
            document_id=updated.id, changes=diff(current, updated),
        )
        return updated

    def deactivate(self, department_id: str, *, actor: Optional[str] = None) -> Department:
        return self.update(department_id, {"is_active": False}, actor=actor)

    def activate(self, department_id: str, *, actor: Optional[str] = None) -> Department:
        return self.update(department_id, {"is_active": True}, actor=actor)

    def assign_head(self, department_id: str, employee_id: Optional[str], *, actor: Optional[str] = None) -> Department:
        return self.update(department_id, {"head_of_department": employee_id}, actor=actor)

    def delete(self, department_id: str, *, actor: Optional[str] = None) -> None:
        department = self.get_by_id(department_id)
        dependents = self._departments.count_employees(department.id)
        if dependents:
            raise DependentRecordsError(
                f"Department {department.department_id} still has {dependents} employee(s); deactivate it instead"
            )
        if not self._departments.delete(department.id):
            raise NotFoundError("Department", department_id)
        logger.info("department deleted: %s", department.department_id)
        audit_write(
            self._audit, actor, action="department.delete", collection=COLLECTION,
            document_id=department.id, changes=to_jsonable(department),
        )

    def _validated(self, d: Department, *, previous: Optional[Department]) -> Department:
        name = require_enum(DepartmentName, d.name, "name")
        custom_name = optional_text(d.custom_name)
        if name == DepartmentName.OTHER and not custom_name:
            raise ValidationError("custom_name is required when name is Other")
        if name != DepartmentName.OTHER and custom_name:
            raise ValidationError("custom_name is only allowed when name is Other")

        head = optional_text(d.head_of_department)
        if head and (previous is None or head != previous.head_of_department):
            self._check_head(head)

        return dataclasses.replace(
            d,
            department_id=require_upper_code(d.department_id, "department_id"),
            name=name,
            custom_name=custom_name,
            description=optional_text(d.description),
            head_of_department=head,
            is_active=bool(d.is_active),
        )

    def _check_head(self, employee_id: str) -> None:
        if self._employees is None:
            return
        employee = self._employees.get_by_id(employee_id)
        if not employee:
            raise InvalidReferenceError(f"Head of department does not exist: {employee_id}")
        if employee.status.is_separated:
            raise InvalidReferenceError(f"Head of department is no longer employed: {employee_id}")
