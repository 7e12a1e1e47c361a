from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, insert, select

from ..common.datetime_utils import now_local
from ..core.enums import DepartmentName, EmployeeStatus
from ..database.connection import DatabaseConnection
from ..database.records import delete_by_id, versioned_update
from ..database.session import db_session, run_in_transaction
from ..database.tables import DepartmentRow, EmployeeRow
from .model import Department
from .repository import DepartmentRepository

_SEPARATED = [EmployeeStatus.TERMINATED.value, EmployeeStatus.RESIGNED.value]


def _employee_count():
    return (
        select(func.count(EmployeeRow.id))
        .where(EmployeeRow.department_id == DepartmentRow.id, EmployeeRow.status.notin_(_SEPARATED))
        .correlate(DepartmentRow)
        .scalar_subquery()
        .label("employee_count")
    )


class SqlDepartmentRepository(DepartmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, department_id: str) -> Optional[Department]:
        with db_session(self._conn_factory) as session:
            r = session.execute(
                select(DepartmentRow, _employee_count()).where(DepartmentRow.id == department_id)
            ).first()
            return self._to_entity(*r) if r else None

    def get_by_code(self, code: str) -> Optional[Department]:
        with db_session(self._conn_factory) as session:
            r = session.execute(
                select(DepartmentRow, _employee_count()).where(DepartmentRow.department_id == code.strip().upper())
            ).first()
            return self._to_entity(*r) if r else None

    def list_all(self, *, is_active: Optional[bool] = None, limit: int = 200) -> Sequence[Department]:
        stmt = select(DepartmentRow, _employee_count())
        if is_active is not None:
            stmt = stmt.where(DepartmentRow.is_active == bool(is_active))
        stmt = stmt.order_by(DepartmentRow.department_id.asc()).limit(int(limit))
        with db_session(self._conn_factory) as session:
            return [self._to_entity(row, count) for row, count in session.execute(stmt).all()]

    def create(self, department: Department) -> Department:
        def work(session):
            session.execute(insert(DepartmentRow).values(**self._to_values(department)))
            return department

        return run_in_transaction(self._conn_factory, work)

    def update(self, department: Department, *, expected_version: int) -> Optional[Department]:
        def work(session):
            ok = versioned_update(
                session,
                DepartmentRow,
                entity_id=department.id,
                expected_version=expected_version,
                values=self._to_values(department),
                now=now_local(),
            )
            return self.get_by_id(department.id) if ok else None

        return run_in_transaction(self._conn_factory, work)

    def delete(self, department_id: str) -> bool:
        return run_in_transaction(self._conn_factory, lambda s: delete_by_id(s, DepartmentRow, department_id))

    def count_employees(self, department_id: str) -> int:
        with db_session(self._conn_factory) as session:
            return int(
                session.scalar(select(func.count(EmployeeRow.id)).where(EmployeeRow.department_id == department_id))
                or 0
            )

    @staticmethod
    def _to_values(d: Department) -> dict:
        return {
            "id": d.id,
            "department_id": d.department_id,
            "name": d.name.value,
            "custom_name": d.custom_name,
            "description": d.description,
            "head_of_department": d.head_of_department,
            "is_active": bool(d.is_active),
            "created_at": d.created_at,
            "updated_at": d.updated_at,
            "version": d.version,
        }

    @staticmethod
    def _to_entity(r: DepartmentRow, employee_count) -> Department:
        return Department(
            id=r.id,
            department_id=r.department_id,
            name=DepartmentName(r.name),
            custom_name=r.custom_name,
            description=r.description,
            head_of_department=r.head_of_department,
            employee_count=int(employee_count or 0),
            is_active=bool(r.is_active),
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )
